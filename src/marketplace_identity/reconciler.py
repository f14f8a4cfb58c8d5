"""Ownership reconciliation between the session identity and fetched records.

Records from different producers type owner ids inconsistently (``5``,
``"5"``, ``"05"``). Ids are normalized once, by canonical_id, and compared
as strings; the owner email is the fallback. Nothing here mutates its inputs.
"""
import re
from collections.abc import Mapping
from decimal import Decimal
from typing import Any, Iterable, NamedTuple, Optional

from .session.models import SessionIdentity

_INTEGER_RE = re.compile(r'^[+-]?\d+$')
_DECIMAL_RE = re.compile(r'^[+-]?\d+\.\d+$')


class Partition(NamedTuple):
    """Entities split by ownership, each list in input order."""
    owned: list[Any]
    not_owned: list[Any]


def canonical_id(value: Any) -> Optional[str]:
    """Normalize an identifier to its canonical string form.

    Integers and integral floats render as plain decimals; decimal-integer
    strings and decimal strings with an integral value are re-rendered the
    same way, so 5, 5.0, "5", "05" and "5.0" agree.
    Other strings are compared stripped. Missing, empty and boolean values
    have no canonical form.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    text = str(value).strip()
    if not text:
        return None
    if _INTEGER_RE.match(text):
        return str(int(text))
    if _DECIMAL_RE.match(text):
        number = Decimal(text)
        if number == number.to_integral_value():
            return str(int(number))
    return text


def _field(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def is_owned_by(identity: Optional[SessionIdentity], owner: Any) -> bool:
    """Whether an owner reference ({id, email}) designates the session identity.

    Canonical id equality is tried first, then exact, case-sensitive email
    equality.
    """
    if identity is None or owner is None:
        return False

    session_id = canonical_id(identity.id)
    owner_id = canonical_id(_field(owner, 'id'))
    if session_id is not None and session_id == owner_id:
        return True

    owner_email = _field(owner, 'email')
    return bool(identity.email) and bool(owner_email) and owner_email == identity.email


def partition(
    identity: Optional[SessionIdentity],
    entities: Iterable[Any],
    owner_field: str = 'owner',
) -> Partition:
    """Split entities into those owned by the identity and the rest.

    Args:
        identity: The session identity; None means nothing is owned.
        entities: Mappings or objects carrying an owner reference.
        owner_field: Attribute or key holding the owner, e.g. 'owner',
            'user' (task poster) or 'assignedTo' (task assignee).

    Returns:
        Partition(owned, not_owned).
    """
    owned: list[Any] = []
    not_owned: list[Any] = []
    for entity in entities:
        if is_owned_by(identity, _field(entity, owner_field)):
            owned.append(entity)
        else:
            not_owned.append(entity)
    return Partition(owned, not_owned)


def owned_by(
    identity: Optional[SessionIdentity],
    entities: Iterable[Any],
    owner_field: str = 'owner',
) -> list[Any]:
    """Return only the entities owned by the identity."""
    return partition(identity, entities, owner_field).owned
