"""Session value types."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from ..utils.errors import ServerContractViolation

logger = logging.getLogger(__name__)

IdentityId = Union[int, str]

_KNOWN_FIELDS = ("id", "name", "email", "avatar", "verified", "provider")


class Provider(str, Enum):
    """Where an identity was authenticated."""

    LOCAL = "local"
    GOOGLE = "google"

    @classmethod
    def parse(cls, value: Any) -> "Provider":
        if isinstance(value, Provider):
            return value
        try:
            return cls(str(value).lower()) if value else cls.LOCAL
        except ValueError:
            logger.warning(f"Unknown identity provider {value!r}, using 'local'")
            return cls.LOCAL


@dataclass(frozen=True)
class SessionIdentity:
    """The authenticated user as returned by the Backend API.

    ``id`` is kept exactly as the backend issued it (int or str); it is never
    re-typed. Fields the core does not interpret are preserved in ``extra``.
    """

    id: IdentityId
    name: Optional[str] = None
    email: Optional[str] = None
    avatar: Optional[str] = None
    verified: bool = False
    provider: Provider = Provider.LOCAL
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionIdentity":
        """Build an identity from a backend user object.

        Raises:
            ValueError: If data is not a mapping or has no id.
        """
        if not isinstance(data, dict):
            raise ValueError(f"User data must be an object, got {type(data).__name__}")
        if data.get("id") is None or isinstance(data.get("id"), bool):
            raise ValueError("User data has no usable id")

        return cls(
            id=data["id"],
            name=data.get("name"),
            email=data.get("email"),
            avatar=data.get("avatar"),
            verified=bool(data.get("verified", False)),
            provider=Provider.parse(data.get("provider")),
            extra={k: v for k, v in data.items() if k not in _KNOWN_FIELDS},
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize back to the backend's user shape."""
        data = dict(self.extra)
        data.update(
            {
                "id": self.id,
                "name": self.name,
                "email": self.email,
                "avatar": self.avatar,
                "verified": self.verified,
                "provider": self.provider.value,
            }
        )
        return data


@dataclass(frozen=True)
class Session:
    """An identity together with its bearer token. Never one without the other."""

    identity: SessionIdentity
    token: str


def parse_session_payload(payload: Any) -> Tuple[SessionIdentity, str]:
    """
    Extract (identity, token) from a ``{user, token}`` backend response.

    Raises:
        ServerContractViolation: If either value is missing or malformed.
    """
    if not isinstance(payload, dict):
        raise ServerContractViolation("Invalid response from server")

    user = payload.get("user")
    token = payload.get("token")
    if not user or not token or not isinstance(token, str):
        raise ServerContractViolation("Invalid response from server")

    try:
        identity = SessionIdentity.from_dict(user)
    except ValueError as e:
        raise ServerContractViolation(f"Invalid user in server response: {e}")
    return identity, token
