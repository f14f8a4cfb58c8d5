"""
Session package for Marketplace Identity.

Holds the authenticated identity and bearer token and persists them through
a key/value storage area.
"""

from .models import Provider, Session, SessionIdentity
from .storage import (
    KeyValueStorage,
    JsonFileStorage,
    MemoryStorage,
    get_language,
    set_language,
)
from .store import SessionStore

__all__ = [
    "Provider",
    "Session",
    "SessionIdentity",
    "KeyValueStorage",
    "JsonFileStorage",
    "MemoryStorage",
    "get_language",
    "set_language",
    "SessionStore",
]
