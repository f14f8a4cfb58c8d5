"""
Session Store for Marketplace Identity.

This module owns the authenticated session: the current identity and its
bearer token. Both values are persisted and published together; no reader can
observe one without the other.
"""

import json
import logging
from threading import RLock
from typing import Any, Callable, List, Optional

from .models import Session, SessionIdentity
from .storage import KeyValueStorage
from ..utils.constants import SESSION_KEYS, STORAGE_KEY_TOKEN, STORAGE_KEY_USER
from ..utils.errors import ValidationError

logger = logging.getLogger(__name__)

SessionListener = Callable[[Optional[Session]], None]


class SessionStore:
    """
    Durable holder of the current identity and bearer token.

    The store is a reactive value: listeners registered with subscribe() are
    called synchronously after every set, clear and update_identity.

    Every clear() advances ``epoch``. Operations that talk to the network
    capture the epoch before their call and hand it back to set(); a set
    whose epoch is stale is disregarded, so a logout that happened while a
    login was in flight is never undone.
    """

    def __init__(self, storage: KeyValueStorage) -> None:
        self._storage = storage
        self._session: Optional[Session] = None
        self._listeners: List[SessionListener] = []
        self._epoch = 0
        self._lock = RLock()

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def identity(self) -> Optional[SessionIdentity]:
        session = self._session
        return session.identity if session else None

    @property
    def token(self) -> Optional[str]:
        session = self._session
        return session.token if session else None

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """
        Register a listener for session changes.

        Returns:
            A callable that removes the listener.
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _publish(self) -> None:
        """Notify listeners of the current session. Caller must hold lock."""
        for listener in list(self._listeners):
            listener(self._session)

    def load(self) -> Optional[Session]:
        """
        Read the persisted session at startup.

        Missing, corrupt or half-present data yields None; this method never
        raises to its caller.
        """
        with self._lock:
            try:
                session = self._read_persisted()
            except Exception as e:
                logger.error(f"Unexpected error loading persisted session: {e}")
                session = None

            self._session = session
            self._publish()
            return session

    def _read_persisted(self) -> Optional[Session]:
        raw_user = self._storage.get(STORAGE_KEY_USER)
        token = self._storage.get(STORAGE_KEY_TOKEN)

        if raw_user is None and token is None:
            logger.debug("No persisted session found")
            return None
        if raw_user is None or not token or not isinstance(token, str):
            logger.warning("Persisted session is incomplete, treating as absent")
            return None

        try:
            identity = SessionIdentity.from_dict(_decode_user(raw_user))
        except (ValueError, TypeError) as e:
            logger.warning(f"Persisted user is corrupt, treating as absent: {e}")
            return None

        logger.info(f"Loaded persisted session for user {identity.id}")
        return Session(identity=identity, token=token)

    def set(
        self,
        identity: SessionIdentity,
        token: str,
        *,
        epoch: Optional[int] = None,
    ) -> bool:
        """
        Atomically persist and publish a new session.

        Args:
            identity: The authenticated identity.
            token: Its bearer token.
            epoch: Epoch captured when the originating operation started.

        Returns:
            False if the write was disregarded because a clear() happened
            after the operation started, True otherwise.
        """
        if not token:
            raise ValidationError("A session requires a bearer token")

        with self._lock:
            if epoch is not None and epoch != self._epoch:
                logger.info(
                    "Discarding session for user %s: session was cleared while "
                    "the operation was in flight",
                    identity.id,
                )
                return False

            self._storage.set_many(
                {STORAGE_KEY_USER: identity.to_dict(), STORAGE_KEY_TOKEN: token}
            )
            self._session = Session(identity=identity, token=token)
            logger.info(f"Stored session for user {identity.id}")
            self._publish()
            return True

    def update_identity(self, identity: SessionIdentity) -> None:
        """
        Replace the identity and keep the existing token.

        Raises:
            ValidationError: If there is no active session to update.
        """
        with self._lock:
            if self._session is None:
                raise ValidationError("Cannot update identity without an active session")

            self._storage.set(STORAGE_KEY_USER, identity.to_dict())
            self._session = Session(identity=identity, token=self._session.token)
            logger.info(f"Updated identity for user {identity.id}")
            self._publish()

    def clear(self) -> None:
        """Atomically remove identity and token. Idempotent."""
        with self._lock:
            self._epoch += 1
            self._storage.remove(*SESSION_KEYS)
            had_session = self._session is not None
            self._session = None
            if had_session:
                logger.info("Cleared session")
            self._publish()


def _decode_user(raw_user: Any) -> Any:
    """Accept both an object and its JSON-serialized form."""
    if isinstance(raw_user, str):
        try:
            return json.loads(raw_user)
        except json.JSONDecodeError as e:
            raise ValueError(f"user is not valid JSON: {e}")
    return raw_user
