"""
Pending OAuth State for Marketplace Identity.

This module keeps the single-use CSRF nonce generated before the provider
redirect. It is a one-slot register: issuing a new nonce replaces the old
one, and consuming always empties the slot, whether or not the comparison
succeeded.
"""

import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone
from threading import RLock
from typing import Any, Optional

from ..session.storage import KeyValueStorage
from ..utils.constants import DEFAULT_STATE_TTL_SECONDS, STORAGE_KEY_OAUTH_STATE

logger = logging.getLogger(__name__)


def generate_nonce() -> str:
    """Generate an unguessable URL-safe state value."""
    return secrets.token_urlsafe(24)


class PendingStateRegister:
    """One-slot register holding the pending OAuth state nonce."""

    def __init__(
        self,
        storage: KeyValueStorage,
        ttl_seconds: int = DEFAULT_STATE_TTL_SECONDS,
        key: str = STORAGE_KEY_OAUTH_STATE,
    ) -> None:
        if ttl_seconds < 0:
            raise ValueError("ttl_seconds must be non-negative")

        self._storage = storage
        self._ttl_seconds = ttl_seconds
        self._key = key
        self._lock = RLock()

    def issue(self, nonce: Optional[str] = None) -> str:
        """
        Store a fresh nonce as the sole pending state.

        Any previously pending nonce is replaced (last writer wins).

        Args:
            nonce: Explicit nonce; generated when omitted.

        Returns:
            The pending nonce.
        """
        if nonce is None:
            nonce = generate_nonce()
        if not nonce:
            raise ValueError("OAuth state must be provided")

        with self._lock:
            now = datetime.now(timezone.utc)
            expiry = now + timedelta(seconds=self._ttl_seconds)
            self._storage.set(
                self._key,
                {"nonce": nonce, "expires_at": expiry.isoformat()},
            )
            logger.debug(
                "Stored OAuth state %s... (expires at %s)",
                nonce[:8],
                expiry.isoformat(),
            )
        return nonce

    def peek(self) -> Optional[str]:
        """Return the pending nonce without consuming it, or None if absent or expired."""
        with self._lock:
            return self._read_valid()

    def has_pending(self) -> bool:
        return self.peek() is not None

    def consume(self, received: Optional[str]) -> bool:
        """
        Compare a received state with the pending nonce and invalidate it.

        The slot is cleared unconditionally, so a nonce can match at most once
        and a forged state also voids the flow it tried to hijack.

        Args:
            received: The state value from the callback.

        Returns:
            True only if a non-expired nonce was pending and equals received.
        """
        with self._lock:
            pending = self._read_valid()
            self._storage.remove(self._key)

        if pending is None:
            logger.warning("OAuth callback received but no state is pending")
            return False
        if not received or not hmac.compare_digest(pending, received):
            logger.warning("OAuth callback state does not match pending state")
            return False

        logger.debug("Validated OAuth state %s...", pending[:8])
        return True

    def discard(self) -> None:
        """Drop any pending state."""
        with self._lock:
            self._storage.remove(self._key)

    def _read_valid(self) -> Optional[str]:
        """Read the stored nonce, treating malformed or expired entries as absent."""
        raw = self._storage.get(self._key)
        if raw is None:
            return None

        # Plain string entries carry no expiry
        if isinstance(raw, str):
            return raw or None

        if not isinstance(raw, dict) or not isinstance(raw.get("nonce"), str):
            logger.warning("Invalid pending OAuth state format, ignoring")
            return None

        expires_at = _parse_expiry(raw.get("expires_at"))
        if expires_at is None:
            logger.warning("Pending OAuth state has no valid expiry, ignoring")
            return None
        if expires_at <= datetime.now(timezone.utc):
            logger.debug("Pending OAuth state %s... has expired", raw["nonce"][:8])
            return None

        return raw["nonce"] or None


def _parse_expiry(value: Any) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Failed to parse expiry string '%s'", value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
