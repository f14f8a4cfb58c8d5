"""
Authentication orchestration for Marketplace Identity.

This module coordinates password login and registration, the
login-or-register path for identities decoded from a provider credential,
profile edits and logout. Every Backend API failure is converted to an
IdentityError kind here; the session is only ever written through
SessionStore.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .id_token import ExternalIdentity, decode_google_credential
from .oauth_config import get_oauth_config
from ..client import BackendClient
from ..session.models import Provider, Session, SessionIdentity, parse_session_payload
from ..session.store import SessionStore
from ..utils.errors import (
    AuthenticationFailed,
    BackendError,
    IdentityError,
    IdentityNotFound,
    ServerContractViolation,
    ValidationError,
    handle_backend_error,
)

logger = logging.getLogger(__name__)


class FallbackPolicy(str, Enum):
    """Which failed login attempts may fall through to registration.

    Transport, server and contract failures never do, whatever the policy.
    """

    NOT_FOUND = "not_found"
    ANY_REJECTION = "any_rejection"


@dataclass(frozen=True)
class LoginAttempt:
    """Result of a login call: either a session or the failure kind."""

    session: Optional[Session] = None
    error: Optional[IdentityError] = None

    @property
    def ok(self) -> bool:
        return self.session is not None

    @property
    def not_found(self) -> bool:
        return isinstance(self.error, IdentityNotFound)

    @property
    def rejected(self) -> bool:
        # IdentityNotFound is a subclass of AuthenticationFailed
        return isinstance(self.error, AuthenticationFailed)


@dataclass
class RegistrationProfile:
    """Fields submitted to the registration endpoint."""

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    password: Optional[str] = None
    avatar: Optional[str] = None
    verified: Optional[bool] = None
    provider: Optional[Provider] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_external(cls, identity: ExternalIdentity) -> "RegistrationProfile":
        return cls(
            name=identity.name or identity.email,
            email=identity.email,
            avatar=identity.avatar,
            verified=True,
            provider=identity.provider,
        )

    def validate(self, confirm_password: Optional[str] = None) -> None:
        """
        Check the profile before any network call.

        Raises:
            ValidationError: On a password/confirmation mismatch or missing fields.
        """
        if confirm_password is not None and self.password != confirm_password:
            raise ValidationError("Passwords do not match")
        if not self.name:
            raise ValidationError("Name is required")
        if not self.email and not self.phone:
            raise ValidationError("Email or phone is required")
        if self.provider in (None, Provider.LOCAL) and not self.password:
            raise ValidationError("Password is required")

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = dict(self.extra)
        payload.update(
            {
                "name": self.name,
                "email": self.email,
                "phone": self.phone,
                "password": self.password,
                "avatar": self.avatar,
                "verified": self.verified,
                "provider": self.provider.value if self.provider else None,
            }
        )
        return {key: value for key, value in payload.items() if value is not None}


def credentials_payload(identifier: str, secret: str) -> Dict[str, str]:
    """Build the login body: an identifier with '@' is an email, otherwise a phone."""
    identifier = identifier.strip()
    if "@" in identifier:
        return {"email": identifier, "password": secret}
    return {"phone": identifier, "password": secret}


class AuthOrchestrator:
    """Coordinates credential and external-identity authentication."""

    def __init__(
        self,
        session_store: SessionStore,
        client: BackendClient,
        fallback_policy: FallbackPolicy = FallbackPolicy.NOT_FOUND,
    ) -> None:
        self._store = session_store
        self._client = client
        self.fallback_policy = fallback_policy

    async def login_with_credentials(self, identifier: str, secret: str) -> SessionIdentity:
        """
        Log in with an email-or-phone identifier and password.

        Returns:
            The authenticated identity.

        Raises:
            ValidationError: If identifier or secret is empty.
            AuthenticationFailed: If the backend rejects the credentials.
            NetworkUnavailable: If the backend cannot be reached.
            ServerContractViolation: If the response cannot be understood.
        """
        if not identifier or not identifier.strip() or not secret:
            raise ValidationError("Identifier and password are required")

        attempt = await self._attempt_login(credentials_payload(identifier, secret))
        if not attempt.ok:
            if isinstance(attempt.error, IdentityNotFound):
                # Do not reveal which accounts exist
                raise AuthenticationFailed("Login failed", attempt.error.status)
            raise attempt.error
        return attempt.session.identity

    async def register_account(
        self,
        profile: RegistrationProfile,
        confirm_password: Optional[str] = None,
        *,
        epoch: Optional[int] = None,
    ) -> SessionIdentity:
        """
        Register a new account and start its session.

        Args:
            profile: Registration fields.
            confirm_password: Password confirmation typed by the user.
            epoch: Session epoch captured by an enclosing login attempt.

        Returns:
            The newly created identity.

        Raises:
            ValidationError: Before any network call, on invalid input.
            RegistrationFailed: If the backend rejects the registration.
            NetworkUnavailable: If the backend cannot be reached.
            ServerContractViolation: If the response cannot be understood.
        """
        profile.validate(confirm_password)

        if epoch is None:
            epoch = self._store.epoch
        try:
            payload = await self._client.register_user(profile.to_payload())
            identity, token = parse_session_payload(payload)
        except BackendError as e:
            logger.error(f"Registration rejected: {e}")
            raise handle_backend_error(e, action="register")

        self._commit(identity, token, epoch)
        logger.info(f"Registered user {identity.id}")
        return identity

    async def login_or_register_external_identity(
        self, decoded: ExternalIdentity
    ) -> SessionIdentity:
        """
        Log in an externally authenticated identity, registering it if needed.

        A login is attempted with the decoded email and provider marker.
        Registration follows only when that attempt failed in a way the
        fallback policy allows.

        Returns:
            The authenticated (possibly newly created) identity.
        """
        epoch = self._store.epoch
        attempt = await self._attempt_login(
            {"email": decoded.email, "provider": decoded.provider.value}, epoch=epoch
        )
        if attempt.ok:
            return attempt.session.identity

        if not self._may_register_after(attempt):
            logger.warning(
                f"External login for {decoded.email} failed without fallback: {attempt.error}"
            )
            raise attempt.error

        if epoch != self._store.epoch:
            raise AuthenticationFailed("Session was closed while signing in")

        logger.info(f"No account for {decoded.email}, registering it")
        return await self.register_account(
            RegistrationProfile.from_external(decoded), epoch=epoch
        )

    async def login_with_google_credential(self, credential: str) -> SessionIdentity:
        """Decode a Google ID token and log in or register its identity."""
        config = get_oauth_config()
        decoded = decode_google_credential(credential, client_id=config.client_id or None)
        return await self.login_or_register_external_identity(decoded)

    async def update_profile(self, fields: Dict[str, Any]) -> SessionIdentity:
        """
        Save profile edits and replace the session identity (token unchanged).

        Raises:
            ValidationError: If there is no active session.
        """
        identity = self._require_identity()
        epoch = self._store.epoch
        try:
            payload = await self._client.update_user_profile(identity.id, fields)
        except BackendError as e:
            logger.error(f"Profile update failed: {e}")
            raise handle_backend_error(e, action="profile")

        return self._apply_user_payload(payload, epoch)

    async def refresh_identity(self) -> SessionIdentity:
        """Re-fetch the session user from the backend."""
        identity = self._require_identity()
        epoch = self._store.epoch
        try:
            payload = await self._client.get_user(identity.id)
        except BackendError as e:
            logger.error(f"Profile fetch failed: {e}")
            raise handle_backend_error(e, action="profile")

        return self._apply_user_payload(payload, epoch)

    def logout(self) -> None:
        self._store.clear()

    async def _attempt_login(
        self, credentials: Dict[str, Any], *, epoch: Optional[int] = None
    ) -> LoginAttempt:
        """Call the login endpoint and commit the session on success."""
        if epoch is None:
            epoch = self._store.epoch
        try:
            payload = await self._client.login_user(credentials)
            identity, token = parse_session_payload(payload)
        except BackendError as e:
            logger.warning(f"Login rejected (HTTP {e.status})")
            return LoginAttempt(error=handle_backend_error(e, action="login"))
        except IdentityError as e:
            logger.error(f"Login failed: {e}")
            return LoginAttempt(error=e)

        session = self._commit(identity, token, epoch)
        logger.info(f"Logged in user {identity.id}")
        return LoginAttempt(session=session)

    def _may_register_after(self, attempt: LoginAttempt) -> bool:
        if self.fallback_policy == FallbackPolicy.ANY_REJECTION:
            return attempt.rejected
        return attempt.not_found

    def _commit(self, identity: SessionIdentity, token: str, epoch: int) -> Session:
        if not self._store.set(identity, token, epoch=epoch):
            raise AuthenticationFailed("Session was closed while signing in")
        return Session(identity=identity, token=token)

    def _require_identity(self) -> SessionIdentity:
        identity = self._store.identity
        if identity is None:
            raise ValidationError("Not logged in")
        return identity

    def _apply_user_payload(self, payload: Any, epoch: int) -> SessionIdentity:
        user = payload.get("user", payload) if isinstance(payload, dict) else None
        try:
            identity = SessionIdentity.from_dict(user)
        except ValueError as e:
            raise ServerContractViolation(f"Invalid user in server response: {e}")

        if epoch != self._store.epoch:
            raise AuthenticationFailed("Session was closed while updating the profile")
        self._store.update_identity(identity)
        return identity
