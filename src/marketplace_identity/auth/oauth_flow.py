"""
OAuth Redirect Flow for Marketplace Identity.

This module runs the OAuth2 authorization-code redirect: it builds the
provider URL with a single-use CSRF state, validates the state when control
returns to the application, and exchanges the code through the Backend API.
"""

import logging
import webbrowser
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional
from urllib.parse import parse_qs, quote, urlencode, urlparse

from .oauth_config import OAuthConfig, get_oauth_config
from .pending_state import PendingStateRegister
from .scopes import format_scope
from ..client import BackendClient
from ..session.models import SessionIdentity, parse_session_payload
from ..session.store import SessionStore
from ..utils.constants import OAUTH_ACTION_LABEL
from ..utils.errors import (
    BackendError,
    CsrfStateMismatch,
    IdentityError,
    UpstreamUnauthorized,
    format_error,
    handle_backend_error,
)

logger = logging.getLogger(__name__)

Navigator = Callable[[str], Any]


class FlowState(str, Enum):
    """States of the redirect flow."""

    IDLE = "idle"
    PENDING_REDIRECT = "pending_redirect"
    AWAITING_CALLBACK = "awaiting_callback"
    EXCHANGING = "exchanging"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


@dataclass(frozen=True)
class CallbackOutcome:
    """What the UI layer should do after a page load.

    Attributes:
        handled: False when the page load was not an OAuth callback (or was a
            forged or replayed one); the UI proceeds as a normal load. A
            forged or replayed callback carries CsrfStateMismatch as error.
        state: Flow state after handling.
        identity: The authenticated identity on success.
        error: The converted failure kind on failure.
        message: User-facing message, if any.
        redirect_to: Path to navigate to: the landing view on success, the
            auth view without query parameters on failure.
    """

    handled: bool
    state: FlowState
    identity: Optional[SessionIdentity] = None
    error: Optional[IdentityError] = None
    message: Optional[str] = None
    redirect_to: Optional[str] = None

    @classmethod
    def ignored(
        cls, state: FlowState, error: Optional[IdentityError] = None
    ) -> "CallbackOutcome":
        return cls(handled=False, state=state, error=error)

    @property
    def succeeded(self) -> bool:
        return self.state == FlowState.AUTHENTICATED

    @property
    def expired(self) -> bool:
        return isinstance(self.error, UpstreamUnauthorized)


def build_authorization_url(config: OAuthConfig, state: str) -> str:
    """
    Construct the provider authorization URL.

    Args:
        config: OAuth configuration (client id, redirect URI, scopes).
        state: The pending CSRF nonce.

    Returns:
        The full authorization URL.
    """
    params = [
        ("client_id", config.client_id),
        ("redirect_uri", config.redirect_uri),
        ("scope", format_scope(config.scopes)),
        ("response_type", "code"),
        ("state", state),
        ("prompt", "select_account"),
    ]
    return f"{config.authorize_endpoint}?{urlencode(params, quote_via=quote)}"


class OAuthRedirectFlow:
    """
    Authorization-code redirect flow with CSRF state.

    The flow never writes the session itself other than through
    SessionStore.set, and only after a validated exchange.
    """

    def __init__(
        self,
        session_store: SessionStore,
        client: BackendClient,
        pending_state: PendingStateRegister,
        config: Optional[OAuthConfig] = None,
        navigate: Optional[Navigator] = None,
    ) -> None:
        self._store = session_store
        self._client = client
        self._pending = pending_state
        self.config = config or get_oauth_config()
        self._navigate = navigate or webbrowser.open
        self.state = FlowState.IDLE

    def begin_redirect(self, navigate: Optional[Navigator] = None) -> str:
        """
        Start the provider redirect.

        Issues a new pending state (voiding any earlier one), builds the
        authorization URL and performs a full navigation to it.

        Returns:
            The authorization URL.
        """
        if not self.config.is_configured():
            logger.warning("OAuth client id is not configured")

        nonce = self._pending.issue()
        self.state = FlowState.PENDING_REDIRECT

        auth_url = build_authorization_url(self.config, nonce)
        logger.info(f"Redirecting to {self.config.provider} sign-in. State: {nonce[:8]}...")

        (navigate or self._navigate)(auth_url)
        self.state = FlowState.AWAITING_CALLBACK
        return auth_url

    async def handle_callback(
        self,
        code: Optional[str],
        state: Optional[str],
        error: Optional[str] = None,
    ) -> CallbackOutcome:
        """
        Handle the return from the provider.

        Args:
            code: The ``code`` query parameter.
            state: The ``state`` query parameter.
            error: The provider ``error`` query parameter, if any.

        Returns:
            A CallbackOutcome. Page loads that are not valid callbacks come
            back with ``handled=False`` and leave the session untouched.
        """
        if not state or not (code or error):
            logger.debug("Page load carries no OAuth callback parameters")
            return CallbackOutcome.ignored(self.state)

        if not self._pending.consume(state):
            # CSRF mismatch, replay or stale flow: treat as a normal page load
            logger.warning("Ignoring OAuth callback with unrecognized state")
            return CallbackOutcome.ignored(
                self.state, CsrfStateMismatch("OAuth state was not recognized")
            )

        if error:
            logger.error(f"Provider returned an error: {error}")
            return self._fail(IdentityError(f"Provider returned an error: {error}"))

        self.state = FlowState.EXCHANGING
        epoch = self._store.epoch
        logger.info(f"OAuth callback: exchanging code (state: {state[:8]}...)")

        try:
            payload = await self._client.exchange_oauth_code(
                self.config.get_exchange_provider(), code
            )
            identity, token = parse_session_payload(payload)
        except BackendError as e:
            return self._fail(handle_backend_error(e, action="oauth"))
        except IdentityError as e:
            return self._fail(e)

        if not self._store.set(identity, token, epoch=epoch):
            return self._fail(IdentityError("Sign-in was cancelled by a logout"))
        self.state = FlowState.AUTHENTICATED
        logger.info(f"OAuth callback: authenticated user {identity.id}")

        return CallbackOutcome(
            handled=True,
            state=self.state,
            identity=identity,
            message=_welcome_message(identity),
            redirect_to=self.config.landing_path,
        )

    async def handle_callback_url(self, url: str) -> CallbackOutcome:
        """Handle a callback given as the full URL the provider redirected to."""
        query = parse_qs(urlparse(url).query)

        def first(name: str) -> Optional[str]:
            values = query.get(name)
            return values[0] if values else None

        return await self.handle_callback(
            first("code"), first("state"), error=first("error")
        )

    def _fail(self, error: IdentityError) -> CallbackOutcome:
        self.state = FlowState.FAILED
        if isinstance(error, UpstreamUnauthorized):
            message = error.message
        else:
            message = format_error(OAUTH_ACTION_LABEL, error)
        logger.error(f"OAuth callback failed: {error}")

        return CallbackOutcome(
            handled=True,
            state=self.state,
            error=error,
            message=message,
            redirect_to=self.config.auth_path,
        )


def _welcome_message(identity: SessionIdentity) -> str:
    name = identity.name or identity.email
    return f"Welcome {name}!" if name else "Welcome!"
