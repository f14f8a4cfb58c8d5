"""Service wiring and command-line entry point for Marketplace Identity."""

import logging
import sys
import threading
from dataclasses import dataclass
from typing import Optional

from .auth.oauth_callback_server import MinimalOAuthServer, create_callback_app
from .auth.oauth_config import OAuthConfig, get_oauth_config
from .auth.oauth_flow import OAuthRedirectFlow
from .auth.orchestrator import AuthOrchestrator, FallbackPolicy
from .auth.pending_state import PendingStateRegister
from .client import BackendClient
from .core.config import MARKETPLACE_CALLBACK_HOST, MARKETPLACE_CALLBACK_PORT
from .session.storage import JsonFileStorage, KeyValueStorage
from .session.store import SessionStore

logger = logging.getLogger(__name__)


@dataclass
class IdentityServices:
    """The session and identity components, wired together."""

    storage: KeyValueStorage
    store: SessionStore
    client: BackendClient
    pending_state: PendingStateRegister
    flow: OAuthRedirectFlow
    orchestrator: AuthOrchestrator

    async def aclose(self) -> None:
        await self.client.aclose()


def build_services(
    storage: Optional[KeyValueStorage] = None,
    client: Optional[BackendClient] = None,
    config: Optional[OAuthConfig] = None,
    fallback_policy: FallbackPolicy = FallbackPolicy.NOT_FOUND,
) -> IdentityServices:
    """
    Wire the store, backend client, redirect flow and orchestrator.

    The persisted session is loaded before returning.

    Args:
        storage: Key/value storage; defaults to the JSON file in the state dir.
        client: Backend client; defaults to one reading the store's token.
        config: OAuth configuration; defaults to the global one.
        fallback_policy: Registration fallback policy for external identities.
    """
    storage = storage if storage is not None else JsonFileStorage()
    config = config or get_oauth_config()
    store = SessionStore(storage)

    if client is None:
        client = BackendClient(token_provider=lambda: store.token)

    pending_state = PendingStateRegister(storage, ttl_seconds=config.state_ttl_seconds)
    flow = OAuthRedirectFlow(store, client, pending_state, config=config)
    orchestrator = AuthOrchestrator(store, client, fallback_policy=fallback_policy)

    store.load()
    return IdentityServices(
        storage=storage,
        store=store,
        client=client,
        pending_state=pending_state,
        flow=flow,
        orchestrator=orchestrator,
    )


def main(timeout: float = 300.0) -> int:
    """Sign in through the provider redirect and report the session."""
    logging.basicConfig(level=logging.INFO)

    services = build_services()
    store = services.store

    if store.is_authenticated:
        print(f"Signed in as {store.identity.email or store.identity.id}")
        return 0

    signed_in = threading.Event()
    store.subscribe(lambda session: signed_in.set() if session else None)

    server = MinimalOAuthServer(
        create_callback_app(services.flow, store),
        port=MARKETPLACE_CALLBACK_PORT,
        host=MARKETPLACE_CALLBACK_HOST,
    )
    success, error_msg = server.start()
    if not success:
        print(f"Error: OAuth callback server unavailable: {error_msg}", file=sys.stderr)
        return 1

    try:
        auth_url = services.flow.begin_redirect()
        print(f"Complete sign-in in your browser:\n{auth_url}")
        if not signed_in.wait(timeout):
            print("Sign-in timed out", file=sys.stderr)
            return 1
        print(f"Signed in as {store.identity.email or store.identity.id}")
        return 0
    finally:
        server.stop()


if __name__ == "__main__":
    sys.exit(main())
