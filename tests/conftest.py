"""Shared fixtures for Marketplace Identity tests."""

import json
from typing import Any, Callable, Optional

import httpx
import pytest

from marketplace_identity.auth.oauth_config import OAuthConfig
from marketplace_identity.auth.pending_state import PendingStateRegister
from marketplace_identity.client import BackendClient
from marketplace_identity.session.models import SessionIdentity
from marketplace_identity.session.storage import MemoryStorage
from marketplace_identity.session.store import SessionStore

API_BASE = "http://backend.test/api"


class FakeBackend:
    """Routes requests to canned responses and records every call."""

    def __init__(self) -> None:
        self.calls: list[httpx.Request] = []
        self.routes: dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}

    def on(self, method: str, path: str, status: int = 200, body: Any = None) -> None:
        def respond(request: httpx.Request) -> httpx.Response:
            if body is None:
                return httpx.Response(status)
            return httpx.Response(status, json=body)

        self.routes[(method, path)] = respond

    def on_call(
        self, method: str, path: str, handler: Callable[[httpx.Request], httpx.Response]
    ) -> None:
        self.routes[(method, path)] = handler

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"error": "no route"})
        return handler(request)

    def calls_to(self, path: str) -> list[httpx.Request]:
        return [call for call in self.calls if call.url.path == path]

    @staticmethod
    def body(request: httpx.Request) -> Any:
        return json.loads(request.content)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def store(storage: MemoryStorage) -> SessionStore:
    return SessionStore(storage)


@pytest.fixture
def client(backend: FakeBackend, store: SessionStore) -> BackendClient:
    return BackendClient(
        base_url=API_BASE,
        token_provider=lambda: store.token,
        transport=httpx.MockTransport(backend.handle),
    )


@pytest.fixture
def pending(storage: MemoryStorage) -> PendingStateRegister:
    return PendingStateRegister(storage, ttl_seconds=600)


@pytest.fixture
def oauth_config() -> OAuthConfig:
    config = OAuthConfig()
    config.provider = "google"
    config.client_id = "client-123.apps.googleusercontent.com"
    config.authorize_endpoint = "https://accounts.google.com/o/oauth2/v2/auth"
    config.redirect_uri = "http://localhost:3000/auth"
    config.scopes = ["email", "profile"]
    config.landing_path = "/dashboard"
    config.auth_path = "/auth"
    return config


def make_identity(
    user_id: Any = 7, email: Optional[str] = "a@b.com", **kwargs: Any
) -> SessionIdentity:
    return SessionIdentity(id=user_id, email=email, **kwargs)
