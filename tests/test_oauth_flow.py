"""Unit tests for the OAuth redirect flow."""

from unittest.mock import Mock
from urllib.parse import parse_qsl, urlparse

import httpx
import pytest

from marketplace_identity.auth.oauth_flow import (
    FlowState,
    OAuthRedirectFlow,
    build_authorization_url,
)
from marketplace_identity.utils.errors import (
    CsrfStateMismatch,
    NetworkUnavailable,
    ServerContractViolation,
    UpstreamUnauthorized,
)

from conftest import make_identity

EXCHANGE_PATH = "/api/users/google-oauth"


@pytest.fixture
def navigate():
    return Mock()


@pytest.fixture
def flow(store, client, pending, oauth_config, navigate):
    return OAuthRedirectFlow(store, client, pending, config=oauth_config, navigate=navigate)


class TestAuthorizationUrl:
    """Tests for the redirect URL contract."""

    def test_parameters_and_order(self, oauth_config):
        url = build_authorization_url(oauth_config, "nonce-1")
        parsed = urlparse(url)

        assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == oauth_config.authorize_endpoint
        assert parse_qsl(parsed.query) == [
            ("client_id", "client-123.apps.googleusercontent.com"),
            ("redirect_uri", "http://localhost:3000/auth"),
            ("scope", "email profile"),
            ("response_type", "code"),
            ("state", "nonce-1"),
            ("prompt", "select_account"),
        ]

    def test_values_are_url_encoded(self, oauth_config):
        url = build_authorization_url(oauth_config, "nonce-1")

        assert "scope=email%20profile" in url
        assert "redirect_uri=http%3A%2F%2Flocalhost%3A3000%2Fauth" in url


class TestBeginRedirect:
    """Tests for starting the redirect."""

    def test_issues_state_and_navigates(self, flow, pending, navigate):
        url = flow.begin_redirect()

        navigate.assert_called_once_with(url)
        state = dict(parse_qsl(urlparse(url).query))["state"]
        assert pending.peek() == state
        assert flow.state == FlowState.AWAITING_CALLBACK

    def test_second_redirect_invalidates_first_state(self, flow, pending):
        first = dict(parse_qsl(urlparse(flow.begin_redirect()).query))["state"]
        second = dict(parse_qsl(urlparse(flow.begin_redirect()).query))["state"]

        assert first != second
        assert pending.peek() == second


class TestHandleCallback:
    """Tests for callback validation and code exchange."""

    @pytest.mark.asyncio
    async def test_valid_callback_exchanges_once_and_sets_session(self, flow, pending, store, backend):
        pending.issue("abc123")
        backend.on("POST", EXCHANGE_PATH, body={"user": {"id": 7, "email": "a@b.com"}, "token": "t1"})

        outcome = await flow.handle_callback("XYZ", "abc123")

        assert len(backend.calls_to(EXCHANGE_PATH)) == 1
        assert backend.body(backend.calls[0]) == {"code": "XYZ"}
        assert outcome.handled and outcome.succeeded
        assert outcome.redirect_to == "/dashboard"
        assert store.identity.id == 7
        assert store.identity.email == "a@b.com"
        assert store.token == "t1"
        assert flow.state == FlowState.AUTHENTICATED

    @pytest.mark.asyncio
    async def test_wrong_state_is_ignored(self, flow, pending, store, backend):
        pending.issue("abc123")

        outcome = await flow.handle_callback("XYZ", "wrong")

        assert not outcome.handled
        assert isinstance(outcome.error, CsrfStateMismatch)
        assert backend.calls == []
        assert store.session is None

    @pytest.mark.asyncio
    async def test_no_pending_state_is_ignored(self, flow, store, backend):
        store.set(make_identity(1), "existing")

        outcome = await flow.handle_callback("XYZ", "abc123")

        assert not outcome.handled
        assert backend.calls == []
        assert store.token == "existing"

    @pytest.mark.asyncio
    async def test_missing_state_is_ignored_and_keeps_pending(self, flow, pending, backend):
        pending.issue("abc123")

        outcome = await flow.handle_callback("XYZ", None)

        assert not outcome.handled
        assert outcome.error is None
        assert backend.calls == []
        assert pending.peek() == "abc123"

    @pytest.mark.asyncio
    async def test_plain_page_load_is_ignored(self, flow, backend):
        outcome = await flow.handle_callback_url("http://localhost:3000/auth?mode=signup")

        assert not outcome.handled
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_redelivered_callback_does_not_exchange_again(self, flow, pending, backend):
        pending.issue("abc123")
        backend.on("POST", EXCHANGE_PATH, body={"user": {"id": 7}, "token": "t1"})

        first = await flow.handle_callback("XYZ", "abc123")
        second = await flow.handle_callback("XYZ", "abc123")

        assert first.succeeded
        assert not second.handled
        assert len(backend.calls_to(EXCHANGE_PATH)) == 1

    @pytest.mark.asyncio
    async def test_state_is_consumed_before_exchange(self, flow, pending, backend):
        pending.issue("abc123")
        seen_pending = []

        def respond(request):
            seen_pending.append(pending.peek())
            return httpx.Response(200, json={"user": {"id": 7}, "token": "t1"})

        backend.on_call("POST", EXCHANGE_PATH, respond)
        await flow.handle_callback("XYZ", "abc123")

        assert seen_pending == [None]

    @pytest.mark.asyncio
    async def test_expired_upstream_authorization(self, flow, pending, store, backend):
        pending.issue("abc123")
        backend.on("POST", EXCHANGE_PATH, status=401, body={"error": "401 Unauthorized: token expired"})

        outcome = await flow.handle_callback("XYZ", "abc123")

        assert isinstance(outcome.error, UpstreamUnauthorized)
        assert outcome.expired
        assert outcome.message == "Google login expired. Please try again."
        assert outcome.redirect_to == "/auth"
        assert store.session is None
        assert flow.state == FlowState.FAILED

    @pytest.mark.asyncio
    async def test_other_failure_is_generic(self, flow, pending, store, backend):
        pending.issue("abc123")
        backend.on("POST", EXCHANGE_PATH, status=500, body={"error": "database down"})

        outcome = await flow.handle_callback("XYZ", "abc123")

        assert outcome.handled and not outcome.succeeded
        assert not outcome.expired
        assert outcome.message.startswith("Google login failed:")
        assert "database down" in outcome.message
        assert outcome.redirect_to == "/auth"
        assert store.session is None

    @pytest.mark.asyncio
    async def test_401_without_unauthorized_text_is_generic(self, flow, pending, backend):
        pending.issue("abc123")
        backend.on("POST", EXCHANGE_PATH, status=401, body={"error": "bad code"})

        outcome = await flow.handle_callback("XYZ", "abc123")

        assert not outcome.expired

    @pytest.mark.asyncio
    async def test_unparseable_body_is_contract_violation(self, flow, pending, store, backend):
        pending.issue("abc123")
        backend.on_call("POST", EXCHANGE_PATH, lambda request: httpx.Response(502, text="<html>Bad Gateway</html>"))

        outcome = await flow.handle_callback("XYZ", "abc123")

        assert isinstance(outcome.error, ServerContractViolation)
        assert store.session is None

    @pytest.mark.asyncio
    async def test_undecodable_body_fails_the_flow(self, flow, pending, store, backend):
        pending.issue("abc123")
        backend.on_call(
            "POST",
            EXCHANGE_PATH,
            lambda request: httpx.Response(
                200, headers={"Content-Encoding": "gzip"}, content=b"not-gzip"
            ),
        )

        outcome = await flow.handle_callback("XYZ", "abc123")

        assert isinstance(outcome.error, ServerContractViolation)
        assert flow.state == FlowState.FAILED
        assert outcome.redirect_to == "/auth"
        assert store.session is None

    @pytest.mark.asyncio
    async def test_success_without_token_is_contract_violation(self, flow, pending, store, backend):
        pending.issue("abc123")
        backend.on("POST", EXCHANGE_PATH, body={"user": {"id": 7}})

        outcome = await flow.handle_callback("XYZ", "abc123")

        assert isinstance(outcome.error, ServerContractViolation)
        assert store.session is None

    @pytest.mark.asyncio
    async def test_unreachable_backend_is_generic_failure(self, flow, pending, store, backend):
        pending.issue("abc123")

        def unreachable(request):
            raise httpx.ConnectError("connection refused", request=request)

        backend.on_call("POST", EXCHANGE_PATH, unreachable)
        outcome = await flow.handle_callback("XYZ", "abc123")

        assert isinstance(outcome.error, NetworkUnavailable)
        assert outcome.message.startswith("Google login failed:")
        assert store.session is None

    @pytest.mark.asyncio
    async def test_provider_error_consumes_state_without_exchange(self, flow, pending, backend):
        pending.issue("abc123")

        outcome = await flow.handle_callback_url(
            "http://localhost:3000/auth?error=access_denied&state=abc123"
        )

        assert outcome.handled and not outcome.succeeded
        assert backend.calls == []
        assert not pending.has_pending()

    @pytest.mark.asyncio
    async def test_logout_during_exchange_wins(self, flow, pending, store, backend):
        pending.issue("abc123")

        def respond(request):
            store.clear()
            return httpx.Response(200, json={"user": {"id": 7}, "token": "t1"})

        backend.on_call("POST", EXCHANGE_PATH, respond)
        outcome = await flow.handle_callback("XYZ", "abc123")

        assert not outcome.succeeded
        assert store.session is None

    @pytest.mark.asyncio
    async def test_full_round_trip_from_redirect(self, flow, backend, store):
        url = flow.begin_redirect()
        state = dict(parse_qsl(urlparse(url).query))["state"]
        backend.on("POST", EXCHANGE_PATH, body={"user": {"id": "g-1", "name": "Ana"}, "token": "t2"})

        outcome = await flow.handle_callback_url(f"http://localhost:3000/auth?code=C0DE&state={state}")

        assert outcome.succeeded
        assert outcome.message == "Welcome Ana!"
        assert store.identity.id == "g-1"
