"""
Authentication Package for Marketplace Identity.

This package provides:
- OAuth2 authorization-code redirect flow with single-use CSRF state
- Credential login, registration and login-or-register for provider identities
- Google ID token decoding
- A minimal callback server for the provider redirect
"""

from .scopes import BASE_SCOPES, get_scopes
from .oauth_config import OAuthConfig, get_oauth_config, reload_oauth_config
from .pending_state import PendingStateRegister, generate_nonce
from .oauth_flow import (
    CallbackOutcome,
    FlowState,
    OAuthRedirectFlow,
    build_authorization_url,
)
from .id_token import ExternalIdentity, decode_google_credential
from .orchestrator import (
    AuthOrchestrator,
    FallbackPolicy,
    LoginAttempt,
    RegistrationProfile,
)

__all__ = [
    # Scopes
    "BASE_SCOPES",
    "get_scopes",
    # Config
    "OAuthConfig",
    "get_oauth_config",
    "reload_oauth_config",
    # Pending state
    "PendingStateRegister",
    "generate_nonce",
    # Redirect flow
    "CallbackOutcome",
    "FlowState",
    "OAuthRedirectFlow",
    "build_authorization_url",
    # Provider credentials
    "ExternalIdentity",
    "decode_google_credential",
    # Orchestration
    "AuthOrchestrator",
    "FallbackPolicy",
    "LoginAttempt",
    "RegistrationProfile",
]
