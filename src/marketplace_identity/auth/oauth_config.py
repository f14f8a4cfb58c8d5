"""
OAuth Configuration Management for Marketplace Identity.

This module centralizes OAuth-related configuration to eliminate hardcoded values.
"""

import os
from typing import List, Optional, Dict, Any

from dotenv import load_dotenv

from .scopes import get_scopes
from ..utils.constants import (
    DEFAULT_AUTH_PATH,
    DEFAULT_LANDING_PATH,
    DEFAULT_STATE_TTL_SECONDS,
    PROVIDER_GOOGLE,
)

GOOGLE_AUTHORIZE_ENDPOINT = "https://accounts.google.com/o/oauth2/v2/auth"

load_dotenv()


class OAuthConfig:
    """
    Centralized OAuth configuration management.

    Provides a single source of truth for all OAuth-related configuration values.
    """

    def __init__(self) -> None:
        # Identity provider; selects the /users/<provider>-oauth exchange endpoint
        self.provider = os.getenv("MARKETPLACE_OAUTH_PROVIDER", PROVIDER_GOOGLE)

        # OAuth client configuration
        self.client_id = os.getenv("MARKETPLACE_GOOGLE_CLIENT_ID", "")
        self.authorize_endpoint = os.getenv(
            "MARKETPLACE_OAUTH_AUTHORIZE_ENDPOINT", GOOGLE_AUTHORIZE_ENDPOINT
        )

        # Must match the provider registration exactly
        self.redirect_uri = os.getenv(
            "MARKETPLACE_OAUTH_REDIRECT_URI", "http://localhost:3000/auth"
        )

        self.scopes: List[str] = get_scopes(os.getenv("MARKETPLACE_OAUTH_SCOPES", ""))

        # Pending state lifetime
        self.state_ttl_seconds = int(
            os.getenv("MARKETPLACE_OAUTH_STATE_TTL", str(DEFAULT_STATE_TTL_SECONDS))
        )

        # Views the UI layer is sent to after a callback
        self.landing_path = os.getenv("MARKETPLACE_LANDING_PATH", DEFAULT_LANDING_PATH)
        self.auth_path = os.getenv("MARKETPLACE_AUTH_PATH", DEFAULT_AUTH_PATH)

    def is_configured(self) -> bool:
        """Check if OAuth is properly configured."""
        return bool(self.client_id and self.redirect_uri)

    def get_exchange_provider(self) -> str:
        """Get the provider segment of the code-exchange endpoint."""
        return self.provider

    def get_environment_summary(self) -> Dict[str, Any]:
        """Get a summary of the current OAuth configuration (excluding secrets)."""
        return {
            "provider": self.provider,
            "authorize_endpoint": self.authorize_endpoint,
            "redirect_uri": self.redirect_uri,
            "scopes": list(self.scopes),
            "state_ttl_seconds": self.state_ttl_seconds,
            "landing_path": self.landing_path,
            "auth_path": self.auth_path,
            "client_configured": self.is_configured(),
        }


# Global configuration instance
_oauth_config: Optional[OAuthConfig] = None


def get_oauth_config() -> OAuthConfig:
    """Get the global OAuth configuration instance."""
    global _oauth_config
    if _oauth_config is None:
        _oauth_config = OAuthConfig()
    return _oauth_config


def reload_oauth_config() -> OAuthConfig:
    """Reload the OAuth configuration from environment variables."""
    global _oauth_config
    _oauth_config = OAuthConfig()
    return _oauth_config

