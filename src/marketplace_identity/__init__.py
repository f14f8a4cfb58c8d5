"""Marketplace Identity - session and identity core of the marketplace client.

This package owns the authenticated session (identity + bearer token), runs
the Google OAuth2 redirect flow, coordinates login and registration against
the Backend API, and reconciles fetched tasks with the session identity.
"""
from .session import SessionIdentity, SessionStore
from .auth import AuthOrchestrator, OAuthRedirectFlow
from .client import BackendClient
from .reconciler import partition, canonical_id

__version__ = "0.1.0"
__all__ = [
    "SessionIdentity",
    "SessionStore",
    "AuthOrchestrator",
    "OAuthRedirectFlow",
    "BackendClient",
    "partition",
    "canonical_id",
]
