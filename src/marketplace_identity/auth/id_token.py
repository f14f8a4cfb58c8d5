"""
Provider credential decoding for Marketplace Identity.

Turns a Google-issued ID token (the ``credential`` handed to the page by
Google's sign-in prompt) into the profile fields used for login-or-register.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from google.auth import exceptions as google_exceptions
from google.auth import jwt
from google.auth.transport.requests import Request
from google.oauth2 import id_token as google_id_token

from ..session.models import Provider
from ..utils.errors import AuthenticationFailed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExternalIdentity:
    """Profile fields decoded from a provider credential."""

    email: str
    name: Optional[str] = None
    avatar: Optional[str] = None
    verified: bool = True
    provider: Provider = Provider.GOOGLE

    @classmethod
    def from_claims(
        cls, claims: Dict[str, Any], provider: Provider = Provider.GOOGLE
    ) -> "ExternalIdentity":
        email = claims.get("email")
        if not email:
            raise AuthenticationFailed("Provider credential carries no email")
        return cls(
            email=email,
            name=claims.get("name"),
            avatar=claims.get("picture"),
            verified=True,
            provider=provider,
        )


def decode_google_credential(
    credential: str, client_id: Optional[str] = None
) -> ExternalIdentity:
    """
    Decode a Google ID token.

    Args:
        credential: The encoded ID token.
        client_id: OAuth client id. When given, the token signature, expiry
            and audience are verified against Google's certificates; when
            omitted the claims are read without verification.

    Returns:
        The decoded ExternalIdentity.

    Raises:
        AuthenticationFailed: If the token is malformed, fails verification,
            or has no email claim.
    """
    try:
        if client_id:
            claims = google_id_token.verify_oauth2_token(
                credential, Request(), audience=client_id
            )
        else:
            logger.debug("Decoding Google credential without signature verification")
            claims = jwt.decode(credential, verify=False)
    except (ValueError, google_exceptions.GoogleAuthError) as e:
        logger.error(f"Invalid Google credential: {e}")
        raise AuthenticationFailed("Invalid Google credential")

    return ExternalIdentity.from_claims(claims, Provider.GOOGLE)
