"""
OAuth Scopes for Marketplace Identity.

The marketplace only needs to identify the user: the minimum scope set is
the provider's email and profile scopes.
"""

import logging
from typing import List

logger = logging.getLogger(__name__)

# Short-form Google scopes, as accepted by the authorization endpoint
EMAIL_SCOPE = "email"
PROFILE_SCOPE = "profile"

BASE_SCOPES = [EMAIL_SCOPE, PROFILE_SCOPE]


def get_scopes(extra: str = "") -> List[str]:
    """
    Get the list of OAuth scopes to request.

    Args:
        extra: Optional space or comma separated scopes appended to the base set.

    Returns:
        Ordered list of unique scopes, base scopes first.
    """
    scopes = list(BASE_SCOPES)
    for scope in extra.replace(",", " ").split():
        if scope not in scopes:
            scopes.append(scope)
    return scopes


def format_scope(scopes: List[str]) -> str:
    """Join scopes into the space separated form used by the ``scope`` parameter."""
    missing = [scope for scope in BASE_SCOPES if scope not in scopes]
    if missing:
        logger.warning(f"Requested scopes lack identity scopes: {missing}")
    return " ".join(scopes)
