"""User and authentication endpoints mixin for BackendClient."""
from typing import Any

from ..utils.constants import (
    ENDPOINT_LOGIN,
    ENDPOINT_OAUTH_EXCHANGE,
    ENDPOINT_REGISTER,
    ENDPOINT_USER,
    ENDPOINT_USER_PROFILE,
)


class UsersMixin:
    """Mixin providing user, login and registration calls."""

    async def login_user(self, credentials: dict[str, Any]) -> Any:
        """Log in with {email|phone, password} or {email, provider}.

        Returns:
            The backend payload, expected to be {user, token}.
        """
        return await self.post(ENDPOINT_LOGIN, credentials)

    async def register_user(self, profile: dict[str, Any]) -> Any:
        """Register a new account.

        Returns:
            The backend payload, expected to be {user, token}.
        """
        return await self.post(ENDPOINT_REGISTER, profile)

    async def exchange_oauth_code(self, provider: str, code: str) -> Any:
        """Submit an authorization code to the backend's code-exchange endpoint.

        Args:
            provider: Provider segment, e.g. 'google'.
            code: Authorization code returned by the provider.

        Returns:
            The backend payload, expected to be {user, token}.
        """
        endpoint = ENDPOINT_OAUTH_EXCHANGE.format(provider=provider)
        return await self.post(endpoint, {"code": code})

    async def get_user(self, user_id: Any) -> Any:
        return await self.get(ENDPOINT_USER.format(user_id=user_id))

    async def update_user_profile(self, user_id: Any, profile: dict[str, Any]) -> Any:
        return await self.put(ENDPOINT_USER_PROFILE.format(user_id=user_id), profile)
