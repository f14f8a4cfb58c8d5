"""Base client with Backend API transport."""
import logging
from typing import Any, Callable, Optional

import httpx

from ..core.config import MARKETPLACE_API_TIMEOUT, get_api_base_url
from ..utils.errors import BackendError, NetworkUnavailable, ServerContractViolation

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Optional[str]]


class BackendClientBase:
    """Base class owning the HTTP connection to the Backend API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token_provider: Optional[TokenProvider] = None,
        timeout: float = MARKETPLACE_API_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: API root; defaults to MARKETPLACE_API_BASE_URL.
            token_provider: Returns the current bearer token, if any.
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport (used by tests).
        """
        self.base_url = (base_url or get_api_base_url()).rstrip("/")
        self._token_provider = token_provider
        self._http = httpx.AsyncClient(
            base_url=self.base_url, timeout=timeout, transport=transport
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "BackendClientBase":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        token = self._token_provider() if self._token_provider else None
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def request(
        self, method: str, endpoint: str, body: Optional[Any] = None
    ) -> Any:
        """Perform a request and return the parsed JSON body.

        Args:
            method: HTTP method.
            endpoint: Path relative to the API root (e.g. "/users/login").
            body: Optional JSON-serializable request body.

        Returns:
            The parsed response body ({} for an empty body).

        Raises:
            NetworkUnavailable: The backend could not be reached.
            ServerContractViolation: The body cannot be decoded or is not valid JSON.
            BackendError: The backend answered with a non-2xx status.
        """
        try:
            response = await self._http.request(
                method, endpoint, json=body, headers=self._headers()
            )
        except httpx.DecodingError as e:
            logger.error(f"{method} {endpoint} returned an undecodable body: {e}")
            raise ServerContractViolation("Unable to parse response")
        except httpx.RequestError as e:
            logger.error(f"{method} {endpoint} failed: {e}")
            raise NetworkUnavailable(f"Network error: {e}")

        data = self._parse_body(response)

        if response.is_error:
            logger.warning(f"{method} {endpoint} returned HTTP {response.status_code}")
            error_text = None
            if isinstance(data, dict):
                error_text = data.get("error")
            raise BackendError(
                error_text or f"Server error: {response.status_code}",
                response.status_code,
                payload=data,
            )

        return data

    def _parse_body(self, response: httpx.Response) -> Any:
        """Parse a response body strictly as JSON."""
        if not response.content or not response.content.strip():
            return {}
        try:
            return response.json()
        except ValueError as e:
            logger.error(
                f"Failed to parse JSON response (HTTP {response.status_code}): {e}"
            )
            raise ServerContractViolation(
                "Unable to parse response", response.status_code
            )

    async def get(self, endpoint: str) -> Any:
        return await self.request("GET", endpoint)

    async def post(self, endpoint: str, body: Any) -> Any:
        return await self.request("POST", endpoint, body)

    async def put(self, endpoint: str, body: Any) -> Any:
        return await self.request("PUT", endpoint, body)

    async def delete(self, endpoint: str) -> Any:
        return await self.request("DELETE", endpoint)
