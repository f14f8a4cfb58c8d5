"""Exceptions for the marketplace identity package.

Every failure that can reach the UI layer is one of the kinds defined here.
All of them inherit from IdentityError. Raw transport exceptions are
converted by the orchestrating components before they leave the package.
"""
from typing import Any, Optional

from .constants import MSG_OAUTH_EXPIRED


class IdentityError(Exception):
    """Base exception for all marketplace identity errors.

    Attributes:
        message: Human-readable error description.
        status: Optional HTTP status related to the error.
    """

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        self.message = message
        self.status = status
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format the error message, optionally including the HTTP status."""
        if self.status is not None:
            return f"{self.message} (HTTP {self.status})"
        return self.message


class CsrfStateMismatch(IdentityError):
    """Raised when a callback state is absent or differs from the pending nonce."""
    pass


class ServerContractViolation(IdentityError):
    """Raised when a backend response cannot be parsed or lacks required fields."""
    pass


class UpstreamUnauthorized(IdentityError):
    """Raised when the provider authorization was rejected as expired or unauthorized."""
    pass


class AuthenticationFailed(IdentityError):
    """Raised when a credential login is rejected."""
    pass


class IdentityNotFound(AuthenticationFailed):
    """Raised when the backend explicitly reports that no such account exists."""
    pass


class RegistrationFailed(IdentityError):
    """Raised when the backend rejects an account registration."""
    pass


class ValidationError(IdentityError):
    """Raised when input is rejected locally, before any network call."""
    pass


class NetworkUnavailable(IdentityError):
    """Raised when the Backend API cannot be reached."""
    pass


class BackendError(IdentityError):
    """Raised by the backend client for a non-2xx response.

    Never surfaced to the UI layer: orchestrators convert it with
    handle_backend_error.

    Attributes:
        payload: Parsed response body (usually ``{"error": "..."}``).
    """

    def __init__(
        self, message: str, status: int, payload: Optional[Any] = None
    ) -> None:
        self.payload = payload if payload is not None else {}
        super().__init__(message, status)

    @property
    def error_text(self) -> str:
        """The backend's ``error`` field, or the message when absent."""
        if isinstance(self.payload, dict):
            error = self.payload.get("error") or self.payload.get("message")
            if error:
                return str(error)
        return self.message


def is_not_found(error: BackendError) -> bool:
    """Whether a backend failure explicitly says the account does not exist."""
    if error.status == 404:
        return True
    return "not found" in error.error_text.lower()


def handle_backend_error(
    error: BackendError, action: str = "login"
) -> IdentityError:
    """Convert a BackendError to a specific exception.

    Args:
        error: The BackendError raised by the backend client.
        action: "login", "register", "oauth" or "profile".

    Returns:
        An appropriate IdentityError subclass.
    """
    text = error.error_text
    status = error.status

    if action == "oauth":
        if status == 401 and "Unauthorized" in text:
            return UpstreamUnauthorized(MSG_OAUTH_EXPIRED, status)
        return IdentityError(text, status)

    if action == "login":
        if is_not_found(error):
            return IdentityNotFound(text, status)
        if 400 <= status < 500:
            return AuthenticationFailed("Login failed", status)
        return IdentityError(f"Server error: {text}", status)

    if action == "register":
        if 400 <= status < 500:
            return RegistrationFailed(f"Registration failed: {text}", status)
        return IdentityError(f"Server error: {text}", status)

    if status == 401:
        return AuthenticationFailed(
            "Session is no longer valid. Please log in again.", status
        )
    return IdentityError(f"API error: {text}", status)


def format_error(action: str, error: Exception) -> str:
    """Format an error message consistently.

    Args:
        action: The action that failed (e.g., "Login", "Google login").
        error: The exception that occurred.

    Returns:
        Formatted error string.
    """
    if isinstance(error, IdentityError):
        return f"{action} failed: {error.message}"
    return f"{action} failed: {str(error)}"
