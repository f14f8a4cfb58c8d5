"""Backend API client.

This module provides a facade that combines all client mixins into
a single BackendClient class.
"""
from .base import BackendClientBase, TokenProvider
from .users import UsersMixin
from .tasks import TasksMixin


class BackendClient(BackendClientBase, UsersMixin, TasksMixin):
    """Async client for the marketplace Backend API.

    Attaches ``Authorization: Bearer <token>`` whenever its token provider
    returns a token.
    """
    pass


__all__ = ['BackendClient', 'TokenProvider']
