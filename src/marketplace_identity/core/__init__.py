"""
Core utilities package for Marketplace Identity.

This package provides shared configuration.
"""

from .config import (
    MARKETPLACE_API_BASE_URL,
    MARKETPLACE_API_TIMEOUT,
    MARKETPLACE_CALLBACK_HOST,
    MARKETPLACE_CALLBACK_PORT,
    get_api_base_url,
    get_state_dir,
    get_state_file,
)

__all__ = [
    "MARKETPLACE_API_BASE_URL",
    "MARKETPLACE_API_TIMEOUT",
    "MARKETPLACE_CALLBACK_HOST",
    "MARKETPLACE_CALLBACK_PORT",
    "get_api_base_url",
    "get_state_dir",
    "get_state_file",
]
