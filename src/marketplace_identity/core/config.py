"""
Shared configuration for Marketplace Identity.

This module centralizes configuration values to avoid hardcoded values
scattered throughout the codebase.
"""

import os

from dotenv import load_dotenv

from ..utils.constants import DEFAULT_API_BASE_URL, DEFAULT_API_TIMEOUT

# Load environment variables
load_dotenv()

# Backend API configuration
MARKETPLACE_API_BASE_URL = os.getenv("MARKETPLACE_API_BASE_URL", DEFAULT_API_BASE_URL)
MARKETPLACE_API_TIMEOUT = float(
    os.getenv("MARKETPLACE_API_TIMEOUT", str(DEFAULT_API_TIMEOUT))
)

# Callback server configuration
MARKETPLACE_CALLBACK_HOST = os.getenv("MARKETPLACE_CALLBACK_HOST", "localhost")
MARKETPLACE_CALLBACK_PORT = int(os.getenv("MARKETPLACE_CALLBACK_PORT", "3000"))

# Persisted state directory
STATE_DIR = os.path.expanduser(
    os.getenv("MARKETPLACE_STATE_DIR", "~/.config/marketplace-identity")
)


def get_api_base_url() -> str:
    """
    Get the Backend API base URL.

    Returns:
        Base URL without a trailing slash (e.g., "http://localhost:8080/api")
    """
    return MARKETPLACE_API_BASE_URL.rstrip("/")


def get_state_dir() -> str:
    """
    Get the persisted state directory path, creating it if necessary.

    Returns:
        Path to the state directory.
    """
    if not os.path.exists(STATE_DIR):
        os.makedirs(STATE_DIR, exist_ok=True)
    return STATE_DIR


def get_state_file() -> str:
    """Get the path of the JSON file backing the persisted key/value storage."""
    return os.path.join(get_state_dir(), "storage.json")
