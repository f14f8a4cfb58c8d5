"""Centralized constants for the marketplace identity package."""

# Persisted storage keys
STORAGE_KEY_USER = 'user'
STORAGE_KEY_TOKEN = 'token'
STORAGE_KEY_OAUTH_STATE = 'google_oauth_state'
STORAGE_KEY_LANGUAGE = 'language'

SESSION_KEYS = (STORAGE_KEY_USER, STORAGE_KEY_TOKEN)

# Backend API endpoints
ENDPOINT_LOGIN = '/users/login'
ENDPOINT_REGISTER = '/users/register'
ENDPOINT_OAUTH_EXCHANGE = '/users/{provider}-oauth'
ENDPOINT_USER = '/users/{user_id}'
ENDPOINT_USER_PROFILE = '/users/{user_id}/profile'
ENDPOINT_TASKS = '/tasks'
ENDPOINT_USER_TASKS = '/tasks/user/{user_id}'

# Default Values
DEFAULT_API_BASE_URL = 'http://localhost:8080/api'
DEFAULT_API_TIMEOUT = 10.0
DEFAULT_STATE_TTL_SECONDS = 600
DEFAULT_LANDING_PATH = '/dashboard'
DEFAULT_AUTH_PATH = '/auth'

# Default identity provider
PROVIDER_GOOGLE = 'google'

# User-facing messages
MSG_OAUTH_EXPIRED = 'Google login expired. Please try again.'
OAUTH_ACTION_LABEL = 'Google login'
