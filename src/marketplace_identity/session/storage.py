"""
Persisted key/value storage for Marketplace Identity.

This module provides the process-wide storage area that holds the session
pair, the pending OAuth state and the UI language preference. Multi-key
writes are atomic so that the identity and token are never persisted apart.
"""

import os
import json
import logging
import tempfile
from abc import ABC, abstractmethod
from threading import RLock
from typing import Any, Dict, List, Optional

from ..core.config import get_state_file
from ..utils.constants import STORAGE_KEY_LANGUAGE

logger = logging.getLogger(__name__)


class KeyValueStorage(ABC):
    """Abstract base class for persisted key/value storage."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Get the value stored under key, or None."""
        pass

    @abstractmethod
    def set_many(self, values: Dict[str, Any]) -> None:
        """Store several keys in a single atomic write."""
        pass

    @abstractmethod
    def remove(self, *keys: str) -> None:
        """Remove keys in a single atomic write. Missing keys are ignored."""
        pass

    @abstractmethod
    def keys(self) -> List[str]:
        """List all stored keys."""
        pass

    def set(self, key: str, value: Any) -> None:
        """Store a single key."""
        self.set_many({key: value})


class MemoryStorage(KeyValueStorage):
    """Storage kept in process memory only."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self._data: Dict[str, Any] = dict(initial or {})
        self._lock = RLock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            return self._data.get(key)

    def set_many(self, values: Dict[str, Any]) -> None:
        with self._lock:
            self._data.update(values)

    def remove(self, *keys: str) -> None:
        with self._lock:
            for key in keys:
                self._data.pop(key, None)

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._data)


class JsonFileStorage(KeyValueStorage):
    """Storage backed by a single JSON file, rewritten atomically."""

    def __init__(self, path: Optional[str] = None) -> None:
        """
        Initialize the JSON file storage.

        Args:
            path: File path. If None, uses storage.json in the state
                  directory (MARKETPLACE_STATE_DIR).
        """
        if path is None:
            path = get_state_file()

        self.path = path
        self._lock = RLock()
        self._ensure_dir_exists()
        logger.info(f"JsonFileStorage initialized: {path}")

    def _ensure_dir_exists(self) -> None:
        """Ensure the storage directory exists."""
        base_dir = os.path.dirname(os.path.abspath(self.path))
        if not os.path.exists(base_dir):
            os.makedirs(base_dir, exist_ok=True)
            logger.info(f"Created storage directory: {base_dir}")

    def _read(self) -> Dict[str, Any]:
        """Read the whole file. Missing or unreadable files read as empty."""
        if not os.path.exists(self.path):
            return {}

        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.warning("Failed to parse storage file %s: %s", self.path, e)
            return {}
        except IOError as e:
            logger.warning("Failed to read storage file %s: %s", self.path, e)
            return {}

        if not isinstance(data, dict):
            logger.warning("Invalid storage file format, ignoring")
            return {}
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        """Persist the whole mapping atomically. Caller must hold lock."""
        self._ensure_dir_exists()
        target_dir = os.path.dirname(os.path.abspath(self.path))
        fd, temp_path = tempfile.mkstemp(dir=target_dir, suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2)
            os.replace(temp_path, self.path)
        except Exception:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise

        logger.debug("Persisted %d storage keys", len(data))

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            return self._read().get(key)

    def set_many(self, values: Dict[str, Any]) -> None:
        with self._lock:
            data = self._read()
            data.update(values)
            self._write(data)

    def remove(self, *keys: str) -> None:
        with self._lock:
            data = self._read()
            if not any(key in data for key in keys):
                return
            for key in keys:
                data.pop(key, None)
            self._write(data)

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._read())


def get_language(storage: KeyValueStorage, default: str = "en") -> str:
    """Get the UI language preference."""
    value = storage.get(STORAGE_KEY_LANGUAGE)
    return value if isinstance(value, str) and value else default


def set_language(storage: KeyValueStorage, language: str) -> None:
    """Set the UI language preference. The key is owned by the UI layer."""
    storage.set(STORAGE_KEY_LANGUAGE, language)
