"""
Key/value persistence for past sessions, coins and preferences.

Values are opaque strings; tracking.economy owns their (de)serialization.
"""

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Mapping, Optional

logger = logging.getLogger(__name__)

# Logical keys
KEY_RECENT_SESSIONS = "recent_sessions"
KEY_TOTAL_COINS = "total_coins"
KEY_UNLOCKED_ITEMS = "unlocked_item_ids"
KEY_ACTIVE_THEME = "active_theme_id"
KEY_ACTIVE_VOICE = "active_voice_id"


class SessionStore(ABC):
    """Durable key/value store contract."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        ...

    def set_many(self, values: Mapping[str, str]) -> None:
        """
        Write several keys for one logical event.

        Implementations backed by a single file override this to make the
        write all-or-nothing.
        """
        for key, value in values.items():
            self.set(key, value)


class InMemoryStore(SessionStore):
    """Non-persistent store (tests, ephemeral runs)."""

    def __init__(self, initial: Optional[Mapping[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)

    def set_many(self, values: Mapping[str, str]) -> None:
        self.data.update(values)


class JsonFileStore(SessionStore):
    """
    Store holding every key in one JSON document.

    Each write replaces the whole file atomically (write to temp file, then
    rename), so a multi-key set_many either lands completely or not at all.
    """

    def __init__(self, data_file: Path):
        """
        Args:
            data_file: Path of the JSON document (created on first write)
        """
        self.data_file = Path(data_file)
        self._lock = threading.Lock()  # Thread safety for data operations
        self.data: Dict[str, str] = self._load_data()

    def _load_data(self) -> Dict[str, str]:
        """
        Load the document. A missing, unreadable or malformed file yields an
        empty store rather than failing startup.
        """
        if not self.data_file.exists():
            return {}

        try:
            with open(self.data_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError, OSError) as e:
            logger.warning(f"Failed to load store file {self.data_file}: {e}. Starting fresh.")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Store file {self.data_file} is not an object. Starting fresh.")
            return {}

        # Keep only string values; anything else is corrupt
        clean = {}
        for key, value in data.items():
            if isinstance(key, str) and isinstance(value, str):
                clean[key] = value
            else:
                logger.warning(f"Discarding malformed store entry: {key!r}")
        return clean

    def _save_data(self, data: Dict[str, str]) -> None:
        """
        Write the document atomically.

        Raises:
            OSError: If the file cannot be written (in-memory state is left unchanged)
        """
        self.data_file.parent.mkdir(parents=True, exist_ok=True)

        temp_fd, temp_path = tempfile.mkstemp(
            suffix='.tmp',
            prefix='store_',
            dir=self.data_file.parent
        )

        try:
            with os.fdopen(temp_fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            # Atomic rename (POSIX) or replace (cross-platform)
            os.replace(temp_path, self.data_file)
            logger.debug(f"Saved store with {len(data)} keys")
        except Exception:
            # Clean up temp file on error
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.set_many({key: value})

    def set_many(self, values: Mapping[str, str]) -> None:
        with self._lock:
            updated = dict(self.data)
            updated.update(values)
            self._save_data(updated)
            self.data = updated

    def remove(self, key: str) -> None:
        with self._lock:
            if key not in self.data:
                return
            updated = dict(self.data)
            del updated[key]
            self._save_data(updated)
            self.data = updated
