"""Durable local key/value storage and persisted bounded caches.

``LocalStorage`` is a small string-to-string store kept in one JSON file in
the user config directory. ``PersistentBoundedCache`` keeps a
:class:`BoundedCache` mirrored into one storage key as a JSON object, so
favicon lookups survive restarts. Unreadable data on either layer is
treated as empty.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from platformdirs import user_config_dir

from cutboard_browser.cache import BoundedCache
from cutboard_browser.models import CONFIG_APP_NAME

logger = logging.getLogger(__name__)

LOCAL_STORAGE_FILENAME = "local_storage.json"


def get_local_storage_path() -> Path:
    """Get the path to the local key/value storage file."""
    return Path(user_config_dir(CONFIG_APP_NAME)) / LOCAL_STORAGE_FILENAME


class LocalStorage:
    """String key/value storage persisted to a JSON file."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or get_local_storage_path()
        self._items: dict[str, str] | None = None

    def _load(self) -> dict[str, str]:
        if self._items is not None:
            return self._items
        items: dict[str, str] = {}
        if self.path.exists():
            try:
                data = json.loads(self.path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                logger.warning("Local storage unreadable, starting empty: %s", e)
                data = {}
            if isinstance(data, dict):
                items = {k: v for k, v in data.items() if isinstance(k, str) and isinstance(v, str)}
            else:
                logger.warning("Local storage has invalid structure, starting empty")
        self._items = items
        return items

    def get_item(self, key: str) -> str | None:
        return self._load().get(key)

    def set_item(self, key: str, value: str) -> bool:
        """Store ``value`` and flush to disk. Returns False if the write failed."""
        items = self._load()
        items[key] = value
        return self._flush(items)

    def remove_item(self, key: str) -> bool:
        items = self._load()
        if items.pop(key, None) is None:
            return True
        return self._flush(items)

    def _flush(self, items: dict[str, str]) -> bool:
        """Write atomically via temp file + os.replace()."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            json_str = json.dumps(items, ensure_ascii=False)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp", prefix=".storage-")
            closed = False
            try:
                os.write(fd, json_str.encode("utf-8"))
                os.close(fd)
                closed = True
                os.replace(tmp_path, self.path)
            except BaseException:
                if not closed:
                    os.close(fd)
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass
                raise
            return True
        except OSError as e:
            logger.warning("Failed to save local storage: %s", e)
            return False


class PersistentBoundedCache:
    """A string BoundedCache mirrored into one LocalStorage key.

    Loaded lazily on first access. When the stored map holds more than
    ``capacity`` entries, only the newest ``capacity`` are kept.
    """

    def __init__(self, storage: LocalStorage, key: str, capacity: int) -> None:
        self._storage = storage
        self.key = key
        self.capacity = capacity
        self._cache: BoundedCache[str, str] | None = None

    def _loaded(self) -> BoundedCache[str, str]:
        if self._cache is not None:
            return self._cache
        cache: BoundedCache[str, str] = BoundedCache(self.capacity)
        raw = self._storage.get_item(self.key)
        if raw:
            try:
                data = json.loads(raw)
            except ValueError:
                logger.warning("Cached data for %s is corrupted, starting empty", self.key)
                data = {}
            if not isinstance(data, dict):
                logger.warning("Cached data for %s is not an object, starting empty", self.key)
                data = {}
            pairs = [(k, v) for k, v in data.items() if isinstance(k, str) and isinstance(v, str)]
            for k, v in pairs[-self.capacity :]:
                cache.put(k, v)
        self._cache = cache
        return cache

    def get(self, key: str) -> str | None:
        return self._loaded().get(key)

    def has(self, key: str) -> bool:
        return self._loaded().has(key)

    def put(self, key: str, value: str) -> None:
        cache = self._loaded()
        if cache.get(key) == value:
            return
        cache.put(key, value)
        self._storage.set_item(self.key, json.dumps(dict(cache.items()), ensure_ascii=False))

    def __len__(self) -> int:
        return len(self._loaded())


__all__ = [
    "LOCAL_STORAGE_FILENAME",
    "LocalStorage",
    "PersistentBoundedCache",
    "get_local_storage_path",
]
