"""Image preview loading backed by the bounded image cache."""

from __future__ import annotations

import functools
import logging

from cutboard_browser.cache import BoundedCache
from cutboard_browser.models import IMAGE_CACHE_SIZE, Entry
from cutboard_browser.services.interfaces import ContentStore, StoreError

logger = logging.getLogger(__name__)


@functools.cache
def default_image_cache(capacity: int = IMAGE_CACHE_SIZE) -> BoundedCache[str, str]:
    """Process-wide decoded image cache, created on first use."""
    return BoundedCache(capacity)


class ImagePreviewLoader:
    """Resolves image handles to decoded blobs, one batch call per page."""

    def __init__(self, store: ContentStore, cache: BoundedCache[str, str]) -> None:
        self._store = store
        self.cache = cache

    def _cached_for(self, paths: list[str]) -> dict[str, str]:
        result: dict[str, str] = {}
        for path in paths:
            blob = self.cache.get(path)
            if blob is not None:
                result[path] = blob
        return result

    async def load_page(self, entries: list[Entry]) -> dict[str, str]:
        """Return ``{image_path: blob}`` for the entries of one page.

        Only handles missing from the cache are requested from the store.
        """
        paths = [e.image_path for e in entries if e.image_path]
        uncached = [p for p in dict.fromkeys(paths) if not self.cache.has(p)]
        if uncached:
            try:
                fetched = await self._store.get_images_batch(uncached)
            except StoreError:
                logger.warning("Failed to load %d image previews", len(uncached), exc_info=True)
            else:
                for path, blob in fetched.items():
                    self.cache.put(path, blob)
        return self._cached_for(paths)


__all__ = ["ImagePreviewLoader", "default_image_cache"]
