"""Content store interface consumed by the browser view models."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from cutboard_browser.models import Bucket, Entry, EntryCounts, SourceDomain
from cutboard_browser.services.events import Subscription


class StoreError(Exception):
    """A content store call failed (transport, status or payload)."""


@runtime_checkable
class ContentStore(Protocol):
    """Interface for the remote, paginated content store.

    Every coroutine raises :class:`StoreError` on failure; callers decide
    whether that means "no state change" or "re-fetch".
    """

    async def list_buckets(self) -> list[Bucket]:
        """List buckets (source applications) with cached entry counts."""
        ...

    async def count_entries(
        self,
        bucket_id: int,
        *,
        search: str | None = None,
        domain: str | None = None,
    ) -> EntryCounts:
        """Count text/image entries of a bucket matching the filters."""
        ...

    async def list_entries(
        self,
        bucket_id: int,
        content_kind: str,
        *,
        search: str | None,
        domain: str | None,
        page: int,
        page_size: int,
    ) -> list[Entry]:
        """Fetch one page of entries of a bucket."""
        ...

    async def list_favorite_entries(
        self, content_kind: str, *, page: int, page_size: int
    ) -> list[Entry]:
        ...

    async def count_favorites(self) -> EntryCounts:
        ...

    async def list_source_domains(self, bucket_id: int) -> list[SourceDomain]:
        ...

    async def toggle_favorite(self, entry_id: int) -> bool:
        """Flip the favorite flag and return its new value."""
        ...

    async def toggle_sensitive(self, entry_id: int) -> bool:
        """Flip the sensitive flag and return its new value."""
        ...

    async def delete_entry(self, entry_id: int) -> None:
        ...

    async def delete_entries_by_domain(self, bucket_id: int, domain: str) -> None:
        ...

    async def copy_entry(self, entry_id: int) -> None:
        """Put an entry back on the system clipboard."""
        ...

    async def get_images_batch(self, image_paths: list[str]) -> dict[str, str]:
        """Return ``{image_path: data_url}`` for the paths the store could read."""
        ...

    async def export_entries(
        self,
        bucket_id: int,
        content_kind: str,
        *,
        bucket_name: str,
        destination: Path,
        job_id: int = 0,
    ) -> str:
        """Export a whole bucket/kind to ``destination``; returns the written path.

        Progress is published on the ``export-progress`` event while the call
        is running, as ``{"job_id": job_id, "progress": <percent>}``.
        """
        ...

    async def resolve_favicon(self, domain: str) -> str:
        """Best-effort favicon lookup; empty string when nothing was found."""
        ...

    def listen(self, event: str, listener: Callable[[Any], None]) -> Subscription:
        """Subscribe to a store event (``export-progress``, ``clipboard-changed``)."""
        ...


__all__ = ["ContentStore", "StoreError"]
