"""Paginated fetch executor: loads pages and counts for the settled query.

Overlapping fetches are never cancelled. Each request takes a token from a
monotonically increasing counter and its response is applied only if no
newer request was issued in the meantime; older responses are dropped on
arrival.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import math
from collections.abc import Callable

from cutboard_browser.models import (
    FAVORITES_TARGET,
    PAGE_SIZE,
    Entry,
    EntryCounts,
    Query,
    SourceDomain,
    Target,
)
from cutboard_browser.services.interfaces import ContentStore, StoreError

logger = logging.getLogger(__name__)

# Pagination strip: show every page up to this many, else elide with "..."
PAGE_STRIP_FULL_LIMIT = 7
ELLIPSIS = "..."


def total_pages_for(total_count: int, page_size: int = PAGE_SIZE) -> int:
    """Number of pages for ``total_count`` items; always at least 1."""
    return max(1, math.ceil(max(0, total_count) / page_size))


def page_numbers(current: int, total: int) -> list[int | str]:
    """Compact page strip, e.g. ``[1, "...", 4, 5, 6, "...", 10]``."""
    if total <= PAGE_STRIP_FULL_LIMIT:
        return list(range(1, total + 1))
    pages: list[int | str] = [1]
    if current > 3:
        pages.append(ELLIPSIS)
    pages.extend(range(max(2, current - 1), min(total - 1, current + 1) + 1))
    if current < total - 2:
        pages.append(ELLIPSIS)
    pages.append(total)
    return pages


def _describe(query: Query) -> str:
    return (
        f"target={query.target} kind={query.content_kind} "
        f"search={query.settled_search_text!r} domain={query.domain_filter} page={query.page}"
    )


class PaginatedFetchExecutor:
    """Holds the current page, counts and source domains of one view."""

    def __init__(self, store: ContentStore, *, page_size: int = PAGE_SIZE) -> None:
        self._store = store
        self.page_size = page_size
        self.entries: list[Entry] = []
        self.counts = EntryCounts()
        self.sources: list[SourceDomain] = []
        self.applied_query: Query | None = None
        self.loading = False
        self._last_query: Query | None = None
        self._request_token = 0
        self._sources_token = 0
        self._sources_target: Target | None = None
        self._listeners: list[Callable[[], None]] = []

    def add_listener(self, listener: Callable[[], None]) -> None:
        """Call ``listener`` whenever entries, counts, sources or loading change."""
        self._listeners.append(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()

    def total_pages(self, content_kind: str | None = None) -> int:
        if content_kind is None:
            query = self._last_query
            content_kind = query.content_kind if query is not None else "text"
        return total_pages_for(self.counts.for_kind(content_kind), self.page_size)

    # ── fetching ─────────────────────────────────────────────────────────

    async def _load_entries(self, query: Query) -> list[Entry]:
        if query.favorites_mode:
            return await self._store.list_favorite_entries(
                query.content_kind, page=query.page, page_size=self.page_size
            )
        return await self._store.list_entries(
            query.target,
            query.content_kind,
            search=query.settled_search_text or None,
            domain=query.domain_filter,
            page=query.page,
            page_size=self.page_size,
        )

    async def _load_counts(self, query: Query) -> EntryCounts:
        if query.favorites_mode:
            return await self._store.count_favorites()
        return await self._store.count_entries(
            query.target,
            search=query.settled_search_text or None,
            domain=query.domain_filter,
        )

    async def fetch_page(self, query: Query) -> bool:
        """Fetch entries and counts for ``query``.

        Returns True if the response was applied, False if it failed or was
        superseded by a newer request.
        """
        snapshot = dataclasses.replace(query)
        self._last_query = snapshot
        self._request_token += 1
        request_token = self._request_token
        self.loading = True
        self._notify()

        try:
            entries, counts = await asyncio.gather(
                self._load_entries(snapshot),
                self._load_counts(snapshot),
            )
        except StoreError:
            logger.warning("Failed to load entries (%s)", _describe(snapshot), exc_info=True)
            return False
        finally:
            if request_token == self._request_token:
                self.loading = False
                self._notify()

        # Ignore stale responses after newer requests.
        if request_token != self._request_token:
            logger.debug(
                "Discarding stale page response %d (latest %d)",
                request_token,
                self._request_token,
            )
            return False

        self.entries = entries
        self.counts = counts
        self.applied_query = snapshot
        self._notify()

        if snapshot.favorites_mode:
            self._sources_token += 1
            self.sources = []
            self._sources_target = snapshot.target
            self._notify()
        else:
            await self.refresh_sources(snapshot.target)
        return True

    async def refresh_sources(self, target: Target) -> bool:
        """Reload the source-domain list of a bucket."""
        if target == FAVORITES_TARGET:
            return False
        self._sources_token += 1
        request_token = self._sources_token
        try:
            sources = await self._store.list_source_domains(target)
        except StoreError:
            logger.warning("Failed to load source domains for %s", target, exc_info=True)
            if request_token == self._sources_token and target != self._sources_target:
                # Never show another bucket's domains
                self.sources = []
                self._sources_target = target
                self._notify()
            return False
        if request_token != self._sources_token:
            logger.debug("Discarding stale source-domain response for %s", target)
            return False
        self.sources = sources
        self._sources_target = target
        self._notify()
        return True

    async def reload(self) -> bool:
        """Re-run the most recently requested fetch."""
        if self._last_query is None:
            return False
        return await self.fetch_page(self._last_query)

    # ── entry actions ────────────────────────────────────────────────────

    async def delete_entry(self, entry_id: int) -> bool:
        """Delete an entry, removing it from the page immediately.

        If the store rejects the delete, the page is re-fetched so the entry
        reappears.
        """
        removed = next((e for e in self.entries if e.id == entry_id), None)
        self.entries = [e for e in self.entries if e.id != entry_id]
        if removed is not None:
            self.counts = self.counts.decremented(removed.content_kind)
        self._notify()

        try:
            await self._store.delete_entry(entry_id)
        except StoreError:
            logger.warning("Failed to delete entry %d, reloading", entry_id, exc_info=True)
            await self.reload()
            return False
        return True

    async def toggle_favorite(self, entry_id: int) -> bool:
        try:
            await self._store.toggle_favorite(entry_id)
        except StoreError:
            logger.warning("Failed to toggle favorite for entry %d", entry_id, exc_info=True)
            return False
        await self.reload()
        return True

    async def toggle_sensitive(self, entry_id: int) -> bool:
        try:
            await self._store.toggle_sensitive(entry_id)
        except StoreError:
            logger.warning("Failed to toggle sensitive for entry %d", entry_id, exc_info=True)
            return False
        await self.reload()
        return True

    async def delete_domain(self, bucket_id: int, domain: str) -> bool:
        """Delete every entry of ``bucket_id`` captured from ``domain``."""
        try:
            await self._store.delete_entries_by_domain(bucket_id, domain)
        except StoreError:
            logger.warning("Failed to delete entries from %s", domain, exc_info=True)
            return False
        return True


__all__ = [
    "ELLIPSIS",
    "PaginatedFetchExecutor",
    "page_numbers",
    "total_pages_for",
]
