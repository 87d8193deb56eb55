"""Content browser view model: query, paging, entry actions and export for one view."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from pathlib import Path
from typing import Any

from cutboard_browser.cache import BoundedCache
from cutboard_browser.export import (
    ExportJobRunner,
    ExportRejectedError,
    ExportRequest,
    ExportState,
    default_export_filename,
)
from cutboard_browser.favicon import (
    FaviconCascade,
    FaviconTiers,
    Probe,
    default_favicon_tiers,
    probe_icon_url,
    resolve_domain_icon,
)
from cutboard_browser.models import (
    Bucket,
    Entry,
    EntryCounts,
    Query,
    SourceDomain,
    Target,
    UserConfig,
)
from cutboard_browser.pagination import PaginatedFetchExecutor, page_numbers
from cutboard_browser.query import QueryChange, QueryController
from cutboard_browser.scheduling import AsyncioScheduler, Scheduler
from cutboard_browser.services.events import CONTENT_CHANGED_EVENT
from cutboard_browser.services.image_service import ImagePreviewLoader, default_image_cache
from cutboard_browser.services.interfaces import ContentStore, StoreError

logger = logging.getLogger(__name__)


class ContentBrowser:
    """Wires the query controller to the fetch executor for one content view.

    Every settled query change schedules a tracked fetch task. Fetches are
    never cancelled; the executor drops responses that arrive after a newer
    request was issued.
    """

    def __init__(
        self,
        store: ContentStore,
        target: Target,
        *,
        config: UserConfig | None = None,
        scheduler: Scheduler | None = None,
        image_cache: BoundedCache[str, str] | None = None,
        favicon_tiers: FaviconTiers | None = None,
        favicon_probe: Probe | None = None,
    ) -> None:
        self._store = store
        self._config = config or UserConfig()
        self._favicon_tiers = favicon_tiers
        self._favicon_probe = favicon_probe
        self._background_tasks: set[asyncio.Task[Any]] = set()
        self.buckets: list[Bucket] = []

        self.executor = PaginatedFetchExecutor(store, page_size=self._config.page_size)
        self.controller = QueryController(
            scheduler or AsyncioScheduler(),
            target,
            debounce_delay=self._config.search_debounce_ms / 1000,
        )
        self.controller.bind_page_count(
            lambda: self.executor.total_pages(self.controller.query.content_kind)
        )
        self._remove_query_listener = self.controller.add_listener(self._on_query_change)
        self._change_subscription = store.listen(CONTENT_CHANGED_EVENT, self._on_content_changed)
        self.export_runner = ExportJobRunner(store)
        if image_cache is None:
            image_cache = default_image_cache(self._config.image_cache_size)
        self.images = ImagePreviewLoader(store, image_cache)

    # ── state ────────────────────────────────────────────────────────────

    @property
    def query(self) -> Query:
        return self.controller.query

    @property
    def entries(self) -> list[Entry]:
        return self.executor.entries

    @property
    def counts(self) -> EntryCounts:
        return self.executor.counts

    @property
    def sources(self) -> list[SourceDomain]:
        return self.executor.sources

    @property
    def loading(self) -> bool:
        return self.executor.loading

    @property
    def total_pages(self) -> int:
        return self.executor.total_pages(self.query.content_kind)

    @property
    def page_strip(self) -> list[int | str]:
        return page_numbers(self.query.page, self.total_pages)

    @property
    def export_state(self) -> ExportState:
        return self.export_runner.state

    @property
    def favicon_tiers(self) -> FaviconTiers:
        if self._favicon_tiers is None:
            self._favicon_tiers = default_favicon_tiers(self._config.favicon_cache_size)
        return self._favicon_tiers

    # ── background tasks ─────────────────────────────────────────────────

    def _track_task(self, coro: Any) -> asyncio.Task[Any]:
        """Create an asyncio task and track it to prevent garbage collection."""
        task = asyncio.create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        task.add_done_callback(self._on_task_done)
        return task

    @staticmethod
    def _on_task_done(task: asyncio.Task[Any]) -> None:
        """Log unhandled exceptions from background tasks."""
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Unhandled exception in background task: %s", exc, exc_info=exc)

    async def wait_for_pending(self) -> None:
        """Wait until every tracked fetch task has finished."""
        while self._background_tasks:
            await asyncio.wait(list(self._background_tasks))

    def _schedule_fetch(self) -> asyncio.Task[Any]:
        # Snapshot now; later edits to the live query must not leak into this request
        return self._track_task(self.executor.fetch_page(dataclasses.replace(self.query)))

    def _on_query_change(self, query: Query, change: QueryChange) -> None:
        logger.debug("Query changed (%s), fetching page %d", change.value, query.page)
        self._schedule_fetch()

    def _on_content_changed(self, _payload: object) -> None:
        logger.debug("Store content changed, reloading buckets and current page")
        self._track_task(self.refresh_buckets())
        self._schedule_fetch()

    # ── lifecycle ────────────────────────────────────────────────────────

    async def start(self) -> bool:
        """Load buckets and the first page of the current query."""
        await self.refresh_buckets()
        return await self.executor.fetch_page(dataclasses.replace(self.query))

    def close(self) -> None:
        self.controller.close()
        self._remove_query_listener()
        self._change_subscription.release()
        self.export_runner.dispose()
        for task in list(self._background_tasks):
            task.cancel()

    # ── query editing ────────────────────────────────────────────────────

    def set_search_text(self, raw: str) -> None:
        self.controller.set_search_text(raw)

    def clear_search(self) -> None:
        self.controller.clear_search()

    def set_target(self, target: Target) -> None:
        self.controller.set_target(target)

    def set_content_kind(self, content_kind: str) -> None:
        self.controller.set_content_kind(content_kind)

    def set_domain_filter(self, domain: str | None) -> None:
        self.controller.set_domain_filter(domain)

    def set_page(self, page: int) -> None:
        self.controller.set_page(page)

    def next_page(self) -> None:
        self.controller.next_page()

    def prev_page(self) -> None:
        self.controller.prev_page()

    # ── buckets ──────────────────────────────────────────────────────────

    async def refresh_buckets(self) -> list[Bucket]:
        try:
            self.buckets = await self._store.list_buckets()
        except StoreError:
            logger.warning("Failed to load buckets", exc_info=True)
        return self.buckets

    def bucket_name(self, bucket_id: Target) -> str:
        for bucket in self.buckets:
            if bucket.id == bucket_id:
                return bucket.display_name
        return ""

    # ── entry actions ────────────────────────────────────────────────────

    async def delete_entry(self, entry_id: int) -> bool:
        if not await self.executor.delete_entry(entry_id):
            return False
        await self.refresh_buckets()
        return True

    async def toggle_favorite(self, entry_id: int) -> bool:
        return await self.executor.toggle_favorite(entry_id)

    async def toggle_sensitive(self, entry_id: int) -> bool:
        return await self.executor.toggle_sensitive(entry_id)

    async def copy_entry(self, entry_id: int) -> bool:
        try:
            await self._store.copy_entry(entry_id)
        except StoreError:
            logger.warning("Failed to copy entry %d", entry_id, exc_info=True)
            return False
        return True

    async def delete_domain(self, domain: str) -> bool:
        """Delete every entry of the current bucket captured from ``domain``."""
        query = self.query
        if query.favorites_mode:
            return False
        if not await self.executor.delete_domain(query.target, domain):
            return False
        await self.refresh_buckets()
        if query.domain_filter == domain:
            # Emits a settled change, which schedules the re-fetch
            self.controller.set_domain_filter(None)
        else:
            await self.executor.fetch_page(dataclasses.replace(query))
        return True

    # ── export ───────────────────────────────────────────────────────────

    def _default_export_dir(self) -> Path:
        if self._config.export_dir:
            return Path(self._config.export_dir).expanduser()
        return Path.home()

    def start_export(self, destination: Path | None = None) -> asyncio.Task[ExportState]:
        """Export the whole current bucket and content kind.

        Raises:
            ExportRejectedError: In favorites mode, or while another export
                is running.
        """
        query = self.query
        if query.favorites_mode:
            raise ExportRejectedError("Favorites cannot be exported")
        bucket_name = self.bucket_name(query.target)
        if destination is None:
            destination = self._default_export_dir() / default_export_filename(
                bucket_name, query.content_kind
            )
        return self.export_runner.start(
            ExportRequest(
                bucket_id=query.target,
                content_kind=query.content_kind,
                bucket_name=bucket_name,
                destination=destination,
            )
        )

    # ── previews ─────────────────────────────────────────────────────────

    async def load_image_previews(self) -> dict[str, str]:
        images = [e for e in self.entries if e.content_kind == "image"]
        return await self.images.load_page(images)

    def domain_icon(self, domain: str) -> FaviconCascade:
        """Start a favicon cascade for a source-domain chip."""
        return FaviconCascade(domain, self.favicon_tiers, self._store.resolve_favicon)

    async def resolve_domain_icon(self, domain: str) -> FaviconCascade:
        """Resolve a domain icon outside a renderer by probing each candidate."""
        return await resolve_domain_icon(
            domain,
            tiers=self.favicon_tiers,
            resolver=self._store.resolve_favicon,
            probe=self._favicon_probe or probe_icon_url,
        )


__all__ = ["ContentBrowser"]
