"""Shared test fixtures for the CutBoard content browser tests."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import Callable
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import pytest

from cutboard_browser.favicon import default_favicon_tiers
from cutboard_browser.models import (
    FAVORITES_TARGET,
    Bucket,
    Entry,
    EntryCounts,
    SourceDomain,
)
from cutboard_browser.services.events import (
    EXPORT_PROGRESS_EVENT,
    EventHub,
    Subscription,
)
from cutboard_browser.services.image_service import default_image_cache
from cutboard_browser.services.interfaces import StoreError

# ── Process-wide cache isolation ─────────────────────────────────────────────


@pytest.fixture(autouse=True)
def _reset_process_caches():
    """Drop lazily-created process-wide caches after each test."""
    yield
    default_favicon_tiers.cache_clear()
    default_image_cache.cache_clear()


# ── Manual clock ─────────────────────────────────────────────────────────────


class ManualTimer:
    def __init__(self, due: float, callback: Callable[[], None]) -> None:
        self.due = due
        self.callback = callback
        self.active = True

    def stop(self) -> None:
        self.active = False


class ManualScheduler:
    """Scheduler whose timers only fire when the test advances the clock."""

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: list[ManualTimer] = []

    def set_timer(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> int:
        return sum(1 for t in self.timers if t.active)

    def advance(self, seconds: float) -> None:
        self.now += seconds
        due = sorted(
            (t for t in self.timers if t.active and t.due <= self.now),
            key=lambda t: t.due,
        )
        for timer in due:
            if not timer.active:
                continue
            timer.active = False
            timer.callback()
        self.timers = [t for t in self.timers if t.active]


# ── Fake content store ───────────────────────────────────────────────────────


def _hostname(url: str | None) -> str | None:
    if not url:
        return None
    return urlparse(url).hostname


class FakeStore:
    """In-memory ContentStore with call recording, injected failures and gates.

    ``block(name)`` returns an :class:`asyncio.Event`; the next call to that
    method waits until the event is set, which lets tests control the order
    in which overlapping requests complete.
    """

    def __init__(self, rows: list[Entry] | None = None) -> None:
        self.rows: list[Entry] = list(rows or [])
        self.buckets: list[Bucket] = []
        self.images: dict[str, str] = {}
        self.favicons: dict[str, str] = {}
        self.hub = EventHub()
        self.calls: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []
        self.failures: dict[str, Exception] = {}
        self._gates: dict[str, list[asyncio.Event]] = defaultdict(list)
        self.export_progress: list[int] = []
        self.export_result: str | None = None

    # ── test controls ──

    def block(self, name: str) -> asyncio.Event:
        gate = asyncio.Event()
        self._gates[name].append(gate)
        return gate

    def fail(self, name: str, message: str = "store unavailable") -> None:
        self.failures[name] = StoreError(message)

    def calls_to(self, name: str) -> list[tuple[tuple[Any, ...], dict[str, Any]]]:
        return [(args, kwargs) for call, args, kwargs in self.calls if call == name]

    async def _enter(self, name: str, *args: Any, **kwargs: Any) -> None:
        self.calls.append((name, args, kwargs))
        gates = self._gates.get(name)
        if gates:
            await gates.pop(0).wait()
        exc = self.failures.get(name)
        if exc is not None:
            raise exc

    def _matching(
        self,
        bucket_id: Any,
        content_kind: str | None,
        search: str | None,
        domain: str | None,
    ) -> list[Entry]:
        rows = []
        for row in self.rows:
            if bucket_id == FAVORITES_TARGET:
                if not row.is_favorite:
                    continue
            elif row.bucket_id != bucket_id:
                continue
            if content_kind is not None and row.content_kind != content_kind:
                continue
            if search and search.lower() not in (row.text_body or "").lower():
                continue
            if domain and _hostname(row.source_url) != domain:
                continue
            rows.append(row)
        return rows

    @staticmethod
    def _counts(rows: list[Entry]) -> EntryCounts:
        return EntryCounts(
            text_count=sum(1 for r in rows if r.content_kind == "text"),
            image_count=sum(1 for r in rows if r.content_kind == "image"),
        )

    # ── ContentStore ──

    async def list_buckets(self) -> list[Bucket]:
        await self._enter("list_buckets")
        return list(self.buckets)

    async def count_entries(self, bucket_id, *, search=None, domain=None) -> EntryCounts:
        await self._enter("count_entries", bucket_id, search=search, domain=domain)
        return self._counts(self._matching(bucket_id, None, search, domain))

    async def list_entries(
        self, bucket_id, content_kind, *, search, domain, page, page_size
    ) -> list[Entry]:
        await self._enter(
            "list_entries",
            bucket_id,
            content_kind,
            search=search,
            domain=domain,
            page=page,
            page_size=page_size,
        )
        rows = self._matching(bucket_id, content_kind, search, domain)
        start = (page - 1) * page_size
        return rows[start : start + page_size]

    async def list_favorite_entries(self, content_kind, *, page, page_size) -> list[Entry]:
        await self._enter("list_favorite_entries", content_kind, page=page, page_size=page_size)
        rows = self._matching(FAVORITES_TARGET, content_kind, None, None)
        start = (page - 1) * page_size
        return rows[start : start + page_size]

    async def count_favorites(self) -> EntryCounts:
        await self._enter("count_favorites")
        return self._counts(self._matching(FAVORITES_TARGET, None, None, None))

    async def list_source_domains(self, bucket_id) -> list[SourceDomain]:
        await self._enter("list_source_domains", bucket_id)
        counts: dict[str, int] = defaultdict(int)
        for row in self.rows:
            host = _hostname(row.source_url)
            if row.bucket_id == bucket_id and host:
                counts[host] += 1
        return [SourceDomain(domain, n) for domain, n in sorted(counts.items())]

    def _row(self, entry_id: int) -> Entry | None:
        return next((r for r in self.rows if r.id == entry_id), None)

    async def toggle_favorite(self, entry_id: int) -> bool:
        await self._enter("toggle_favorite", entry_id)
        row = self._row(entry_id)
        if row is None:
            raise StoreError(f"no entry {entry_id}")
        row.is_favorite = not row.is_favorite
        return row.is_favorite

    async def toggle_sensitive(self, entry_id: int) -> bool:
        await self._enter("toggle_sensitive", entry_id)
        row = self._row(entry_id)
        if row is None:
            raise StoreError(f"no entry {entry_id}")
        row.is_sensitive = not row.is_sensitive
        return row.is_sensitive

    async def delete_entry(self, entry_id: int) -> None:
        await self._enter("delete_entry", entry_id)
        self.rows = [r for r in self.rows if r.id != entry_id]

    async def delete_entries_by_domain(self, bucket_id: int, domain: str) -> None:
        await self._enter("delete_entries_by_domain", bucket_id, domain)
        self.rows = [
            r
            for r in self.rows
            if not (r.bucket_id == bucket_id and _hostname(r.source_url) == domain)
        ]

    async def copy_entry(self, entry_id: int) -> None:
        await self._enter("copy_entry", entry_id)

    async def get_images_batch(self, image_paths: list[str]) -> dict[str, str]:
        await self._enter("get_images_batch", list(image_paths))
        return {p: self.images[p] for p in image_paths if p in self.images}

    async def export_entries(
        self,
        bucket_id,
        content_kind,
        *,
        bucket_name: str,
        destination: Path,
        job_id: int = 0,
    ) -> str:
        for progress in self.export_progress:
            self.hub.emit(EXPORT_PROGRESS_EVENT, {"job_id": job_id, "progress": progress})
        await self._enter(
            "export_entries",
            bucket_id,
            content_kind,
            bucket_name=bucket_name,
            destination=destination,
            job_id=job_id,
        )
        return self.export_result or str(destination)

    async def resolve_favicon(self, domain: str) -> str:
        await self._enter("resolve_favicon", domain)
        return self.favicons.get(domain, "")

    def listen(self, event: str, listener: Callable[[Any], None]) -> Subscription:
        return self.hub.listen(event, listener)


# ── Factories ────────────────────────────────────────────────────────────────


@pytest.fixture
def make_entry():
    """Factory fixture for creating Entry instances with sensible defaults."""
    counter = iter(range(1, 1_000_000))

    def _factory(
        *,
        id: int | None = None,
        bucket_id: int = 1,
        content_kind: str = "text",
        text_body: str | None = None,
        image_path: str | None = None,
        source_url: str | None = None,
        is_favorite: bool = False,
        is_sensitive: bool = False,
        created_at: str = "2024-01-15 10:00:00",
    ) -> Entry:
        entry_id = id if id is not None else next(counter)
        if content_kind == "text" and text_body is None:
            text_body = f"entry {entry_id}"
        if content_kind == "image" and image_path is None:
            image_path = f"images/{entry_id}.png"
        return Entry(
            id=entry_id,
            bucket_id=bucket_id,
            content_kind=content_kind,
            created_at=created_at,
            text_body=text_body,
            image_path=image_path,
            source_url=source_url,
            is_favorite=is_favorite,
            is_sensitive=is_sensitive,
        )

    return _factory


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()
