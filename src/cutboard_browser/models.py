"""Data models and constants for the CutBoard content browser."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal

logger = logging.getLogger(__name__)

# Application identity, used for platformdirs paths
CONFIG_APP_NAME = "cutboard-browser"
PRODUCT_NAME = "CutBoard"

# Content kinds
CONTENT_KINDS = ("text", "image")
ContentKind = Literal["text", "image"]

# The favorites view is addressed like a bucket in queries
FAVORITES_TARGET = "favorites"
Target = int | Literal["favorites"]

# Paging
PAGE_SIZE = 20
MAX_PAGE_SIZE = 200

# Search debounce delay in seconds
SEARCH_DEBOUNCE_DELAY = 0.3

# Bounded cache capacities
IMAGE_CACHE_SIZE = 100
FAVICON_CACHE_SIZE = 200


@dataclass(slots=True)
class Entry:
    """A single clipboard entry as stored by the content store."""

    id: int
    bucket_id: int
    content_kind: str  # "text" | "image"
    created_at: str  # Store-formatted, opaque
    text_body: str | None = None
    image_path: str | None = None  # Opaque handle, not raw bytes
    source_url: str | None = None
    is_favorite: bool = False
    is_sensitive: bool = False
    html_body: str | None = None


@dataclass(slots=True)
class Bucket:
    """A grouping of entries by originating application."""

    id: int
    display_name: str
    icon_blob: str | None = None
    entry_count: int = 0  # Aggregate recomputed by the store
    is_favorite: bool = False


@dataclass(slots=True, frozen=True)
class SourceDomain:
    """A source hostname with the number of entries captured from it."""

    domain: str
    count: int


@dataclass(slots=True, frozen=True)
class EntryCounts:
    """Aggregate entry counts per content kind."""

    text_count: int = 0
    image_count: int = 0

    def for_kind(self, content_kind: str) -> int:
        return self.image_count if content_kind == "image" else self.text_count

    def decremented(self, content_kind: str) -> EntryCounts:
        """Return counts with one entry of ``content_kind`` removed."""
        if content_kind == "image":
            return EntryCounts(self.text_count, max(0, self.image_count - 1))
        return EntryCounts(max(0, self.text_count - 1), self.image_count)


@dataclass(slots=True)
class Query:
    """Client-owned filter state for one content view."""

    target: Target
    content_kind: str = "text"
    raw_search_text: str = ""
    settled_search_text: str = ""
    domain_filter: str | None = None
    page: int = 1

    @property
    def favorites_mode(self) -> bool:
        return self.target == FAVORITES_TARGET


@dataclass(slots=True)
class UserConfig:
    """User preferences for the browser client."""

    store_url: str = "http://127.0.0.1:17321"
    store_timeout_seconds: float = 0  # 0 = no local timeout
    page_size: int = PAGE_SIZE
    search_debounce_ms: int = int(SEARCH_DEBOUNCE_DELAY * 1000)
    image_cache_size: int = IMAGE_CACHE_SIZE
    favicon_cache_size: int = FAVICON_CACHE_SIZE
    favicon_timeout_seconds: float = 5.0
    export_dir: str = ""  # Empty = home directory
    version: int = 1


# ============================================================================
# Store payload parsing
# ============================================================================


def _opt_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def parse_entry(data: Any) -> Entry | None:
    """Parse a store entry row. Returns None if essential fields are missing."""
    if not isinstance(data, dict):
        return None
    entry_id = data.get("id")
    bucket_id = data.get("app_id")
    if not isinstance(entry_id, int) or not isinstance(bucket_id, int):
        return None
    content_kind = data.get("content_type")
    if content_kind not in CONTENT_KINDS:
        return None
    return Entry(
        id=entry_id,
        bucket_id=bucket_id,
        content_kind=content_kind,
        created_at=data.get("created_at") or "",
        text_body=_opt_str(data.get("text_content")),
        image_path=_opt_str(data.get("image_path")),
        source_url=_opt_str(data.get("source_url")),
        is_favorite=bool(data.get("is_favorite", False)),
        is_sensitive=bool(data.get("is_sensitive", False)),
        html_body=_opt_str(data.get("html_content")),
    )


def parse_entries(rows: Any) -> list[Entry]:
    """Parse a list of entry rows, skipping malformed ones."""
    if not isinstance(rows, list):
        logger.warning("Store returned non-list entry payload")
        return []
    entries: list[Entry] = []
    for row in rows:
        entry = parse_entry(row)
        if entry is None:
            logger.warning("Skipping malformed entry row: %r", row)
            continue
        entries.append(entry)
    return entries


def parse_bucket(data: Any) -> Bucket | None:
    """Parse a store app row into a Bucket."""
    if not isinstance(data, dict):
        return None
    bucket_id = data.get("id")
    if not isinstance(bucket_id, int):
        return None
    count = data.get("entry_count")
    return Bucket(
        id=bucket_id,
        display_name=data.get("name") or "",
        icon_blob=_opt_str(data.get("icon_base64")),
        entry_count=count if isinstance(count, int) else 0,
        is_favorite=bool(data.get("is_favorite", False)),
    )


def parse_source_domain(data: Any) -> SourceDomain | None:
    if not isinstance(data, dict):
        return None
    domain = data.get("domain")
    count = data.get("count")
    if not isinstance(domain, str) or not domain:
        return None
    return SourceDomain(domain=domain, count=count if isinstance(count, int) else 0)


def parse_entry_counts(data: Any) -> EntryCounts:
    """Parse ``{"text_count", "image_count"}``; missing values count as zero."""
    if not isinstance(data, dict):
        return EntryCounts()
    text_count = data.get("text_count")
    image_count = data.get("image_count")
    return EntryCounts(
        text_count=text_count if isinstance(text_count, int) else 0,
        image_count=image_count if isinstance(image_count, int) else 0,
    )


__all__ = [
    "CONFIG_APP_NAME",
    "CONTENT_KINDS",
    "FAVICON_CACHE_SIZE",
    "FAVORITES_TARGET",
    "IMAGE_CACHE_SIZE",
    "MAX_PAGE_SIZE",
    "PAGE_SIZE",
    "PRODUCT_NAME",
    "SEARCH_DEBOUNCE_DELAY",
    "Bucket",
    "ContentKind",
    "Entry",
    "EntryCounts",
    "Query",
    "SourceDomain",
    "Target",
    "UserConfig",
    "parse_bucket",
    "parse_entries",
    "parse_entry",
    "parse_entry_counts",
    "parse_source_domain",
]
