"""HTTP adapter for the remote content store.

Store commands are invoked as ``POST {base_url}/invoke/{command}`` with a
JSON object body and a JSON result. Long-running commands (export) and the
event feed respond with newline-delimited JSON frames.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing
from pathlib import Path
from typing import Any

import httpx

from cutboard_browser.models import (
    Bucket,
    Entry,
    EntryCounts,
    SourceDomain,
    parse_bucket,
    parse_entries,
    parse_entry_counts,
    parse_source_domain,
)
from cutboard_browser.services.events import EXPORT_PROGRESS_EVENT, EventHub, Subscription
from cutboard_browser.services.interfaces import StoreError

logger = logging.getLogger(__name__)

STORE_USER_AGENT = "cutboard-browser/1.0"


def _timeout(seconds: float) -> httpx.Timeout:
    """Build a client timeout; ``0`` disables local timeouts entirely."""
    if seconds and seconds > 0:
        return httpx.Timeout(seconds)
    return httpx.Timeout(None)


class HttpContentStore:
    """ContentStore implementation talking to the store over HTTP."""

    def __init__(
        self,
        base_url: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 0,
        hub: EventHub | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=_timeout(timeout_seconds),
            headers={"User-Agent": STORE_USER_AGENT},
        )
        self._hub = hub or EventHub()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HttpContentStore:
        return self

    async def __aexit__(self, *_args: Any) -> None:
        await self.aclose()

    # ── transport ────────────────────────────────────────────────────────

    async def _invoke(self, command: str, **args: Any) -> Any:
        url = f"{self.base_url}/invoke/{command}"
        payload = {k: v for k, v in args.items() if v is not None}
        try:
            response = await self._client.post(url, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise StoreError(
                f"{command} failed with HTTP {exc.response.status_code}: {exc.response.text}"
            ) from exc
        except httpx.HTTPError as exc:
            raise StoreError(f"{command} failed: {exc}") from exc
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise StoreError(f"{command} returned invalid JSON") from exc

    async def _stream_frames(
        self, method: str, path: str, payload: dict[str, Any] | None = None
    ) -> AsyncIterator[dict[str, Any]]:
        url = f"{self.base_url}{path}"
        try:
            async with self._client.stream(method, url, json=payload) as response:
                response.raise_for_status()
                async for line in response.aiter_lines():
                    if not line.strip():
                        continue
                    try:
                        frame = json.loads(line)
                    except json.JSONDecodeError:
                        logger.warning("Ignoring malformed frame from %s: %r", path, line)
                        continue
                    if isinstance(frame, dict):
                        yield frame
        except httpx.HTTPStatusError as exc:
            raise StoreError(f"{path} failed with HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise StoreError(f"{path} failed: {exc}") from exc

    # ── events ───────────────────────────────────────────────────────────

    def listen(self, event: str, listener: Callable[[Any], None]) -> Subscription:
        return self._hub.listen(event, listener)

    async def watch_events(self) -> None:
        """Consume the store event feed and dispatch frames until it closes."""
        async with aclosing(self._stream_frames("GET", "/events")) as frames:
            async for frame in frames:
                event = frame.get("event")
                if isinstance(event, str):
                    self._hub.emit(event, frame.get("payload"))

    # ── queries ──────────────────────────────────────────────────────────

    async def list_buckets(self) -> list[Bucket]:
        rows = await self._invoke("get_apps")
        if not isinstance(rows, list):
            return []
        return [bucket for bucket in (parse_bucket(row) for row in rows) if bucket is not None]

    async def count_entries(
        self,
        bucket_id: int,
        *,
        search: str | None = None,
        domain: str | None = None,
    ) -> EntryCounts:
        data = await self._invoke(
            "get_entry_counts",
            appId=bucket_id,
            search=search or None,
            sourceDomain=domain or None,
        )
        return parse_entry_counts(data)

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
        rows = await self._invoke(
            "get_entries",
            appId=bucket_id,
            contentType=content_kind,
            search=search or None,
            sourceDomain=domain or None,
            page=page,
            pageSize=page_size,
        )
        return parse_entries(rows)

    async def list_favorite_entries(
        self, content_kind: str, *, page: int, page_size: int
    ) -> list[Entry]:
        rows = await self._invoke(
            "get_favorite_entries",
            contentType=content_kind,
            page=page,
            pageSize=page_size,
        )
        return parse_entries(rows)

    async def count_favorites(self) -> EntryCounts:
        return parse_entry_counts(await self._invoke("get_favorite_counts"))

    async def list_source_domains(self, bucket_id: int) -> list[SourceDomain]:
        rows = await self._invoke("get_source_urls", appId=bucket_id)
        if not isinstance(rows, list):
            return []
        return [s for s in (parse_source_domain(row) for row in rows) if s is not None]

    async def get_images_batch(self, image_paths: list[str]) -> dict[str, str]:
        data = await self._invoke("get_images_base64_batch", imagePaths=image_paths)
        if not isinstance(data, dict):
            return {}
        return {k: v for k, v in data.items() if isinstance(k, str) and isinstance(v, str)}

    async def resolve_favicon(self, domain: str) -> str:
        url = await self._invoke("resolve_favicon", domain=domain)
        return url if isinstance(url, str) else ""

    # ── mutations ────────────────────────────────────────────────────────

    async def toggle_favorite(self, entry_id: int) -> bool:
        return bool(await self._invoke("toggle_entry_favorite", id=entry_id))

    async def toggle_sensitive(self, entry_id: int) -> bool:
        return bool(await self._invoke("toggle_sensitive", id=entry_id))

    async def delete_entry(self, entry_id: int) -> None:
        await self._invoke("delete_entry", id=entry_id)

    async def delete_entries_by_domain(self, bucket_id: int, domain: str) -> None:
        await self._invoke("delete_entries_by_domain", appId=bucket_id, domain=domain)

    async def copy_entry(self, entry_id: int) -> None:
        await self._invoke("copy_entry_to_clipboard", id=entry_id)

    async def export_entries(
        self,
        bucket_id: int,
        content_kind: str,
        *,
        bucket_name: str,
        destination: Path,
        job_id: int = 0,
    ) -> str:
        payload = {
            "appId": bucket_id,
            "contentType": content_kind,
            "appName": bucket_name,
            "savePath": str(destination),
        }
        frames = self._stream_frames("POST", "/invoke/export_entries", payload)
        async with aclosing(frames):
            async for frame in frames:
                if frame.get("event") == EXPORT_PROGRESS_EVENT:
                    self._hub.emit(
                        EXPORT_PROGRESS_EVENT, {"job_id": job_id, "progress": frame.get("payload")}
                    )
                elif "error" in frame:
                    raise StoreError(f"export_entries failed: {frame['error']}")
                elif "result" in frame:
                    result = frame["result"]
                    return result if isinstance(result, str) else str(destination)
        raise StoreError("export_entries stream ended without a result")


__all__ = ["STORE_USER_AGENT", "HttpContentStore"]
