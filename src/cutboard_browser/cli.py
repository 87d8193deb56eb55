"""Command-line entry point for browsing and exporting store content."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import logging.handlers
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
from platformdirs import user_config_dir

from cutboard_browser.action_messages import (
    build_actionable_error,
    build_actionable_success,
    build_export_progress_line,
)
from cutboard_browser.config import load_config
from cutboard_browser.export import (
    ExportJobRunner,
    ExportRequest,
    ExportState,
    ExportStatus,
    default_export_filename,
)
from cutboard_browser.favicon import (
    FaviconState,
    default_favicon_tiers,
    probe_icon_url,
    resolve_domain_icon,
)
from cutboard_browser.models import (
    CONFIG_APP_NAME,
    CONTENT_KINDS,
    FAVORITES_TARGET,
    Entry,
    Query,
    Target,
    UserConfig,
)
from cutboard_browser.pagination import PaginatedFetchExecutor, page_numbers
from cutboard_browser.services.http_store import HttpContentStore
from cutboard_browser.services.interfaces import StoreError

logger = logging.getLogger(__name__)

PREVIEW_WIDTH = 60
SENSITIVE_MASK = "••••••"

StoreFactory = Callable[[UserConfig], Any]


def _default_store_factory(config: UserConfig) -> HttpContentStore:
    return HttpContentStore(config.store_url, timeout_seconds=config.store_timeout_seconds)


def _configure_logging(debug: bool) -> None:
    """Configure logging. When debug=True, logs to file at DEBUG level."""
    if not debug:
        logging.disable(logging.CRITICAL)
        return

    log_dir = Path(user_config_dir(CONFIG_APP_NAME))
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "debug.log"

    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=5 * 1024 * 1024,
        backupCount=3,
        encoding="utf-8",
    )
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s %(name)s %(levelname)s %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    logging.root.addHandler(handler)
    logging.root.setLevel(logging.DEBUG)


def _store_unreachable(action: str, config: UserConfig) -> str:
    return build_actionable_error(
        action,
        why=f"the content store at {config.store_url} did not answer",
        next_step="start the clipboard store or pass --store-url",
    )


def format_entry_line(entry: Entry) -> str:
    """One-line listing of an entry; sensitive text is masked."""
    marker = "*" if entry.is_favorite else " "
    if entry.content_kind == "image":
        preview = entry.image_path or ""
    elif entry.is_sensitive:
        preview = SENSITIVE_MASK
    else:
        preview = " ".join((entry.text_body or "").split())
    if len(preview) > PREVIEW_WIDTH:
        preview = preview[: PREVIEW_WIDTH - 3] + "..."
    line = f"{marker} #{entry.id:<6} {entry.created_at}  {preview}"
    if entry.source_url:
        line += f"  <{entry.source_url}>"
    return line


def _format_page_strip(current: int, total: int) -> str:
    parts = [f"[{p}]" if p == current else str(p) for p in page_numbers(current, total)]
    return " ".join(parts)


# ============================================================================
# Commands
# ============================================================================


async def _cmd_list(store: Any, args: argparse.Namespace, config: UserConfig) -> int:
    target: Target = FAVORITES_TARGET if args.favorites else args.bucket
    query = Query(
        target=target,
        content_kind=args.kind,
        raw_search_text=args.search or "",
        settled_search_text=args.search or "",
        domain_filter=None if args.favorites else args.domain,
        page=max(1, args.page),
    )
    executor = PaginatedFetchExecutor(store, page_size=config.page_size)
    if not await executor.fetch_page(query):
        print(_store_unreachable("load entries", config), file=sys.stderr)
        return 1

    total_pages = executor.total_pages(query.content_kind)
    for entry in executor.entries:
        print(format_entry_line(entry))
    if not executor.entries:
        print("No entries found.")
    print(
        f"{executor.counts.text_count} text, {executor.counts.image_count} images · "
        f"page {query.page}/{total_pages}"
    )
    print(_format_page_strip(min(query.page, total_pages), total_pages))
    return 0


async def _cmd_sources(store: Any, args: argparse.Namespace, config: UserConfig) -> int:
    try:
        sources = await store.list_source_domains(args.bucket)
    except StoreError:
        logger.warning("Failed to list source domains", exc_info=True)
        print(_store_unreachable("list source domains", config), file=sys.stderr)
        return 1
    if not sources:
        print("No source domains recorded for this bucket.")
        return 0
    for source in sources:
        print(f"{source.count:>6}  {source.domain}")
    return 0


async def _bucket_name(store: Any, bucket_id: int) -> str:
    try:
        buckets = await store.list_buckets()
    except StoreError:
        logger.warning("Failed to load buckets for export name", exc_info=True)
        return ""
    return next((b.display_name for b in buckets if b.id == bucket_id), "")


async def _cmd_export(store: Any, args: argparse.Namespace, config: UserConfig) -> int:
    bucket_name = await _bucket_name(store, args.bucket)
    destination: Path = args.output or (
        (Path(config.export_dir).expanduser() if config.export_dir else Path.cwd())
        / default_export_filename(bucket_name, args.kind)
    )

    def _on_change(state: ExportState) -> None:
        if state.running:
            print(f"\r{build_export_progress_line(state.progress)}", end="", flush=True)

    runner = ExportJobRunner(store, on_change=_on_change)
    state = await runner.start(
        ExportRequest(
            bucket_id=args.bucket,
            content_kind=args.kind,
            bucket_name=bucket_name,
            destination=destination,
        )
    )
    print()
    if state.status is not ExportStatus.DONE:
        print(
            build_actionable_error(
                "export entries",
                why=state.error or "the export did not finish",
                next_step="check the destination folder and retry",
            ),
            file=sys.stderr,
        )
        return 1
    print(build_actionable_success("Export finished", detail=f"Saved to {state.path}"))
    return 0


async def _cmd_favicon(store: Any, args: argparse.Namespace, config: UserConfig) -> int:
    async with httpx.AsyncClient(follow_redirects=True) as client:

        async def _probe(url: str) -> bool:
            return await probe_icon_url(url, client, timeout=config.favicon_timeout_seconds)

        cascade = await resolve_domain_icon(
            args.domain,
            tiers=default_favicon_tiers(config.favicon_cache_size),
            resolver=store.resolve_favicon,
            probe=_probe,
        )
    if cascade.state is FaviconState.RESOLVED and cascade.current_url:
        print(cascade.current_url)
    else:
        badge = cascade.badge
        print(f"badge {badge.glyph} {badge.color}")
    return 0


_COMMANDS = {
    "list": _cmd_list,
    "sources": _cmd_sources,
    "export": _cmd_export,
    "favicon": _cmd_favicon,
}


async def _run_command(
    args: argparse.Namespace, config: UserConfig, store_factory: StoreFactory
) -> int:
    store = store_factory(config)
    try:
        return await _COMMANDS[args.command](store, args, config)
    finally:
        aclose = getattr(store, "aclose", None)
        if aclose is not None:
            await aclose()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Browse, filter and export clipboard history from the content store"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging to file (~/.config/cutboard-browser/debug.log)",
    )
    parser.add_argument(
        "--store-url",
        type=str,
        default=None,
        help="Content store base URL (default: config value)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", help="List one page of entries")
    target = list_parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--bucket", type=int, help="Bucket (source application) id")
    target.add_argument("--favorites", action="store_true", help="List favorite entries")
    list_parser.add_argument("--kind", choices=CONTENT_KINDS, default="text")
    list_parser.add_argument("--search", type=str, default=None, help="Search text")
    list_parser.add_argument("--domain", type=str, default=None, help="Source domain filter")
    list_parser.add_argument("--page", type=int, default=1, help="Page number (default: 1)")

    sources_parser = subparsers.add_parser("sources", help="List source domains of a bucket")
    sources_parser.add_argument("--bucket", type=int, required=True)

    export_parser = subparsers.add_parser("export", help="Export a whole bucket")
    export_parser.add_argument("--bucket", type=int, required=True)
    export_parser.add_argument("--kind", choices=CONTENT_KINDS, default="text")
    export_parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Destination file (default: CutBoard_<bucket>_<YYYYMMDD>.<md|zip>)",
    )

    favicon_parser = subparsers.add_parser("favicon", help="Resolve a domain icon")
    favicon_parser.add_argument("domain", type=str)
    return parser


def main(
    argv: list[str] | None = None,
    *,
    load_config_fn: Callable[[], UserConfig] = load_config,
    configure_logging_fn: Callable[[bool], None] = _configure_logging,
    store_factory: StoreFactory = _default_store_factory,
) -> int:
    """Main entry point. Returns exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging_fn(args.debug)
    logger.debug("cutboard-browser %s starting", args.command)

    config = load_config_fn()
    if args.store_url:
        config = dataclasses.replace(config, store_url=args.store_url)

    return asyncio.run(_run_command(args, config, store_factory))


__all__ = [
    "_configure_logging",
    "format_entry_line",
    "main",
]
