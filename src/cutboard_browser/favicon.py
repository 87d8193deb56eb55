"""Favicon resolution for source-domain chips.

Each domain walks a small cascade: a previously confirmed icon URL, then a
fixed list of icon providers, then a resolver lookup (cached separately),
and finally a generated letter badge. Confirmed and resolver-supplied URLs
are kept in two persisted bounded caches.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from urllib.parse import quote

import httpx

from cutboard_browser.models import FAVICON_CACHE_SIZE
from cutboard_browser.services.interfaces import StoreError
from cutboard_browser.storage import LocalStorage, PersistentBoundedCache

logger = logging.getLogger(__name__)

FAVICON_CACHE_KEY = "cutboard_favicon_cache"
FAVICON_RESOLVED_CACHE_KEY = "cutboard_favicon_resolved"
FAVICON_RESOLVE_TIMEOUT = 5  # seconds
FAVICON_LINK_WINDOW = 300  # chars searched around a rel="icon" match

STATIC_FAVICON_SOURCES: tuple[Callable[[str], str], ...] = (
    lambda d: f"https://{d}/favicon.ico",
    lambda d: f"https://icons.duckduckgo.com/ip3/{d}.ico",
    lambda d: f"https://favicon.cccyun.cc/{d}",
    lambda d: f"https://favicon.yandex.net/favicon/v2/{quote(f'https://{d}', safe='')}?size=32",
    lambda d: f"https://api.faviconkit.com/{d}/64",
    lambda d: f"https://www.google.com/s2/favicons?domain={quote(d, safe='')}&sz=64",
)

DOMAIN_BADGE_COLORS = (
    "#3B82F6",
    "#EF4444",
    "#10B981",
    "#F59E0B",
    "#8B5CF6",
    "#EC4899",
    "#06B6D4",
    "#84CC16",
    "#F97316",
    "#6366F1",
)

_ASCII_LOWER = str.maketrans("ABCDEFGHIJKLMNOPQRSTUVWXYZ", "abcdefghijklmnopqrstuvwxyz")
_ICON_REL_PATTERNS = ('rel="icon"', 'rel="shortcut icon"', "rel='icon'", "rel='shortcut icon'")

Resolver = Callable[[str], Awaitable[str]]
Probe = Callable[[str], Awaitable[bool]]


# ============================================================================
# Placeholder badge
# ============================================================================


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value >= 0x80000000 else value


def domain_hash(domain: str) -> int:
    """String hash compatible with ``hash = c + ((hash << 5) - hash)`` over UTF-16 units.

    The shift wraps to 32 bits while the subtraction does not, so existing
    badge colors stay stable across clients.
    """
    units = domain.encode("utf-16-le")
    h = 0
    for i in range(0, len(units), 2):
        code = units[i] | (units[i + 1] << 8)
        h = code + (_to_int32(_to_int32(h) << 5) - h)
    return h


@dataclass(slots=True, frozen=True)
class DomainBadge:
    """Generated placeholder shown when no icon could be loaded."""

    color: str
    glyph: str


def domain_color(domain: str) -> str:
    return DOMAIN_BADGE_COLORS[abs(domain_hash(domain)) % len(DOMAIN_BADGE_COLORS)]


def domain_badge(domain: str) -> DomainBadge:
    return DomainBadge(color=domain_color(domain), glyph=domain[:1].upper())


# ============================================================================
# Two-tier cache
# ============================================================================


@dataclass(slots=True)
class FaviconTiers:
    """Confirmed-working URLs (first tier) and resolver results (second tier)."""

    confirmed: PersistentBoundedCache
    resolved: PersistentBoundedCache


def build_favicon_tiers(
    storage: LocalStorage, capacity: int = FAVICON_CACHE_SIZE
) -> FaviconTiers:
    return FaviconTiers(
        confirmed=PersistentBoundedCache(storage, FAVICON_CACHE_KEY, capacity),
        resolved=PersistentBoundedCache(storage, FAVICON_RESOLVED_CACHE_KEY, capacity),
    )


@functools.cache
def default_favicon_tiers(capacity: int = FAVICON_CACHE_SIZE) -> FaviconTiers:
    """Process-wide favicon tiers, created on first use per capacity."""
    return build_favicon_tiers(LocalStorage(), capacity)


# ============================================================================
# Resolution cascade
# ============================================================================


class FaviconState(Enum):
    TRYING_STATIC = "trying_static"
    TRYING_RESOLVER = "trying_resolver"
    RESOLVED = "resolved"
    FAILED = "failed"


class FaviconCascade:
    """Per-domain favicon state machine.

    The renderer loads ``current_url`` and reports back through
    :meth:`mark_loaded` or :meth:`mark_failed`. ``FAILED`` is terminal and
    renders :attr:`badge`.
    """

    def __init__(
        self,
        domain: str,
        tiers: FaviconTiers,
        resolver: Resolver,
        *,
        sources: tuple[Callable[[str], str], ...] = STATIC_FAVICON_SOURCES,
    ) -> None:
        self.domain = domain
        self._tiers = tiers
        self._resolver = resolver
        self._sources = sources
        self._resolver_tried = False
        self._from_cache = False
        self.static_index = 0
        self.current_url: str | None = None
        self.state = FaviconState.TRYING_STATIC

        cached = tiers.confirmed.get(domain)
        if cached:
            self.state = FaviconState.RESOLVED
            self.current_url = cached
            self._from_cache = True
        else:
            self._enter_static(0)

    @property
    def badge(self) -> DomainBadge:
        return domain_badge(self.domain)

    @property
    def done(self) -> bool:
        return self.state is FaviconState.FAILED

    def _enter_static(self, index: int) -> None:
        if index >= len(self._sources):
            self.state = FaviconState.FAILED
            self.current_url = None
            return
        self._from_cache = False
        self.static_index = index
        self.state = FaviconState.TRYING_STATIC
        self.current_url = self._sources[index](self.domain)

    def mark_loaded(self) -> None:
        """The current URL rendered; remember it as confirmed."""
        if self.state is FaviconState.FAILED or self.current_url is None:
            return
        self._tiers.confirmed.put(self.domain, self.current_url)
        self.state = FaviconState.RESOLVED

    async def mark_failed(self) -> None:
        """The current URL failed to load; advance the cascade."""
        if self.state is FaviconState.FAILED:
            return
        if self.state is FaviconState.RESOLVED and self._from_cache:
            # Stale confirmed URL: start over from the providers
            self._enter_static(0)
        elif self.state is FaviconState.TRYING_STATIC:
            if self.static_index + 1 < len(self._sources):
                self._enter_static(self.static_index + 1)
            else:
                await self._try_resolver()
        else:
            self.state = FaviconState.FAILED
            self.current_url = None

    async def _try_resolver(self) -> None:
        if self._resolver_tried:
            self.state = FaviconState.FAILED
            self.current_url = None
            return
        self._resolver_tried = True
        self.state = FaviconState.TRYING_RESOLVER
        self.current_url = None

        url = self._tiers.resolved.get(self.domain)
        if not url:
            try:
                url = await self._resolver(self.domain)
            except StoreError:
                logger.info("Favicon resolver failed for %s", self.domain, exc_info=True)
                url = ""
            if url:
                self._tiers.resolved.put(self.domain, url)

        if url:
            self.state = FaviconState.RESOLVED
            self.current_url = url
        else:
            self.state = FaviconState.FAILED


async def resolve_domain_icon(
    domain: str,
    *,
    tiers: FaviconTiers,
    resolver: Resolver,
    probe: Probe,
) -> FaviconCascade:
    """Drive a cascade until an icon loads or it fails."""
    cascade = FaviconCascade(domain, tiers, resolver)
    while not cascade.done and cascade.current_url is not None:
        if await probe(cascade.current_url):
            cascade.mark_loaded()
            break
        await cascade.mark_failed()
    return cascade


# ============================================================================
# Network helpers
# ============================================================================


async def probe_icon_url(
    url: str,
    client: httpx.AsyncClient | None = None,
    timeout: float = FAVICON_RESOLVE_TIMEOUT,
) -> bool:
    """Return True when ``url`` serves a non-empty body with HTTP 200."""
    try:
        if client is not None:
            response = await client.get(url, timeout=timeout, follow_redirects=True)
        else:
            async with httpx.AsyncClient() as tmp_client:
                response = await tmp_client.get(url, timeout=timeout, follow_redirects=True)
    except httpx.HTTPError:
        logger.debug("Favicon probe failed for %s", url, exc_info=True)
        return False
    return response.status_code == 200 and bool(response.content)


def _extract_href(region: str) -> str | None:
    lower = region.translate(_ASCII_LOWER)
    pos = lower.find("href=")
    if pos < 0:
        return None
    rest = region[pos + 5 :].lstrip()
    if rest[:1] in ('"', "'"):
        quote_char = rest[0]
        end = rest.find(quote_char, 1)
        return rest[1:end] if end > 0 else None
    for i, ch in enumerate(rest):
        if ch.isspace() or ch in ">/":
            return rest[:i]
    return None


def _absolutize(domain: str, href: str) -> str:
    if href.startswith(("http://", "https://")):
        return href
    if href.startswith("//"):
        return f"https:{href}"
    if href.startswith("/"):
        return f"https://{domain}{href}"
    return f"https://{domain}/{href}"


def find_icon_link(domain: str, html: str) -> str:
    """Find the first ``rel="icon"`` link in ``html`` as an absolute URL."""
    # ASCII-only lowering keeps offsets aligned with the original text
    lower = html.translate(_ASCII_LOWER)
    for pattern in _ICON_REL_PATTERNS:
        pos = lower.find(pattern)
        if pos < 0:
            continue
        region = html[max(0, pos - FAVICON_LINK_WINDOW) : pos + FAVICON_LINK_WINDOW]
        href = _extract_href(region)
        if href:
            return _absolutize(domain, href)
    return ""


async def fetch_favicon_link(
    domain: str,
    client: httpx.AsyncClient | None = None,
    timeout: float = FAVICON_RESOLVE_TIMEOUT,
) -> str:
    """Look up a favicon link on the domain's home page. Empty string if none."""
    url = f"https://{domain}"
    try:
        if client is not None:
            response = await client.get(url, timeout=timeout, follow_redirects=True)
        else:
            async with httpx.AsyncClient() as tmp_client:
                response = await tmp_client.get(url, timeout=timeout, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPError:
        logger.info("Could not fetch %s for favicon lookup", url, exc_info=True)
        return ""
    return find_icon_link(domain, response.text)


__all__ = [
    "DOMAIN_BADGE_COLORS",
    "FAVICON_CACHE_KEY",
    "FAVICON_RESOLVED_CACHE_KEY",
    "STATIC_FAVICON_SOURCES",
    "DomainBadge",
    "FaviconCascade",
    "FaviconState",
    "FaviconTiers",
    "Probe",
    "Resolver",
    "build_favicon_tiers",
    "default_favicon_tiers",
    "domain_badge",
    "domain_color",
    "domain_hash",
    "fetch_favicon_link",
    "find_icon_link",
    "probe_icon_url",
    "resolve_domain_icon",
]
