"""Query controller: filter state and debounced search settling."""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum

from cutboard_browser.models import SEARCH_DEBOUNCE_DELAY, Query, Target
from cutboard_browser.scheduling import Scheduler, TimerHandle

logger = logging.getLogger(__name__)


class QueryChange(Enum):
    """Which part of the settled query changed."""

    SEARCH = "search"
    TARGET = "target"
    CONTENT_KIND = "content_kind"
    DOMAIN = "domain"
    PAGE = "page"


QueryListener = Callable[[Query, QueryChange], None]


class QueryController:
    """Owns the Query for one content view.

    Raw search text is stored on every keystroke; the settled search text
    only follows after ``debounce_delay`` seconds without further edits.
    Listeners are notified for settled changes only.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        target: Target,
        *,
        content_kind: str = "text",
        debounce_delay: float = SEARCH_DEBOUNCE_DELAY,
        page_count: Callable[[], int] | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._debounce_delay = debounce_delay
        self._page_count = page_count or (lambda: 1)
        self._search_timer: TimerHandle | None = None
        self._listeners: list[QueryListener] = []
        self.query = Query(target=target, content_kind=content_kind)

    def add_listener(self, listener: QueryListener) -> Callable[[], None]:
        """Register a settled-change listener; returns a remover."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def bind_page_count(self, page_count: Callable[[], int]) -> None:
        self._page_count = page_count

    @property
    def search_pending(self) -> bool:
        return self._search_timer is not None

    def _emit(self, change: QueryChange) -> None:
        for listener in list(self._listeners):
            listener(self.query, change)

    def _cancel_search_timer(self) -> None:
        # Atomic swap: capture and clear before stopping
        timer = self._search_timer
        self._search_timer = None
        if timer is not None:
            timer.stop()

    def set_search_text(self, raw: str) -> None:
        """Record a keystroke and (re)start the debounce window."""
        self.query.raw_search_text = raw
        self._cancel_search_timer()
        self._search_timer = self._scheduler.set_timer(
            self._debounce_delay,
            self._debounced_settle,
        )

    def _debounced_settle(self) -> None:
        self._search_timer = None
        self.query.settled_search_text = self.query.raw_search_text
        self.query.page = 1
        logger.debug("Search settled: %r", self.query.settled_search_text)
        self._emit(QueryChange.SEARCH)

    def clear_search(self) -> None:
        """Clear raw and settled search text immediately."""
        self._cancel_search_timer()
        self.query.raw_search_text = ""
        self.query.settled_search_text = ""
        self.query.page = 1
        self._emit(QueryChange.SEARCH)

    def set_target(self, target: Target) -> None:
        """Switch bucket (or favorites). Clears search and domain filter."""
        if target == self.query.target:
            return
        self._cancel_search_timer()
        self.query.target = target
        self.query.raw_search_text = ""
        self.query.settled_search_text = ""
        self.query.domain_filter = None
        self.query.page = 1
        self._emit(QueryChange.TARGET)

    def set_content_kind(self, content_kind: str) -> None:
        if content_kind == self.query.content_kind:
            return
        self.query.content_kind = content_kind
        self.query.page = 1
        self._emit(QueryChange.CONTENT_KIND)

    def set_domain_filter(self, domain: str | None) -> None:
        if domain == self.query.domain_filter:
            return
        self.query.domain_filter = domain
        self.query.page = 1
        self._emit(QueryChange.DOMAIN)

    def set_page(self, page: int) -> None:
        """Go to ``page``, silently clamped to ``[1, page_count()]``."""
        clamped = max(1, min(page, max(1, self._page_count())))
        if clamped == self.query.page:
            return
        self.query.page = clamped
        self._emit(QueryChange.PAGE)

    def next_page(self) -> None:
        self.set_page(self.query.page + 1)

    def prev_page(self) -> None:
        self.set_page(self.query.page - 1)

    def close(self) -> None:
        """Stop any pending debounce timer."""
        self._cancel_search_timer()


__all__ = ["QueryChange", "QueryController", "QueryListener"]
