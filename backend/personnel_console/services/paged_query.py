"""Paginated, filterable list state shared by the directory and the activity log."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Generic, Protocol, TypeVar

from ..domain_errors import DomainError
from ..schemas import Page
from .notifications import Notifier
from .request_sequencer import RequestSequencer

logger = logging.getLogger(__name__)

T = TypeVar("T")
F = TypeVar("F", bound="QueryFilters")

APPLIED = "applied"
STALE = "stale"
FAILED = "failed"


class QueryFilters(Protocol):
    def to_params(self) -> dict[str, str]: ...


class QueryState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


@dataclass(frozen=True)
class PageCursor:
    """Pagination facts. Everything but ``current_page`` is only what the server last reported."""

    current_page: int = 1
    per_page: int = 15
    total: int = 0
    last_page: int = 1

    @property
    def has_previous(self) -> bool:
        return self.current_page > 1

    @property
    def has_next(self) -> bool:
        return self.current_page < self.last_page

    @classmethod
    def from_page(cls, page: Page[Any]) -> "PageCursor":
        return cls(
            current_page=page.current_page,
            per_page=page.per_page,
            total=page.total,
            last_page=page.last_page,
        )


@dataclass(frozen=True)
class FetchOutcome:
    status: str
    page: int
    error: DomainError | None = None

    @property
    def applied(self) -> bool:
        return self.status == APPLIED


class PagedQuery(Generic[F, T]):
    """Owns filters + cursor and turns every change into exactly one page fetch.

    State changes are applied synchronously; the fetch that follows carries a
    sequencer token and its response is applied only while that token is the
    latest, so the displayed page always matches the last requested
    filters/page. Failures keep the previously displayed items.
    """

    def __init__(
        self,
        fetch_page: Callable[[dict[str, Any]], Awaitable[Page[T]]],
        *,
        filters: F,
        per_page: int,
        notifier: Notifier,
        error_message: str,
        label: str = "list",
    ) -> None:
        self._fetch_page = fetch_page
        self._initial_filters = filters
        self._filters = filters
        self._cursor = PageCursor(per_page=per_page)
        self._items: list[T] = []
        self._state = QueryState.IDLE
        self._loading = False
        self._last_error: DomainError | None = None
        self._sequencer = RequestSequencer()
        self.notifier = notifier
        self.error_message = error_message
        self.label = label

    # Read side

    @property
    def filters(self) -> F:
        return self._filters

    @property
    def cursor(self) -> PageCursor:
        return self._cursor

    @property
    def items(self) -> list[T]:
        return list(self._items)

    @property
    def state(self) -> QueryState:
        return self._state

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def last_error(self) -> DomainError | None:
        return self._last_error

    @property
    def can_go_previous(self) -> bool:
        return self._cursor.has_previous

    @property
    def can_go_next(self) -> bool:
        return self._cursor.has_next

    def build_params(self) -> dict[str, Any]:
        return {
            "page": self._cursor.current_page,
            "per_page": self._cursor.per_page,
            **self._filters.to_params(),
        }

    # Triggers

    async def load(self) -> FetchOutcome:
        return await self._fetch()

    async def refresh(self) -> FetchOutcome:
        return await self._fetch()

    async def set_filters(self, filters: F, *, debounce: float = 0.0) -> FetchOutcome:
        self._filters = filters
        self._cursor = replace(self._cursor, current_page=1)
        return await self._fetch(debounce=debounce)

    async def reset_filters(self) -> FetchOutcome:
        return await self.set_filters(self._initial_filters)

    async def go_to_page(self, page: int) -> FetchOutcome | None:
        """Navigate; pages outside ``[1, last_page]`` are ignored."""
        if page < 1 or page > max(self._cursor.last_page, 1):
            return None
        self._cursor = replace(self._cursor, current_page=page)
        return await self._fetch()

    async def next_page(self) -> FetchOutcome | None:
        if not self.can_go_next:
            return None
        return await self.go_to_page(self._cursor.current_page + 1)

    async def previous_page(self) -> FetchOutcome | None:
        if not self.can_go_previous:
            return None
        return await self.go_to_page(self._cursor.current_page - 1)

    # Effect

    async def _fetch(self, *, debounce: float = 0.0) -> FetchOutcome:
        token = self._sequencer.issue()
        self._state = QueryState.LOADING
        self._loading = True

        if debounce > 0:
            await asyncio.sleep(debounce)
            if not self._sequencer.is_current(token):
                return FetchOutcome(status=STALE, page=self._cursor.current_page)

        params = self.build_params()
        requested_page = params["page"]
        started = time.perf_counter()
        try:
            page = await self._fetch_page(params)
        except DomainError as exc:
            if not self._sequencer.is_current(token):
                logger.debug("%s.stale_error token=%s page=%s", self.label, token, requested_page)
                return FetchOutcome(status=STALE, page=requested_page, error=exc)
            self._loading = False
            self._state = QueryState.FAILED
            self._last_error = exc
            logger.warning("%s.fetch_failed page=%s code=%s", self.label, requested_page, exc.code)
            self.notifier.error(self.error_message)
            return FetchOutcome(status=FAILED, page=requested_page, error=exc)

        if not self._sequencer.is_current(token):
            logger.debug("%s.stale token=%s page=%s", self.label, token, requested_page)
            return FetchOutcome(status=STALE, page=requested_page)

        self._items = list(page.items)
        self._cursor = PageCursor.from_page(page)
        self._loading = False
        self._state = QueryState.LOADED
        self._last_error = None
        logger.info(
            "%s.fetch page=%s total=%s ms=%.0f",
            self.label,
            page.current_page,
            page.total,
            (time.perf_counter() - started) * 1000,
        )

        last_page = max(page.last_page, 1)
        if not page.items and page.current_page > last_page:
            # Requested page no longer exists (e.g. rows deleted elsewhere).
            self._cursor = replace(self._cursor, current_page=last_page)
            return await self._fetch()
        return FetchOutcome(status=APPLIED, page=page.current_page)
