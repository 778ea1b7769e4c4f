"""Paginated fetch controller.

Feed pagination is an explicit state machine: ``idle -> loading ->
loaded | errored`` with an orthogonal ``has_more`` flag. The transitions are
pure functions over an immutable ``PageState``; the controller performs the
fetches and applies transitions only for results that still belong to the
current pagination sequence.
"""

import asyncio
from dataclasses import dataclass, replace
from enum import Enum
from typing import Sequence

import structlog

from storefront_feed.config import get_settings
from storefront_feed.errors import FetchTimeoutError
from storefront_feed.models import CatalogItem
from storefront_feed.services.catalog import CatalogSource
from storefront_feed.services.query_builder import Tab, build_query, page_bounds

logger = structlog.get_logger()

TIMEOUT_MESSAGE = "Request timed out. Please try again."
FIRST_PAGE_ERROR_MESSAGE = "Could not load items. Please try again."
LOAD_MORE_ERROR_MESSAGE = "Couldn't load more items."


class FeedStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    ERRORED = "errored"


@dataclass(frozen=True)
class PageState:
    """Snapshot of the main grid.

    ``errored`` is reserved for a failed first page (empty grid, retry
    affordance). A failed load-more stays ``loaded`` with an inline message.
    """

    tab: Tab = Tab.NEW
    items: tuple[CatalogItem, ...] = ()
    page: int = 0
    has_more: bool = True
    status: FeedStatus = FeedStatus.IDLE
    error_message: str | None = None

    @property
    def loading(self) -> bool:
        return self.status is FeedStatus.LOADING


# =============================================================================
# Transitions
# =============================================================================


def begin_first_page(state: PageState, tab: Tab) -> PageState:
    return PageState(tab=tab, items=(), page=0, has_more=True, status=FeedStatus.LOADING)


def first_page_succeeded(state: PageState, batch: Sequence[CatalogItem], page_size: int) -> PageState:
    return replace(
        state,
        items=tuple(batch),
        page=0,
        has_more=len(batch) == page_size,
        status=FeedStatus.LOADED,
        error_message=None,
    )


def first_page_failed(state: PageState, message: str) -> PageState:
    return replace(
        state,
        items=(),
        page=0,
        has_more=False,
        status=FeedStatus.ERRORED,
        error_message=message,
    )


def can_load_more(state: PageState) -> bool:
    return state.has_more and not state.loading and state.status is not FeedStatus.IDLE


def begin_load_more(state: PageState) -> PageState:
    return replace(state, status=FeedStatus.LOADING, error_message=None)


def more_succeeded(state: PageState, batch: Sequence[CatalogItem], page_size: int) -> PageState:
    return replace(
        state,
        items=state.items + tuple(batch),
        page=state.page + 1,
        has_more=bool(batch) and len(batch) >= page_size,
        status=FeedStatus.LOADED,
    )


def more_failed(state: PageState, message: str) -> PageState:
    """Keep everything already rendered; stop auto-loading."""
    return replace(state, has_more=False, status=FeedStatus.LOADED, error_message=message)


# =============================================================================
# Controller
# =============================================================================


class PaginatedFetchController:
    """Owns the main grid's page index, exhaustion flag and loading state."""

    def __init__(
        self,
        catalog: CatalogSource,
        page_size: int | None = None,
        timeout_seconds: float | None = None,
        price_cap: float | None = None,
    ):
        settings = get_settings()
        self.catalog = catalog
        self.page_size = page_size or settings.page_size
        self.timeout_seconds = timeout_seconds or settings.fetch_timeout_seconds
        self.price_cap = price_cap if price_cap is not None else settings.price_cap
        self.city: str | None = None
        self.state = PageState()
        # Bumped whenever a new pagination sequence starts; results tagged
        # with an older generation are stale.
        self._generation = 0

    async def fetch_page(self, tab: Tab, page_index: int) -> list[CatalogItem]:
        """Fetch one page, failing with ``FetchTimeoutError`` past the budget."""
        start, end = page_bounds(page_index, self.page_size)
        query = build_query(tab, self.city, price_cap=self.price_cap).range(start, end)
        try:
            return await asyncio.wait_for(self.catalog.fetch(query), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise FetchTimeoutError(self.timeout_seconds) from e

    async def load_first_page(self, tab: Tab | str | None = None) -> PageState:
        tab = Tab.parse(tab if tab is not None else self.state.tab)
        self._generation += 1
        generation = self._generation
        self.state = begin_first_page(self.state, tab)

        try:
            batch = await self.fetch_page(tab, 0)
        except Exception as e:
            if self._is_stale(generation, tab):
                return self.state
            logger.error("First page failed", tab=tab.value, error=str(e) or type(e).__name__)
            self.state = first_page_failed(self.state, _message_for(e, FIRST_PAGE_ERROR_MESSAGE))
            return self.state

        if self._is_stale(generation, tab):
            return self.state
        self.state = first_page_succeeded(self.state, batch, self.page_size)
        logger.debug("First page loaded", tab=tab.value, count=len(batch))
        return self.state

    async def load_more(self) -> PageState:
        if not can_load_more(self.state):
            return self.state

        generation = self._generation
        tab = self.state.tab
        next_page = self.state.page + 1
        self.state = begin_load_more(self.state)

        try:
            batch = await self.fetch_page(tab, next_page)
        except Exception as e:
            if self._is_stale(generation, tab):
                return self.state
            logger.warning("Load more failed", tab=tab.value, page=next_page, error=str(e) or type(e).__name__)
            self.state = more_failed(self.state, _message_for(e, LOAD_MORE_ERROR_MESSAGE))
            return self.state

        if self._is_stale(generation, tab):
            return self.state
        self.state = more_succeeded(self.state, batch, self.page_size)
        logger.debug("Page loaded", tab=tab.value, page=next_page, count=len(batch))
        return self.state

    async def select_tab(self, tab: Tab | str | None) -> PageState:
        """Switch tabs; any fetch still in flight for the old tab is discarded."""
        return await self.load_first_page(Tab.parse(tab))

    async def retry(self) -> PageState:
        """Re-run the first-page fetch for the current tab."""
        return await self.load_first_page(self.state.tab)

    def restore(self, state: PageState) -> None:
        """Hydrate from a cached snapshot without fetching."""
        self._generation += 1
        self.state = state

    def _is_stale(self, generation: int, tab: Tab) -> bool:
        if generation != self._generation or tab is not self.state.tab:
            logger.debug("Discarding stale result", tab=tab.value, active_tab=self.state.tab.value)
            return True
        return False


def _message_for(error: Exception, default: str) -> str:
    if isinstance(error, FetchTimeoutError):
        return TIMEOUT_MESSAGE
    return default
