"""Storefront feed: the UI-facing feed contract.

Wires the fetch controller, personalization pipeline, city rail and feed
state cache into one object the UI mounts, drives with actions and reads
through ``view()``.
"""

import asyncio
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable

import structlog

from storefront_feed.models import AffinityRail, CatalogItem, CityPreference
from storefront_feed.services.city import CityPreferenceStore, CityRail, CityRailService
from storefront_feed.services.feed_cache import FeedState, FeedStateCache
from storefront_feed.services.fetch_controller import FeedStatus, PaginatedFetchController
from storefront_feed.services.highlights import Highlights, HighlightsService
from storefront_feed.services.personalization import PersonalizationPipeline
from storefront_feed.services.query_builder import Tab, available_tabs
from storefront_feed.services.scroll import LoadMoreScheduler, ScrollTriggerPolicy, Timer

logger = structlog.get_logger()

EMPTY_FEED_MESSAGE = "No items found"


@dataclass(frozen=True)
class FeedView:
    """Everything the UI renders for the feed."""

    items: tuple[CatalogItem, ...]
    loading: bool
    error_message: str | None
    has_more: bool
    active_tab: Tab
    tabs: tuple[Tab, ...]
    status: FeedStatus
    recently_rail: AffinityRail | None = None
    because_rail: AffinityRail | None = None
    for_you_rail: AffinityRail | None = None
    city_rail: CityRail | None = None
    city_preference: CityPreference | None = None
    highlights: Highlights = Highlights()

    @property
    def can_retry(self) -> bool:
        return self.status is FeedStatus.ERRORED

    @property
    def empty_message(self) -> str | None:
        if self.status is FeedStatus.LOADED and not self.items:
            return EMPTY_FEED_MESSAGE
        return None


class StorefrontFeed:
    """Feed lifecycle (mount/unmount) plus tab, scroll and city actions."""

    def __init__(
        self,
        controller: PaginatedFetchController,
        personalization: PersonalizationPipeline,
        city_preferences: CityPreferenceStore,
        city_rails: CityRailService,
        cache: FeedStateCache,
        highlights: HighlightsService | None = None,
        scroll_policy: ScrollTriggerPolicy | None = None,
        timer: Timer | None = None,
    ):
        self.controller = controller
        self.personalization = personalization
        self.city_preferences = city_preferences
        self.city_rails = city_rails
        self.cache = cache
        self.highlights_service = highlights
        self.scroll = LoadMoreScheduler(self._trigger_load_more, policy=scroll_policy, timer=timer)

        self.recently_rail: AffinityRail | None = None
        self.because_rail: AffinityRail | None = None
        self.for_you_rail: AffinityRail | None = None
        self.city_rail: CityRail | None = None
        self.city_preference: CityPreference | None = None
        self.highlights = Highlights()
        self.scroll_offset = 0.0

        self._listeners: list[Callable[[FeedView], None]] = []
        self._tasks: set[asyncio.Task] = set()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def mount(self) -> FeedView:
        """Hydrate from the cache or start the first load.

        Returns immediately; background work reports through listeners and
        can be awaited with ``settle()``.
        """
        self.city_preference = self.city_preferences.load()
        self.controller.city = self.city_preference.city if self.city_preference else None

        cached = self.cache.get()
        if cached is not None:
            self._hydrate(cached)
            logger.info("Feed hydrated from cache", tab=cached.active_tab.value, items=len(cached.items))
            if self.city_preference and (
                self.city_rail is None or self.city_rail.city != self.city_preference.city
            ):
                self._spawn(self._refresh_city_rail(self.city_preference.city))
            self._spawn(self.refresh_personalization())
            return self.view()

        logger.info("Feed cold start")
        self._spawn(self._notify_after(self.controller.load_first_page(Tab.NEW)))
        self._spawn(self.refresh_personalization())
        if self.highlights_service is not None:
            self._spawn(self._load_highlights())
        if self.city_preference:
            self._spawn(self._refresh_city_rail(self.city_preference.city))
        return self.view()

    def unmount(self, scroll_offset: float = 0.0) -> FeedState:
        """Snapshot the feed into the cache and drop in-flight work."""
        self.scroll.cancel()
        for task in list(self._tasks):
            task.cancel()

        page_state = self.controller.state
        if page_state.loading:
            # An interrupted load must not come back as a stuck spinner.
            status = FeedStatus.LOADED if page_state.items else FeedStatus.IDLE
            page_state = replace(page_state, status=status)

        self.scroll_offset = scroll_offset
        snapshot = FeedState(
            page_state=page_state,
            recently_rail=self.recently_rail,
            because_rail=self.because_rail,
            for_you_rail=self.for_you_rail,
            city_rail=self.city_rail,
            highlights=self.highlights,
            scroll_offset=scroll_offset,
        )
        if page_state.items:
            self.cache.put(snapshot)
        return snapshot

    async def settle(self) -> None:
        """Wait for all background work started by this feed."""
        while pending := [t for t in self._tasks if not t.done()]:
            await asyncio.gather(*pending, return_exceptions=True)

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    async def select_tab(self, tab: Tab | str | None) -> FeedView:
        tab = Tab.parse(tab)
        if tab is Tab.CITY and self.city_preference is None:
            tab = Tab.NEW
        await self.controller.select_tab(tab)
        self._notify()
        return self.view()

    async def load_more(self) -> FeedView:
        await self.controller.load_more()
        self._notify()
        return self.view()

    async def retry(self) -> FeedView:
        await self.controller.retry()
        self._notify()
        return self.view()

    async def apply_city(self, city: str, region: str | None = None) -> FeedView:
        """Persist the city, refresh its rail and, on the city tab, its grid."""
        city = (city or "").strip()
        if not city:
            return self.view()

        preference = CityPreference(city=city, region=(region or "").strip() or None)
        self.city_preferences.save(preference)
        self.city_preference = preference
        self.controller.city = city

        work: list[Awaitable[Any]] = [self._refresh_city_rail(city)]
        if self.controller.state.tab is Tab.CITY:
            work.append(self.controller.load_first_page(Tab.CITY))
        await asyncio.gather(*work)
        self._notify()
        return self.view()

    def on_sentinel_intersection(self, is_intersecting: bool) -> None:
        self.scroll.signal(is_intersecting)

    async def refresh_personalization(self) -> None:
        result = await self.personalization.run()
        self.recently_rail = result.recently
        self.because_rail = result.because
        self.for_you_rail = result.for_you
        self._notify()

    # -------------------------------------------------------------------------
    # Rendering
    # -------------------------------------------------------------------------

    def view(self) -> FeedView:
        state = self.controller.state
        return FeedView(
            items=state.items,
            loading=state.loading,
            error_message=state.error_message,
            has_more=state.has_more,
            active_tab=state.tab,
            tabs=tuple(available_tabs(self.city_preference)),
            status=state.status,
            recently_rail=self.recently_rail,
            because_rail=self.because_rail,
            for_you_rail=self.for_you_rail,
            city_rail=self.city_rail,
            city_preference=self.city_preference,
            highlights=self.highlights,
        )

    def subscribe(self, listener: Callable[[FeedView], None]) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _hydrate(self, cached: FeedState) -> None:
        self.controller.restore(cached.page_state)
        self.recently_rail = cached.recently_rail
        self.because_rail = cached.because_rail
        self.for_you_rail = cached.for_you_rail
        self.city_rail = cached.city_rail
        self.highlights = cached.highlights
        self.scroll_offset = cached.scroll_offset

    async def _refresh_city_rail(self, city: str) -> None:
        rail = await self.city_rails.fetch_rail(city)
        # A newer city may have been applied while this one was loading.
        if self.city_preference is None or self.city_preference.city == city:
            self.city_rail = rail
            self._notify()

    def _trigger_load_more(self) -> None:
        self._spawn(self.load_more())

    async def _load_highlights(self) -> None:
        self.highlights = await self.highlights_service.load()
        self._notify()

    async def _notify_after(self, work: Awaitable[Any]) -> None:
        await work
        self._notify()

    def _spawn(self, work: Awaitable[Any]) -> asyncio.Task:
        task = asyncio.ensure_future(work)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _notify(self) -> None:
        if not self._listeners:
            return
        view = self.view()
        for listener in list(self._listeners):
            listener(view)
