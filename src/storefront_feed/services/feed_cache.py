"""Cross-navigation feed state cache.

An injectable, process-lifetime store for the last rendered feed. Writes
replace one immutable snapshot, so a reader never sees half of one write
and half of another.
"""

from dataclasses import dataclass

import structlog

from storefront_feed.models import AffinityRail, CatalogItem
from storefront_feed.services.city import CityRail
from storefront_feed.services.fetch_controller import PageState
from storefront_feed.services.highlights import Highlights
from storefront_feed.services.query_builder import Tab

logger = structlog.get_logger()


@dataclass(frozen=True)
class FeedState:
    page_state: PageState
    recently_rail: AffinityRail | None = None
    because_rail: AffinityRail | None = None
    for_you_rail: AffinityRail | None = None
    city_rail: CityRail | None = None
    highlights: Highlights = Highlights()
    scroll_offset: float = 0.0

    @property
    def items(self) -> tuple[CatalogItem, ...]:
        return self.page_state.items

    @property
    def page(self) -> int:
        return self.page_state.page

    @property
    def has_more(self) -> bool:
        return self.page_state.has_more

    @property
    def active_tab(self) -> Tab:
        return self.page_state.tab


class FeedStateCache:
    """Holds at most one ``FeedState``."""

    def __init__(self) -> None:
        self._state: FeedState | None = None

    def init(self) -> None:
        """Start empty; called on app start."""
        self._state = None

    def get(self) -> FeedState | None:
        return self._state

    def put(self, state: FeedState) -> None:
        self._state = state
        logger.debug(
            "Feed state cached",
            tab=state.active_tab.value,
            items=len(state.items),
            scroll_offset=state.scroll_offset,
        )

    def clear(self) -> None:
        """Drop the snapshot; called on sign-out or a hard reload."""
        self._state = None

    @property
    def is_empty(self) -> bool:
        return self._state is None
