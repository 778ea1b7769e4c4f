"""Personalization pipeline.

Produces the "Recently viewed", "because you viewed" and "For You" rails
from the local recency log and ordinary catalog queries:

1. Read the recency log (no lookups at all when it is empty)
2. Fetch the recently viewed products, in recency order
3. Resolve primary categories for every logged product
4. Derive both affinity rails concurrently from category subtrees

Every failure is logged and degrades the affected rail to ``None``; the
pipeline never raises into the feed.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Sequence, TypeVar

import structlog

from shared.constants import FOR_YOU_TITLE, RECENTLY_VIEWED_TITLE
from storefront_feed.config import get_settings
from storefront_feed.models import AffinityRail, CatalogItem, CategoryPrimaryLink
from storefront_feed.services.affinity import (
    CategoryAffinityResolver,
    because_title,
    most_frequent_path,
)
from storefront_feed.services.catalog import CatalogSource
from storefront_feed.services.pinning import PinnedCategoryStore
from storefront_feed.services.query_builder import FilterOp, visible_products
from storefront_feed.services.recency import RecencyLog

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass(frozen=True)
class PersonalizationResult:
    recently: AffinityRail | None = None
    because: AffinityRail | None = None
    for_you: AffinityRail | None = None


class PersonalizationPipeline:
    """Builds the recency and category-affinity rails for one visitor."""

    def __init__(
        self,
        catalog: CatalogSource,
        resolver: CategoryAffinityResolver,
        recency: RecencyLog,
        pins: PinnedCategoryStore | None = None,
        use_pinned_anchor: bool | None = None,
        recently_limit: int | None = None,
        because_candidate_limit: int | None = None,
        for_you_candidate_limit: int | None = None,
        rail_limit: int | None = None,
        timeout_seconds: float | None = None,
    ):
        settings = get_settings()
        self.catalog = catalog
        self.resolver = resolver
        self.recency = recency
        self.pins = pins
        self.use_pinned_anchor = (
            settings.use_pinned_anchor if use_pinned_anchor is None else use_pinned_anchor
        )
        self.recently_limit = recently_limit or settings.recently_rail_limit
        self.because_candidate_limit = because_candidate_limit or settings.because_candidate_limit
        self.for_you_candidate_limit = for_you_candidate_limit or settings.for_you_candidate_limit
        self.rail_limit = rail_limit or settings.rail_item_limit
        self.timeout_seconds = timeout_seconds or settings.fetch_timeout_seconds

    async def run(self) -> PersonalizationResult:
        entries = self.recency.read_all()
        if not entries:
            return PersonalizationResult()

        product_ids = [e.product_id for e in entries]
        recently, (because, for_you) = await asyncio.gather(
            self._guarded("recently", self._recently_rail(product_ids)),
            self._affinity_rails(product_ids),
        )
        logger.info(
            "Personalization refreshed",
            history=len(product_ids),
            recently=recently is not None,
            because=because is not None,
            for_you=for_you is not None,
        )
        return PersonalizationResult(recently=recently, because=because, for_you=for_you)

    async def _affinity_rails(
        self, product_ids: list[str]
    ) -> tuple[AffinityRail | None, AffinityRail | None]:
        primaries = await self._guarded("primaries", self.resolver.resolve_primaries(product_ids))
        if primaries is None:
            return None, None
        because, for_you = await asyncio.gather(
            self._guarded("because", self._because_rail(product_ids, primaries)),
            self._guarded("for_you", self._for_you_rail(product_ids, primaries)),
        )
        return because, for_you

    async def _recently_rail(self, product_ids: list[str]) -> AffinityRail | None:
        items = await self._fetch_products(product_ids, limit=self.recently_limit)
        if not items:
            return None
        return AffinityRail(title=RECENTLY_VIEWED_TITLE, items=tuple(items))

    async def _because_rail(
        self, product_ids: list[str], primaries: dict[str, CategoryPrimaryLink]
    ) -> AffinityRail | None:
        anchor_id = product_ids[0]
        path = self._anchor_path(primaries.get(anchor_id))
        if not path:
            return None

        candidates = await self.resolver.subtree_candidates(
            path,
            anchor_product_id=anchor_id,
            candidate_limit=self.because_candidate_limit,
            final_limit=self.rail_limit,
        )
        items = await self._fetch_products(candidates, limit=self.rail_limit)
        items = [i for i in items if i.id != anchor_id]
        if not items:
            return None
        return AffinityRail(title=because_title(path), items=tuple(items))

    async def _for_you_rail(
        self, product_ids: list[str], primaries: dict[str, CategoryPrimaryLink]
    ) -> AffinityRail | None:
        path = most_frequent_path(product_ids, primaries)
        if not path:
            return None

        viewed = set(product_ids)
        candidates = await self.resolver.subtree_candidates(
            path,
            exclude_ids=viewed,
            candidate_limit=self.for_you_candidate_limit,
            final_limit=self.rail_limit,
        )
        items = [i for i in await self._fetch_products(candidates, limit=self.rail_limit) if i.id not in viewed]
        if not items:
            return None
        return AffinityRail(title=FOR_YOU_TITLE, items=tuple(items))

    def _anchor_path(self, live: CategoryPrimaryLink | None) -> str | None:
        """Live most-recent view anchors unless pinning is enabled and a pin is live."""
        if not self.use_pinned_anchor or self.pins is None:
            return live.path if live else None
        pinned = self.pins.get()
        if pinned is not None:
            return pinned.path
        if live is None:
            return None
        self.pins.pin(live.path)
        return live.path

    async def _fetch_products(self, product_ids: Sequence[str], limit: int) -> list[CatalogItem]:
        """Fetch visible products by id, returned in the order of ``product_ids``."""
        if not product_ids:
            return []
        query = visible_products().where("id", FilterOp.IN, list(product_ids)).take(limit)
        by_id = {item.id: item for item in await self.catalog.fetch(query)}
        return [by_id[pid] for pid in product_ids if pid in by_id][:limit]

    async def _guarded(self, rail: str, work: Awaitable[T]) -> T | None:
        try:
            return await asyncio.wait_for(work, timeout=self.timeout_seconds)
        except Exception as e:
            logger.warning("Personalization step failed", rail=rail, error=str(e) or type(e).__name__)
            return None
