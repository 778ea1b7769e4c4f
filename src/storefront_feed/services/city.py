"""City preference and the locality rail.

An explicit, user-chosen channel independent of the recency pipeline. The
rail query is its own, not the city tab's pagination sequence.
"""

import asyncio
from dataclasses import dataclass

import structlog

from shared.constants import CITY_KEY, REGION_KEY
from storefront_feed.config import get_settings
from storefront_feed.infrastructure.keyvalue import KeyValueStore
from storefront_feed.models import CatalogItem, CityPreference
from storefront_feed.services.catalog import CatalogSource
from storefront_feed.services.query_builder import FilterOp, visible_products

logger = structlog.get_logger()


@dataclass(frozen=True)
class CityRail:
    """Products crafted in one city. Unlike affinity rails, may be empty."""

    city: str
    items: tuple[CatalogItem, ...] = ()

    @property
    def title(self) -> str:
        return f"Crafted in {self.city}"

    @property
    def empty_message(self) -> str | None:
        if self.items:
            return None
        return f"No items in {self.city} yet. They're coming soon"


class CityPreferenceStore:
    def __init__(self, store: KeyValueStore):
        self.store = store

    def load(self) -> CityPreference | None:
        city = (self.store.get(CITY_KEY) or "").strip()
        if not city:
            return None
        region = (self.store.get(REGION_KEY) or "").strip() or None
        return CityPreference(city=city, region=region)

    def save(self, preference: CityPreference) -> None:
        self.store.set(CITY_KEY, preference.city)
        if preference.region:
            self.store.set(REGION_KEY, preference.region)
        else:
            self.store.remove(REGION_KEY)

    def clear(self) -> None:
        self.store.remove(CITY_KEY)
        self.store.remove(REGION_KEY)


class CityRailService:
    """Fetches the newest visible products for an exact city match."""

    def __init__(
        self,
        catalog: CatalogSource,
        limit: int | None = None,
        timeout_seconds: float | None = None,
    ):
        settings = get_settings()
        self.catalog = catalog
        self.limit = limit or settings.city_rail_limit
        self.timeout_seconds = timeout_seconds or settings.fetch_timeout_seconds

    async def fetch_rail(self, city: str) -> CityRail:
        query = visible_products().where("city", FilterOp.EQ, city).order("created_at").take(self.limit)
        try:
            items = await asyncio.wait_for(self.catalog.fetch(query), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.error("City rail timed out", city=city, timeout_seconds=self.timeout_seconds)
            return CityRail(city=city)
        except Exception as e:
            logger.error("City rail failed", city=city, error=str(e) or type(e).__name__)
            return CityRail(city=city)
        return CityRail(city=city, items=tuple(items))
