"""Highlight rails fetched alongside a first (uncached) feed load."""

import asyncio
from dataclasses import dataclass

import structlog

from shared.constants import TRENDING_TITLE, UNDER_CAP_TITLE
from storefront_feed.config import get_settings
from storefront_feed.models import CatalogItem, CategoryCard
from storefront_feed.services.catalog import CatalogSource, CategorySource
from storefront_feed.services.query_builder import FilterOp, visible_products

logger = structlog.get_logger()


@dataclass(frozen=True)
class Highlights:
    trending: tuple[CatalogItem, ...] = ()
    under_cap: tuple[CatalogItem, ...] = ()
    categories: tuple[CategoryCard, ...] = ()

    trending_title = TRENDING_TITLE
    under_cap_title = UNDER_CAP_TITLE


class HighlightsService:
    """Newest products, products under the price cap and top-level categories."""

    def __init__(
        self,
        catalog: CatalogSource,
        categories: CategorySource,
        rail_limit: int | None = None,
        category_limit: int | None = None,
        price_cap: float | None = None,
    ):
        settings = get_settings()
        self.catalog = catalog
        self.categories = categories
        self.rail_limit = rail_limit or settings.highlight_rail_limit
        self.category_limit = category_limit or settings.top_category_limit
        self.price_cap = price_cap if price_cap is not None else settings.price_cap

    async def load(self) -> Highlights:
        trending_query = visible_products().order("created_at").take(self.rail_limit)
        under_cap_query = (
            visible_products()
            .where("price_mad", FilterOp.LTE, self.price_cap)
            .order("created_at")
            .take(self.rail_limit)
        )
        trending, under_cap, categories = await asyncio.gather(
            self.catalog.fetch(trending_query),
            self.catalog.fetch(under_cap_query),
            self.categories.top_categories(self.category_limit),
            return_exceptions=True,
        )
        return Highlights(
            trending=tuple(_or_empty("trending", trending)),
            under_cap=tuple(_or_empty("under_cap", under_cap)),
            categories=tuple(_or_empty("categories", categories)),
        )


def _or_empty(rail: str, result: list | BaseException) -> list:
    if isinstance(result, BaseException):
        logger.error("Highlight rail failed", rail=rail, error=str(result))
        return []
    return result
