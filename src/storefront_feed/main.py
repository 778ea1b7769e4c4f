"""Feed engine runtime and command-line preview.

``FeedRuntime`` owns process-wide resources (database engine, Redis client)
and builds one ``StorefrontFeed`` per visitor.
"""

import argparse
import asyncio
from typing import Callable

import orjson
import redis.asyncio as aioredis
import structlog

from storefront_feed.config import Settings, get_settings
from storefront_feed.infrastructure.database.connection import CatalogDatabase
from storefront_feed.infrastructure.keyvalue import KeyValueStore, RedisKeyValueStore, get_redis_client
from storefront_feed.logging_config import configure_logging
from storefront_feed.services import (
    CategoryAffinityResolver,
    CityPreferenceStore,
    CityRailService,
    FeedStateCache,
    HighlightsService,
    PaginatedFetchController,
    PersonalizationPipeline,
    PinnedCategoryStore,
    RecencyLog,
    SqlCatalogSource,
    SqlCategorySource,
    StorefrontFeed,
)
from storefront_feed.services.catalog import CatalogSource, CategorySource
from storefront_feed.services.feed import FeedView
from storefront_feed.services.scroll import ScrollTriggerPolicy

logger = structlog.get_logger()


def build_feed(
    catalog: CatalogSource,
    categories: CategorySource,
    store: KeyValueStore,
    cache: FeedStateCache,
    settings: Settings | None = None,
) -> StorefrontFeed:
    """Assemble a feed for one visitor from its data sources and storage."""
    settings = settings or get_settings()
    recency = RecencyLog(store, max_entries=settings.recency_max_entries)
    timeout = settings.fetch_timeout_seconds
    pipeline = PersonalizationPipeline(
        catalog,
        CategoryAffinityResolver(categories),
        recency,
        pins=PinnedCategoryStore(store, ttl_days=settings.pin_ttl_days),
        use_pinned_anchor=settings.use_pinned_anchor,
        recently_limit=settings.recently_rail_limit,
        because_candidate_limit=settings.because_candidate_limit,
        for_you_candidate_limit=settings.for_you_candidate_limit,
        rail_limit=settings.rail_item_limit,
        timeout_seconds=timeout,
    )
    return StorefrontFeed(
        controller=PaginatedFetchController(
            catalog,
            page_size=settings.page_size,
            timeout_seconds=timeout,
            price_cap=settings.price_cap,
        ),
        personalization=pipeline,
        city_preferences=CityPreferenceStore(store),
        city_rails=CityRailService(catalog, limit=settings.city_rail_limit, timeout_seconds=timeout),
        cache=cache,
        highlights=HighlightsService(
            catalog,
            categories,
            rail_limit=settings.highlight_rail_limit,
            category_limit=settings.top_category_limit,
            price_cap=settings.price_cap,
        ),
        scroll_policy=ScrollTriggerPolicy(
            margin_px=settings.scroll_margin_px,
            debounce_ms=settings.scroll_debounce_ms,
        ),
    )


class FeedRuntime:
    """Process-lifetime wiring for feeds backed by PostgreSQL and Redis.

    Feed state caches and client stores are kept per ``client_id`` so one
    visitor's snapshot is never shown to another.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        catalog: CatalogSource | None = None,
        categories: CategorySource | None = None,
        store_factory: Callable[[str], KeyValueStore] | None = None,
    ):
        self.settings = settings or get_settings()
        self.catalog = catalog
        self.categories = categories
        self.store_factory = store_factory
        self.database: CatalogDatabase | None = None
        self.redis_client: aioredis.Redis | None = None
        self.caches: dict[str, FeedStateCache] = {}
        self.stores: dict[str, KeyValueStore] = {}
        self.started = False

    async def start(self) -> None:
        logger.info("Starting storefront feed runtime", app_env=self.settings.app_env)
        self.caches.clear()
        if self.catalog is None or self.categories is None:
            self.database = CatalogDatabase(self.settings)
            self.catalog = self.catalog or SqlCatalogSource(self.database.session_factory)
            self.categories = self.categories or SqlCategorySource(self.database.session_factory)
        if self.store_factory is None:
            self.redis_client = await get_redis_client(self.settings)
        self.started = True

    def cache_for(self, client_id: str) -> FeedStateCache:
        cache = self.caches.get(client_id)
        if cache is None:
            cache = self.caches[client_id] = FeedStateCache()
            cache.init()
        return cache

    async def store_for(self, client_id: str) -> KeyValueStore:
        store = self.stores.get(client_id)
        if store is not None:
            return store
        if self.store_factory is not None:
            store = self.store_factory(client_id)
        else:
            store = RedisKeyValueStore(self.redis_client, client_id, self.settings.storage_namespace)
            await store.load()
        self.stores[client_id] = store
        return store

    async def feed_for(self, client_id: str) -> StorefrontFeed:
        if not self.started:
            raise RuntimeError("runtime not started")
        store = await self.store_for(client_id)
        return build_feed(self.catalog, self.categories, store, self.cache_for(client_id), self.settings)

    def sign_out(self, client_id: str) -> None:
        """Forget the visitor's cached feed; other visitors are untouched."""
        cache = self.caches.pop(client_id, None)
        if cache is not None:
            cache.clear()
        logger.info("Feed cache cleared", client_id=client_id)

    async def close(self) -> None:
        for store in self.stores.values():
            if isinstance(store, RedisKeyValueStore):
                await store.flush()
        self.stores.clear()
        self.caches.clear()
        if self.database is not None:
            await self.database.dispose()
            self.database = None
        if self.redis_client is not None:
            await self.redis_client.aclose()
            self.redis_client = None
        self.started = False
        logger.info("Storefront feed runtime stopped")


def view_to_dict(view: FeedView) -> dict:
    def rail(r):
        return None if r is None else {"title": r.title, "items": [i.model_dump(mode="json") for i in r.items]}

    return {
        "active_tab": view.active_tab.value,
        "tabs": [t.value for t in view.tabs],
        "status": view.status.value,
        "has_more": view.has_more,
        "error_message": view.error_message or view.empty_message,
        "items": [i.model_dump(mode="json") for i in view.items],
        "recently_rail": rail(view.recently_rail),
        "because_rail": rail(view.because_rail),
        "for_you_rail": rail(view.for_you_rail),
        "city_rail": None
        if view.city_rail is None
        else {
            "title": view.city_rail.title,
            "items": [i.model_dump(mode="json") for i in view.city_rail.items],
            "empty_message": view.city_rail.empty_message,
        },
        "highlights": {
            "trending": {
                "title": view.highlights.trending_title,
                "items": [i.model_dump(mode="json") for i in view.highlights.trending],
            },
            "under_cap": {
                "title": view.highlights.under_cap_title,
                "items": [i.model_dump(mode="json") for i in view.highlights.under_cap],
            },
            "categories": [
                {"id": c.id, "name": c.name, "href": c.href, "image": c.image} for c in view.highlights.categories
            ],
        },
    }


async def preview(tab: str, client_id: str, pages: int) -> dict:
    runtime = FeedRuntime()
    await runtime.start()
    try:
        feed = await runtime.feed_for(client_id)
        feed.mount()
        await feed.settle()
        if tab != "new":
            await feed.select_tab(tab)
        for _ in range(pages - 1):
            await feed.load_more()
        return view_to_dict(feed.view())
    finally:
        await runtime.close()


def run() -> None:
    """Print one visitor's feed as JSON."""
    parser = argparse.ArgumentParser(description="Preview the storefront feed for a visitor")
    parser.add_argument("--tab", default="new", help="new, popular, sale, under_cap or city")
    parser.add_argument("--client-id", default="preview", help="Visitor storage scope")
    parser.add_argument("--pages", type=int, default=1, help="Pages to load")
    args = parser.parse_args()

    configure_logging()
    result = asyncio.run(preview(args.tab, args.client_id, max(args.pages, 1)))
    print(orjson.dumps(result, option=orjson.OPT_INDENT_2).decode())


if __name__ == "__main__":
    run()
