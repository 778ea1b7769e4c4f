"""Feed engine services."""

from storefront_feed.services.affinity import CategoryAffinityResolver
from storefront_feed.services.catalog import SqlCatalogSource, SqlCategorySource
from storefront_feed.services.city import CityPreferenceStore, CityRailService
from storefront_feed.services.feed import StorefrontFeed
from storefront_feed.services.feed_cache import FeedStateCache
from storefront_feed.services.fetch_controller import PaginatedFetchController
from storefront_feed.services.highlights import HighlightsService
from storefront_feed.services.personalization import PersonalizationPipeline
from storefront_feed.services.pinning import PinnedCategoryStore
from storefront_feed.services.recency import RecencyLog

__all__ = [
    "CategoryAffinityResolver",
    "CityPreferenceStore",
    "CityRailService",
    "FeedStateCache",
    "HighlightsService",
    "PaginatedFetchController",
    "PersonalizationPipeline",
    "PinnedCategoryStore",
    "RecencyLog",
    "SqlCatalogSource",
    "SqlCategorySource",
    "StorefrontFeed",
]
