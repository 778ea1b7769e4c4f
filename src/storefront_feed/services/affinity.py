"""Category affinity resolution.

Two-stage derivation: resolve each viewed product's primary category, then
expand an anchor category path into candidate products from its subtree.
"""

import re
from collections import Counter
from typing import Iterable, Sequence

import structlog

from storefront_feed.models import CategoryPrimaryLink
from storefront_feed.services.catalog import CategorySource

logger = structlog.get_logger()


def label_from_path(path: str) -> str:
    """Humanize the last path segment: ``home-decor/area-rugs`` -> ``Area Rugs``."""
    segments = [s for s in path.split("/") if s]
    last = segments[-1] if segments else path
    return re.sub(r"\b\w", lambda m: m.group().upper(), last.replace("-", " ").lower())


def because_title(path: str) -> str:
    return f"{label_from_path(path)} you'll love"


def most_frequent_path(
    product_ids: Sequence[str], primaries: dict[str, CategoryPrimaryLink]
) -> str | None:
    """Most common primary path over the log; ties go to the first seen."""
    counts = Counter(primaries[pid].path for pid in product_ids if pid in primaries)
    if not counts:
        return None
    # Counter keeps first-insertion order and max() returns the first maximum.
    return max(counts, key=counts.__getitem__)


class CategoryAffinityResolver:
    """Resolves primary categories and subtree candidates for rails."""

    def __init__(self, categories: CategorySource):
        self.categories = categories

    async def resolve_primaries(self, product_ids: Sequence[str]) -> dict[str, CategoryPrimaryLink]:
        """Map product id to its primary category; the first row returned wins."""
        distinct = list(dict.fromkeys(product_ids))
        if not distinct:
            return {}
        links = await self.categories.primary_categories(distinct)
        primaries: dict[str, CategoryPrimaryLink] = {}
        for link in links:
            primaries.setdefault(link.product_id, link)
        logger.debug("Resolved primary categories", requested=len(distinct), resolved=len(primaries))
        return primaries

    async def subtree_candidates(
        self,
        path: str,
        anchor_product_id: str | None = None,
        exclude_ids: Iterable[str] = (),
        candidate_limit: int = 220,
        final_limit: int = 24,
    ) -> list[str]:
        """Distinct product ids linked anywhere under ``path``."""
        category_ids = await self.categories.category_ids_under(path)
        if not category_ids:
            return []

        linked = await self.categories.product_ids_in_categories(
            category_ids,
            exclude_product_id=anchor_product_id,
            limit=candidate_limit,
        )
        excluded = set(exclude_ids)
        if anchor_product_id is not None:
            excluded.add(anchor_product_id)
        return [pid for pid in dict.fromkeys(linked) if pid not in excluded][:final_limit]
