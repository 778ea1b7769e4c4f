"""Catalog query builder.

Translates a feed tab into a backend-neutral query description. Rendering
the description against a concrete data service is the job of the catalog
sources; building it has no side effects.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from shared.constants import (
    BASE_TABS,
    DEFAULT_PRICE_CAP,
    TAB_CITY,
    TAB_NEW,
    TAB_POPULAR,
    TAB_SALE,
    TAB_UNDER_CAP,
)
from storefront_feed.models import CityPreference


class Tab(str, Enum):
    """Named catalog views."""

    NEW = TAB_NEW
    POPULAR = TAB_POPULAR
    SALE = TAB_SALE
    UNDER_CAP = TAB_UNDER_CAP
    CITY = TAB_CITY

    @classmethod
    def parse(cls, value: "Tab | str | None") -> "Tab":
        """Resolve a raw tab value; anything unrecognized is ``NEW``."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.NEW


class FilterOp(str, Enum):
    EQ = "eq"
    NEQ = "neq"
    LTE = "lte"
    LIKE = "like"
    IN = "in"
    NOT_NULL = "not_null"


@dataclass(frozen=True)
class Filter:
    field: str
    op: FilterOp
    value: Any = None


@dataclass(frozen=True)
class Ordering:
    field: str
    descending: bool = True
    nulls_last: bool = True


@dataclass(frozen=True)
class QuerySpec:
    """A composable select/filter/order/range description."""

    filters: tuple[Filter, ...] = ()
    orderings: tuple[Ordering, ...] = ()
    row_range: tuple[int, int] | None = None
    limit: int | None = None

    def where(self, field: str, op: FilterOp, value: Any = None) -> "QuerySpec":
        return replace(self, filters=self.filters + (Filter(field, op, value),))

    def order(self, field: str, descending: bool = True, nulls_last: bool = True) -> "QuerySpec":
        return replace(self, orderings=self.orderings + (Ordering(field, descending, nulls_last),))

    def range(self, start: int, end: int) -> "QuerySpec":
        """Inclusive row range, as in ``[start, end]``."""
        return replace(self, row_range=(start, end))

    def take(self, limit: int) -> "QuerySpec":
        return replace(self, limit=limit)


def visible_products() -> QuerySpec:
    """Base query every storefront listing starts from."""
    return QuerySpec().where("active", FilterOp.EQ, True).where("unavailable", FilterOp.EQ, False)


def build_query(
    tab: Tab | str | None,
    city_preference: CityPreference | str | None = None,
    price_cap: float = DEFAULT_PRICE_CAP,
) -> QuerySpec:
    """Build the catalog query for a tab.

    The city tab without a usable city degrades to the ``new`` tab.
    """
    tab = Tab.parse(tab)
    city = city_preference.city if isinstance(city_preference, CityPreference) else city_preference
    city = (city or "").strip()
    if tab is Tab.CITY and not city:
        tab = Tab.NEW

    query = visible_products()

    if tab is Tab.POPULAR:
        return query.order("orders_count").order("created_at")
    if tab is Tab.SALE:
        return (
            query.where("promo_price_mad", FilterOp.NOT_NULL)
            .order("promo_starts_at")
            .order("created_at")
        )
    if tab is Tab.UNDER_CAP:
        return query.where("price_mad", FilterOp.LTE, price_cap).order("created_at")
    if tab is Tab.CITY:
        return query.where("city", FilterOp.EQ, city).order("created_at")
    return query.order("created_at")


def page_bounds(page_index: int, page_size: int) -> tuple[int, int]:
    start = page_index * page_size
    return start, start + page_size - 1


def available_tabs(city_preference: CityPreference | None) -> list[Tab]:
    """Tabs to display; the city tab exists only once a city is chosen."""
    tabs = [Tab(t) for t in BASE_TABS]
    if city_preference and city_preference.city.strip():
        tabs.append(Tab.CITY)
    return tabs
