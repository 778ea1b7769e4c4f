"""Catalog and category data sources.

The engine consumes the catalog through two narrow protocols. The SQL
implementations open a fresh session per call so concurrent rail
derivations never share one.
"""

from typing import Any, Protocol, Sequence

import structlog
from pydantic import ValidationError
from sqlalchemy import Select, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront_feed.errors import QueryError
from storefront_feed.infrastructure.database.models import Category, Product, ProductCategory
from storefront_feed.models import CatalogItem, CategoryCard, CategoryPrimaryLink
from storefront_feed.services.query_builder import FilterOp, QuerySpec

logger = structlog.get_logger()


class CatalogSource(Protocol):
    async def fetch(self, query: QuerySpec) -> list[CatalogItem]: ...


class CategorySource(Protocol):
    async def primary_categories(self, product_ids: Sequence[str]) -> list[CategoryPrimaryLink]: ...

    async def category_ids_under(self, path_prefix: str) -> list[str]: ...

    async def product_ids_in_categories(
        self,
        category_ids: Sequence[str],
        exclude_product_id: str | None = None,
        limit: int = 220,
    ) -> list[str]: ...

    async def top_categories(self, limit: int = 24) -> list[CategoryCard]: ...


def render_query(query: QuerySpec) -> Select:
    """Render a query description as a SQLAlchemy select over products."""
    table = Product.__table__
    stmt = select(table)

    for f in query.filters:
        column = table.c[f.field]
        if f.op is FilterOp.EQ:
            stmt = stmt.where(column == f.value)
        elif f.op is FilterOp.NEQ:
            stmt = stmt.where(column != f.value)
        elif f.op is FilterOp.LTE:
            stmt = stmt.where(column <= f.value)
        elif f.op is FilterOp.LIKE:
            stmt = stmt.where(column.like(f.value))
        elif f.op is FilterOp.IN:
            stmt = stmt.where(column.in_(list(f.value)))
        elif f.op is FilterOp.NOT_NULL:
            stmt = stmt.where(column.is_not(None))

    for o in query.orderings:
        column = table.c[o.field]
        clause = column.desc() if o.descending else column.asc()
        stmt = stmt.order_by(clause.nulls_last() if o.nulls_last else clause.nulls_first())

    limit = query.limit
    if query.row_range is not None:
        start, end = query.row_range
        span = max(end - start + 1, 0)
        limit = span if limit is None else min(limit, span)
        stmt = stmt.offset(start)
    if limit is not None:
        stmt = stmt.limit(limit)
    return stmt


def linked_products_query(
    category_ids: Sequence[str], exclude_product_id: str | None = None, limit: int = 220
) -> Select:
    """Distinct product ids linked to any of the categories, capped at ``limit``."""
    stmt = (
        select(ProductCategory.product_id)
        .distinct()
        .where(ProductCategory.category_id.in_(list(category_ids)))
    )
    if exclude_product_id is not None:
        stmt = stmt.where(ProductCategory.product_id != exclude_product_id)
    return stmt.limit(limit)


class SqlCatalogSource:
    """Catalog reads against the products table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def fetch(self, query: QuerySpec) -> list[CatalogItem]:
        stmt = render_query(query)
        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                rows = result.mappings().all()
            return [CatalogItem.from_row(dict(r)) for r in rows]
        except (SQLAlchemyError, ValidationError, OSError) as e:
            raise QueryError(str(e)) from e


class SqlCategorySource:
    """Category tree lookups over categories and product_categories."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def _all(self, stmt: Select) -> list[Any]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                return list(result.all())
        except (SQLAlchemyError, OSError) as e:
            raise QueryError(str(e)) from e

    async def primary_categories(self, product_ids: Sequence[str]) -> list[CategoryPrimaryLink]:
        if not product_ids:
            return []
        stmt = (
            select(
                ProductCategory.product_id,
                Category.id,
                Category.path,
                Category.name_en,
                Category.slug,
            )
            .join(Category, Category.id == ProductCategory.category_id)
            .where(ProductCategory.product_id.in_(list(product_ids)))
            .where(ProductCategory.is_primary.is_(True))
        )
        rows = await self._all(stmt)
        return [
            CategoryPrimaryLink(
                product_id=str(r.product_id),
                category_id=str(r.id),
                path=r.path,
                label=r.name_en or r.slug or "Category",
            )
            for r in rows
            if r.path
        ]

    async def category_ids_under(self, path_prefix: str) -> list[str]:
        stmt = select(Category.id).where(Category.path.startswith(path_prefix, autoescape=True))
        return [str(r.id) for r in await self._all(stmt)]

    async def product_ids_in_categories(
        self,
        category_ids: Sequence[str],
        exclude_product_id: str | None = None,
        limit: int = 220,
    ) -> list[str]:
        if not category_ids:
            return []
        stmt = linked_products_query(category_ids, exclude_product_id, limit)
        return [str(r.product_id) for r in await self._all(stmt)]

    async def top_categories(self, limit: int = 24) -> list[CategoryCard]:
        stmt = (
            select(Category.id, Category.slug, Category.name_en, Category.image_url)
            .where(Category.depth == 1)
            .order_by(Category.name_en.asc())
            .limit(limit)
        )
        return [
            CategoryCard(
                id=str(r.id),
                name=r.name_en or r.slug,
                href=f"/c/{r.slug}",
                image=r.image_url,
            )
            for r in await self._all(stmt)
        ]
