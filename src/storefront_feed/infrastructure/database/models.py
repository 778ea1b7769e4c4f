"""SQLAlchemy models for the storefront catalog.

The feed engine only reads these tables; they are owned by the storefront
backend and declared here so queries can be built against typed columns.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""


# =============================================================================
# Products
# =============================================================================


class Product(Base):
    """A listed product as sold by one shop."""

    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    price_mad: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    compare_at_mad: Mapped[Optional[float]] = mapped_column(Float)

    # Promotions
    promo_price_mad: Mapped[Optional[float]] = mapped_column(Float)
    promo_starts_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    promo_ends_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Media
    photos: Mapped[Optional[list]] = mapped_column(JSON)
    video_url: Mapped[Optional[str]] = mapped_column(Text)
    video_poster_url: Mapped[Optional[str]] = mapped_column(Text)

    # Aggregates
    rating_avg: Mapped[Optional[float]] = mapped_column(Float)
    reviews_count: Mapped[Optional[int]] = mapped_column(Integer)
    orders_count: Mapped[Optional[int]] = mapped_column(Integer)

    free_shipping: Mapped[Optional[bool]] = mapped_column(Boolean)
    shop_owner: Mapped[Optional[str]] = mapped_column(String(64))
    keywords: Mapped[Optional[str]] = mapped_column(Text)
    city: Mapped[Optional[str]] = mapped_column(String(120))

    # Visibility
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    unavailable: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_products_active_created", "active", "created_at"),
        Index("ix_products_city", "city"),
    )


# =============================================================================
# Category Tree
# =============================================================================


class Category(Base):
    """A node in the category tree, addressed by its materialized path."""

    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    slug: Mapped[str] = mapped_column(String(255), nullable=False)
    name_en: Mapped[Optional[str]] = mapped_column(String(255))
    path: Mapped[str] = mapped_column(String(1024), nullable=False, index=True)
    depth: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    image_url: Mapped[Optional[str]] = mapped_column(Text)


class ProductCategory(Base):
    """Association between a product and one of its categories."""

    __tablename__ = "product_categories"

    product_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("products.id"), primary_key=True
    )
    category_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("categories.id"), primary_key=True
    )
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index("ix_product_categories_category", "category_id"),
        Index("ix_product_categories_primary", "product_id", "is_primary"),
    )
