#!/usr/bin/env python3
"""
Seed the catalog database with a small category tree and products.

Usage:
    python scripts/seed_data.py
"""

import asyncio
import os
import sys
from datetime import datetime, timedelta, timezone

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from storefront_feed.infrastructure.database.connection import CatalogDatabase  # noqa: E402
from storefront_feed.infrastructure.database.models import (  # noqa: E402
    Base,
    Category,
    Product,
    ProductCategory,
)

CATEGORIES = [
    ("cat-home", "home", "Home", "home", 1),
    ("cat-textiles", "textiles", "Textiles", "home/textiles", 2),
    ("cat-rugs", "rugs", "Rugs", "home/textiles/rugs", 3),
    ("cat-cushions", "cushions", "Cushions", "home/textiles/cushions", 3),
    ("cat-ceramics", "ceramics", "Ceramics", "home/ceramics", 2),
    ("cat-fashion", "fashion", "Fashion", "fashion", 1),
    ("cat-bags", "leather-bags", "Leather Bags", "fashion/leather-bags", 2),
]

PRODUCTS = [
    ("prod-001", "Beni Ourain Wool Rug", 1450.0, "Marrakech", "cat-rugs", 42),
    ("prod-002", "Kilim Runner", 890.0, "Fes", "cat-rugs", 17),
    ("prod-003", "Boucherouite Rag Rug", 180.0, "Tetouan", "cat-rugs", 5),
    ("prod-004", "Embroidered Cushion Cover", 150.0, "Rabat", "cat-cushions", 63),
    ("prod-005", "Tamegroute Green Bowl", 120.0, "Marrakech", "cat-ceramics", 28),
    ("prod-006", "Safi Painted Plate", 95.0, "Casablanca", "cat-ceramics", None),
    ("prod-007", "Leather Babouche Bag", 520.0, "Fes", "cat-bags", 11),
    ("prod-008", "Woven Straw Tote", 160.0, "Agadir", "cat-bags", 34),
]


def build_rows(now: datetime) -> list:
    rows: list = [
        Category(id=cid, slug=slug, name_en=name, path=path, depth=depth)
        for cid, slug, name, path, depth in CATEGORIES
    ]
    for i, (pid, title, price, city, category_id, orders) in enumerate(PRODUCTS):
        on_sale = i % 3 == 0
        rows.append(
            Product(
                id=pid,
                title=title,
                price_mad=price,
                promo_price_mad=round(price * 0.8, 2) if on_sale else None,
                promo_starts_at=now - timedelta(days=i) if on_sale else None,
                promo_ends_at=now + timedelta(days=7) if on_sale else None,
                photos=[f"https://example.com/{pid}.jpg"],
                orders_count=orders,
                free_shipping=price >= 500,
                city=city,
                keywords="handmade, morocco",
                created_at=now - timedelta(hours=i),
            )
        )
        rows.append(ProductCategory(product_id=pid, category_id=category_id, is_primary=True))
    return rows


async def main():
    """Run seeding."""
    print("Seeding catalog with sample data...")
    print("=" * 50)

    database = CatalogDatabase()
    async with database.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with database.session_factory() as session:
        session.add_all(build_rows(datetime.now(timezone.utc)))
        await session.commit()
    await database.dispose()

    print(f"Created {len(CATEGORIES)} categories and {len(PRODUCTS)} products")
    print("=" * 50)
    print("Seeding complete!")


if __name__ == "__main__":
    asyncio.run(main())
