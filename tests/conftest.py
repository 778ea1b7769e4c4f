"""Pytest configuration and fixtures."""

from typing import Any

import pytest

from fakes import FakeCatalog, FakeCategories, category, make_product
from storefront_feed.config import Settings
from storefront_feed.infrastructure.keyvalue import InMemoryKeyValueStore


@pytest.fixture
def test_settings() -> Settings:
    """Get test settings with overrides."""
    return Settings(
        app_env="test",
        debug=True,
        page_size=24,
        fetch_timeout_seconds=1.0,
        redis_host="localhost",
        redis_port=6379,
    )


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def catalog_rows() -> list[dict[str, Any]]:
    """Sixty visible products plus a few hidden ones."""
    rows = [make_product(f"p{i}") for i in range(1, 61)]
    rows.append(make_product("p900", active=False))
    rows.append(make_product("p901", unavailable=True))
    return rows


@pytest.fixture
def catalog(catalog_rows: list[dict[str, Any]]) -> FakeCatalog:
    return FakeCatalog(catalog_rows)


@pytest.fixture
def category_tree() -> FakeCategories:
    """home/rugs and home/rugs/kilim hold p1..p8, kitchen holds p20..p23."""
    categories = [
        category("c-home", "home"),
        category("c-rugs", "home/rugs"),
        category("c-kilim", "home/rugs/kilim"),
        category("c-kitchen", "kitchen"),
        category("c-bowls", "kitchen/bowls"),
    ]
    links = [
        ("p1", "c-rugs", True),
        ("p2", "c-kilim", True),
        ("p3", "c-rugs", True),
        ("p4", "c-kilim", False),
        ("p5", "c-rugs", False),
        ("p6", "c-kilim", False),
        ("p7", "c-rugs", False),
        ("p8", "c-kilim", False),
        ("p20", "c-bowls", True),
        ("p21", "c-bowls", True),
        ("p22", "c-kitchen", False),
        ("p23", "c-bowls", False),
    ]
    return FakeCategories(categories, links)
