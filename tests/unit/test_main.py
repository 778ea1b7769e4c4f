"""Tests for runtime wiring and the JSON preview."""

import orjson
import pytest

from fakes import FakeCatalog, FakeCategories
from storefront_feed.config import Settings
from storefront_feed.infrastructure.keyvalue import InMemoryKeyValueStore
from storefront_feed.main import FeedRuntime, build_feed, view_to_dict
from storefront_feed.services.feed_cache import FeedState, FeedStateCache
from storefront_feed.services.fetch_controller import PageState
from storefront_feed.services.query_builder import Tab
from storefront_feed.services.recency import RecencyLog


class TestBuildFeed:
    @pytest.mark.asyncio
    async def test_wires_a_working_feed(
        self,
        catalog: FakeCatalog,
        category_tree: FakeCategories,
        store: InMemoryKeyValueStore,
        test_settings: Settings,
    ) -> None:
        feed = build_feed(catalog, category_tree, store, FeedStateCache(), test_settings)

        feed.mount()
        await feed.settle()

        assert len(feed.view().items) == test_settings.page_size

    @pytest.mark.asyncio
    async def test_view_serializes_to_json(
        self,
        catalog: FakeCatalog,
        category_tree: FakeCategories,
        store: InMemoryKeyValueStore,
        test_settings: Settings,
    ) -> None:
        feed = build_feed(catalog, category_tree, store, FeedStateCache(), test_settings)
        feed.mount()
        await feed.settle()

        payload = view_to_dict(feed.view())
        decoded = orjson.loads(orjson.dumps(payload))

        assert decoded["active_tab"] == "new"
        assert decoded["status"] == "loaded"
        assert len(decoded["items"]) == 24
        assert decoded["because_rail"] is None
        assert decoded["city_rail"] is None


class TestFeedRuntime:
    @pytest.fixture
    def stores(self) -> dict[str, InMemoryKeyValueStore]:
        return {
            "alice": InMemoryKeyValueStore(),
            "bob": InMemoryKeyValueStore(),
        }

    @pytest.fixture
    def runtime(
        self,
        catalog: FakeCatalog,
        category_tree: FakeCategories,
        stores: dict[str, InMemoryKeyValueStore],
        test_settings: Settings,
    ) -> FeedRuntime:
        return FeedRuntime(
            test_settings,
            catalog=catalog,
            categories=category_tree,
            store_factory=stores.__getitem__,
        )

    @pytest.mark.asyncio
    async def test_feed_for_requires_start(self, test_settings: Settings) -> None:
        with pytest.raises(RuntimeError):
            await FeedRuntime(test_settings).feed_for("visitor-1")

    @pytest.mark.asyncio
    async def test_visitors_do_not_share_cached_feeds(
        self, runtime: FeedRuntime, stores: dict[str, InMemoryKeyValueStore]
    ) -> None:
        RecencyLog(stores["alice"]).record("p1")
        await runtime.start()

        alice = await runtime.feed_for("alice")
        alice.mount()
        await alice.settle()
        assert alice.view().recently_rail is not None
        await alice.select_tab(Tab.UNDER_CAP)
        alice.unmount(scroll_offset=900.0)

        bob = await runtime.feed_for("bob")
        bob.mount()
        await bob.settle()
        view = bob.view()

        assert view.recently_rail is None
        assert view.because_rail is None
        assert view.active_tab is Tab.NEW
        assert runtime.cache_for("bob").get() is None
        assert runtime.cache_for("alice").get().active_tab is Tab.UNDER_CAP

    @pytest.mark.asyncio
    async def test_store_is_reused_per_visitor(self, runtime: FeedRuntime) -> None:
        await runtime.start()

        await runtime.feed_for("alice")
        await runtime.feed_for("alice")

        assert list(runtime.stores) == ["alice"]

    def test_sign_out_clears_only_that_visitor(self, runtime: FeedRuntime) -> None:
        runtime.cache_for("alice").put(FeedState(page_state=PageState()))
        runtime.cache_for("bob").put(FeedState(page_state=PageState()))

        runtime.sign_out("alice")

        assert runtime.cache_for("alice").is_empty
        assert not runtime.cache_for("bob").is_empty
