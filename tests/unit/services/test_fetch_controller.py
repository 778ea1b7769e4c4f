"""Unit tests for paginated fetching."""

import asyncio

import pytest

from fakes import FakeCatalog, make_product
from storefront_feed.errors import QueryError
from storefront_feed.services.fetch_controller import (
    FIRST_PAGE_ERROR_MESSAGE,
    LOAD_MORE_ERROR_MESSAGE,
    TIMEOUT_MESSAGE,
    FeedStatus,
    PageState,
    PaginatedFetchController,
    can_load_more,
)
from storefront_feed.services.query_builder import Tab


def is_popular(query) -> bool:
    return any(o.field == "orders_count" for o in query.orderings)


@pytest.fixture
def controller(catalog: FakeCatalog) -> PaginatedFetchController:
    return PaginatedFetchController(catalog, page_size=24, timeout_seconds=1.0)


class TestCanLoadMore:
    def test_idle_state_cannot_load_more(self) -> None:
        assert can_load_more(PageState()) is False

    def test_loading_state_cannot_load_more(self) -> None:
        assert can_load_more(PageState(status=FeedStatus.LOADING)) is False

    def test_exhausted_state_cannot_load_more(self) -> None:
        assert can_load_more(PageState(status=FeedStatus.LOADED, has_more=False)) is False

    def test_loaded_state_can_load_more(self) -> None:
        assert can_load_more(PageState(status=FeedStatus.LOADED, has_more=True)) is True


class TestFirstPage:
    @pytest.mark.asyncio
    async def test_full_page_has_more(self, controller: PaginatedFetchController) -> None:
        state = await controller.load_first_page(Tab.NEW)

        assert state.status is FeedStatus.LOADED
        assert len(state.items) == 24
        assert state.has_more is True
        assert state.page == 0
        # newest first, hidden products excluded
        assert state.items[0].id == "p60"
        assert all(i.id not in ("p900", "p901") for i in state.items)

    @pytest.mark.asyncio
    async def test_short_page_is_exhausted(self) -> None:
        catalog = FakeCatalog([make_product(f"p{i}") for i in range(1, 11)])
        controller = PaginatedFetchController(catalog, page_size=24, timeout_seconds=1.0)

        state = await controller.load_first_page(Tab.NEW)

        assert len(state.items) == 10
        assert state.has_more is False

    @pytest.mark.asyncio
    async def test_empty_result_is_not_an_error(self) -> None:
        controller = PaginatedFetchController(FakeCatalog(), page_size=24, timeout_seconds=1.0)

        state = await controller.load_first_page(Tab.SALE)

        assert state.status is FeedStatus.LOADED
        assert state.items == ()
        assert state.error_message is None

    @pytest.mark.asyncio
    async def test_reloading_first_page_is_idempotent(self, controller: PaginatedFetchController) -> None:
        first = await controller.load_first_page(Tab.NEW)
        second = await controller.load_first_page(Tab.NEW)

        assert [i.id for i in second.items] == [i.id for i in first.items]
        assert len({i.id for i in second.items}) == 24

    @pytest.mark.asyncio
    async def test_first_page_requests_rows_0_to_23(
        self, controller: PaginatedFetchController, catalog: FakeCatalog
    ) -> None:
        await controller.load_first_page(Tab.NEW)
        assert catalog.queries[-1].row_range == (0, 23)

    @pytest.mark.asyncio
    async def test_query_error_leaves_retryable_state(
        self, controller: PaginatedFetchController, catalog: FakeCatalog
    ) -> None:
        catalog.error = QueryError("boom")

        state = await controller.load_first_page(Tab.NEW)

        assert state.status is FeedStatus.ERRORED
        assert state.items == ()
        assert state.has_more is False
        assert state.error_message

        catalog.error = None
        state = await controller.retry()
        assert state.status is FeedStatus.LOADED
        assert len(state.items) == 24

    @pytest.mark.asyncio
    async def test_timeout_surfaces_timeout_message(self, catalog: FakeCatalog) -> None:
        catalog.delay = 0.5
        controller = PaginatedFetchController(catalog, page_size=24, timeout_seconds=0.01)

        state = await controller.load_first_page(Tab.NEW)

        assert state.status is FeedStatus.ERRORED
        assert state.error_message == TIMEOUT_MESSAGE
        assert state.items == ()
        assert state.has_more is False
        assert state.loading is False

    @pytest.mark.asyncio
    async def test_connection_error_is_a_bounded_failure(
        self, controller: PaginatedFetchController, catalog: FakeCatalog
    ) -> None:
        catalog.error = ConnectionRefusedError("db down")

        state = await controller.load_first_page(Tab.NEW)

        assert state.status is FeedStatus.ERRORED
        assert state.loading is False
        assert state.has_more is False
        assert state.error_message == FIRST_PAGE_ERROR_MESSAGE


class TestLoadMore:
    @pytest.mark.asyncio
    async def test_appends_next_page(
        self, controller: PaginatedFetchController, catalog: FakeCatalog
    ) -> None:
        await controller.load_first_page(Tab.NEW)
        state = await controller.load_more()

        assert len(state.items) == 48
        assert state.page == 1
        assert state.has_more is True
        assert catalog.queries[-1].row_range == (24, 47)
        assert len({i.id for i in state.items}) == 48

    @pytest.mark.asyncio
    async def test_short_page_stops_pagination(
        self, controller: PaginatedFetchController, catalog: FakeCatalog
    ) -> None:
        await controller.load_first_page(Tab.NEW)
        await controller.load_more()
        state = await controller.load_more()

        assert len(state.items) == 60
        assert state.has_more is False

        queries_before = len(catalog.queries)
        await controller.load_more()
        assert len(catalog.queries) == queries_before

    @pytest.mark.asyncio
    async def test_noop_before_first_page(
        self, controller: PaginatedFetchController, catalog: FakeCatalog
    ) -> None:
        state = await controller.load_more()
        assert state.status is FeedStatus.IDLE
        assert catalog.queries == []

    @pytest.mark.asyncio
    async def test_concurrent_triggers_fetch_once(
        self, controller: PaginatedFetchController, catalog: FakeCatalog
    ) -> None:
        await controller.load_first_page(Tab.NEW)
        await asyncio.gather(controller.load_more(), controller.load_more())

        assert len(catalog.queries) == 2
        assert len(controller.state.items) == 48

    @pytest.mark.asyncio
    async def test_failure_keeps_items(
        self, controller: PaginatedFetchController, catalog: FakeCatalog
    ) -> None:
        await controller.load_first_page(Tab.NEW)
        catalog.error = QueryError("boom")

        state = await controller.load_more()

        assert len(state.items) == 24
        assert state.status is FeedStatus.LOADED
        assert state.has_more is False
        assert state.error_message == LOAD_MORE_ERROR_MESSAGE

    @pytest.mark.asyncio
    async def test_unexpected_error_keeps_items(
        self, controller: PaginatedFetchController, catalog: FakeCatalog
    ) -> None:
        await controller.load_first_page(Tab.NEW)
        catalog.error = ValueError("bad row")

        state = await controller.load_more()

        assert len(state.items) == 24
        assert state.status is FeedStatus.LOADED
        assert state.has_more is False
        assert state.error_message == LOAD_MORE_ERROR_MESSAGE


class TestTabSwitching:
    @pytest.mark.asyncio
    async def test_switch_resets_pagination(
        self, controller: PaginatedFetchController, catalog: FakeCatalog
    ) -> None:
        await controller.load_first_page(Tab.NEW)
        await controller.load_more()

        state = await controller.select_tab(Tab.UNDER_CAP)

        assert state.tab is Tab.UNDER_CAP
        assert state.page == 0
        assert catalog.queries[-1].row_range == (0, 23)
        assert all(i.price_mad <= 200 for i in state.items)

    @pytest.mark.asyncio
    async def test_stale_result_is_discarded(
        self, controller: PaginatedFetchController, catalog: FakeCatalog
    ) -> None:
        catalog.rows.append(make_product("p70", orders_count=500))
        release = catalog.gate(is_popular)

        popular = asyncio.ensure_future(controller.select_tab(Tab.POPULAR))
        await asyncio.sleep(0)
        sale_state = await controller.select_tab(Tab.SALE)
        release.set()
        await popular

        assert controller.state.tab is Tab.SALE
        assert controller.state == sale_state
        assert all(i.id != "p70" for i in controller.state.items)

    @pytest.mark.asyncio
    async def test_popular_orders_by_orders_count(self) -> None:
        catalog = FakeCatalog(
            [
                make_product("p1", orders_count=5),
                make_product("p2", orders_count=None),
                make_product("p3", orders_count=50),
            ]
        )
        controller = PaginatedFetchController(catalog, page_size=24, timeout_seconds=1.0)

        state = await controller.select_tab("popular")

        assert [i.id for i in state.items] == ["p3", "p1", "p2"]

    @pytest.mark.asyncio
    async def test_city_tab_filters_by_controller_city(self) -> None:
        catalog = FakeCatalog(
            [make_product("p1", city="Fes"), make_product("p2", city="Rabat")]
        )
        controller = PaginatedFetchController(catalog, page_size=24, timeout_seconds=1.0)
        controller.city = "Fes"

        state = await controller.select_tab(Tab.CITY)

        assert [i.id for i in state.items] == ["p1"]


class TestRestore:
    @pytest.mark.asyncio
    async def test_restore_does_not_fetch(
        self, controller: PaginatedFetchController, catalog: FakeCatalog
    ) -> None:
        snapshot = PageState(tab=Tab.SALE, status=FeedStatus.LOADED, page=2, has_more=False)

        controller.restore(snapshot)

        assert controller.state == snapshot
        assert catalog.queries == []
