"""Unit tests for the recency log."""

import orjson
import pytest

from shared.constants import RECENTLY_VIEWED_KEY
from storefront_feed.infrastructure.keyvalue import InMemoryKeyValueStore
from storefront_feed.services.recency import RecencyLog


@pytest.fixture
def log(store: InMemoryKeyValueStore) -> RecencyLog:
    return RecencyLog(store, max_entries=12)


class TestRecord:
    def test_most_recent_first(self, log: RecencyLog) -> None:
        log.record("p1", viewed_at_ms=1000)
        log.record("p2", viewed_at_ms=2000)

        assert log.product_ids() == ["p2", "p1"]

    def test_reopening_moves_to_front_without_duplicates(self, log: RecencyLog) -> None:
        log.record("p1", viewed_at_ms=1000)
        log.record("p2", viewed_at_ms=2000)
        log.record("p1", viewed_at_ms=3000)

        assert log.product_ids() == ["p1", "p2"]

    def test_capped_at_max_entries(self, log: RecencyLog) -> None:
        for i in range(15):
            log.record(f"p{i}", viewed_at_ms=1000 + i)

        ids = log.product_ids()
        assert len(ids) == 12
        assert ids[0] == "p14"
        assert "p0" not in ids

    def test_new_view_stays_first_when_clock_steps_back(self, log: RecencyLog) -> None:
        log.record("p1", viewed_at_ms=5000)
        log.record("p2", viewed_at_ms=1000)

        assert log.product_ids() == ["p2", "p1"]

    def test_snapshot_fields_are_persisted(
        self, log: RecencyLog, store: InMemoryKeyValueStore
    ) -> None:
        log.record("p1", viewed_at_ms=1000, title="Rug", price_mad=150.0)

        raw = orjson.loads(store.get(RECENTLY_VIEWED_KEY))
        assert raw == [{"title": "Rug", "price_mad": 150.0, "id": "p1", "at": 1000}]
        assert log.read_all()[0].extra == {"title": "Rug", "price_mad": 150.0}


class TestReadAll:
    def test_empty_store(self, log: RecencyLog) -> None:
        assert log.read_all() == []

    def test_malformed_json_reads_as_empty(self, store: InMemoryKeyValueStore) -> None:
        store.set(RECENTLY_VIEWED_KEY, "not json")
        assert RecencyLog(store).read_all() == []

    def test_non_list_reads_as_empty(self, store: InMemoryKeyValueStore) -> None:
        store.set(RECENTLY_VIEWED_KEY, '{"id": "p1"}')
        assert RecencyLog(store).read_all() == []

    def test_unsorted_storage_is_normalized(self, store: InMemoryKeyValueStore) -> None:
        payload = [
            {"id": "p1", "at": 100},
            {"id": "p2", "at": 300},
            {"id": "p1", "at": 200},
            {"id": None, "at": 999},
            "junk",
            {"id": "p3", "at": "bad"},
        ]
        store.set(RECENTLY_VIEWED_KEY, orjson.dumps(payload).decode())

        assert RecencyLog(store).product_ids() == ["p2", "p1", "p3"]

    def test_clear(self, log: RecencyLog) -> None:
        log.record("p1", viewed_at_ms=1)
        log.clear()
        assert log.read_all() == []
