"""Recency log of opened products, persisted in the client key-value store."""

import time
from typing import Any

import structlog

from shared.constants import MAX_RECENTLY_VIEWED, RECENTLY_VIEWED_KEY
from storefront_feed.infrastructure.keyvalue import KeyValueStore, read_json, write_json
from storefront_feed.models import RecencyEntry

logger = structlog.get_logger()


def _now_ms() -> int:
    return int(time.time() * 1000)


class RecencyLog:
    """Most-recent-first, deduplicated, capped list of viewed products.

    Reads are fail-soft: anything malformed in storage reads as empty.
    """

    def __init__(self, store: KeyValueStore, max_entries: int = MAX_RECENTLY_VIEWED):
        self.store = store
        self.max_entries = max_entries

    def read_all(self) -> list[RecencyEntry]:
        raw = read_json(self.store, RECENTLY_VIEWED_KEY)
        if not isinstance(raw, list):
            return []

        entries = []
        for item in raw:
            if not isinstance(item, dict) or item.get("id") in (None, ""):
                continue
            entries.append(
                RecencyEntry(
                    product_id=str(item["id"]),
                    viewed_at_ms=_as_ms(item.get("at")),
                    extra={k: v for k, v in item.items() if k not in ("id", "at")},
                )
            )

        # Stable sort keeps storage order among equal timestamps.
        entries.sort(key=lambda e: e.viewed_at_ms, reverse=True)
        seen: set[str] = set()
        unique = []
        for e in entries:
            if e.product_id not in seen:
                seen.add(e.product_id)
                unique.append(e)
        return unique[: self.max_entries]

    def product_ids(self) -> list[str]:
        return [e.product_id for e in self.read_all()]

    def record(self, product_id: str, viewed_at_ms: int | None = None, **snapshot: Any) -> list[RecencyEntry]:
        """Move ``product_id`` to the front, trim and persist.

        ``snapshot`` fields (title, price, photo) are stored alongside the
        entry for views that render the log without a catalog query.
        """
        product_id = str(product_id)
        previous = [e for e in self.read_all() if e.product_id != product_id]
        viewed_at_ms = viewed_at_ms if viewed_at_ms is not None else _now_ms()
        if previous:
            # A clock step backwards must not push the new view behind older ones.
            viewed_at_ms = max(viewed_at_ms, previous[0].viewed_at_ms)
        entry = RecencyEntry(product_id=product_id, viewed_at_ms=viewed_at_ms, extra=snapshot)
        entries = [entry, *previous][: self.max_entries]
        write_json(
            self.store,
            RECENTLY_VIEWED_KEY,
            [{**e.extra, "id": e.product_id, "at": e.viewed_at_ms} for e in entries],
        )
        return entries

    def clear(self) -> None:
        self.store.remove(RECENTLY_VIEWED_KEY)


def _as_ms(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0
