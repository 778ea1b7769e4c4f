"""Time-boxed pin for the "because you viewed" anchor category."""

import time

from shared.constants import PINNED_BECAUSE_KEY, PINNED_PATH_TTL_DAYS
from storefront_feed.infrastructure.keyvalue import KeyValueStore, read_json, write_json
from storefront_feed.models import PinnedCategoryPath

MS_PER_DAY = 1000 * 60 * 60 * 24


class PinnedCategoryStore:
    """Persists one category path with a TTL; expired pins are removed on read."""

    def __init__(self, store: KeyValueStore, ttl_days: int = PINNED_PATH_TTL_DAYS):
        self.store = store
        self.ttl_ms = ttl_days * MS_PER_DAY

    def get(self, now_ms: int | None = None) -> PinnedCategoryPath | None:
        raw = read_json(self.store, PINNED_BECAUSE_KEY)
        if not isinstance(raw, dict):
            return None
        path = raw.get("path")
        ts = raw.get("ts")
        if not isinstance(path, str) or not path:
            return None
        if not isinstance(ts, (int, float)):
            ts = 0

        now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
        if now_ms - ts > self.ttl_ms:
            self.clear()
            return None
        return PinnedCategoryPath(path=path, pinned_at_ms=int(ts))

    def pin(self, path: str, now_ms: int | None = None) -> PinnedCategoryPath:
        pinned = PinnedCategoryPath(
            path=path,
            pinned_at_ms=now_ms if now_ms is not None else int(time.time() * 1000),
        )
        write_json(self.store, PINNED_BECAUSE_KEY, {"path": pinned.path, "ts": pinned.pinned_at_ms})
        return pinned

    def clear(self) -> None:
        self.store.remove(PINNED_BECAUSE_KEY)
