"""Infinite-scroll trigger.

The UI reports viewport-intersection signals for a sentinel placed after
the last rendered row. ``LoadMoreScheduler`` turns those signals into
debounced load-more calls under a ``ScrollTriggerPolicy``. Timing goes
through a ``Timer`` so tests can drive it deterministically.
"""

import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Protocol

import structlog

from storefront_feed.config import get_settings

logger = structlog.get_logger()


@dataclass(frozen=True)
class ScrollTriggerPolicy:
    """Pre-trigger margin around the viewport plus a debounce interval."""

    margin_px: int = 800
    debounce_ms: int = 60

    @classmethod
    def from_settings(cls) -> "ScrollTriggerPolicy":
        settings = get_settings()
        return cls(margin_px=settings.scroll_margin_px, debounce_ms=settings.scroll_debounce_ms)

    def is_intersecting(self, sentinel_top: float, viewport_top: float, viewport_height: float) -> bool:
        """Whether the sentinel lies within the viewport grown by the margin."""
        return (
            viewport_top - self.margin_px
            <= sentinel_top
            <= viewport_top + viewport_height + self.margin_px
        )


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Timer(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class LoopTimer:
    """Timer backed by the running asyncio event loop."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)


class LoadMoreScheduler:
    """Debounces intersection signals into single load-more triggers."""

    def __init__(
        self,
        on_trigger: Callable[[], Awaitable[Any] | None],
        policy: ScrollTriggerPolicy | None = None,
        timer: Timer | None = None,
    ):
        self.on_trigger = on_trigger
        self.policy = policy or ScrollTriggerPolicy.from_settings()
        self.timer = timer or LoopTimer()
        self._pending: TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def signal(self, is_intersecting: bool) -> None:
        """Handle one intersection-observer callback."""
        if not is_intersecting:
            self.cancel()
            return
        if self._pending is not None:
            self._pending.cancel()
        self._pending = self.timer.call_later(self.policy.debounce_ms / 1000, self._fire)

    def observe(self, sentinel_top: float, viewport_top: float, viewport_height: float) -> None:
        self.signal(self.policy.is_intersecting(sentinel_top, viewport_top, viewport_height))

    def cancel(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _fire(self) -> None:
        self._pending = None
        result = self.on_trigger()
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
