"""Trailing-edge debounce used by every collection."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Generic, Hashable, TypeVar

from .scheduling import Scheduler, TimerHandle

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)

_UNSET = object()


class DebouncedSink(Generic[K]):
    """Deliver only the last value of a burst once ``interval`` seconds pass quietly.

    Each ``submit`` restarts the timer.  A generation counter guards against a
    cancelled timer that fires anyway, so a superseded value is never
    flushed.  Flushes of one sink never overlap.
    """

    def __init__(
        self,
        key: K,
        interval: float,
        on_flush: Callable[[K, Any], None],
        scheduler: Scheduler,
    ) -> None:
        self.key = key
        self.interval = interval
        self._on_flush = on_flush
        self._scheduler = scheduler
        self._lock = threading.Lock()
        self._flush_lock = threading.Lock()
        self._pending: Any = _UNSET
        self._handle: TimerHandle | None = None
        self._generation = 0

    @property
    def has_pending(self) -> bool:
        with self._lock:
            return self._pending is not _UNSET

    def submit(self, value: Any) -> None:
        with self._lock:
            self._generation += 1
            generation = self._generation
            self._pending = value
            if self._handle is not None:
                self._handle.cancel()
            self._handle = self._scheduler.call_later(
                self.interval, lambda: self._fire(generation)
            )

    def flush(self) -> bool:
        """Deliver the pending value now.  Returns ``False`` if nothing was pending."""

        with self._flush_lock:
            value = self._take(None)
            if value is _UNSET:
                return False
            self._on_flush(self.key, value)
            return True

    def cancel(self) -> bool:
        return self._take(None) is not _UNSET

    def _take(self, generation: int | None) -> Any:
        with self._lock:
            if generation is not None and generation != self._generation:
                return _UNSET
            value = self._pending
            self._pending = _UNSET
            self._generation += 1
            if self._handle is not None:
                self._handle.cancel()
                self._handle = None
            return value

    def _fire(self, generation: int) -> None:
        with self._flush_lock:
            value = self._take(generation)
            if value is _UNSET:
                return
            try:
                self._on_flush(self.key, value)
            except Exception:  # noqa: BLE001 - keep the timer thread alive
                logger.exception("Debounced flush for %s failed", self.key)
