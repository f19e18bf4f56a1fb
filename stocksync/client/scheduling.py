"""Timer scheduling used by the debounced sinks."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Callable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(ABC):
    """Source of one-shot timers for the mutation pipeline."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        raise NotImplementedError


class ThreadingScheduler(Scheduler):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.name = "stocksync-debounce"
        timer.start()
        return timer
