"""Toast-style notifications raised by the sync layer."""

from __future__ import annotations

import itertools
import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Deque

logger = logging.getLogger(__name__)


class NotificationLevel(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


_LOG_LEVELS = {
    NotificationLevel.SUCCESS: logging.INFO,
    NotificationLevel.INFO: logging.INFO,
    NotificationLevel.WARNING: logging.WARNING,
    NotificationLevel.ERROR: logging.ERROR,
}


@dataclass
class Notification:
    id: int
    level: NotificationLevel
    message: str
    timestamp: datetime
    source: str | None = None
    count: int = 1
    dedupe_key: str | None = field(default=None, repr=False)


Subscriber = Callable[[Notification], None]


class NotificationCenter:
    """Bounded buffer of notifications with optional de-duplication.

    A notification raised again with the same ``dedupe_key`` bumps the count
    of the existing entry instead of adding a new one.
    """

    def __init__(self, maxlen: int = 200) -> None:
        self._lock = threading.Lock()
        self._events: Deque[Notification] = deque(maxlen=maxlen)
        self._dedupe: dict[str, Notification] = {}
        self._ids = itertools.count(1)
        self._subscribers: list[Subscriber] = []

    def notify(
        self,
        level: NotificationLevel | str,
        message: str,
        *,
        source: str | None = None,
        dedupe_key: str | None = None,
    ) -> Notification:
        level = NotificationLevel(level)
        timestamp = datetime.now(timezone.utc)
        logger.log(_LOG_LEVELS[level], "[%s] %s", level.value, message)

        with self._lock:
            existing = self._dedupe.get(dedupe_key) if dedupe_key else None
            if existing is not None and existing in self._events:
                existing.count += 1
                existing.timestamp = timestamp
                existing.message = message
                notification = existing
            else:
                notification = Notification(
                    id=next(self._ids),
                    level=level,
                    message=message,
                    timestamp=timestamp,
                    source=source,
                    dedupe_key=dedupe_key,
                )
                self._events.append(notification)
                if dedupe_key:
                    self._dedupe[dedupe_key] = notification
            subscribers = list(self._subscribers)

        for subscriber in subscribers:
            try:
                subscriber(notification)
            except Exception:  # noqa: BLE001
                logger.exception("Notification subscriber failed")
        return notification

    def success(self, message: str, **kwargs) -> Notification:
        return self.notify(NotificationLevel.SUCCESS, message, **kwargs)

    def info(self, message: str, **kwargs) -> Notification:
        return self.notify(NotificationLevel.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs) -> Notification:
        return self.notify(NotificationLevel.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs) -> Notification:
        return self.notify(NotificationLevel.ERROR, message, **kwargs)

    def recent(self, limit: int = 200) -> list[Notification]:
        if limit <= 0:
            return []
        with self._lock:
            return list(self._events)[-limit:]

    def dismiss(self, notification_id: int) -> bool:
        with self._lock:
            for notification in self._events:
                if notification.id == notification_id:
                    self._events.remove(notification)
                    if notification.dedupe_key:
                        self._dedupe.pop(notification.dedupe_key, None)
                    return True
        return False

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
            self._dedupe.clear()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe
