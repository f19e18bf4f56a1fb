"""Debounced save-and-push of collection values."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable

from .connectivity import ConnectivityMonitor
from .debounce import DebouncedSink
from .local_store import LocalStore
from .notifications import NotificationCenter
from .remote import PushResult, RemoteStoreClient
from .scheduling import Scheduler
from .state import Collection

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SEC = 1.5

RemoteProvider = Callable[[], "RemoteStoreClient | None"]


class MutationPipeline:
    """One debounced sink per collection.

    When a sink settles the value is always written to the local store.  It
    is pushed to the remote only when connectivity allows it and the
    collection has a remote counterpart.  Pushes of the same collection are
    serialized and stamped with this client's id and a version that
    strictly increases per collection.
    """

    def __init__(
        self,
        store: LocalStore,
        connectivity: ConnectivityMonitor,
        notifications: NotificationCenter,
        remote_provider: RemoteProvider,
        scheduler: Scheduler,
        interval: float = DEFAULT_DEBOUNCE_SEC,
        clock: Callable[[], float] = time.time,
        client_id: str | None = None,
    ) -> None:
        self.store = store
        self.connectivity = connectivity
        self.client_id = client_id
        self.notifications = notifications
        self._remote_provider = remote_provider
        self._clock = clock
        self._sinks = {
            collection: DebouncedSink(collection, interval, self._settle, scheduler)
            for collection in Collection
        }
        self._push_locks = {collection: threading.Lock() for collection in Collection}
        self._versions: dict[Collection, int] = {}
        self._state_lock = threading.Lock()
        self._in_flight = 0

    @property
    def is_saving(self) -> bool:
        with self._state_lock:
            return self._in_flight > 0

    def submit(self, collection: Collection, value: Any) -> None:
        self._sinks[collection].submit(value)

    def has_pending(self, collection: Collection | None = None) -> bool:
        if collection is not None:
            return self._sinks[collection].has_pending
        return any(sink.has_pending for sink in self._sinks.values())

    def flush(self, collection: Collection) -> bool:
        return self._sinks[collection].flush()

    def flush_pending(self) -> list[Collection]:
        flushed = []
        for collection, sink in self._sinks.items():
            if sink.flush():
                flushed.append(collection)
        if flushed:
            logger.debug("Flushed pending writes for %s", ", ".join(c.value for c in flushed))
        return flushed

    def cancel(self, collection: Collection) -> bool:
        cancelled = self._sinks[collection].cancel()
        if cancelled:
            logger.debug("Dropped pending write for %s", collection.value)
        return cancelled

    def next_version(self, collection: Collection) -> int:
        with self._state_lock:
            previous = self._versions.get(collection, 0)
            version = max(previous + 1, int(self._clock() * 1000))
            self._versions[collection] = version
            return version

    def save_local(self, collection: Collection, value: Any) -> bool:
        if self.store.save(collection.value, value):
            return True
        self.notifications.warning(
            f"Could not save {collection.value} locally; changes are kept in memory only.",
            source="local_store",
            dedupe_key=f"persist:{collection.value}",
        )
        return False

    def _settle(self, collection: Collection, value: Any) -> None:
        self.save_local(collection, value)

        remote_type = collection.remote_type
        if remote_type is None:
            return
        if not self.connectivity.allows_push:
            logger.debug(
                "Skipping push of %s while %s", remote_type, self.connectivity.state.value
            )
            return
        remote = self._remote_provider()
        if remote is None:
            return

        with self._state_lock:
            self._in_flight += 1
        try:
            with self._push_locks[collection]:
                version = self.next_version(collection)
                result = remote.push_collection(
                    remote_type, value, version=version, client_id=self.client_id
                )
        finally:
            with self._state_lock:
                self._in_flight -= 1
        self._report(remote_type, result)

    def _report(self, remote_type: str, result: PushResult) -> None:
        if result.success:
            logger.info("Pushed %s to remote", remote_type)
            return
        self.notifications.error(
            f"Failed to sync {remote_type}: {result.message}",
            source="sync",
        )
