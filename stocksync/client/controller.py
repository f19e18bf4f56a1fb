"""Headless controller that owns application state and drives sync."""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from . import ledger
from .actions import (
    Action,
    AddRecord,
    DeleteRecord,
    EditTransaction,
    MergeSettings,
    ProcessTransaction,
    ToggleColumn,
    UpdateRecord,
    reduce,
)
from .config import ClientConfig, settings_remote_url
from .connectivity import Badge, ConnectivityMonitor, ConnectivityState
from .errors import ErrorKind, InsufficientStockError
from .local_store import LocalStore
from .notifications import NotificationCenter, NotificationLevel
from .pipeline import DEFAULT_DEBOUNCE_SEC, MutationPipeline
from .records import RECORD_TYPES, Transaction, _Record
from .remote import (
    DEFAULT_TIMEOUT_SEC,
    BackendFlavor,
    PushResult,
    RemoteStoreClient,
    build_remote_client,
)
from .scheduling import Scheduler, ThreadingScheduler
from .state import (
    REMOTE_COLLECTIONS,
    AppState,
    Collection,
    LifecyclePhase,
    SyncStatus,
)

logger = logging.getLogger(__name__)

RemoteFactory = Callable[[str, BackendFlavor, float], "RemoteStoreClient | None"]

_URL_SETTINGS = ("vpsApiUrl", "viteGasUrl")
_MISSING = object()


@dataclass(frozen=True)
class ReconcileResult:
    status: SyncStatus
    message: str
    applied: tuple[Collection, ...] = ()
    missing: tuple[Collection, ...] = ()


def merge_remote_settings(
    local: Mapping[str, Any], remote: Mapping[str, Any]
) -> dict[str, Any]:
    """Overlay remote settings on local ones, key by key.

    Endpoint URLs the remote does not know about (absent or blank) keep their
    local value.
    """

    merged = dict(local)
    for key, value in remote.items():
        if key in _URL_SETTINGS and not value and local.get(key):
            continue
        merged[key] = value
    return merged


def _utc_iso(epoch: float) -> str:
    stamp = datetime.fromtimestamp(epoch, timezone.utc)
    return stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class InventoryController:
    """Single owner of the in-memory collections.

    Mutations go through :meth:`dispatch`.  While the controller is
    ``INITIALIZING`` they only change memory; once the first reconciliation
    cycle finishes, every changed collection is handed to the mutation
    pipeline.
    """

    def __init__(
        self,
        store: LocalStore,
        *,
        remote_url: str = "",
        backend_flavor: BackendFlavor | str = BackendFlavor.AUTO,
        http_timeout: float = DEFAULT_TIMEOUT_SEC,
        scheduler: Scheduler | None = None,
        notifications: NotificationCenter | None = None,
        connectivity: ConnectivityMonitor | None = None,
        debounce_sec: float = DEFAULT_DEBOUNCE_SEC,
        clock: Callable[[], float] = time.time,
        remote_factory: RemoteFactory = build_remote_client,
    ) -> None:
        self.store = store
        self.notifications = notifications or NotificationCenter()
        self.connectivity = connectivity or ConnectivityMonitor()
        self._clock = clock
        self._remote_factory = remote_factory
        self._configured_url = (remote_url or "").strip()
        self._flavor = BackendFlavor(backend_flavor)
        self._timeout = http_timeout

        self._lock = threading.RLock()
        self._cycle_lock = threading.Lock()
        self._state = AppState()
        self._phase = LifecyclePhase.INITIALIZING
        self._status = SyncStatus.LOADING
        self._loading = True
        self._current_user: dict[str, Any] | None = None

        self._remote_url = ""
        self._remote: RemoteStoreClient | None = None
        self._use_remote_url(self._configured_url)

        self.pipeline = MutationPipeline(
            store=store,
            connectivity=self.connectivity,
            notifications=self.notifications,
            remote_provider=lambda: self._remote,
            scheduler=scheduler or ThreadingScheduler(),
            interval=debounce_sec,
            clock=clock,
            client_id=store.device_id(),
        )

    @classmethod
    def from_config(
        cls, config: ClientConfig, scheduler: Scheduler | None = None
    ) -> "InventoryController":
        store = LocalStore(config.store_path, key_prefix=config.key_prefix)
        store.initialize()
        settings = store.load(Collection.SETTINGS.value, None)
        effective = config.with_settings(settings if isinstance(settings, dict) else None)
        controller = cls(
            store,
            remote_url=effective.remote_url,
            backend_flavor=config.backend_flavor,
            http_timeout=config.http_timeout_sec,
            scheduler=scheduler,
            debounce_sec=config.debounce_sec,
        )
        controller._configured_url = config.remote_url
        return controller

    # -- read access -------------------------------------------------------

    @property
    def state(self) -> AppState:
        with self._lock:
            return self._state

    @property
    def phase(self) -> LifecyclePhase:
        with self._lock:
            return self._phase

    @property
    def status(self) -> SyncStatus:
        with self._lock:
            return self._status

    @property
    def is_loading(self) -> bool:
        with self._lock:
            return self._loading

    @property
    def is_saving(self) -> bool:
        return self.pipeline.is_saving

    @property
    def remote(self) -> RemoteStoreClient | None:
        return self._remote

    @property
    def remote_url(self) -> str:
        return self._remote_url

    @property
    def current_user(self) -> dict[str, Any] | None:
        with self._lock:
            return self._current_user

    def badge(self) -> Badge:
        return self.connectivity.badge()

    def low_stock(self) -> list[Mapping[str, Any]]:
        return ledger.low_stock(self.state.inventory)

    def stock_summary(self) -> dict[str, int | float]:
        return ledger.stock_summary(self.state.inventory)

    def item_history(self, item_id: str) -> list[dict[str, Any]]:
        return ledger.item_history(self.state.transactions, item_id)

    # -- mutations ---------------------------------------------------------

    def dispatch(self, action: Action) -> bool:
        """Apply ``action``.  Returns ``False`` when it was rejected or changed nothing."""

        with self._lock:
            try:
                next_state, changed = reduce(self._state, action)
            except (TypeError, ValueError) as exc:
                self.notifications.error(str(exc), source="controller")
                return False
            self._state = next_state
            if self._phase is LifecyclePhase.ACTIVE:
                for collection in changed:
                    self.pipeline.submit(collection, next_state.get(collection))
        return bool(changed)

    def add_record(self, collection: Collection, record: Mapping[str, Any] | _Record) -> bool:
        try:
            payload = self._coerce(collection, record)
        except (TypeError, ValueError) as exc:
            self.notifications.error(f"Invalid {collection.value} record: {exc}", source="controller")
            return False
        return self.dispatch(AddRecord(collection, payload))

    def update_record(self, collection: Collection, record: Mapping[str, Any] | _Record) -> bool:
        try:
            payload = self._coerce(collection, record)
        except (TypeError, ValueError) as exc:
            self.notifications.error(f"Invalid {collection.value} record: {exc}", source="controller")
            return False
        return self.dispatch(UpdateRecord(collection, payload))

    def delete_record(self, collection: Collection, record_id: str) -> bool:
        return self.dispatch(DeleteRecord(collection, record_id))

    def add_item(self, item):
        return self.add_record(Collection.INVENTORY, item)

    def update_item(self, item):
        return self.update_record(Collection.INVENTORY, item)

    def delete_item(self, item_id: str):
        return self.delete_record(Collection.INVENTORY, item_id)

    def add_supplier(self, supplier):
        return self.add_record(Collection.SUPPLIERS, supplier)

    def update_supplier(self, supplier):
        return self.update_record(Collection.SUPPLIERS, supplier)

    def delete_supplier(self, supplier_id: str):
        return self.delete_record(Collection.SUPPLIERS, supplier_id)

    def add_user(self, user):
        return self.add_record(Collection.USERS, user)

    def update_user(self, user):
        return self.update_record(Collection.USERS, user)

    def delete_user(self, user_id: str):
        return self.delete_record(Collection.USERS, user_id)

    def add_reject_item(self, item):
        return self.add_record(Collection.REJECT_INVENTORY, item)

    def update_reject_item(self, item):
        return self.update_record(Collection.REJECT_INVENTORY, item)

    def delete_reject_item(self, item_id: str):
        return self.delete_record(Collection.REJECT_INVENTORY, item_id)

    def add_reject_log(self, log):
        return self.add_record(Collection.REJECTS, log)

    def update_reject_log(self, log):
        return self.update_record(Collection.REJECTS, log)

    def delete_reject_log(self, log_id: str):
        return self.delete_record(Collection.REJECTS, log_id)

    def process_transaction(
        self, transaction: Transaction | Mapping[str, Any], *, validate: bool = True
    ) -> bool:
        """Record ``transaction`` and apply it to stock exactly once.

        With ``validate`` an OUT transaction that would over-draw any item is
        rejected with an error notification.  Without it the ledger clamps
        the affected quantities at zero.
        """

        try:
            if not isinstance(transaction, Transaction):
                transaction = Transaction.from_dict(transaction)
        except (TypeError, ValueError) as exc:
            self.notifications.error(f"Invalid transaction: {exc}", source="ledger")
            return False

        timestamp = _utc_iso(self._clock())
        if not transaction.timestamp:
            transaction = dataclasses.replace(transaction, timestamp=timestamp)

        with self._lock:
            if validate:
                shortages = ledger.find_shortages(self._state.inventory, transaction)
                if shortages:
                    self.notifications.error(
                        str(InsufficientStockError(shortages)), source="ledger"
                    )
                    return False
            return self.dispatch(ProcessTransaction(transaction, timestamp))

    def edit_transaction(self, transaction: Transaction | Mapping[str, Any]) -> bool:
        try:
            if not isinstance(transaction, Transaction):
                transaction = Transaction.from_dict(transaction)
        except (TypeError, ValueError) as exc:
            self.notifications.error(f"Invalid transaction: {exc}", source="ledger")
            return False
        return self.dispatch(EditTransaction(transaction))

    def delete_transaction(self, transaction_id: str) -> bool:
        removed = self.dispatch(DeleteRecord(Collection.TRANSACTIONS, transaction_id))
        if removed:
            logger.info("Deleted transaction %s; stock levels were not reversed", transaction_id)
        return removed

    def toggle_column(self, module: str, column_id: str) -> bool:
        return self.dispatch(ToggleColumn(module, column_id))

    def update_settings(self, changes: Mapping[str, Any]) -> ReconcileResult | None:
        """Merge ``changes`` into settings and reconnect if the remote URL moved."""

        with self._lock:
            changed = self.dispatch(MergeSettings(changes))
            active = self._phase is LifecyclePhase.ACTIVE
            settings = self._state.settings
        if not changed:
            return None
        if not active:
            self.pipeline.save_local(Collection.SETTINGS, settings)
        self.pipeline.flush_pending()

        url = settings_remote_url(settings) or self._configured_url
        if url == self._remote_url:
            return None
        self._use_remote_url(url)
        return self.reconcile()

    # -- reconciliation ----------------------------------------------------

    def load_local(self) -> None:
        """Seed memory from the local store, keeping values that cannot be read."""

        with self._lock:
            state = self._state
            for collection in Collection:
                value = self.store.load(collection.value, _MISSING)
                if value is _MISSING or value is None:
                    continue
                state = state.with_value(collection, value)
            self._state = state
            session = self.store.load_session(None)
            self._current_user = session if isinstance(session, dict) else None

    def refresh(self) -> ReconcileResult:
        self.pipeline.flush_pending()
        return self.reconcile()

    def reconcile(self) -> ReconcileResult:
        with self._cycle_lock:
            with self._lock:
                self._loading = True
                self._status = SyncStatus.LOADING
            self.load_local()

            remote = self._remote
            if remote is None:
                self.connectivity.reset()
                return self._finish(
                    SyncStatus.LOCAL,
                    "No remote store configured; working from local data.",
                    NotificationLevel.INFO,
                )

            report = remote.check_health()
            connectivity = self.connectivity.apply(report)
            if connectivity is ConnectivityState.OFFLINE:
                return self._finish(
                    SyncStatus.OFFLINE,
                    f"Offline mode: {report.message}",
                    NotificationLevel.ERROR,
                )
            if connectivity is ConnectivityState.DISCONNECTED:
                return self._finish(
                    SyncStatus.DEGRADED,
                    f"Server reachable but not healthy: {report.message}",
                    NotificationLevel.WARNING,
                )

            payload = remote.fetch_full_state()
            if payload is None:
                error = remote.last_error
                message = error.message if error else "no data returned"
                kind = error.kind if error else ErrorKind.TRANSPORT
                self.connectivity.mark_offline(message, kind)
                return self._finish(
                    SyncStatus.OFFLINE,
                    f"Failed to load data from server: {message}",
                    NotificationLevel.ERROR,
                )

            applied, missing = self._apply_remote(payload)
            return self._finish(
                SyncStatus.ONLINE,
                "Data synchronized with server.",
                NotificationLevel.SUCCESS,
                applied,
                missing,
            )

    def _apply_remote(
        self, payload: Mapping[str, Any]
    ) -> tuple[tuple[Collection, ...], tuple[Collection, ...]]:
        applied: list[Collection] = []
        missing: list[Collection] = []
        with self._lock:
            state = self._state
            for collection in REMOTE_COLLECTIONS:
                value = payload.get(collection.value)
                expected = dict if collection.is_mapping else list
                if not isinstance(value, expected):
                    if collection.value in payload:
                        logger.warning(
                            "Ignoring remote %s: expected %s, got %s",
                            collection.value,
                            expected.__name__,
                            type(value).__name__,
                        )
                    missing.append(collection)
                    continue
                if collection is Collection.SETTINGS:
                    value = merge_remote_settings(state.settings, value)
                self.pipeline.cancel(collection)
                state = state.with_value(collection, value)
                applied.append(collection)
            self._state = state

        for collection in applied:
            self.pipeline.save_local(collection, state.get(collection))

        url = settings_remote_url(state.settings) or self._configured_url
        if url != self._remote_url:
            logger.info("Remote settings point at %s; using it from the next cycle", url)
            self._use_remote_url(url)
        return tuple(applied), tuple(missing)

    def _finish(
        self,
        status: SyncStatus,
        message: str,
        level: NotificationLevel,
        applied: tuple[Collection, ...] = (),
        missing: tuple[Collection, ...] = (),
    ) -> ReconcileResult:
        with self._lock:
            self._status = status
            self._loading = False
            first_cycle = self._phase is LifecyclePhase.INITIALIZING
            self._phase = LifecyclePhase.ACTIVE
        if first_cycle:
            logger.info("Initial load finished (%s); changes will now sync", status.value)
        self.notifications.notify(level, message, source="reconcile")
        return ReconcileResult(status, message, applied, missing)

    def force_upload(self) -> PushResult:
        """Send every collection to the remote in one request."""

        self.pipeline.flush_pending()
        remote = self._remote
        if remote is None:
            result = PushResult(False, "No remote store configured.", ErrorKind.CONFIGURATION)
        else:
            self.connectivity.apply(remote.check_health())
            if not self.connectivity.allows_push:
                result = PushResult(
                    False,
                    f"Remote is not available: {self.connectivity.last_error}",
                    self.connectivity.last_error_kind,
                )
            else:
                snapshot = self.state.as_dict()
                snapshot.pop(Collection.TABLE_PREFS.value, None)
                result = remote.push_full_state(snapshot)

        if result.success:
            self.notifications.success("All data uploaded to server.", source="sync")
        else:
            self.notifications.error(f"Upload failed: {result.message}", source="sync")
        return result

    # -- session and housekeeping -----------------------------------------

    def login_user(self, user: Mapping[str, Any]) -> bool:
        session = {key: value for key, value in dict(user).items() if key != "password"}
        with self._lock:
            self._current_user = session
        if not self.store.save_session(session):
            logger.warning("Session for %s is kept in memory only", session.get("username"))
            return False
        return True

    def logout(self) -> None:
        with self._lock:
            self._current_user = None
        self.store.clear_session()

    def clear_local_data(self) -> None:
        """Forget every collection stored on this device.  The session survives."""

        with self._lock:
            for collection in Collection:
                self.pipeline.cancel(collection)
            self.store.clear_all(collection.value for collection in Collection)
            self._state = AppState()
        self.notifications.info("Local data cleared.", source="local_store")

    def shutdown(self) -> None:
        self.pipeline.flush_pending()

    # -- helpers -----------------------------------------------------------

    def _use_remote_url(self, url: str) -> None:
        self._remote_url = url
        self._remote = self._remote_factory(url, self._flavor, self._timeout) if url else None
        if self._remote is None:
            self.connectivity.reset()

    @staticmethod
    def _coerce(collection: Collection, record: Mapping[str, Any] | _Record) -> dict[str, Any]:
        if isinstance(record, _Record):
            return record.to_dict()
        record_type = RECORD_TYPES.get(collection.value)
        if record_type is None:
            return dict(record)
        return {**dict(record), **record_type.from_dict(record).to_dict()}
