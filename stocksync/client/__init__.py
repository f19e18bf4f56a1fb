"""Offline-tolerant sync layer for the inventory collections."""

from .config import ClientConfig
from .connectivity import Badge, ConnectivityMonitor, ConnectivityState, HealthReport
from .controller import InventoryController, ReconcileResult
from .errors import ErrorKind, StocksyncError
from .local_store import LocalStore
from .notifications import NotificationCenter, NotificationLevel
from .remote import (
    BackendFlavor,
    PushResult,
    RemoteStoreClient,
    SpreadsheetScriptClient,
    SqlApiClient,
    build_remote_client,
)
from .state import AppState, Collection, LifecyclePhase, SyncStatus

__all__ = [
    "AppState",
    "BackendFlavor",
    "Badge",
    "ClientConfig",
    "Collection",
    "ConnectivityMonitor",
    "ConnectivityState",
    "ErrorKind",
    "HealthReport",
    "InventoryController",
    "LifecyclePhase",
    "LocalStore",
    "NotificationCenter",
    "NotificationLevel",
    "PushResult",
    "ReconcileResult",
    "RemoteStoreClient",
    "SpreadsheetScriptClient",
    "SqlApiClient",
    "StocksyncError",
    "SyncStatus",
    "build_remote_client",
]
