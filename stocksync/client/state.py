"""Application state owned by the controller."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any


class Collection(str, Enum):
    INVENTORY = "inventory"
    TRANSACTIONS = "transactions"
    REJECT_INVENTORY = "reject_inventory"
    REJECTS = "rejects"
    SUPPLIERS = "suppliers"
    USERS = "users"
    SETTINGS = "settings"
    TABLE_PREFS = "table_prefs"

    @property
    def remote_type(self) -> str | None:
        """Name used on the wire, or ``None`` for local-only collections."""

        if self is Collection.TABLE_PREFS:
            return None
        return self.value

    @property
    def is_mapping(self) -> bool:
        return self in (Collection.SETTINGS, Collection.TABLE_PREFS)

    @property
    def newest_first(self) -> bool:
        return self in (Collection.TRANSACTIONS, Collection.REJECTS)


REMOTE_COLLECTIONS: tuple[Collection, ...] = tuple(
    collection for collection in Collection if collection.remote_type
)


class LifecyclePhase(str, Enum):
    INITIALIZING = "initializing"
    ACTIVE = "active"


class SyncStatus(str, Enum):
    LOADING = "LOADING"
    LOCAL = "LOCAL"
    OFFLINE = "OFFLINE"
    DEGRADED = "DEGRADED"
    ONLINE = "ONLINE"


# SHA-256 of the bootstrap password "admin22".
_BOOTSTRAP_ADMIN_HASH = "3d3467611599540c49097e3a2779836183c50937617565437172083626217315"

DEFAULT_USERS: list[dict[str, Any]] = [
    {
        "id": "1",
        "name": "Admin Utama",
        "username": "admin",
        "password": _BOOTSTRAP_ADMIN_HASH,
        "role": "admin",
        "status": "active",
    }
]

DEFAULT_SETTINGS: dict[str, Any] = {
    "vpsApiUrl": "",
    "viteGasUrl": "",
    "youtubeApiKey": "",
    "tiktokConfig": "",
    "mediaItems": [],
    "lastSheetSync": "",
}


def _columns(*pairs: tuple[str, str]) -> list[dict[str, Any]]:
    return [{"id": column_id, "label": label, "visible": True} for column_id, label in pairs]


DEFAULT_TABLE_PREFS: dict[str, list[dict[str, Any]]] = {
    "inventory": _columns(
        ("name", "Item Name"),
        ("category", "Category"),
        ("quantity", "Stock Level"),
        ("price", "Price"),
        ("location", "Location"),
    ),
    "history": _columns(
        ("date", "Date"),
        ("name", "Item Name"),
        ("type", "Type"),
        ("qty", "Quantity"),
        ("total", "Total Base"),
        ("notes", "Notes"),
    ),
    "suppliers": _columns(
        ("company", "Company Name"),
        ("contact", "Contact Person"),
        ("info", "Contact Info"),
        ("address", "Address"),
    ),
    "transactions": _columns(
        ("date", "Date"),
        ("type", "Type"),
        ("details", "Details"),
        ("docs", "Documents"),
        ("notes", "Notes"),
    ),
    "rejects": _columns(
        ("date", "Date"),
        ("item", "Item"),
        ("qty", "Quantity"),
        ("reason", "Reject Reason"),
        ("notes", "Notes"),
    ),
    "rejectMaster": _columns(
        ("sku", "SKU"),
        ("name", "Item Name"),
        ("baseUnit", "Base Unit"),
        ("conversions", "Conversions"),
    ),
}

_DEFAULTS: dict[Collection, Any] = {
    Collection.INVENTORY: [],
    Collection.TRANSACTIONS: [],
    Collection.REJECT_INVENTORY: [],
    Collection.REJECTS: [],
    Collection.SUPPLIERS: [],
    Collection.USERS: DEFAULT_USERS,
    Collection.SETTINGS: DEFAULT_SETTINGS,
    Collection.TABLE_PREFS: DEFAULT_TABLE_PREFS,
}


def default_value(collection: Collection) -> Any:
    return copy.deepcopy(_DEFAULTS[collection])


def _default(collection: Collection):
    return field(default_factory=lambda: default_value(collection))


@dataclass(frozen=True)
class AppState:
    """Snapshot of every collection.

    Instances are never mutated; the reducer returns a new snapshot whenever a
    collection changes so that effects can compare by identity.
    """

    inventory: list = _default(Collection.INVENTORY)
    transactions: list = _default(Collection.TRANSACTIONS)
    reject_inventory: list = _default(Collection.REJECT_INVENTORY)
    rejects: list = _default(Collection.REJECTS)
    suppliers: list = _default(Collection.SUPPLIERS)
    users: list = _default(Collection.USERS)
    settings: dict = _default(Collection.SETTINGS)
    table_prefs: dict = _default(Collection.TABLE_PREFS)

    def get(self, collection: Collection) -> Any:
        return getattr(self, collection.value)

    def with_value(self, collection: Collection, value: Any) -> "AppState":
        return replace(self, **{collection.value: value})

    def as_dict(self) -> dict[str, Any]:
        return {state_field.name: getattr(self, state_field.name) for state_field in fields(self)}
