"""Persistence of synced collections for the reference backend."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from stocksync import extensions
from stocksync.extensions import db
from stocksync.models import CollectionVersion, SyncRecord, SyncSetting

logger = logging.getLogger(__name__)

LIST_COLLECTIONS = (
    "inventory",
    "transactions",
    "reject_inventory",
    "rejects",
    "suppliers",
    "users",
)
SETTINGS_COLLECTION = "settings"
COLLECTION_TYPES = LIST_COLLECTIONS + (SETTINGS_COLLECTION,)

COLLECTION_ALIASES = {
    "rejectItems": "reject_inventory",
    "rejectLogs": "rejects",
}


class PayloadError(ValueError):
    pass


class StaleVersionError(ValueError):
    def __init__(self, collection: str, version: int, stored: int, client_id: str = "") -> None:
        writer = f" from client {client_id}" if client_id else ""
        super().__init__(
            f"Stale write for {collection}{writer}: version {version} is older than "
            f"stored version {stored}"
        )
        self.collection = collection
        self.client_id = client_id
        self.version = version
        self.stored = stored


def canonical_collection(name: Any) -> str | None:
    if not isinstance(name, str):
        return None
    name = COLLECTION_ALIASES.get(name, name)
    if name in COLLECTION_TYPES:
        return name
    return None


def database_available() -> tuple[bool, str | None]:
    """Ping the database, creating tables the first time it becomes reachable."""

    try:
        extensions.ping_database()
    except SQLAlchemyError as exc:
        db.session.remove()
        details = str(getattr(exc, "orig", exc)).strip()
        current_app.config["DATABASE_AVAILABLE"] = False
        current_app.config["DATABASE_ERROR"] = details or "Database unavailable"
        logger.warning("Database ping failed: %s", details)
        return False, details or None

    if not current_app.config.get("DATABASE_AVAILABLE", True):
        try:
            db.create_all()
        except SQLAlchemyError as exc:
            db.session.remove()
            logger.exception("Database schema could not be initialized")
            return False, str(exc)
        logger.info("Database connection restored")
    current_app.config["DATABASE_AVAILABLE"] = True
    current_app.config["DATABASE_ERROR"] = None
    return True, None


def load_full_state() -> dict[str, Any]:
    state: dict[str, Any] = {name: [] for name in LIST_COLLECTIONS}
    rows = SyncRecord.query.order_by(SyncRecord.collection, SyncRecord.position).all()
    for row in rows:
        if row.collection in state:
            state[row.collection].append(row.payload)
    state[SETTINGS_COLLECTION] = {
        setting.key: setting.value for setting in SyncSetting.query.all()
    }
    return state


def replace_collection(
    name: Any, data: Any, version: int | None = None, client_id: str = ""
) -> str:
    """Replace one collection wholesale.  The caller commits.

    Versions are compared per writer: a push is stale only when the same
    client already had a higher version of this collection accepted.
    """

    collection = canonical_collection(name)
    if collection is None:
        raise PayloadError(f"Unknown sync type: {name!r}")

    _check_version(collection, version, client_id)

    if collection == SETTINGS_COLLECTION:
        if not isinstance(data, Mapping):
            raise PayloadError("Settings must be sent as an object.")
        SyncSetting.query.delete()
        db.session.add_all(
            SyncSetting(key=str(key), value=value) for key, value in data.items()
        )
    else:
        if not isinstance(data, list):
            raise PayloadError(f"{collection} must be sent as a list.")
        SyncRecord.query.filter_by(collection=collection).delete()
        db.session.add_all(
            SyncRecord(
                collection=collection,
                record_id=_record_id(entry),
                position=position,
                payload=entry,
            )
            for position, entry in enumerate(data)
        )

    if version is not None:
        _store_version(collection, version, client_id)
    logger.info("Replaced %s (%s entries)", collection, len(data))
    return collection


def apply_full_sync(data: Any) -> list[str]:
    if not isinstance(data, Mapping):
        raise PayloadError("full_sync data must be an object keyed by collection.")

    replaced = []
    for key, value in data.items():
        collection = canonical_collection(key)
        if collection is None:
            logger.info("Ignoring unknown collection %r in full_sync", key)
            continue
        replaced.append(replace_collection(collection, value))
    return replaced


def _check_version(collection: str, version: int | None, client_id: str) -> None:
    if version is None:
        return
    row = db.session.get(CollectionVersion, (collection, client_id))
    if row is not None and version < row.version:
        raise StaleVersionError(collection, version, row.version, client_id)


def _store_version(collection: str, version: int, client_id: str) -> None:
    row = db.session.get(CollectionVersion, (collection, client_id))
    if row is None:
        row = CollectionVersion(collection=collection, client_id=client_id, version=version)
        db.session.add(row)
    else:
        row.version = version


def _record_id(entry: Any) -> str | None:
    if isinstance(entry, Mapping) and entry.get("id") is not None:
        return str(entry["id"])
    return None
