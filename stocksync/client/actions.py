"""Actions understood by the controller and the reducer that applies them.

``reduce`` is pure: it never touches storage, the network or timers.  It
returns the next state plus the collections whose value changed so that the
controller can hand exactly those to the mutation pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Union

from . import ledger
from .records import Transaction
from .state import AppState, Collection


@dataclass(frozen=True)
class AddRecord:
    collection: Collection
    record: Mapping[str, Any]


@dataclass(frozen=True)
class UpdateRecord:
    collection: Collection
    record: Mapping[str, Any]


@dataclass(frozen=True)
class DeleteRecord:
    collection: Collection
    record_id: str


@dataclass(frozen=True)
class ReplaceCollection:
    collection: Collection
    value: Any


@dataclass(frozen=True)
class ProcessTransaction:
    transaction: Transaction
    timestamp: str


@dataclass(frozen=True)
class EditTransaction:
    transaction: Transaction


@dataclass(frozen=True)
class MergeSettings:
    changes: Mapping[str, Any]


@dataclass(frozen=True)
class ToggleColumn:
    module: str
    column_id: str


Action = Union[
    AddRecord,
    UpdateRecord,
    DeleteRecord,
    ReplaceCollection,
    ProcessTransaction,
    EditTransaction,
    MergeSettings,
    ToggleColumn,
]

Changes = tuple[Collection, ...]


def _require_list_collection(collection: Collection) -> None:
    if collection.is_mapping:
        raise ValueError(f"{collection.value} is not a record collection.")


def _find(records: list, record_id: str) -> int | None:
    for position, record in enumerate(records):
        if str(record.get("id")) == str(record_id):
            return position
    return None


def reduce(state: AppState, action: Action) -> tuple[AppState, Changes]:
    if isinstance(action, AddRecord):
        _require_list_collection(action.collection)
        current = state.get(action.collection)
        record = dict(action.record)
        if action.collection.newest_first:
            value = [record, *current]
        else:
            value = [*current, record]
        return state.with_value(action.collection, value), (action.collection,)

    if isinstance(action, UpdateRecord):
        _require_list_collection(action.collection)
        current = state.get(action.collection)
        position = _find(current, action.record.get("id"))
        if position is None:
            return state, ()
        value = list(current)
        value[position] = dict(action.record)
        return state.with_value(action.collection, value), (action.collection,)

    if isinstance(action, DeleteRecord):
        _require_list_collection(action.collection)
        current = state.get(action.collection)
        value = [record for record in current if str(record.get("id")) != str(action.record_id)]
        if len(value) == len(current):
            return state, ()
        return state.with_value(action.collection, value), (action.collection,)

    if isinstance(action, ReplaceCollection):
        return state.with_value(action.collection, action.value), (action.collection,)

    if isinstance(action, ProcessTransaction):
        inventory = ledger.apply_transaction(
            state.inventory, action.transaction, timestamp=action.timestamp
        )
        transactions = [action.transaction.to_dict(), *state.transactions]
        next_state = state.with_value(Collection.INVENTORY, inventory).with_value(
            Collection.TRANSACTIONS, transactions
        )
        return next_state, (Collection.INVENTORY, Collection.TRANSACTIONS)

    if isinstance(action, EditTransaction):
        position = _find(state.transactions, action.transaction.id)
        if position is None:
            return state, ()
        original = Transaction.from_dict(state.transactions[position])
        ledger.ensure_stock_neutral_edit(original, action.transaction)
        record = action.transaction.to_dict()
        if not record.get("timestamp"):
            record["timestamp"] = state.transactions[position].get("timestamp", "")
        transactions = list(state.transactions)
        transactions[position] = record
        return state.with_value(Collection.TRANSACTIONS, transactions), (
            Collection.TRANSACTIONS,
        )

    if isinstance(action, MergeSettings):
        settings = {**state.settings, **dict(action.changes)}
        if settings == state.settings:
            return state, ()
        return state.with_value(Collection.SETTINGS, settings), (Collection.SETTINGS,)

    if isinstance(action, ToggleColumn):
        prefs = dict(state.table_prefs)
        columns = prefs.get(action.module)
        if columns is None:
            raise ValueError(f"Unknown table module {action.module!r}.")
        prefs[action.module] = [
            {**column, "visible": not column.get("visible", True)}
            if column.get("id") == action.column_id
            else column
            for column in columns
        ]
        return state.with_value(Collection.TABLE_PREFS, prefs), (Collection.TABLE_PREFS,)

    raise TypeError(f"Unsupported action {action!r}")
