"""Stock level arithmetic driven by the transaction log."""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Any, Iterable, Mapping, Sequence

from .errors import TransactionEditError
from .records import InventoryItem, Transaction, TransactionItemDetail, normalize_number

logger = logging.getLogger(__name__)


def signed_delta(transaction_type: str, total_base_quantity: int | float) -> int | float:
    quantity = normalize_number(total_base_quantity)
    return quantity if transaction_type == "IN" else -quantity


def _index_by_id(items: Sequence[Mapping[str, Any]]) -> dict[str, int]:
    index: dict[str, int] = {}
    for position, item in enumerate(items):
        item_id = str(item.get("id", ""))
        # First match wins when a backend returns duplicate ids.
        index.setdefault(item_id, position)
    return index


def apply_transaction(
    items: Sequence[Mapping[str, Any]],
    transaction: Transaction,
    *,
    timestamp: str | None = None,
) -> list[dict[str, Any]]:
    """Return a new item list with ``transaction`` applied exactly once.

    Quantities are clamped at zero.  Lines that reference an unknown item are
    skipped, and records that are not touched are returned as-is.
    """

    updated: list[Any] = list(items)
    index = _index_by_id(updated)

    for line in transaction.items:
        position = index.get(str(line.item_id))
        if position is None:
            logger.info(
                "Skipping line for unknown item %s in transaction %s",
                line.item_id,
                transaction.id,
            )
            continue

        record = dict(updated[position])
        current = normalize_number(record.get("quantity"))
        delta = signed_delta(transaction.type, line.total_base_quantity)
        proposed = normalize_number(current + delta)
        if proposed < 0:
            logger.warning(
                "Clamped stock for item %s at zero (had %s, %s %s)",
                line.item_id,
                current,
                transaction.type,
                line.total_base_quantity,
            )
        record["quantity"] = max(0, proposed)
        if timestamp is not None:
            record["lastUpdated"] = timestamp
        updated[position] = record

    return updated


def build_line_item(
    item: InventoryItem | Mapping[str, Any],
    quantity_input: int | float,
    unit: str | None = None,
) -> TransactionItemDetail:
    """Build a transaction line, converting ``quantity_input`` to base units."""

    if not isinstance(item, InventoryItem):
        item = InventoryItem.from_dict(item)

    quantity = normalize_number(quantity_input)
    if quantity <= 0:
        raise ValueError("Enter a quantity greater than zero.")

    ratio = item.ratio_for(unit)
    return TransactionItemDetail(
        item_id=item.id,
        item_name=item.name,
        quantity_input=quantity,
        selected_unit=unit or item.base_unit,
        conversion_ratio=ratio,
        total_base_quantity=normalize_number(quantity * ratio),
    )


def find_shortages(
    items: Sequence[Mapping[str, Any]], transaction: Transaction
) -> list[str]:
    """Describe every item an OUT transaction would over-draw."""

    if transaction.type != "OUT":
        return []

    requested: "OrderedDict[str, int | float]" = OrderedDict()
    for line in transaction.items:
        item_id = str(line.item_id)
        requested[item_id] = normalize_number(
            requested.get(item_id, 0) + line.total_base_quantity
        )

    index = _index_by_id(items)
    shortages = []
    for item_id, amount in requested.items():
        position = index.get(item_id)
        if position is None:
            continue
        item = items[position]
        available = normalize_number(item.get("quantity"))
        if amount > available:
            unit = f" {item['baseUnit']}" if item.get("baseUnit") else ""
            shortages.append(
                f"{item.get('name') or item_id}: requested {amount}{unit}, "
                f"available {available}{unit}"
            )
    return shortages


def ensure_stock_neutral_edit(original: Transaction, edited: Transaction) -> None:
    if original.stock_signature() != edited.stock_signature():
        raise TransactionEditError(
            f"Transaction {original.id} is already committed; its type, items "
            "and quantities cannot change. Record a correcting transaction instead."
        )


def item_history(
    transactions: Iterable[Mapping[str, Any]], item_id: str
) -> list[dict[str, Any]]:
    """Flatten the movements of one item, newest first."""

    entries = []
    for raw in transactions:
        transaction_type = str(raw.get("type", "")).upper()
        for line in raw.get("items") or []:
            if str(line.get("itemId")) != str(item_id):
                continue
            total = normalize_number(line.get("totalBaseQuantity"))
            entries.append(
                {
                    "transactionId": raw.get("id"),
                    "date": raw.get("date", ""),
                    "timestamp": raw.get("timestamp", ""),
                    "type": transaction_type,
                    "itemName": line.get("itemName", ""),
                    "quantityInput": normalize_number(line.get("quantityInput")),
                    "selectedUnit": line.get("selectedUnit", ""),
                    "totalBaseQuantity": total,
                    "delta": signed_delta(transaction_type, total),
                    "notes": raw.get("notes") or "",
                }
            )
    entries.sort(key=lambda entry: (entry["date"], entry["timestamp"]), reverse=True)
    return entries


def low_stock(items: Iterable[Mapping[str, Any]]) -> list[Mapping[str, Any]]:
    flagged = []
    for item in items:
        if item.get("status") == "inactive":
            continue
        min_level = normalize_number(item.get("minLevel"))
        if min_level > 0 and normalize_number(item.get("quantity")) <= min_level:
            flagged.append(item)
    flagged.sort(
        key=lambda item: normalize_number(item.get("quantity"))
        / normalize_number(item.get("minLevel"), 1)
    )
    return flagged


def stock_summary(items: Sequence[Mapping[str, Any]]) -> dict[str, int | float]:
    total_value = 0.0
    total_stock = 0
    for item in items:
        quantity = normalize_number(item.get("quantity"))
        total_stock += quantity
        total_value += quantity * normalize_number(item.get("unitPrice"))
    return {
        "totalItems": len(items),
        "lowStockCount": len(low_stock(items)),
        "totalValue": normalize_number(round(total_value, 2)),
        "totalStockCount": normalize_number(total_stock),
    }
