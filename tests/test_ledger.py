import os
import random
import sys

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from stocksync.client import ledger
from stocksync.client.errors import TransactionEditError
from stocksync.client.records import InventoryItem, Transaction, TransactionItemDetail


def _tx(tx_type, *lines, tx_id="t1", date="2024-05-01"):
    return Transaction(
        id=tx_id,
        date=date,
        type=tx_type,
        items=[
            TransactionItemDetail(item_id=item_id, total_base_quantity=qty)
            for item_id, qty in lines
        ],
    )


def test_out_transaction_clamps_at_zero():
    items = [{"id": "7", "name": "Bolt", "quantity": 18, "baseUnit": "Pcs"}]

    updated = ledger.apply_transaction(items, _tx("OUT", ("7", 25)))

    assert updated[0]["quantity"] == 0
    assert items[0]["quantity"] == 18


def test_in_transaction_adds_and_stamps_last_updated():
    items = [{"id": "1", "quantity": 5}, {"id": "2", "quantity": 1}]

    updated = ledger.apply_transaction(
        items, _tx("IN", ("1", 10)), timestamp="2024-05-01T10:00:00.000Z"
    )

    assert updated[0]["quantity"] == 15
    assert updated[0]["lastUpdated"] == "2024-05-01T10:00:00.000Z"
    assert updated[1] is items[1]


def test_unknown_item_is_skipped():
    items = [{"id": "1", "quantity": 5}]

    updated = ledger.apply_transaction(items, _tx("OUT", ("missing", 3), ("1", 2)))

    assert [item["quantity"] for item in updated] == [3]


def test_repeated_lines_for_one_item_apply_cumulatively():
    items = [{"id": "1", "quantity": 10}]

    updated = ledger.apply_transaction(items, _tx("OUT", ("1", 4), ("1", 4)))

    assert updated[0]["quantity"] == 2


def test_quantity_never_negative_for_random_sequences():
    rng = random.Random(1234)
    items = [{"id": str(i), "quantity": rng.randint(0, 20)} for i in range(5)]

    for step in range(300):
        tx_type = rng.choice(["IN", "OUT"])
        lines = [(str(rng.randrange(5)), rng.randint(0, 40)) for _ in range(rng.randint(1, 3))]
        items = ledger.apply_transaction(items, _tx(tx_type, *lines, tx_id=f"t{step}"))
        assert all(item["quantity"] >= 0 for item in items)


def test_build_line_item_converts_alternate_units():
    item = {
        "id": "9",
        "name": "Cable",
        "quantity": 100,
        "baseUnit": "Meter",
        "alternativeUnits": [{"name": "Roll", "ratio": 50}],
    }

    line = ledger.build_line_item(item, 3, "Roll")

    assert line.total_base_quantity == 150
    assert line.conversion_ratio == 50
    assert line.item_name == "Cable"

    one_roll = ledger.build_line_item(item, 1, "Roll")
    updated = ledger.apply_transaction(
        [item], Transaction(id="x", date="2024-01-01", type="OUT", items=[one_roll])
    )
    assert updated[0]["quantity"] == 50

    restocked = ledger.apply_transaction([item], Transaction(id="y", date="2024-01-01", type="IN", items=[line]))
    assert restocked[0]["quantity"] == 250


def test_build_line_item_base_unit_ratio_is_one():
    item = InventoryItem(id="1", name="Nut", quantity=4, base_unit="Pcs")

    line = ledger.build_line_item(item, 6)

    assert line.selected_unit == "Pcs"
    assert line.total_base_quantity == 6


def test_build_line_item_rejects_unknown_unit_and_zero_quantity():
    item = {"id": "1", "name": "Nut", "baseUnit": "Pcs"}

    with pytest.raises(ValueError):
        ledger.build_line_item(item, 1, "Crate")
    with pytest.raises(ValueError):
        ledger.build_line_item(item, 0)


def test_find_shortages_sums_lines_per_item():
    items = [
        {"id": "1", "name": "Bolt", "quantity": 10, "baseUnit": "Pcs"},
        {"id": "2", "name": "Nut", "quantity": 50, "baseUnit": "Pcs"},
    ]
    tx = _tx("OUT", ("1", 6), ("1", 6), ("2", 5))

    shortages = ledger.find_shortages(items, tx)

    assert shortages == ["Bolt: requested 12 Pcs, available 10 Pcs"]
    assert ledger.find_shortages(items, _tx("IN", ("1", 600))) == []


def test_stock_neutral_edit_allows_metadata_only():
    original = _tx("IN", ("1", 5))
    edited = Transaction(
        id="t1",
        date="2024-05-02",
        type="IN",
        items=list(original.items),
        notes="corrected note",
    )
    ledger.ensure_stock_neutral_edit(original, edited)

    with pytest.raises(TransactionEditError):
        ledger.ensure_stock_neutral_edit(original, _tx("IN", ("1", 6)))
    with pytest.raises(TransactionEditError):
        ledger.ensure_stock_neutral_edit(original, _tx("OUT", ("1", 5)))


def test_item_history_is_newest_first_with_signed_delta():
    transactions = [
        _tx("IN", ("1", 10), tx_id="a", date="2024-01-01").to_dict(),
        _tx("OUT", ("1", 4), ("2", 1), tx_id="b", date="2024-02-01").to_dict(),
        _tx("OUT", ("2", 1), tx_id="c", date="2024-03-01").to_dict(),
    ]

    history = ledger.item_history(transactions, "1")

    assert [entry["transactionId"] for entry in history] == ["b", "a"]
    assert [entry["delta"] for entry in history] == [-4, 10]


def test_low_stock_and_summary():
    items = [
        {"id": "1", "quantity": 2, "minLevel": 10, "unitPrice": 1.5},
        {"id": "2", "quantity": 5, "minLevel": 5, "unitPrice": 2},
        {"id": "3", "quantity": 50, "minLevel": 5},
        {"id": "4", "quantity": 0, "minLevel": 0},
        {"id": "5", "quantity": 0, "minLevel": 3, "status": "inactive"},
    ]

    assert [item["id"] for item in ledger.low_stock(items)] == ["1", "2"]

    summary = ledger.stock_summary(items)
    assert summary["totalItems"] == 5
    assert summary["lowStockCount"] == 2
    assert summary["totalStockCount"] == 57
    assert summary["totalValue"] == 13
