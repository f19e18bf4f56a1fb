import math
import os
import sys

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from stocksync.client.config import settings_remote_url
from stocksync.client.records import (
    InventoryItem,
    Transaction,
    User,
    normalize_number,
)


def test_normalize_number():
    assert normalize_number("12") == 12
    assert isinstance(normalize_number(3.0), int)
    assert normalize_number("2.5") == 2.5
    assert normalize_number(None) == 0
    assert normalize_number("", default=1) == 1
    assert normalize_number(math.nan) == 0
    assert normalize_number("abc", default=7) == 7


def test_inventory_item_round_trips_camel_case_keys():
    raw = {
        "id": "1",
        "name": "Cable",
        "sku": "CB-1",
        "quantity": "40",
        "baseUnit": "Meter",
        "alternativeUnits": [{"name": "Roll", "ratio": 20}],
        "minLevel": 10,
        "unitPrice": 1.25,
        "lastUpdated": "2024-01-01",
    }

    item = InventoryItem.from_dict(raw)

    assert item.quantity == 40
    assert item.ratio_for("Roll") == 20
    assert item.ratio_for(None) == 1
    payload = item.to_dict()
    assert payload["baseUnit"] == "Meter"
    assert payload["alternativeUnits"] == [{"name": "Roll", "ratio": 20}]
    assert "status" not in payload


def test_inventory_item_validation():
    with pytest.raises(ValueError):
        InventoryItem(id="1", name="x", quantity=-1)
    with pytest.raises(ValueError):
        InventoryItem.from_dict({"id": "1", "name": "x", "alternativeUnits": [{"name": "Box", "ratio": 0}]})


def test_transaction_type_is_normalized_and_validated():
    tx = Transaction.from_dict(
        {
            "id": "t1",
            "date": "2024-01-01",
            "type": "out",
            "items": [{"itemId": "1", "quantityInput": 2, "conversionRatio": 12}],
        }
    )

    assert tx.type == "OUT"
    assert tx.items[0].total_base_quantity == 24

    with pytest.raises(ValueError):
        Transaction(id="t2", date="2024-01-01", type="MOVE")


def test_user_role_validation():
    assert User(id="2", name="Sam", username="sam").role == "staff"
    with pytest.raises(ValueError):
        User(id="3", name="Kim", username="kim", role="owner")


def test_settings_remote_url_prefers_spreadsheet():
    settings = {"vpsApiUrl": "http://vps.local", "viteGasUrl": " https://script.google.com/macros/s/x/exec "}

    assert settings_remote_url(settings) == "https://script.google.com/macros/s/x/exec"
    assert settings_remote_url({"vpsApiUrl": "http://vps.local", "viteGasUrl": ""}) == "http://vps.local"
    assert settings_remote_url(None) == ""


def test_missing_required_fields_raise_value_error():
    with pytest.raises(ValueError, match="Transaction record is malformed"):
        Transaction.from_dict({"id": "t1", "type": "IN", "items": []})
    with pytest.raises(ValueError, match="TransactionItemDetail record is malformed"):
        Transaction.from_dict({"id": "t1", "date": "2024-01-01", "type": "IN", "items": [{"quantityInput": 2}]})
