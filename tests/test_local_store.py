import os
import sqlite3
import sys

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from stocksync.client.local_store import LocalStore


@pytest.fixture
def store(tmp_path):
    store = LocalStore(tmp_path / "store.db")
    assert store.initialize()
    return store


def test_save_and_load(store):
    assert store.save("inventory", [{"id": "1", "quantity": 3}])
    assert store.load("inventory", []) == [{"id": "1", "quantity": 3}]


def test_missing_key_returns_default(store):
    assert store.load("suppliers", ["default"]) == ["default"]


def test_keys_are_prefixed(store):
    store.save("settings", {"a": 1})

    with sqlite3.connect(store.db_path) as conn:
        keys = [row[0] for row in conn.execute("SELECT key FROM kv_store")]

    assert keys == ["smartstock_settings"]


def test_corrupt_value_returns_default(store):
    with sqlite3.connect(store.db_path) as conn:
        conn.execute(
            "INSERT INTO kv_store (key, value_json) VALUES (?, ?)",
            ("smartstock_inventory", "{not json"),
        )

    assert store.load("inventory", []) == []


def test_unserializable_value_reports_failure(store):
    assert store.save("inventory", [object()]) is False


def test_unavailable_storage_degrades(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    store = LocalStore(blocker / "nested" / "store.db")

    assert store.initialize() is False
    assert store.save("inventory", []) is False
    assert store.load("inventory", ["fallback"]) == ["fallback"]
    store.clear("inventory")


def test_clear_all_keeps_session(store):
    store.save("inventory", [1])
    store.save("users", [2])
    store.save_session({"id": "1", "username": "admin"})

    store.clear_all(["inventory", "users"])

    assert store.load("inventory", None) is None
    assert store.load("users", None) is None
    assert store.load_session() == {"id": "1", "username": "admin"}

    store.clear_session()
    assert store.load_session() is None


def test_device_id_is_stable_and_survives_clearing(store, tmp_path):
    device_id = store.device_id()

    store.clear_all(["inventory", "settings"])
    store.clear_session()

    assert store.device_id() == device_id
    assert LocalStore(tmp_path / "store.db").device_id() == device_id
    assert LocalStore(tmp_path / "other.db").device_id() != device_id
