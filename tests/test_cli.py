import io
import logging
import os
import sys

import pytest
from rich.console import Console

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from stocksync import cli
from stocksync.client.local_store import LocalStore


@pytest.fixture
def output(monkeypatch):
    buffer = io.StringIO()
    monkeypatch.setattr(cli, "console", Console(file=buffer, width=160, color_system=None))
    return buffer


@pytest.fixture
def env(tmp_path, monkeypatch):
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level

    monkeypatch.delenv("STOCKSYNC_REMOTE_URL", raising=False)
    monkeypatch.setenv("STOCKSYNC_STORE_PATH", str(tmp_path / "store.db"))
    monkeypatch.setenv("STOCKSYNC_LOG_PATH", str(tmp_path / "logs" / "client.log"))
    yield tmp_path

    for handler in root.handlers:
        if handler not in saved_handlers:
            handler.close()
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)


def _seed(tmp_path):
    store = LocalStore(tmp_path / "store.db")
    store.initialize()
    store.save(
        "inventory",
        [
            {"id": "1", "sku": "B-1", "name": "Bolt", "quantity": 2, "minLevel": 10, "baseUnit": "Pcs"},
            {"id": "2", "sku": "N-1", "name": "Nut", "quantity": 50, "minLevel": 10, "baseUnit": "Pcs"},
        ],
    )


def test_stock_lists_local_inventory(env, output):
    _seed(env)

    assert cli.main(["stock"]) == 0

    text = output.getvalue()
    assert "Bolt" in text
    assert "Nut" in text
    assert (env / "logs" / "client.log").exists()


def test_stock_low_filters_items(env, output):
    _seed(env)

    assert cli.main(["--log-file", str(env / "other.log"), "stock", "--low"]) == 0

    text = output.getvalue()
    assert "Bolt" in text
    assert "Nut" not in text
    assert (env / "other.log").exists()


def test_status_without_remote_is_local_mode(env, output):
    _seed(env)

    assert cli.main(["status"]) == 0

    text = output.getvalue()
    assert "Local Mode" in text
    assert "(not configured)" in text
    assert "Items: 2" in text
    assert "Low stock: 1" in text


def test_push_without_remote_fails(env, output):
    assert cli.main(["push"]) == 1
    assert "No remote store configured" in output.getvalue()


def test_refresh_without_remote_succeeds(env, output):
    _seed(env)

    assert cli.main(["refresh"]) == 0
    assert "Local Mode" in output.getvalue()


def test_command_is_required():
    with pytest.raises(SystemExit):
        cli.parse_args([])
