"""Command line front end for the sync client and the reference backend."""

from __future__ import annotations

import argparse
import logging
from typing import Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .client import ClientConfig, InventoryController, SyncStatus
from .client.connectivity import Badge, ConnectivityState
from .client.notifications import Notification, NotificationLevel
from .client.records import normalize_number
from .utils.sync_logging import setup_logging

logger = logging.getLogger(__name__)

console = Console()

_BADGE_STYLES = {
    ConnectivityState.CONNECTED: "bold green",
    ConnectivityState.UNKNOWN: "bold cyan",
    ConnectivityState.DISCONNECTED: "bold yellow",
    ConnectivityState.OFFLINE: "bold red",
}

_LEVEL_STYLES = {
    NotificationLevel.SUCCESS: "green",
    NotificationLevel.INFO: "cyan",
    NotificationLevel.WARNING: "yellow",
    NotificationLevel.ERROR: "red",
}


def _render_badge(badge: Badge, remote_url: str) -> Panel:
    lines = [f"[{_BADGE_STYLES[badge.state]}]{badge.label}[/]"]
    lines.append(f"Remote: {remote_url or '(not configured)'}")
    lines.append(f"Trust: {badge.trust.value}")
    if badge.message:
        lines.append(f"Last error: {badge.message}")
    return Panel("\n".join(lines), title="Connectivity", box=box.ROUNDED, padding=(1, 1))


def _render_notifications(notifications: list[Notification]) -> Panel:
    if not notifications:
        return Panel("(no notifications)", title="Notifications", box=box.ROUNDED)
    lines = []
    for note in notifications:
        suffix = f" (x{note.count})" if note.count > 1 else ""
        lines.append(f"[{_LEVEL_STYLES[note.level]}]{note.level.value.upper()}[/] {note.message}{suffix}")
    return Panel("\n".join(lines), title="Notifications", box=box.ROUNDED, padding=(1, 1))


def _render_stock(items, title: str) -> Table:
    table = Table(title=title, box=box.SIMPLE, expand=True)
    table.add_column("SKU", style="bold cyan")
    table.add_column("Item")
    table.add_column("Category")
    table.add_column("Stock", justify="right")
    table.add_column("Min", justify="right")
    table.add_column("Location")
    for item in items:
        quantity = normalize_number(item.get("quantity"))
        min_level = normalize_number(item.get("minLevel"))
        style = "red" if min_level and quantity <= min_level else None
        table.add_row(
            str(item.get("sku", "")),
            str(item.get("name", "")),
            str(item.get("category", "")),
            f"{quantity} {item.get('baseUnit', '')}".strip(),
            str(min_level),
            str(item.get("location", "")),
            style=style,
        )
    return table


def _build_controller() -> InventoryController:
    return InventoryController.from_config(ClientConfig.from_env())


def cmd_status(args: argparse.Namespace) -> int:
    controller = _build_controller()
    controller.load_local()
    remote = controller.remote
    if remote is not None:
        controller.connectivity.apply(remote.check_health())
    console.print(_render_badge(controller.badge(), controller.remote_url))
    summary = controller.stock_summary()
    console.print(
        f"Items: {summary['totalItems']}  Low stock: {summary['lowStockCount']}  "
        f"Units on hand: {summary['totalStockCount']}  Value: {summary['totalValue']}"
    )
    return 0 if controller.connectivity.state is not ConnectivityState.OFFLINE else 1


def cmd_refresh(args: argparse.Namespace) -> int:
    controller = _build_controller()
    try:
        result = controller.refresh()
    finally:
        controller.shutdown()
    console.print(_render_badge(controller.badge(), controller.remote_url))
    console.print(_render_notifications(controller.notifications.recent(10)))
    if result.missing and result.applied:
        names = ", ".join(collection.value for collection in result.missing)
        console.print(f"[yellow]Remote did not send: {names}[/]")
    return 0 if result.status in (SyncStatus.ONLINE, SyncStatus.LOCAL) else 1


def cmd_stock(args: argparse.Namespace) -> int:
    controller = _build_controller()
    controller.load_local()
    if args.low:
        console.print(_render_stock(controller.low_stock(), "Low stock"))
    else:
        console.print(_render_stock(controller.state.inventory, "Inventory"))
    return 0


def cmd_push(args: argparse.Namespace) -> int:
    controller = _build_controller()
    controller.load_local()
    result = controller.force_upload()
    style = "green" if result.success else "red"
    console.print(f"[{style}]{result.message}[/]")
    return 0 if result.success else 1


def cmd_serve(args: argparse.Namespace) -> int:
    from . import create_app

    app = create_app()
    app.run(host=args.host, port=args.port, debug=args.debug)
    return 0


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Stocksync inventory sync client")
    parser.add_argument("--log-file", default=None, help="Write client logs to this path")
    subparsers = parser.add_subparsers(dest="command", required=True)

    status = subparsers.add_parser("status", help="Probe the remote and show the connectivity badge")
    status.set_defaults(handler=cmd_status)

    refresh = subparsers.add_parser("refresh", help="Reconcile local data with the remote")
    refresh.set_defaults(handler=cmd_refresh)

    stock = subparsers.add_parser("stock", help="Show the local inventory")
    stock.add_argument("--low", action="store_true", help="Only items at or below their minimum")
    stock.set_defaults(handler=cmd_stock)

    push = subparsers.add_parser("push", help="Upload every local collection to the remote")
    push.set_defaults(handler=cmd_push)

    serve = subparsers.add_parser("serve", help="Run the reference sync backend")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=5000)
    serve.add_argument("--debug", action="store_true")
    serve.set_defaults(handler=cmd_serve)

    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    if args.command != "serve":
        log_path = setup_logging(args.log_file or ClientConfig.from_env().log_path)
        logger.info("stocksync %s (log: %s)", args.command, log_path)
    return args.handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
