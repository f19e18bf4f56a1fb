"""Log handlers for the sync backend and the command line client."""

from __future__ import annotations

import logging
import sys
import tempfile
from logging.handlers import RotatingFileHandler
from pathlib import Path

from flask import Flask, g, has_request_context, request

DEFAULT_CLIENT_LOG_PATH = Path.home() / ".stocksync" / "stocksync.log"
FALLBACK_CLIENT_LOG_PATH = Path(tempfile.gettempdir()) / "stocksync.log"

SERVER_LOG_NAME = "sync_server.log"
SERVER_LOG_FORMAT = "%(asctime)s %(levelname)-7s %(sync_request)s %(name)s: %(message)s"
CLIENT_LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

_STDOUT_HANDLER = "stocksync.stdout"
_FILE_HANDLER = "stocksync.file"


class SyncRequestFilter(logging.Filter):
    """Tag records with the request id and route, or ``-`` outside a request."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            request_id = getattr(g, "request_id", None) or "-"
            record.sync_request = f"[{request_id} {request.method} {request.path}]"
        else:
            record.sync_request = "[-]"
        return True


def server_log_path(app: Flask) -> Path:
    log_dir = app.config.get("LOG_DIR") or Path(app.root_path).parent / "logs"
    return Path(log_dir) / SERVER_LOG_NAME


def _named_handler(logger: logging.Logger, name: str) -> logging.Handler | None:
    for handler in logger.handlers:
        if handler.get_name() == name:
            return handler
    return None


def _install(logger: logging.Logger, name: str, handler: logging.Handler) -> None:
    handler.set_name(name)
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(SERVER_LOG_FORMAT))
    handler.addFilter(SyncRequestFilter())
    logger.addHandler(handler)


def configure_logging(app: Flask) -> Path | None:
    """Log backend records to stdout and a rotating file.

    Handlers are installed once per process and found again by name, so
    repeated ``create_app`` calls do not duplicate output.  Returns the file
    path, or ``None`` when the log directory cannot be written.
    """

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)

    if _named_handler(root_logger, _STDOUT_HANDLER) is None:
        _install(root_logger, _STDOUT_HANDLER, logging.StreamHandler(sys.stdout))

    log_path: Path | None = server_log_path(app)
    current = _named_handler(root_logger, _FILE_HANDLER)
    if current is not None and getattr(current, "baseFilename", "") != str(log_path):
        root_logger.removeHandler(current)
        current.close()
        current = None
    if current is None:
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(log_path, maxBytes=2 * 1024 * 1024, backupCount=3)
        except OSError as exc:
            app.logger.warning("Server file log disabled (%s): %s", log_path, exc)
            log_path = None
        else:
            _install(root_logger, _FILE_HANDLER, file_handler)

    app.logger.setLevel(logging.INFO)
    for name in ("werkzeug", "gunicorn.error", "gunicorn.access"):
        logging.getLogger(name).setLevel(logging.INFO)
    return log_path


def setup_logging(log_path: Path | str | None = None) -> Path:
    """File logging for the CLI client, falling back to a temp file then stderr."""

    target = Path(log_path).expanduser() if log_path else DEFAULT_CLIENT_LOG_PATH
    logger = logging.getLogger()
    logger.setLevel(logging.INFO)

    handler = _create_file_handler(target)
    if handler is None:
        handler = _create_file_handler(FALLBACK_CLIENT_LOG_PATH)
        if handler is not None:
            target = FALLBACK_CLIENT_LOG_PATH

    if handler is None:
        logging.basicConfig(level=logging.INFO, format=CLIENT_LOG_FORMAT)
        return target

    handler.setFormatter(logging.Formatter(CLIENT_LOG_FORMAT))
    logger.handlers.clear()
    logger.addHandler(handler)
    return target


def _create_file_handler(path: Path) -> logging.Handler | None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(path)
    except OSError:
        return None
