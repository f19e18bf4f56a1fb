"""Clients for the remote stores the inventory can sync with.

Two backend shapes exist: a REST API in front of a SQL database and a
spreadsheet script endpoint.  Both sit behind :class:`RemoteStoreClient`; the
concrete class is chosen once by :func:`build_remote_client` when the remote
URL is configured.  No method of a client raises: every failure becomes a
``None`` payload, a failed :class:`PushResult` or an unhealthy
:class:`HealthReport`.
"""

from __future__ import annotations

import http.client
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Mapping
from urllib import error, request
from urllib.parse import urlparse

from .connectivity import BackendStatus, HealthReport
from .errors import (
    BackendError,
    ConfigurationError,
    ErrorKind,
    StocksyncError,
    TransportError,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SEC = 8.0

FULL_STATE_KEYS: tuple[str, ...] = (
    "inventory",
    "transactions",
    "reject_inventory",
    "rejects",
    "suppliers",
    "users",
    "settings",
)

FullState = dict[str, Any]


class BackendFlavor(str, Enum):
    AUTO = "auto"
    SQL = "sql"
    SPREADSHEET = "spreadsheet"


@dataclass(frozen=True)
class PushResult:
    success: bool
    message: str
    error_kind: ErrorKind = ErrorKind.NONE


@dataclass(frozen=True)
class RemoteError:
    kind: ErrorKind
    message: str


@dataclass(frozen=True)
class HttpResponse:
    status: int
    content_type: str
    body: bytes


class RemoteStoreClient(ABC):
    flavor: ClassVar[BackendFlavor]
    sync_content_type: ClassVar[str] = "application/json"
    # Keys the backend expects inside a full_sync body, where they differ.
    full_sync_keys: ClassVar[Mapping[str, str]] = {}

    def __init__(self, base_url: str, timeout: float = DEFAULT_TIMEOUT_SEC) -> None:
        self.base_url = base_url.strip()
        self.timeout = timeout
        self.last_error: RemoteError | None = None

    # -- endpoints ---------------------------------------------------------

    @property
    @abstractmethod
    def health_url(self) -> str:
        raise NotImplementedError

    @property
    @abstractmethod
    def data_url(self) -> str:
        raise NotImplementedError

    @property
    @abstractmethod
    def sync_url(self) -> str:
        raise NotImplementedError

    @abstractmethod
    def _interpret_health(
        self, response: HttpResponse, payload: Mapping[str, Any]
    ) -> HealthReport:
        raise NotImplementedError

    # -- operations --------------------------------------------------------

    def check_health(self) -> HealthReport:
        url = self.health_url
        try:
            response = self._send("GET", url)
        except TransportError as exc:
            return HealthReport(
                transport_online=False,
                backend_status=BackendStatus.UNKNOWN,
                message=f"Cannot reach {url}: {exc}",
                error_kind=ErrorKind.TRANSPORT,
            )
        except ConfigurationError as exc:
            return HealthReport(False, BackendStatus.UNKNOWN, str(exc), ErrorKind.CONFIGURATION)

        try:
            payload = self._decode_json(response)
        except StocksyncError as exc:
            return HealthReport(
                transport_online=True,
                backend_status=BackendStatus.DISCONNECTED,
                message=str(exc),
                error_kind=exc.kind,
            )
        return self._interpret_health(response, payload)

    def fetch_full_state(self) -> FullState | None:
        url = self.data_url
        logger.info("Fetching data from %s", url)
        try:
            response = self._send("GET", url)
            payload = self._decode_json(response)
            if response.status >= 400 or payload.get("status") != "success":
                raise BackendError(
                    str(payload.get("message") or f"HTTP error {response.status}"),
                    response.status,
                )
            data = payload.get("data")
            if not isinstance(data, dict):
                raise BackendError("Response did not include a data object.")
        except StocksyncError as exc:
            self.last_error = RemoteError(exc.kind, str(exc))
            logger.warning("Fetch from %s failed (%s): %s", url, exc.kind.value, exc)
            return None

        state = {key: data[key] for key in FULL_STATE_KEYS if key in data}
        missing = [key for key in FULL_STATE_KEYS if key not in data]
        if missing:
            logger.warning(
                "Remote payload from %s is missing %s; keeping local values",
                url,
                ", ".join(missing),
            )
        self.last_error = None
        return state

    def push_collection(
        self,
        collection_type: str,
        data: Any,
        *,
        version: int | None = None,
        client_id: str | None = None,
    ) -> PushResult:
        body: dict[str, Any] = {"type": collection_type, "data": data}
        if version is not None:
            body["version"] = version
        if client_id:
            body["clientId"] = client_id
        return self._post(body, collection_type)

    def push_full_state(self, state: Mapping[str, Any]) -> PushResult:
        data = {
            self.full_sync_keys.get(key, key): state[key]
            for key in FULL_STATE_KEYS
            if key in state
        }
        return self._post({"type": "full_sync", "data": data}, "full_sync")

    # -- plumbing ----------------------------------------------------------

    def _post(self, body: dict[str, Any], label: str) -> PushResult:
        try:
            encoded = json.dumps(body).encode("utf-8")
        except (TypeError, ValueError) as exc:
            return PushResult(False, f"Cannot encode {label}: {exc}")

        try:
            response = self._send("POST", self.sync_url, encoded, self.sync_content_type)
            payload = self._decode_json(response)
        except StocksyncError as exc:
            logger.warning("Sync %s failed (%s): %s", label, exc.kind.value, exc)
            return PushResult(False, str(exc), exc.kind)

        if response.status >= 400 or payload.get("status") != "success":
            message = str(payload.get("message") or f"Server error: {response.status}")
            logger.warning("Sync %s rejected: %s", label, message)
            return PushResult(False, message, ErrorKind.BACKEND)
        return PushResult(True, str(payload.get("message") or f"Sync {label} succeeded"))

    def _send(
        self,
        method: str,
        url: str,
        body: bytes | None = None,
        content_type: str | None = None,
    ) -> HttpResponse:
        headers = {"Accept": "application/json"}
        if content_type:
            headers["Content-Type"] = content_type
        try:
            req = request.Request(url, data=body, headers=headers, method=method)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid remote URL {url!r}: {exc}") from exc

        try:
            with request.urlopen(req, timeout=self.timeout) as response:
                return HttpResponse(
                    status=response.status,
                    content_type=response.headers.get("Content-Type", "") or "",
                    body=response.read(),
                )
        except error.HTTPError as exc:
            # The server answered; the status code is interpreted by the caller.
            return HttpResponse(
                status=exc.code,
                content_type=(exc.headers.get("Content-Type", "") if exc.headers else "") or "",
                body=exc.read() or b"",
            )
        except error.URLError as exc:
            raise TransportError(str(exc.reason)) from exc
        except TimeoutError as exc:
            raise TransportError(f"Timed out after {self.timeout:g}s") from exc
        except (OSError, http.client.HTTPException) as exc:
            raise TransportError(str(exc) or exc.__class__.__name__) from exc

    @staticmethod
    def _decode_json(response: HttpResponse) -> dict[str, Any]:
        text = response.body.decode("utf-8", errors="replace")
        if "text/html" in response.content_type.lower() or text.lstrip().startswith("<"):
            raise ConfigurationError(
                "Server misconfiguration: API route not found (received HTML instead "
                "of JSON). Check the reverse proxy routes for the sync API."
            )
        try:
            payload = json.loads(text)
        except ValueError as exc:
            raise BackendError(
                f"Invalid JSON from server (HTTP {response.status})", response.status
            ) from exc
        if not isinstance(payload, dict):
            raise BackendError("Unexpected response shape from server.", response.status)
        return payload


class SqlApiClient(RemoteStoreClient):
    """REST API in front of a relational database."""

    flavor = BackendFlavor.SQL

    @property
    def _root(self) -> str:
        return self.base_url.rstrip("/")

    @property
    def health_url(self) -> str:
        return f"{self._root}/"

    @property
    def data_url(self) -> str:
        return f"{self._root}/api/data"

    @property
    def sync_url(self) -> str:
        return f"{self._root}/api/sync"

    def _interpret_health(
        self, response: HttpResponse, payload: Mapping[str, Any]
    ) -> HealthReport:
        database_status = str(payload.get("database_status") or "").upper()
        if response.status < 500 and database_status.startswith("CONNECTED"):
            return HealthReport(
                transport_online=True,
                backend_status=BackendStatus.CONNECTED,
                message=str(payload.get("message") or "Server online, database connected"),
            )
        if not database_status:
            detail = payload.get("message") or f"HTTP {response.status}"
            message = f"Server did not report database status ({detail})"
        else:
            message = f"Server online but database is {database_status}"
        return HealthReport(
            transport_online=True,
            backend_status=BackendStatus.DISCONNECTED,
            message=message,
            error_kind=ErrorKind.BACKEND,
        )


class SpreadsheetScriptClient(RemoteStoreClient):
    """Spreadsheet script endpoint: one URL serves reads and writes."""

    flavor = BackendFlavor.SPREADSHEET
    sync_content_type = "text/plain;charset=utf-8"
    full_sync_keys = {"reject_inventory": "rejectItems", "rejects": "rejectLogs"}

    @property
    def health_url(self) -> str:
        return self.base_url

    @property
    def data_url(self) -> str:
        return self.base_url

    @property
    def sync_url(self) -> str:
        return self.base_url

    def _interpret_health(
        self, response: HttpResponse, payload: Mapping[str, Any]
    ) -> HealthReport:
        if response.status < 400 and payload.get("status") == "success":
            return HealthReport(
                transport_online=True,
                backend_status=BackendStatus.CONNECTED,
                message="Spreadsheet endpoint online",
            )
        return HealthReport(
            transport_online=True,
            backend_status=BackendStatus.DISCONNECTED,
            message=str(payload.get("message") or f"Spreadsheet error (HTTP {response.status})"),
            error_kind=ErrorKind.BACKEND,
        )


_CLIENTS: dict[BackendFlavor, type[RemoteStoreClient]] = {
    BackendFlavor.SQL: SqlApiClient,
    BackendFlavor.SPREADSHEET: SpreadsheetScriptClient,
}


def resolve_flavor(url: str, flavor: BackendFlavor | str = BackendFlavor.AUTO) -> BackendFlavor:
    flavor = BackendFlavor(flavor)
    if flavor is not BackendFlavor.AUTO:
        return flavor
    host = (urlparse(url).hostname or "").lower()
    if host == "script.google.com" or host.endswith(".script.google.com"):
        return BackendFlavor.SPREADSHEET
    return BackendFlavor.SQL


def build_remote_client(
    url: str | None,
    flavor: BackendFlavor | str = BackendFlavor.AUTO,
    timeout: float = DEFAULT_TIMEOUT_SEC,
) -> RemoteStoreClient | None:
    """Return the client for ``url`` or ``None`` when no remote is configured."""

    url = (url or "").strip()
    if not url:
        return None
    resolved = resolve_flavor(url, flavor)
    client = _CLIENTS[resolved](url, timeout=timeout)
    logger.info("Using %s backend at %s", resolved.value, url)
    return client
