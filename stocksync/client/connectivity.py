"""Connectivity classification and the trust level derived from it."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from .errors import ErrorKind

logger = logging.getLogger(__name__)


class BackendStatus(str, Enum):
    CONNECTED = "CONNECTED"
    DISCONNECTED = "DISCONNECTED"
    UNKNOWN = "UNKNOWN"


class ConnectivityState(str, Enum):
    UNKNOWN = "UNKNOWN"
    CONNECTED = "CONNECTED"
    DISCONNECTED = "DISCONNECTED"
    OFFLINE = "OFFLINE"


class TrustLevel(str, Enum):
    REMOTE = "remote"
    LOCAL_ONLY = "local_only"


@dataclass(frozen=True)
class HealthReport:
    transport_online: bool
    backend_status: BackendStatus
    message: str
    error_kind: ErrorKind = ErrorKind.NONE


@dataclass(frozen=True)
class Badge:
    label: str
    state: ConnectivityState
    trust: TrustLevel
    message: str | None


_BADGE_LABELS = {
    ConnectivityState.CONNECTED: "Cloud Active",
    ConnectivityState.UNKNOWN: "Local Mode",
    ConnectivityState.DISCONNECTED: "Server Degraded",
    ConnectivityState.OFFLINE: "Offline",
}


def classify(report: HealthReport) -> ConnectivityState:
    if not report.transport_online:
        return ConnectivityState.OFFLINE
    if report.backend_status is BackendStatus.CONNECTED:
        return ConnectivityState.CONNECTED
    # Reachable server that cannot vouch for its data store.
    return ConnectivityState.DISCONNECTED


def trust_level(state: ConnectivityState) -> TrustLevel:
    if state is ConnectivityState.CONNECTED:
        return TrustLevel.REMOTE
    return TrustLevel.LOCAL_ONLY


class ConnectivityMonitor:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = ConnectivityState.UNKNOWN
        self._last_error: str | None = None
        self._last_error_kind = ErrorKind.NONE
        self._last_checked: datetime | None = None

    @property
    def state(self) -> ConnectivityState:
        with self._lock:
            return self._state

    @property
    def allows_push(self) -> bool:
        return trust_level(self.state) is TrustLevel.REMOTE

    @property
    def last_error(self) -> str | None:
        with self._lock:
            return self._last_error

    @property
    def last_error_kind(self) -> ErrorKind:
        with self._lock:
            return self._last_error_kind

    @property
    def last_checked(self) -> datetime | None:
        with self._lock:
            return self._last_checked

    def apply(self, report: HealthReport) -> ConnectivityState:
        new_state = classify(report)
        if new_state is ConnectivityState.CONNECTED:
            self._transition(new_state, None, ErrorKind.NONE)
        else:
            kind = report.error_kind
            if kind is ErrorKind.NONE:
                kind = (
                    ErrorKind.TRANSPORT
                    if new_state is ConnectivityState.OFFLINE
                    else ErrorKind.BACKEND
                )
            self._transition(new_state, report.message, kind)
        return new_state

    def mark_offline(self, message: str, kind: ErrorKind = ErrorKind.TRANSPORT) -> None:
        self._transition(ConnectivityState.OFFLINE, message, kind)

    def reset(self) -> None:
        self._transition(ConnectivityState.UNKNOWN, None, ErrorKind.NONE)

    def badge(self) -> Badge:
        with self._lock:
            state = self._state
            message = self._last_error
        return Badge(
            label=_BADGE_LABELS[state],
            state=state,
            trust=trust_level(state),
            message=message,
        )

    def _transition(
        self, state: ConnectivityState, message: str | None, kind: ErrorKind
    ) -> None:
        with self._lock:
            previous = self._state
            self._state = state
            self._last_error = message
            self._last_error_kind = kind
            self._last_checked = datetime.now(timezone.utc)
        if previous is not state:
            logger.info("Connectivity %s -> %s", previous.value, state.value)
