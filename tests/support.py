"""Test doubles shared by the client test modules."""

from __future__ import annotations

import copy
import io
import os
import sys
from urllib import error
from urllib.parse import urlparse

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from stocksync.client.connectivity import BackendStatus, HealthReport
from stocksync.client.remote import BackendFlavor, PushResult, RemoteError, RemoteStoreClient
from stocksync.client.scheduling import Scheduler


class ManualTimer:
    def __init__(self, due: float, callback) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler(Scheduler):
    """Scheduler whose clock only moves when a test calls :meth:`advance`."""

    def __init__(self) -> None:
        self.now = 0.0
        self._timers: list[ManualTimer] = []

    def call_later(self, delay, callback):
        timer = ManualTimer(self.now + delay, callback)
        self._timers.append(timer)
        return timer

    @property
    def pending(self) -> int:
        return sum(1 for timer in self._timers if not timer.cancelled)

    def clock(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [t for t in self._timers if not t.cancelled and t.due <= target + 1e-9]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self._timers.remove(timer)
            self.now = timer.due
            timer.callback()
        self.now = target


class FakeRemote(RemoteStoreClient):
    """In-process remote that records every call."""

    flavor = BackendFlavor.SQL

    def __init__(self, state=None, *, health: HealthReport | None = None) -> None:
        super().__init__("http://fake.remote")
        self.state = state if state is not None else {}
        self.health = health or HealthReport(True, BackendStatus.CONNECTED, "ok")
        self.fetch_error: RemoteError | None = None
        self.push_result = PushResult(True, "ok")
        self.pushes: list[tuple[str, object, int | None]] = []
        self.full_pushes: list[dict] = []
        self.client_ids: list[str | None] = []
        self.health_checks = 0
        self.fetch_count = 0

    @property
    def health_url(self) -> str:
        return self.base_url

    @property
    def data_url(self) -> str:
        return self.base_url

    @property
    def sync_url(self) -> str:
        return self.base_url

    def _interpret_health(self, response, payload):
        return self.health

    def check_health(self) -> HealthReport:
        self.health_checks += 1
        return self.health

    def fetch_full_state(self):
        self.fetch_count += 1
        if self.fetch_error is not None:
            self.last_error = self.fetch_error
            return None
        self.last_error = None
        return copy.deepcopy(self.state)

    def push_collection(self, collection_type, data, *, version=None, client_id=None):
        self.pushes.append((collection_type, copy.deepcopy(data), version))
        self.client_ids.append(client_id)
        return self.push_result

    def push_full_state(self, state):
        self.full_pushes.append(copy.deepcopy(dict(state)))
        return self.push_result


class FakeResponse:
    def __init__(self, status: int = 200, body: bytes = b"", content_type: str = "application/json"):
        self.status = status
        self.headers = {"Content-Type": content_type}
        self._body = body

    def read(self) -> bytes:
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False


def http_error(url: str, status: int, body: bytes, content_type: str = "application/json"):
    return error.HTTPError(url, status, "error", {"Content-Type": content_type}, io.BytesIO(body))


def flask_urlopen(client, calls: list | None = None):
    """Build a ``urlopen`` replacement that serves requests from a Flask test client."""

    def _urlopen(req, timeout=None):
        parsed = urlparse(req.full_url)
        path = parsed.path or "/"
        if parsed.query:
            path = f"{path}?{parsed.query}"
        if calls is not None:
            calls.append((req.get_method(), path))
        response = client.open(
            path,
            method=req.get_method(),
            data=req.data,
            headers=dict(req.header_items()),
        )
        if response.status_code >= 400:
            raise http_error(req.full_url, response.status_code, response.data, response.content_type)
        return FakeResponse(response.status_code, response.data, response.content_type)

    return _urlopen
