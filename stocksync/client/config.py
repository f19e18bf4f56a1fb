"""Configuration for the sync client."""
from __future__ import annotations

from dataclasses import dataclass, replace
import os
from pathlib import Path
from typing import Any, Mapping

from .remote import BackendFlavor


@dataclass(frozen=True)
class ClientConfig:
    remote_url: str
    backend_flavor: BackendFlavor
    store_path: Path
    key_prefix: str
    debounce_ms: int
    http_timeout_sec: float
    log_path: Path

    @classmethod
    def from_env(cls) -> "ClientConfig":
        return cls(
            remote_url=os.getenv("STOCKSYNC_REMOTE_URL", "").strip(),
            backend_flavor=BackendFlavor(
                os.getenv("STOCKSYNC_BACKEND_FLAVOR", "auto").strip().lower() or "auto"
            ),
            store_path=Path(
                os.getenv("STOCKSYNC_STORE_PATH", "~/.stocksync/store.db")
            ).expanduser(),
            key_prefix=os.getenv("STOCKSYNC_KEY_PREFIX", "smartstock_"),
            debounce_ms=int(os.getenv("STOCKSYNC_DEBOUNCE_MS", "1500")),
            http_timeout_sec=float(os.getenv("STOCKSYNC_HTTP_TIMEOUT", "8")),
            log_path=Path(
                os.getenv("STOCKSYNC_LOG_PATH", "~/.stocksync/stocksync.log")
            ).expanduser(),
        )

    @property
    def debounce_sec(self) -> float:
        return self.debounce_ms / 1000.0

    def with_settings(self, settings: Mapping[str, Any] | None) -> "ClientConfig":
        """Apply a remote URL saved in the settings record, if any."""

        url = settings_remote_url(settings)
        if not url:
            return self
        return replace(self, remote_url=url)


def settings_remote_url(settings: Mapping[str, Any] | None) -> str:
    if not settings:
        return ""
    for key in ("viteGasUrl", "vpsApiUrl"):
        value = settings.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""
