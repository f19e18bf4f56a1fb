"""Exception hierarchy and failure classification for the sync layer."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Failure classes surfaced to the connectivity badge and notifications."""

    NONE = "none"
    TRANSPORT = "transport"
    BACKEND = "backend"
    CONFIGURATION = "configuration"
    PARTIAL_DATA = "partial_data"
    PERSISTENCE = "persistence"


class StocksyncError(Exception):
    kind: ErrorKind = ErrorKind.NONE


class TransportError(StocksyncError):
    """The remote host could not be reached (DNS, refused, timeout)."""

    kind = ErrorKind.TRANSPORT


class ConfigurationError(StocksyncError):
    """The endpoint answered with something that is not the sync API."""

    kind = ErrorKind.CONFIGURATION


class BackendError(StocksyncError):
    """The server answered but reported a logical failure."""

    kind = ErrorKind.BACKEND

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class LedgerError(StocksyncError, ValueError):
    pass


class InsufficientStockError(LedgerError):
    def __init__(self, shortages: list[str]) -> None:
        self.shortages = list(shortages)
        super().__init__("Insufficient stock: " + "; ".join(self.shortages))


class TransactionEditError(LedgerError):
    """Raised when an edit would change the stock impact of a committed transaction."""
