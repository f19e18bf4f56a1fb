"""Typed views over the JSON records held in each collection.

Collections are stored as plain JSON-compatible dicts with camelCase keys so
that whatever a backend returns survives a round trip untouched.  The
dataclasses below are used where the controller needs to build or validate
a record: new items, transactions and users coming from an entry form.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, ClassVar, Mapping

TRANSACTION_TYPES = ("IN", "OUT")
USER_ROLES = ("admin", "staff", "viewer")
ITEM_STATUSES = ("active", "inactive")


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def normalize_number(value: Any, default: int | float = 0) -> int | float:
    """Coerce ``value`` to a number, keeping integral values as ``int``."""

    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return int(value)
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number:  # NaN
        return default
    if number.is_integer():
        return int(number)
    return number


class _Record:
    _nested: ClassVar[dict[str, type]] = {}

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        for record_field in fields(self):  # type: ignore[arg-type]
            value = getattr(self, record_field.name)
            if value is None:
                continue
            if record_field.name in self._nested:
                value = [entry.to_dict() for entry in value]
            elif isinstance(value, list):
                value = list(value)
            payload[_camel(record_field.name)] = value
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]):
        kwargs: dict[str, Any] = {}
        for record_field in fields(cls):  # type: ignore[arg-type]
            key = _camel(record_field.name)
            if key not in data:
                continue
            value = data[key]
            nested = cls._nested.get(record_field.name)
            if nested is not None:
                value = [
                    nested.from_dict(entry)
                    for entry in (value or [])
                    if isinstance(entry, Mapping)
                ]
            kwargs[record_field.name] = value
        try:
            return cls(**kwargs)
        except TypeError as exc:
            # Missing required fields in soft-schema JSON.
            raise ValueError(f"{cls.__name__} record is malformed: {exc}") from exc


@dataclass
class UnitDefinition(_Record):
    name: str
    ratio: int | float = 1

    def __post_init__(self) -> None:
        self.ratio = normalize_number(self.ratio, 1)
        if not self.name:
            raise ValueError("Alternate units need a name.")
        if self.ratio <= 0:
            raise ValueError(f"Conversion ratio for {self.name} must be positive.")


@dataclass
class InventoryItem(_Record):
    id: str
    name: str
    sku: str = ""
    category: str = ""
    quantity: int | float = 0
    base_unit: str = "Pcs"
    alternative_units: list[UnitDefinition] = field(default_factory=list)
    min_level: int | float = 0
    unit_price: int | float = 0
    location: str = ""
    last_updated: str = ""
    status: str | None = None

    _nested: ClassVar[dict[str, type]] = {"alternative_units": UnitDefinition}

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Inventory items need an id.")
        self.quantity = normalize_number(self.quantity)
        self.min_level = normalize_number(self.min_level)
        self.unit_price = normalize_number(self.unit_price)
        if self.quantity < 0:
            raise ValueError("Quantity cannot be negative.")
        if self.status is not None and self.status not in ITEM_STATUSES:
            raise ValueError(f"Unknown item status {self.status!r}.")

    def ratio_for(self, unit: str | None) -> int | float:
        if not unit or unit == self.base_unit:
            return 1
        for alternative in self.alternative_units:
            if alternative.name == unit:
                return alternative.ratio
        raise ValueError(f"Unit {unit!r} is not defined for {self.name}.")


@dataclass
class TransactionItemDetail(_Record):
    item_id: str
    item_name: str = ""
    quantity_input: int | float = 0
    selected_unit: str = ""
    conversion_ratio: int | float = 1
    total_base_quantity: int | float | None = None

    def __post_init__(self) -> None:
        self.quantity_input = normalize_number(self.quantity_input)
        self.conversion_ratio = normalize_number(self.conversion_ratio, 1)
        if self.total_base_quantity is None:
            self.total_base_quantity = normalize_number(
                self.quantity_input * self.conversion_ratio
            )
        else:
            self.total_base_quantity = normalize_number(self.total_base_quantity)
        if self.total_base_quantity < 0:
            raise ValueError("Line quantities cannot be negative.")


@dataclass
class Transaction(_Record):
    id: str
    date: str
    type: str
    items: list[TransactionItemDetail] = field(default_factory=list)
    notes: str | None = None
    timestamp: str = ""
    supplier_name: str | None = None
    po_number: str | None = None
    ri_number: str | None = None
    photos: list[str] | None = None

    _nested: ClassVar[dict[str, type]] = {"items": TransactionItemDetail}

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Transactions need an id.")
        self.type = str(self.type or "").upper()
        if self.type not in TRANSACTION_TYPES:
            raise ValueError(f"Transaction type must be IN or OUT, got {self.type!r}.")

    def stock_signature(self) -> tuple:
        """Everything about the transaction that affects stock levels."""

        return (
            self.type,
            tuple(
                (line.item_id, line.total_base_quantity) for line in self.items
            ),
        )


@dataclass
class RejectItem(_Record):
    id: str
    name: str
    sku: str = ""
    base_unit: str = ""
    unit2: str | None = None
    ratio2: int | float | None = None
    unit3: str | None = None
    ratio3: int | float | None = None
    last_updated: str = ""


@dataclass
class RejectItemDetail(_Record):
    item_id: str
    item_name: str = ""
    sku: str = ""
    base_unit: str = ""
    quantity: int | float = 0
    unit: str = ""
    ratio: int | float = 1
    total_base_quantity: int | float | None = None
    reason: str = ""

    def __post_init__(self) -> None:
        self.quantity = normalize_number(self.quantity)
        self.ratio = normalize_number(self.ratio, 1)
        if self.total_base_quantity is None:
            self.total_base_quantity = normalize_number(self.quantity * self.ratio)


@dataclass
class RejectLog(_Record):
    id: str
    date: str
    items: list[RejectItemDetail] = field(default_factory=list)
    notes: str = ""
    timestamp: str = ""

    _nested: ClassVar[dict[str, type]] = {"items": RejectItemDetail}


@dataclass
class Supplier(_Record):
    id: str
    name: str
    contact_person: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""


@dataclass
class User(_Record):
    id: str
    name: str
    username: str
    role: str = "staff"
    status: str = "active"
    password: str | None = None
    last_login: str | None = None

    def __post_init__(self) -> None:
        if self.role not in USER_ROLES:
            raise ValueError(f"Unknown role {self.role!r}.")
        if self.status not in ITEM_STATUSES:
            raise ValueError(f"Unknown user status {self.status!r}.")


RECORD_TYPES: dict[str, type] = {
    "inventory": InventoryItem,
    "transactions": Transaction,
    "reject_inventory": RejectItem,
    "rejects": RejectLog,
    "suppliers": Supplier,
    "users": User,
}
