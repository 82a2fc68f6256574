"""Vehicle, customer, document and trade-in records.

The backend speaks camelCase JSON; these dataclasses carry snake_case
attributes and convert at the edge with ``from_dict``/``to_dict``.  Keys the
dashboard does not model are kept in ``extra`` so a read-modify-write round
trip never drops backend data.  Timestamps stay as the backend's ISO strings
and are parsed on demand by the metrics and analytics modules.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any

from lot_mcp.constants import STATUS_IN_STOCK, STATUS_SOLD
from lot_mcp.normalization import is_blank, parse_amount, parse_int

_CUSTOMER_KEYS = {
    "firstName": "first_name",
    "lastName": "last_name",
    "phone": "phone",
    "notes": "notes",
    "saleDate": "sale_date",
    "paymentMethod": "payment_method",
    "paymentReference": "payment_reference",
}

_VEHICLE_TEXT_KEYS = {
    "stockNumber": "stock_number",
    "make": "make",
    "model": "model",
    "trim": "trim",
    "color": "color",
    "fleetCompany": "fleet_company",
    "operationCompany": "operation_company",
}

_VEHICLE_OPTIONAL_KEYS = {
    "dateAdded": "date_added",
    "inStockDate": "in_stock_date",
    "pickupDate": "pickup_date",
    "pickupTime": "pickup_time",
    "pickupNotes": "pickup_notes",
}

_VEHICLE_KNOWN_KEYS = (
    {"id", "vin", "year", "status", "customer", "documents", "tradeInId"}
    | set(_VEHICLE_TEXT_KEYS)
    | set(_VEHICLE_OPTIONAL_KEYS)
)

# Legacy rows stored sale fields at the top level.
_LEGACY_SALE_KEYS = ("saleDate", "saleAmount", "paymentMethod", "paymentReference")

_TRADE_IN_TEXT_KEYS = {
    "stockNumber": "stock_number",
    "make": "make",
    "model": "model",
    "trim": "trim",
    "color": "color",
    "notes": "notes",
}

_TRADE_IN_KNOWN_KEYS = (
    {"id", "vin", "year", "mileage", "pickedUp", "pickedUpDate", "dateAdded"}
    | set(_TRADE_IN_TEXT_KEYS)
)


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _optional_text(value: Any) -> str | None:
    if is_blank(value):
        return None
    return str(value)


@dataclass
class Customer:
    """Buyer details; the sale fields only matter once the vehicle is sold."""
    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    notes: str = ""
    sale_amount: float | None = None
    sale_date: str = ""
    payment_method: str = ""
    payment_reference: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def has_sale_date(self) -> bool:
        return not is_blank(self.sale_date)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Customer:
        values = {attr: _text(data.get(key)) for key, attr in _CUSTOMER_KEYS.items()}
        extra = {
            k: v for k, v in data.items() if k not in _CUSTOMER_KEYS and k != "saleAmount"
        }
        return cls(sale_amount=parse_amount(data.get("saleAmount")), extra=extra, **values)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = dict(self.extra)
        for key, attr in _CUSTOMER_KEYS.items():
            payload[key] = getattr(self, attr)
        if self.sale_amount is not None:
            payload["saleAmount"] = self.sale_amount
        return payload


@dataclass
class DocumentMeta:
    """Metadata for a file uploaded against a vehicle."""
    id: str
    file_name: str = ""
    file_size: int | None = None
    upload_date: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DocumentMeta:
        known = {"id", "fileName", "fileSize", "uploadDate"}
        return cls(
            id=_text(data.get("id")),
            file_name=_text(data.get("fileName")),
            file_size=parse_int(data.get("fileSize")),
            upload_date=_optional_text(data.get("uploadDate")),
            extra={k: v for k, v in data.items() if k not in known},
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = dict(self.extra)
        payload.update({
            "id": self.id,
            "fileName": self.file_name,
            "fileSize": self.file_size,
            "uploadDate": self.upload_date,
        })
        return payload


@dataclass
class VehicleRecord:
    """A vehicle in active inventory or in the sold archive."""
    id: int
    vin: str = ""
    stock_number: str = ""
    year: int | None = None
    make: str = ""
    model: str = ""
    trim: str = ""
    color: str = ""
    fleet_company: str = ""
    operation_company: str = ""
    status: str = STATUS_IN_STOCK
    date_added: str | None = None
    in_stock_date: str | None = None
    customer: Customer | None = None
    documents: list[DocumentMeta] = field(default_factory=list)
    pickup_date: str | None = None
    pickup_time: str | None = None
    pickup_notes: str | None = None
    trade_in_id: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def is_sold(self) -> bool:
        return self.status == STATUS_SOLD

    @property
    def title(self) -> str:
        """Composed year/make/model line, e.g. ``"2024 Subaru Outback"``."""
        year = "" if self.year is None else str(self.year)
        return f"{year} {self.make} {self.model}".strip()

    @property
    def sale_date(self) -> str | None:
        if self.customer is None or not self.customer.has_sale_date:
            return None
        return self.customer.sale_date

    @property
    def sale_amount(self) -> float:
        if self.customer is None or self.customer.sale_amount is None:
            return 0.0
        return self.customer.sale_amount

    @property
    def payment_method(self) -> str:
        return self.customer.payment_method if self.customer else ""

    @property
    def payment_reference(self) -> str:
        return self.customer.payment_reference if self.customer else ""

    def with_changes(self, **changes: Any) -> VehicleRecord:
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VehicleRecord:
        customer_raw = data.get("customer")
        customer_data = dict(customer_raw) if isinstance(customer_raw, dict) else {}
        for key in _LEGACY_SALE_KEYS:
            if is_blank(customer_data.get(key)) and not is_blank(data.get(key)):
                customer_data[key] = data[key]
        customer = Customer.from_dict(customer_data) if customer_data else None

        documents_raw = data.get("documents")
        documents = [
            DocumentMeta.from_dict(doc)
            for doc in (documents_raw if isinstance(documents_raw, list) else [])
            if isinstance(doc, dict)
        ]

        text_values = {attr: _text(data.get(key)) for key, attr in _VEHICLE_TEXT_KEYS.items()}
        optional_values = {
            attr: _optional_text(data.get(key)) for key, attr in _VEHICLE_OPTIONAL_KEYS.items()
        }
        status = _text(data.get("status")).strip().lower() or STATUS_IN_STOCK

        extra = {
            k: v
            for k, v in data.items()
            if k not in _VEHICLE_KNOWN_KEYS and k not in _LEGACY_SALE_KEYS
        }
        return cls(
            id=data.get("id"),
            vin=_text(data.get("vin")),
            year=parse_int(data.get("year")),
            status=status,
            customer=customer,
            documents=documents,
            trade_in_id=data.get("tradeInId"),
            extra=extra,
            **text_values,
            **optional_values,
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = dict(self.extra)
        payload["id"] = self.id
        payload["vin"] = self.vin
        payload["year"] = self.year
        payload["status"] = self.status
        for key, attr in _VEHICLE_TEXT_KEYS.items():
            payload[key] = getattr(self, attr)
        payload["dateAdded"] = self.date_added
        payload["inStockDate"] = self.in_stock_date
        payload["customer"] = self.customer.to_dict() if self.customer else None
        payload["documents"] = [doc.to_dict() for doc in self.documents]
        for key in ("pickupDate", "pickupTime", "pickupNotes"):
            value = getattr(self, _VEHICLE_OPTIONAL_KEYS[key])
            if value is not None:
                payload[key] = value
        if self.trade_in_id is not None:
            payload["tradeInId"] = self.trade_in_id
        return payload


@dataclass
class TradeInRecord:
    """A vehicle taken in trade, tracked until it is physically picked up."""
    id: int
    vin: str = ""
    stock_number: str = ""
    year: int | None = None
    make: str = ""
    model: str = ""
    trim: str = ""
    color: str = ""
    mileage: int = 0
    notes: str = ""
    picked_up: bool = False
    picked_up_date: str | None = None
    date_added: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def title(self) -> str:
        year = "" if self.year is None else str(self.year)
        return f"{year} {self.make} {self.model}".strip()

    def with_changes(self, **changes: Any) -> TradeInRecord:
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TradeInRecord:
        text_values = {attr: _text(data.get(key)) for key, attr in _TRADE_IN_TEXT_KEYS.items()}
        mileage = parse_int(data.get("mileage"))
        return cls(
            id=data.get("id"),
            vin=_text(data.get("vin")),
            year=parse_int(data.get("year")),
            mileage=mileage if mileage is not None and mileage >= 0 else 0,
            picked_up=bool(data.get("pickedUp")),
            picked_up_date=_optional_text(data.get("pickedUpDate")),
            date_added=_optional_text(data.get("dateAdded")),
            extra={k: v for k, v in data.items() if k not in _TRADE_IN_KNOWN_KEYS},
            **text_values,
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = dict(self.extra)
        payload["id"] = self.id
        payload["vin"] = self.vin
        payload["year"] = self.year
        for key, attr in _TRADE_IN_TEXT_KEYS.items():
            payload[key] = getattr(self, attr)
        payload["mileage"] = self.mileage
        payload["pickedUp"] = self.picked_up
        payload["pickedUpDate"] = self.picked_up_date
        payload["dateAdded"] = self.date_added
        return payload
