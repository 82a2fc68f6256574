"""CSV export for the dashboard views and the full re-importable layout."""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable, Sequence
from datetime import date
from typing import Any

from lot_mcp.constants import CSV_HEADERS, MONTH_NAMES
from lot_mcp.data.records import TradeInRecord, VehicleRecord
from lot_mcp.normalization import parse_local_date

INVENTORY_HEADERS = (
    "Stock #", "VIN", "Year", "Make", "Model", "Trim", "Color", "Status",
    "Fleet Company", "Operation Company",
)

SOLD_HEADERS = (
    "Stock #", "Year", "Make", "Model", "Trim", "VIN", "Color", "Fleet Company",
    "Operation Company", "Customer Name", "Sale Date", "Sale Amount",
    "Payment Method", "Payment Reference",
)

PAYMENT_HEADERS = (
    "Stock #", "Year", "Make", "Model", "VIN", "Customer Name", "Sale Date",
    "Sale Amount", "Payment Method", "Payment Reference",
)

TRADE_IN_HEADERS = ("Stock #", "VIN", "Year", "Make", "Model", "Mileage", "Status")


def write_csv(headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    """Render rows with every field quoted."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow(["" if value is None else value for value in row])
    return buffer.getvalue()


def display_date(value: Any) -> str:
    """``M/D/YYYY`` for a stored timestamp, empty when absent."""
    day = parse_local_date(value)
    if day is None:
        return ""
    return f"{day.month}/{day.day}/{day.year}"


def display_amount(amount: float | None) -> str:
    if not amount:
        return ""
    return f"${amount:.2f}"


def _customer_name(record: VehicleRecord) -> str:
    return record.customer.full_name if record.customer else ""


def inventory_csv(records: list[VehicleRecord]) -> str:
    return write_csv(
        INVENTORY_HEADERS,
        (
            (
                r.stock_number, r.vin, r.year, r.make, r.model, r.trim, r.color,
                r.status, r.fleet_company, r.operation_company,
            )
            for r in records
        ),
    )


def sold_csv(records: list[VehicleRecord]) -> str:
    return write_csv(
        SOLD_HEADERS,
        (
            (
                r.stock_number, r.year, r.make, r.model, r.trim, r.vin, r.color,
                r.fleet_company, r.operation_company, _customer_name(r),
                display_date(r.sale_date), display_amount(r.sale_amount),
                r.payment_method, r.payment_reference,
            )
            for r in records
        ),
    )


def payments_csv(records: list[VehicleRecord]) -> str:
    return write_csv(
        PAYMENT_HEADERS,
        (
            (
                r.stock_number, r.year, r.make, r.model, r.vin, _customer_name(r),
                display_date(r.sale_date), f"${r.sale_amount:.2f}",
                r.payment_method, r.payment_reference,
            )
            for r in records
        ),
    )


def trade_ins_csv(records: list[TradeInRecord]) -> str:
    return write_csv(
        TRADE_IN_HEADERS,
        (
            (
                t.stock_number, t.vin, t.year, t.make, t.model, t.mileage,
                "Picked Up" if t.picked_up else "Pending",
            )
            for t in records
        ),
    )


def full_csv(records: list[VehicleRecord]) -> str:
    """Every vehicle field in import-header order, so the file re-imports."""

    def _row(r: VehicleRecord) -> tuple[Any, ...]:
        customer = r.customer
        sale_amount = customer.sale_amount if customer else None
        return (
            r.stock_number, r.vin, r.year, r.make, r.model, r.trim, r.color,
            r.fleet_company, r.operation_company, r.status,
            _iso_date(r.in_stock_date),
            customer.first_name if customer else "",
            customer.last_name if customer else "",
            customer.phone if customer else "",
            _iso_date(r.sale_date),
            "" if sale_amount is None else f"{sale_amount:.2f}".rstrip("0").rstrip("."),
            r.payment_method,
            r.payment_reference,
        )

    return write_csv(CSV_HEADERS, (_row(r) for r in records))


def _iso_date(value: Any) -> str:
    day = parse_local_date(value)
    return day.isoformat() if day else ""


def payments_filename(month: int | None = None, year: int | None = None) -> str:
    """``payments[-Month][-YYYY].csv`` for the active payments filter."""
    name = "payments"
    if month:
        name += f"-{MONTH_NAMES[month - 1]}"
    if year:
        name += f"-{year}"
    return f"{name}.csv"


def export_filename(kind: str, today: date | None = None) -> str:
    return f"{kind}-export-{(today or date.today()).isoformat()}.csv"
