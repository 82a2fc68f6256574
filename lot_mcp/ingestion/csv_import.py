"""CSV import reconciler.

Turns an uploaded CSV into vehicle records, validates every row on its own,
routes rows with sale information to the sold archive, and skips VINs that
already exist in either collection (or earlier in the same file).  Rows are
created one request at a time and a failing row never stops the batch.

Row numbers in messages count non-blank lines from 1, so the header is row 1
and the first data row is row 2.
"""

from __future__ import annotations

import csv
import itertools
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from lot_mcp.clients.dashboard import COLLECTION_INVENTORY, COLLECTION_SOLD, DashboardAPIError
from lot_mcp.constants import (
    CSV_HEADERS,
    IMPORT_YEAR_MAX,
    IMPORT_YEAR_MIN,
    REQUIRED_CSV_HEADERS,
    STATUS_IN_STOCK,
    STATUS_IN_TRANSIT,
    STATUS_SOLD,
)
from lot_mcp.data.backend import InventoryBackend
from lot_mcp.data.records import Customer, VehicleRecord
from lot_mcp.metrics import auto_stock_number
from lot_mcp.normalization import (
    is_blank,
    is_valid_vin,
    local_midnight_iso,
    normalize_status,
    normalize_vin,
    parse_amount,
    parse_int,
    utc_now_iso,
)

logger = logging.getLogger(__name__)

EXAMPLE_CSV_FILENAME = "vehicle-import-template.csv"

_EXAMPLE_ROWS: tuple[tuple[str, ...], ...] = (
    ("SUB001", "1HGBH41JXMN109186", "2024", "Subaru", "Outback", "Premium",
     "Crystal White Pearl", "Acme Fleet", "Northeast Operations", "in-stock",
     "2024-01-15", "", "", "", "", "", "", ""),
    ("SUB002", "4S4BTANC5M3128456", "2024", "Subaru", "Forester", "Sport",
     "Magnetite Gray Metallic", "ABC Rentals", "West Coast Ops", "in-transit",
     "2024-01-20", "", "", "", "", "", "", ""),
    ("SUB003", "JF2SKAGC8MH523789", "2023", "Subaru", "Crosstrek", "Limited",
     "Horizon Blue Pearl", "Enterprise Fleet", "Southern Region", "sold",
     "2023-12-10", "John", "Smith", "555-123-4567", "2024-01-05", "28500", "ACH",
     "TXN123456"),
    ("SUB004", "4S3GTAA68M1742590", "2024", "Subaru", "Ascent", "Touring",
     "Autumn Green Metallic", "", "", "sold", "2024-01-10", "Jane", "Doe",
     "555-987-6543", "2024-01-18", "35000", "Check", "CHK789012"),
)

_CUSTOMER_COLUMNS = ("Customer First Name", "Customer Last Name", "Customer Phone")
_SALE_COLUMNS = ("Sale Date", "Sale Amount", "Payment Method", "Payment Reference")


class CSVImportError(ValueError):
    """The file as a whole cannot be imported (empty, or missing columns)."""


@dataclass
class ImportCandidate:
    """A row that passed validation, with its destination decided."""
    row: int
    record: VehicleRecord
    sold: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "row": self.row,
            "stock_number": self.record.stock_number,
            "vin": self.record.vin,
            "vehicle": self.record.title,
            "status": self.record.status,
            "destination": COLLECTION_SOLD if self.sold else COLLECTION_INVENTORY,
        }


@dataclass
class ImportPreview:
    candidates: list[ImportCandidate] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ready": len(self.candidates),
            "ready_as_sold": sum(1 for c in self.candidates if c.sold),
            "validation_failed": len(self.errors),
            "errors": list(self.errors),
            "rows": [c.to_dict() for c in self.candidates],
        }


@dataclass
class ImportReport:
    imported: int = 0
    imported_as_sold: int = 0
    duplicates_skipped: int = 0
    validation_failed: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)
    duplicates: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "imported": self.imported,
            "imported_as_sold": self.imported_as_sold,
            "duplicates_skipped": self.duplicates_skipped,
            "validation_failed": self.validation_failed,
            "failed": self.failed,
            "errors": list(self.errors),
            "duplicates": list(self.duplicates),
        }


def id_factory(start_ms: int | None = None) -> Callable[[], int]:
    """Millisecond-timestamp ids, offset per row so a batch never collides."""
    base = start_ms if start_ms is not None else int(time.time() * 1000)
    counter = itertools.count(1)
    return lambda: base + next(counter)


def parse_csv(text: str) -> tuple[list[str], list[tuple[int, list[str]]]]:
    """Split CSV text into ``(header, [(row_number, values), ...])``.

    Blank lines are dropped before numbering.  Quoted fields may contain
    commas; every field is trimmed.
    """
    lines = [line for line in text.splitlines() if line.strip()]
    if len(lines) < 2:
        raise CSVImportError("CSV file is empty or invalid")

    parsed = [[value.strip() for value in row] for row in csv.reader(lines)]
    header = parsed[0]
    missing = [h for h in REQUIRED_CSV_HEADERS if h not in header]
    if missing:
        raise CSVImportError(f"Missing required columns: {', '.join(missing)}")

    return header, [(index, values) for index, values in enumerate(parsed[1:], start=2)]


def _row_values(header: list[str], values: list[str]) -> dict[str, str]:
    row: dict[str, str] = {}
    for position, name in enumerate(header):
        if name not in row:
            row[name] = values[position] if position < len(values) else ""
    return row


def _customer_from_row(row: dict[str, str]) -> Customer | None:
    has_customer = any(not is_blank(row.get(c)) for c in _CUSTOMER_COLUMNS)
    has_sale = any(not is_blank(row.get(c)) for c in _SALE_COLUMNS)
    if not has_customer and not has_sale:
        return None
    customer = Customer(
        first_name=row.get("Customer First Name", ""),
        last_name=row.get("Customer Last Name", ""),
        phone=row.get("Customer Phone", ""),
    )
    if has_sale:
        customer.sale_date = row.get("Sale Date", "")
        customer.sale_amount = parse_amount(row.get("Sale Amount")) or 0.0
        customer.payment_method = row.get("Payment Method", "")
        customer.payment_reference = row.get("Payment Reference", "")
    return customer


def _validate_row(
    row_number: int,
    row: dict[str, str],
    *,
    new_id: Callable[[], int],
    now_iso: str,
) -> ImportCandidate | str:
    vin = normalize_vin(row.get("VIN"))
    if not is_valid_vin(vin):
        return f"Row {row_number}: Invalid VIN format - {vin}"

    raw_year = row.get("Year", "")
    year = parse_int(raw_year)
    if year is None or not IMPORT_YEAR_MIN <= year <= IMPORT_YEAR_MAX:
        return f"Row {row_number}: Invalid year - {raw_year}"

    raw_status = row.get("Status", "")
    if is_blank(raw_status):
        status = STATUS_IN_STOCK
    else:
        status = normalize_status(raw_status)
        if status is None:
            return f"Row {row_number}: Invalid status - {raw_status}"

    customer = _customer_from_row(row)
    sold = bool(customer and customer.has_sale_date) or status == STATUS_SOLD
    if sold:
        status = STATUS_SOLD

    in_stock_date = None
    if status != STATUS_IN_TRANSIT:
        in_stock_date = local_midnight_iso(row.get("In Stock Date"))

    record = VehicleRecord(
        id=new_id(),
        vin=vin,
        stock_number=row.get("Stock Number", "") or auto_stock_number(vin),
        year=year,
        make=row.get("Make", ""),
        model=row.get("Model", ""),
        trim=row.get("Trim", ""),
        color=row.get("Color", ""),
        fleet_company=row.get("Fleet Company", ""),
        operation_company=row.get("Operation Company", ""),
        status=status,
        date_added=now_iso,
        in_stock_date=in_stock_date,
        customer=customer,
    )
    return ImportCandidate(row=row_number, record=record, sold=sold)


def preview_csv(
    text: str,
    *,
    new_id: Callable[[], int] | None = None,
    now_iso: str | None = None,
) -> ImportPreview:
    """Parse and validate without touching the backend.

    Raises :class:`CSVImportError` when the file itself is unusable.
    """
    header, rows = parse_csv(text)
    make_id = new_id or id_factory()
    stamp = now_iso or utc_now_iso()

    preview = ImportPreview()
    for row_number, values in rows:
        if len(values) < len(REQUIRED_CSV_HEADERS):
            preview.errors.append(
                f"Row {row_number}: Missing required fields - {','.join(values)}"
            )
            continue
        outcome = _validate_row(
            row_number, _row_values(header, values), new_id=make_id, now_iso=stamp
        )
        if isinstance(outcome, str):
            preview.errors.append(outcome)
        else:
            preview.candidates.append(outcome)
    return preview


async def _existing_vins(backend: InventoryBackend) -> set[str]:
    """VINs already stored; a failed load aborts the import before any write."""
    vins: set[str] = set()
    for collection in (COLLECTION_INVENTORY, COLLECTION_SOLD):
        try:
            rows = await backend.list_records(collection)
        except DashboardAPIError as exc:
            logger.error("Import failed: could not load %s: %s", collection, exc)
            raise
        vins.update(normalize_vin(r.get("vin")) for r in rows)
    vins.discard("")
    return vins


async def import_csv(
    backend: InventoryBackend,
    text: str,
    *,
    new_id: Callable[[], int] | None = None,
    now_iso: str | None = None,
) -> ImportReport:
    """Validate, de-duplicate and create every row of ``text``."""
    preview = preview_csv(text, new_id=new_id, now_iso=now_iso)
    report = ImportReport(
        validation_failed=len(preview.errors),
        errors=list(preview.errors),
    )
    if not preview.candidates:
        logger.warning("CSV import has no valid rows (%d errors)", len(preview.errors))
        return report

    seen = await _existing_vins(backend)
    for candidate in preview.candidates:
        record = candidate.record
        if record.vin in seen:
            report.duplicates_skipped += 1
            report.duplicates.append(
                f"{record.stock_number}: Duplicate VIN {record.vin} already exists"
            )
            continue

        collection = COLLECTION_SOLD if candidate.sold else COLLECTION_INVENTORY
        try:
            await backend.create_record(collection, record.to_dict())
        except Exception as exc:
            report.failed += 1
            report.errors.append(f"{record.stock_number}: {exc}")
            logger.error("Failed to import %s: %s", record.stock_number, exc)
            continue

        report.imported += 1
        if candidate.sold:
            report.imported_as_sold += 1
        seen.add(record.vin)

    logger.info(
        "CSV import finished: %d imported (%d sold), %d duplicates, %d invalid, %d failed",
        report.imported,
        report.imported_as_sold,
        report.duplicates_skipped,
        report.validation_failed,
        report.failed,
    )
    return report


def example_csv() -> str:
    """Downloadable import template: full header plus four sample rows."""
    lines = [CSV_HEADERS, *_EXAMPLE_ROWS]
    return "\n".join(",".join(f'"{value}"' for value in line) for line in lines)
