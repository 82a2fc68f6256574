"""Mutating operations on vehicles, trade-ins and documents.

Every operation writes through an ``InventoryBackend`` and then reloads the
``AppState`` wholesale.  Moving a vehicle between inventory and the sold
archive is two calls with no transaction around them; the outcome is
reported as a ``MoveResult`` so a half-applied move is never hidden.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from lot_mcp.clients.dashboard import (
    COLLECTION_INVENTORY,
    COLLECTION_SOLD,
    COLLECTION_TRADE_INS,
)
from lot_mcp.constants import (
    MAX_DOCUMENT_BYTES,
    SOURCE_SOLD,
    STATUS_IN_STOCK,
    STATUS_IN_TRANSIT,
    STATUS_PICKUP_SCHEDULED,
    STATUS_SOLD,
    TRADE_IN_STOCK_PREFIX,
)
from lot_mcp.data.backend import InventoryBackend, collection_for_source
from lot_mcp.data.records import Customer, DocumentMeta, TradeInRecord, VehicleRecord
from lot_mcp.data.state import AppState
from lot_mcp.metrics import auto_stock_number
from lot_mcp.normalization import (
    is_blank,
    local_midnight_iso,
    normalize_status,
    parse_amount,
    parse_datetime,
    parse_int,
    require_valid_vin,
    utc_now_iso,
)

logger = logging.getLogger(__name__)

OUTCOME_SUCCESS = "success"
OUTCOME_PARTIAL = "partial_failure"
OUTCOME_FAILURE = "failure"

PDF_CONTENT_TYPE = "application/pdf"

_EDITABLE_VEHICLE_FIELDS = (
    "stock_number", "vin", "year", "make", "model", "trim", "color",
    "fleet_company", "operation_company", "in_stock_date",
)
_EDITABLE_TRADE_IN_FIELDS = (
    "stock_number", "vin", "year", "make", "model", "trim", "color", "mileage", "notes",
)


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class MoveResult:
    """Outcome of a write-then-delete move between collections."""
    outcome: str
    vehicle_id: Any
    message: str
    trade_in: TradeInRecord | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.outcome == OUTCOME_SUCCESS

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "outcome": self.outcome,
            "vehicle_id": self.vehicle_id,
            "message": self.message,
        }
        if self.trade_in is not None:
            payload["trade_in"] = self.trade_in.to_dict()
        if self.warnings:
            payload["warnings"] = list(self.warnings)
        return payload


@dataclass
class BatchResult:
    success: int = 0
    errors: int = 0
    messages: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.success, "errors": self.errors, "messages": list(self.messages)}


@dataclass
class TradeInDraft:
    """User-entered trade-in fields before an id and timestamps are assigned."""
    vin: str
    year: Any = None
    make: str = ""
    model: str = ""
    trim: str = ""
    color: str = ""
    stock_number: str = ""
    mileage: Any = 0
    notes: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TradeInDraft:
        known = {f: data[f] for f in cls.__dataclass_fields__ if f in data}
        if "vin" not in known:
            raise ValueError("Trade-in VIN is required.")
        return cls(**known)


# ── Helpers ─────────────────────────────────────────────────────────


def _locate(state: AppState, vehicle_id: Any) -> tuple[VehicleRecord, str]:
    found = state.find_vehicle(vehicle_id)
    if found is None:
        raise ValueError(f"Vehicle '{vehicle_id}' not found.")
    record, source = found
    return record, collection_for_source(source)


def _require_trade_in(state: AppState, trade_in_id: Any) -> TradeInRecord:
    record = state.find_trade_in(trade_in_id)
    if record is None:
        raise ValueError(f"Trade-in '{trade_in_id}' not found.")
    return record


def _require_year(value: Any) -> int:
    year = parse_int(value)
    if year is None:
        raise ValueError(f"Year must be a whole number, got '{value}'.")
    return year


def _mileage(value: Any) -> int:
    miles = parse_int(value)
    return miles if miles is not None and miles >= 0 else 0


def _in_stock_iso(value: Any) -> str | None:
    if is_blank(value):
        return None
    iso = local_midnight_iso(value)
    if iso is None:
        raise ValueError(f"Invalid in-stock date '{value}'.")
    return iso


def _without_pickup(record: VehicleRecord, **changes: Any) -> VehicleRecord:
    return record.with_changes(pickup_date=None, pickup_time=None, pickup_notes=None, **changes)


async def _put_vehicle(
    backend: InventoryBackend, collection: str, record: VehicleRecord
) -> None:
    await backend.update_record(collection, record.id, record.to_dict())


def _build_trade_in(
    draft: TradeInDraft, *, new_id: int, now_iso: str, notes: str | None = None
) -> TradeInRecord:
    vin = require_valid_vin(draft.vin)
    stock_number = (draft.stock_number or "").strip() or f"{TRADE_IN_STOCK_PREFIX}{new_id}"
    return TradeInRecord(
        id=new_id,
        vin=vin,
        stock_number=stock_number,
        year=parse_int(draft.year),
        make=draft.make,
        model=draft.model,
        trim=draft.trim or "",
        color=draft.color,
        mileage=_mileage(draft.mileage),
        notes=draft.notes if notes is None else notes,
        picked_up=False,
        picked_up_date=None,
        date_added=now_iso,
    )


# ── Vehicles ────────────────────────────────────────────────────────


async def add_vehicle(
    state: AppState,
    backend: InventoryBackend,
    *,
    vin: str,
    year: Any,
    make: str,
    model: str,
    trim: str = "",
    color: str = "",
    stock_number: str = "",
    fleet_company: str = "",
    operation_company: str = "",
    status: str = STATUS_IN_STOCK,
    in_stock_date: Any = None,
    new_id: Callable[[], int] = _now_ms,
    now: datetime | None = None,
) -> VehicleRecord:
    """Create an active-inventory vehicle."""
    normalized_vin = require_valid_vin(vin)
    resolved_status = normalize_status(status or STATUS_IN_STOCK)
    if resolved_status is None:
        raise ValueError(f"Invalid status '{status}'.")
    if resolved_status == STATUS_SOLD:
        raise ValueError("New vehicles cannot be added as sold; add it, then mark it sold.")

    record = VehicleRecord(
        id=new_id(),
        vin=normalized_vin,
        stock_number=(stock_number or "").strip() or auto_stock_number(normalized_vin),
        year=_require_year(year),
        make=make,
        model=model,
        trim=trim,
        color=color,
        fleet_company=fleet_company,
        operation_company=operation_company,
        status=resolved_status,
        date_added=utc_now_iso(now),
        in_stock_date=None if resolved_status == STATUS_IN_TRANSIT else _in_stock_iso(in_stock_date),
    )
    await backend.create_record(COLLECTION_INVENTORY, record.to_dict())
    await state.reload(backend)
    return record


async def edit_vehicle(
    state: AppState, backend: InventoryBackend, vehicle_id: Any, **changes: Any
) -> VehicleRecord:
    """Update editable fields on whichever collection holds the vehicle.

    ``in_stock_date`` takes a calendar date; a blank value clears it.
    """
    unknown = set(changes) - set(_EDITABLE_VEHICLE_FIELDS)
    if unknown:
        raise ValueError(f"Fields not editable: {', '.join(sorted(unknown))}.")

    record, collection = _locate(state, vehicle_id)
    updates = dict(changes)
    updates["vin"] = require_valid_vin(changes.get("vin", record.vin))
    if "year" in updates:
        updates["year"] = _require_year(updates["year"])
    if "in_stock_date" in updates:
        updates["in_stock_date"] = _in_stock_iso(updates["in_stock_date"])

    updated = record.with_changes(**updates)
    await _put_vehicle(backend, collection, updated)
    await state.reload(backend)
    return updated


async def save_customer_info(
    state: AppState,
    backend: InventoryBackend,
    vehicle_id: Any,
    *,
    first_name: str = "",
    last_name: str = "",
    phone: str = "",
    notes: str = "",
) -> VehicleRecord:
    """Replace the buyer contact fields, keeping any recorded payment."""
    record, collection = _locate(state, vehicle_id)
    existing = record.customer or Customer()
    customer = Customer(
        first_name=first_name,
        last_name=last_name,
        phone=phone,
        notes=notes,
        sale_amount=existing.sale_amount or 0.0,
        sale_date=existing.sale_date,
        payment_method=existing.payment_method,
        payment_reference=existing.payment_reference,
        extra=dict(existing.extra),
    )
    updated = record.with_changes(customer=customer)
    await _put_vehicle(backend, collection, updated)
    await state.reload(backend)
    return updated


async def save_payment_info(
    state: AppState,
    backend: InventoryBackend,
    vehicle_id: Any,
    *,
    sale_amount: Any = 0,
    sale_date: str = "",
    payment_method: str = "",
    payment_reference: str = "",
) -> VehicleRecord:
    """Replace the payment fields, keeping the buyer contact fields."""
    record, collection = _locate(state, vehicle_id)
    existing = record.customer or Customer()
    customer = Customer(
        first_name=existing.first_name,
        last_name=existing.last_name,
        phone=existing.phone,
        notes=existing.notes,
        sale_amount=parse_amount(sale_amount) or 0.0,
        sale_date=sale_date,
        payment_method=payment_method,
        payment_reference=payment_reference,
        extra=dict(existing.extra),
    )
    updated = record.with_changes(customer=customer)
    await _put_vehicle(backend, collection, updated)
    await state.reload(backend)
    return updated


async def delete_vehicle(state: AppState, backend: InventoryBackend, vehicle_id: Any) -> str:
    """Delete from the collection that holds the vehicle; returns that collection."""
    record, collection = _locate(state, vehicle_id)
    await backend.delete_record(collection, record.id)
    await state.reload(backend)
    return collection


# ── Status transitions ─────────────────────────────────────────────


async def change_status(
    state: AppState, backend: InventoryBackend, vehicle_id: Any, status: str
) -> MoveResult:
    """Plain status change, or the reverse move for a sold vehicle.

    ``sold`` and ``pickup-scheduled`` need extra details and go through
    :func:`mark_sold` and :func:`schedule_pickup`.
    """
    new_status = normalize_status(status)
    if new_status is None:
        raise ValueError(f"Invalid status '{status}'.")

    record, collection = _locate(state, vehicle_id)
    if collection == COLLECTION_SOLD:
        if new_status == STATUS_SOLD:
            return MoveResult(OUTCOME_SUCCESS, record.id, "Vehicle is already sold.")
        return await return_to_inventory(state, backend, record.id, status=new_status)

    if new_status == STATUS_SOLD:
        raise ValueError("Use mark_sold to record the sale details for this vehicle.")
    if new_status == STATUS_PICKUP_SCHEDULED:
        raise ValueError("Use schedule_pickup to set the pickup date and time.")

    updated = _without_pickup(record, status=new_status)
    await _put_vehicle(backend, collection, updated)
    await state.reload(backend)
    return MoveResult(OUTCOME_SUCCESS, record.id, f"Status changed to {new_status}.")


async def schedule_pickup(
    state: AppState,
    backend: InventoryBackend,
    vehicle_id: Any,
    *,
    pickup_date: str,
    pickup_time: str = "",
    pickup_notes: str = "",
) -> VehicleRecord:
    record, collection = _locate(state, vehicle_id)
    if collection != COLLECTION_INVENTORY:
        raise ValueError("Only vehicles in active inventory can be scheduled for pickup.")
    if is_blank(pickup_date):
        raise ValueError("Pickup date is required.")

    updated = record.with_changes(
        status=STATUS_PICKUP_SCHEDULED,
        pickup_date=pickup_date,
        pickup_time=pickup_time or None,
        pickup_notes=pickup_notes or None,
    )
    await _put_vehicle(backend, collection, updated)
    await state.reload(backend)
    return updated


async def mark_sold(
    state: AppState,
    backend: InventoryBackend,
    vehicle_id: Any,
    *,
    sale_amount: Any = 0,
    sale_date: str = "",
    payment_method: str = "",
    payment_reference: str = "",
    notes: str = "",
    trade_in: TradeInDraft | None = None,
    new_id: Callable[[], int] = _now_ms,
    now: datetime | None = None,
) -> MoveResult:
    """Move a vehicle into the sold archive, optionally recording a trade-in.

    The sold copy is written first (POST, or PUT when already archived) and
    the inventory copy deleted second.  If the delete fails the vehicle is
    in both collections and the result is ``partial_failure``.
    """
    record, collection = _locate(state, vehicle_id)
    stamp = utc_now_iso(now)

    pending_trade_in = None
    if trade_in is not None:
        pending_trade_in = _build_trade_in(
            trade_in,
            new_id=new_id(),
            now_iso=stamp,
            notes=f"Trade-in for {record.stock_number} ({record.title})",
        )

    existing = record.customer or Customer()
    customer = Customer(
        first_name=existing.first_name,
        last_name=existing.last_name,
        phone=existing.phone,
        notes=notes,
        sale_amount=parse_amount(sale_amount) or 0.0,
        sale_date=sale_date,
        payment_method=payment_method,
        payment_reference=payment_reference,
        extra=dict(existing.extra),
    )
    sold_copy = _without_pickup(record, status=STATUS_SOLD, customer=customer)

    try:
        if collection == COLLECTION_SOLD:
            await backend.update_record(COLLECTION_SOLD, record.id, sold_copy.to_dict())
        else:
            await backend.create_record(COLLECTION_SOLD, sold_copy.to_dict())
    except Exception as exc:
        logger.error("Failed to write sold record for %s: %s", record.id, exc)
        await state.reload(backend)
        return MoveResult(OUTCOME_FAILURE, record.id, f"Failed to mark vehicle as sold: {exc}")

    if collection == COLLECTION_INVENTORY:
        try:
            await backend.delete_record(COLLECTION_INVENTORY, record.id)
        except Exception as exc:
            logger.warning(
                "Vehicle %s (%s) written to sold but still in inventory: %s",
                record.id,
                record.stock_number,
                exc,
            )
            await state.reload(backend)
            return MoveResult(
                OUTCOME_PARTIAL,
                record.id,
                f"Vehicle {record.stock_number} was added to sold but could not be "
                f"removed from inventory: {exc}",
            )

    result = MoveResult(OUTCOME_SUCCESS, record.id, "Vehicle marked as sold.")
    if pending_trade_in is not None:
        try:
            await backend.create_record(COLLECTION_TRADE_INS, pending_trade_in.to_dict())
        except Exception as exc:
            logger.error("Failed to add trade-in for %s: %s", record.id, exc)
            result.warnings.append(f"Trade-in could not be added: {exc}")
        else:
            result.trade_in = pending_trade_in
            result.message += " Trade-in vehicle added."

    await state.reload(backend)
    return result


async def complete_pickup(
    state: AppState, backend: InventoryBackend, vehicle_id: Any, **sale: Any
) -> MoveResult:
    """Finish a scheduled pickup by recording the sale."""
    record, _ = _locate(state, vehicle_id)
    if record.status != STATUS_PICKUP_SCHEDULED:
        raise ValueError(f"Vehicle {record.stock_number} does not have a pickup scheduled.")
    return await mark_sold(state, backend, vehicle_id, **sale)


async def return_to_inventory(
    state: AppState,
    backend: InventoryBackend,
    vehicle_id: Any,
    *,
    status: str = STATUS_IN_STOCK,
) -> MoveResult:
    """Reverse move: POST the vehicle to inventory, then DELETE it from sold."""
    new_status = normalize_status(status)
    if new_status is None or new_status == STATUS_SOLD:
        raise ValueError(f"Invalid status for an inventory vehicle: '{status}'.")

    found = state.find_vehicle(vehicle_id)
    if found is None or found[1] != SOURCE_SOLD:
        raise ValueError(f"Vehicle '{vehicle_id}' is not in the sold archive.")
    record = found[0]
    inventory_copy = record.with_changes(status=new_status)

    try:
        await backend.create_record(COLLECTION_INVENTORY, inventory_copy.to_dict())
    except Exception as exc:
        logger.error("Failed to return %s to inventory: %s", record.id, exc)
        await state.reload(backend)
        return MoveResult(OUTCOME_FAILURE, record.id, f"Failed to update vehicle status: {exc}")

    try:
        await backend.delete_record(COLLECTION_SOLD, record.id)
    except Exception as exc:
        logger.warning(
            "Vehicle %s (%s) returned to inventory but still in sold: %s",
            record.id,
            record.stock_number,
            exc,
        )
        await state.reload(backend)
        return MoveResult(
            OUTCOME_PARTIAL,
            record.id,
            f"Vehicle {record.stock_number} was added back to inventory but could not be "
            f"removed from sold vehicles: {exc}",
        )

    await state.reload(backend)
    return MoveResult(OUTCOME_SUCCESS, record.id, "Vehicle moved back to inventory.")


# ── Trade-ins ───────────────────────────────────────────────────────


async def add_trade_in(
    state: AppState,
    backend: InventoryBackend,
    draft: TradeInDraft,
    *,
    parent_vehicle_id: Any = None,
    new_id: Callable[[], int] = _now_ms,
    now: datetime | None = None,
) -> TradeInRecord:
    """Create a trade-in and link it from ``parent_vehicle_id`` when given."""
    parent = _locate(state, parent_vehicle_id) if parent_vehicle_id is not None else None
    record = _build_trade_in(draft, new_id=new_id(), now_iso=utc_now_iso(now))
    await backend.create_record(COLLECTION_TRADE_INS, record.to_dict())

    if parent is not None:
        vehicle, collection = parent
        try:
            await _put_vehicle(backend, collection, vehicle.with_changes(trade_in_id=record.id))
        except Exception as exc:
            logger.warning("Trade-in %s added but not linked to %s: %s", record.id, vehicle.id, exc)

    await state.reload(backend)
    return record


async def edit_trade_in(
    state: AppState, backend: InventoryBackend, trade_in_id: Any, **changes: Any
) -> TradeInRecord:
    unknown = set(changes) - set(_EDITABLE_TRADE_IN_FIELDS)
    if unknown:
        raise ValueError(f"Fields not editable: {', '.join(sorted(unknown))}.")

    record = _require_trade_in(state, trade_in_id)
    updates = dict(changes)
    updates["vin"] = require_valid_vin(changes.get("vin", record.vin))
    if "year" in updates:
        updates["year"] = parse_int(updates["year"])
    if "mileage" in updates:
        updates["mileage"] = _mileage(updates["mileage"])

    updated = record.with_changes(**updates)
    await backend.update_record(COLLECTION_TRADE_INS, record.id, updated.to_dict())
    await state.reload(backend)
    return updated


async def toggle_trade_in_pickup(
    state: AppState,
    backend: InventoryBackend,
    trade_in_id: Any,
    *,
    now: datetime | None = None,
) -> TradeInRecord:
    """Flip ``picked_up``; the pickup timestamp is set or cleared with it."""
    record = _require_trade_in(state, trade_in_id)
    if record.picked_up:
        updated = record.with_changes(picked_up=False, picked_up_date=None)
    else:
        updated = record.with_changes(picked_up=True, picked_up_date=utc_now_iso(now))
    await backend.update_record(COLLECTION_TRADE_INS, record.id, updated.to_dict())
    await state.reload(backend)
    return updated


async def delete_trade_in(state: AppState, backend: InventoryBackend, trade_in_id: Any) -> None:
    record = _require_trade_in(state, trade_in_id)
    await backend.delete_record(COLLECTION_TRADE_INS, record.id)
    await state.reload(backend)


def trade_in_keytag(trade_in: TradeInRecord) -> dict[str, str]:
    """Lines printed on a trade-in key tag."""
    return {
        "stock": trade_in.stock_number or "N/A",
        "vehicle": trade_in.title,
        "vin": f"VIN: {trade_in.vin[-8:]}",
        "color": f"Color: {trade_in.color or 'N/A'}",
        "mileage": f"Miles: {trade_in.mileage:,}" if trade_in.mileage else "TRADE-IN",
        "tag": "TRADE-IN",
    }


# ── Documents ───────────────────────────────────────────────────────


async def attach_document(
    state: AppState,
    backend: InventoryBackend,
    vehicle_id: Any,
    *,
    file_name: str,
    content: bytes,
    content_type: str = PDF_CONTENT_TYPE,
) -> DocumentMeta:
    """Upload a PDF and append its metadata to the vehicle's document list."""
    if content_type != PDF_CONTENT_TYPE:
        raise ValueError("Please select a PDF file.")
    if len(content) > MAX_DOCUMENT_BYTES:
        raise ValueError("File size must be less than 10MB.")

    record, collection = _locate(state, vehicle_id)
    meta = DocumentMeta.from_dict(await backend.upload_document(record.id, file_name, content))
    updated = record.with_changes(documents=[*record.documents, meta])
    await _put_vehicle(backend, collection, updated)
    await state.reload(backend)
    return meta


async def detach_document(
    state: AppState, backend: InventoryBackend, vehicle_id: Any, document_id: str
) -> VehicleRecord:
    record, collection = _locate(state, vehicle_id)
    if not any(doc.id == document_id for doc in record.documents):
        raise ValueError(f"Document '{document_id}' not found on vehicle {record.stock_number}.")

    await backend.delete_document(document_id)
    updated = record.with_changes(
        documents=[doc for doc in record.documents if doc.id != document_id]
    )
    await _put_vehicle(backend, collection, updated)
    await state.reload(backend)
    return updated


# ── Maintenance ─────────────────────────────────────────────────────


async def _clear_in_stock_dates(
    backend: InventoryBackend, records: list[VehicleRecord]
) -> BatchResult:
    result = BatchResult()
    for record in records:
        try:
            await _put_vehicle(backend, COLLECTION_INVENTORY, record.with_changes(in_stock_date=None))
        except Exception as exc:
            result.errors += 1
            result.messages.append(f"{record.stock_number or record.id}: {exc}")
            logger.error("Error updating vehicle %s: %s", record.stock_number, exc)
        else:
            result.success += 1
    return result


async def fix_in_transit_dates(state: AppState, backend: InventoryBackend) -> BatchResult:
    """Clear ``in_stock_date`` on every in-transit vehicle that still has one."""
    targets = [
        r for r in state.inventory if r.status == STATUS_IN_TRANSIT and r.in_stock_date
    ]
    result = await _clear_in_stock_dates(backend, targets)
    await state.reload(backend)
    logger.info("Cleared in-transit dates: %d updated, %d errors", result.success, result.errors)
    return result


async def batch_clear_in_stock_dates(
    state: AppState, backend: InventoryBackend, count: int
) -> BatchResult:
    """Clear ``in_stock_date`` on the ``count`` most recently added vehicles."""
    if count <= 0:
        raise ValueError("Please enter a valid number")
    newest_first = sorted(
        state.inventory,
        key=lambda r: parse_datetime(r.date_added) or datetime.min,
        reverse=True,
    )
    result = await _clear_in_stock_dates(backend, newest_first[:count])
    await state.reload(backend)
    logger.info("Cleared in-stock dates: %d updated, %d errors", result.success, result.errors)
    return result
