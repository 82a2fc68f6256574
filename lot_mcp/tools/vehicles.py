"""Vehicle create/edit/move tool implementations."""

from __future__ import annotations

from typing import Any

from lot_mcp import lifecycle
from lot_mcp.data.backend import InventoryBackend
from lot_mcp.data.state import load_state
from lot_mcp.lifecycle import MoveResult, TradeInDraft
from lot_mcp.metrics import format_status_label
from lot_mcp.tools.formatting import money, vehicle_line, vehicle_summary
from lot_mcp.tools.responses import respond


def _vehicle_response(tool_name: str, record: Any, headline: str, *, raw: bool) -> str:
    data = {"vehicle": record.to_dict(), "summary": vehicle_summary(record)}
    return respond(tool_name, data, f"{headline}\n{vehicle_line(record)}", raw=raw)


def _move_response(tool_name: str, result: MoveResult, *, raw: bool) -> str:
    lines = [result.message]
    if result.trade_in is not None:
        lines.append(f"Trade-in: {result.trade_in.stock_number} | {result.trade_in.title}")
    lines.extend(f"Warning: {w}" for w in result.warnings)
    return respond(tool_name, result.to_dict(), "\n".join(lines), raw=raw)


async def add_vehicle_impl(
    backend: InventoryBackend,
    *,
    vin: str,
    year: int,
    make: str,
    model: str,
    trim: str = "",
    color: str = "",
    stock_number: str = "",
    fleet_company: str = "",
    operation_company: str = "",
    status: str = "in-stock",
    in_stock_date: str = "",
    raw: bool = False,
) -> str:
    state = await load_state(backend)
    record = await lifecycle.add_vehicle(
        state,
        backend,
        vin=vin,
        year=year,
        make=make,
        model=model,
        trim=trim,
        color=color,
        stock_number=stock_number,
        fleet_company=fleet_company,
        operation_company=operation_company,
        status=status,
        in_stock_date=in_stock_date or None,
    )
    return _vehicle_response("add_vehicle", record, "Vehicle added.", raw=raw)


async def edit_vehicle_impl(
    backend: InventoryBackend,
    *,
    vehicle_id: str,
    changes: dict[str, Any],
    raw: bool = False,
) -> str:
    """Update editable vehicle fields (vin, year, make, model, trim, color, ...)."""
    if not changes:
        raise ValueError("No changes given.")
    state = await load_state(backend)
    record = await lifecycle.edit_vehicle(state, backend, vehicle_id, **changes)
    return _vehicle_response("edit_vehicle", record, "Vehicle updated.", raw=raw)


async def save_customer_info_impl(
    backend: InventoryBackend,
    *,
    vehicle_id: str,
    first_name: str = "",
    last_name: str = "",
    phone: str = "",
    notes: str = "",
    raw: bool = False,
) -> str:
    state = await load_state(backend)
    record = await lifecycle.save_customer_info(
        state,
        backend,
        vehicle_id,
        first_name=first_name,
        last_name=last_name,
        phone=phone,
        notes=notes,
    )
    return _vehicle_response("save_customer_info", record, "Customer information saved.", raw=raw)


async def save_payment_info_impl(
    backend: InventoryBackend,
    *,
    vehicle_id: str,
    sale_amount: float = 0,
    sale_date: str = "",
    payment_method: str = "",
    payment_reference: str = "",
    raw: bool = False,
) -> str:
    state = await load_state(backend)
    record = await lifecycle.save_payment_info(
        state,
        backend,
        vehicle_id,
        sale_amount=sale_amount,
        sale_date=sale_date,
        payment_method=payment_method,
        payment_reference=payment_reference,
    )
    return _vehicle_response(
        "save_payment_info",
        record,
        f"Payment information saved ({money(record.sale_amount)}).",
        raw=raw,
    )


async def change_status_impl(
    backend: InventoryBackend, *, vehicle_id: str, status: str, raw: bool = False
) -> str:
    state = await load_state(backend)
    result = await lifecycle.change_status(state, backend, vehicle_id, status)
    return _move_response("change_status", result, raw=raw)


async def schedule_pickup_impl(
    backend: InventoryBackend,
    *,
    vehicle_id: str,
    pickup_date: str,
    pickup_time: str = "",
    pickup_notes: str = "",
    raw: bool = False,
) -> str:
    state = await load_state(backend)
    record = await lifecycle.schedule_pickup(
        state,
        backend,
        vehicle_id,
        pickup_date=pickup_date,
        pickup_time=pickup_time,
        pickup_notes=pickup_notes,
    )
    when = f"{record.pickup_date} {record.pickup_time or ''}".rstrip()
    return _vehicle_response(
        "schedule_pickup",
        record,
        f"{format_status_label(record.status)} for {when}.",
        raw=raw,
    )


async def mark_sold_impl(
    backend: InventoryBackend,
    *,
    vehicle_id: str,
    sale_amount: float = 0,
    sale_date: str = "",
    payment_method: str = "",
    payment_reference: str = "",
    notes: str = "",
    trade_in: dict[str, Any] | None = None,
    complete_pickup: bool = False,
    raw: bool = False,
) -> str:
    """Move a vehicle to the sold archive.

    ``complete_pickup`` requires the vehicle to have a scheduled pickup.
    ``trade_in`` takes the trade-in fields (vin required).
    """
    draft = TradeInDraft.from_dict(trade_in) if trade_in else None
    state = await load_state(backend)
    operation = lifecycle.complete_pickup if complete_pickup else lifecycle.mark_sold
    result = await operation(
        state,
        backend,
        vehicle_id,
        sale_amount=sale_amount,
        sale_date=sale_date,
        payment_method=payment_method,
        payment_reference=payment_reference,
        notes=notes,
        trade_in=draft,
    )
    return _move_response("complete_pickup" if complete_pickup else "mark_sold", result, raw=raw)


async def return_to_inventory_impl(
    backend: InventoryBackend,
    *,
    vehicle_id: str,
    status: str = "in-stock",
    raw: bool = False,
) -> str:
    state = await load_state(backend)
    result = await lifecycle.return_to_inventory(state, backend, vehicle_id, status=status)
    return _move_response("return_to_inventory", result, raw=raw)


async def delete_vehicle_impl(
    backend: InventoryBackend, *, vehicle_id: str, raw: bool = False
) -> str:
    state = await load_state(backend)
    collection = await lifecycle.delete_vehicle(state, backend, vehicle_id)
    return respond(
        "delete_vehicle",
        {"vehicle_id": vehicle_id, "collection": collection},
        f"Vehicle {vehicle_id} deleted from {collection}.",
        raw=raw,
    )
