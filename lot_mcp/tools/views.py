"""Read-only view tools: dashboard, inventory, sold, payments, trade-ins."""

from __future__ import annotations

from typing import Any

from lot_mcp.analytics import weekly_sales
from lot_mcp.constants import VEHICLE_STATUSES
from lot_mcp.data.backend import InventoryBackend
from lot_mcp.data.state import load_state
from lot_mcp.filters import (
    InventoryFilter,
    PaymentFilter,
    SoldFilter,
    filter_trade_ins,
    inventory_view,
    make_options,
    newest_units,
    oldest_units,
    payment_method_options,
    payments_view,
    sale_year_options,
    sold_view,
    split_trade_ins,
    status_view,
)
from lot_mcp.metrics import format_status_label, status_counts
from lot_mcp.tools.formatting import (
    listing,
    money,
    trade_in_line,
    vehicle_line,
    vehicle_summary,
)
from lot_mcp.tools.responses import respond

_TOOL_DASHBOARD = "get_dashboard"
_TOOL_INVENTORY = "list_inventory"
_TOOL_SOLD = "list_sold_vehicles"
_TOOL_PAYMENTS = "list_payments"
_TOOL_TRADE_INS = "list_trade_ins"
_TOOL_DETAILS = "get_vehicle"


def _check_month(month: int | None) -> int | None:
    if month is not None and not 1 <= month <= 12:
        raise ValueError("month must be between 1 and 12.")
    return month


async def get_dashboard_impl(backend: InventoryBackend, *, raw: bool = False) -> str:
    """Stat cards, oldest/newest units and this week's sales."""
    state = await load_state(backend)
    counts = status_counts(state.inventory, state.sold, state.trade_ins)
    oldest = oldest_units(state.inventory)
    newest = newest_units(state.inventory)
    week = weekly_sales(state.sold)

    data: dict[str, Any] = {
        "counts": counts,
        "oldest_units": [vehicle_summary(v) for v in oldest],
        "newest_units": [vehicle_summary(v) for v in newest],
        "weekly_sales": {
            "start": week.start.isoformat(),
            "end": week.end.isoformat(),
            "count": len(week.vehicles),
            "total_revenue": round(week.total_revenue, 2),
            "vehicles": [vehicle_summary(v) for v in week.vehicles],
        },
    }
    text = "\n\n".join([
        "Dashboard\n"
        f"Active: {counts['total_active']} | On lot: {counts['on_lot']} | "
        f"In transit: {counts['in_transit']} | Pending pickup: {counts['pending_pickup']} | "
        f"Pickup scheduled: {counts['pickup_scheduled']} | Sold: {counts['sold']} | "
        f"Trade-ins awaiting pickup: {counts['trade_ins_awaiting_pickup']}",
        listing("Oldest units", [vehicle_line(v) for v in oldest], empty="No vehicles in inventory"),
        listing("Newest units", [vehicle_line(v) for v in newest], empty="No vehicles in inventory"),
        listing(
            f"Sales this week ({week.label}): {len(week.vehicles)} sold, "
            f"{money(week.total_revenue)}",
            [vehicle_line(v) for v in week.vehicles],
            empty="No vehicles sold this week",
        ),
    ])
    return respond(_TOOL_DASHBOARD, data, text, raw=raw)


async def list_inventory_impl(
    backend: InventoryBackend,
    *,
    search: str = "",
    make: str = "",
    status: str = "",
    raw: bool = False,
) -> str:
    """Active inventory.  Without ``status`` this is the main inventory page
    (in-transit excluded); with ``status`` it is that status page."""
    if status and status not in VEHICLE_STATUSES:
        raise ValueError(f"Invalid status '{status}'. Use one of: {', '.join(VEHICLE_STATUSES)}.")
    state = await load_state(backend)
    if status:
        records = status_view(state.inventory, status, search=search, make=make)
        title = format_status_label(status)
    else:
        records = inventory_view(state.inventory, InventoryFilter(search=search, make=make))
        title = "Inventory"

    data = {
        "count": len(records),
        "make_options": make_options(state.inventory),
        "vehicles": [vehicle_summary(v) for v in records],
    }
    text = listing(
        f"{title}: {len(records)} vehicle(s)",
        [vehicle_line(v) for v in records],
        empty="No vehicles found",
    )
    return respond(_TOOL_INVENTORY, data, text, raw=raw)


async def list_sold_vehicles_impl(
    backend: InventoryBackend,
    *,
    search: str = "",
    make: str = "",
    start_date: str = "",
    end_date: str = "",
    month: int | None = None,
    year: int | None = None,
    raw: bool = False,
) -> str:
    """Sold archive, newest sale first.  A date range overrides month/year."""
    flt = SoldFilter(search=search, make=make)
    if start_date or end_date:
        flt = flt.with_date_range(start_date or None, end_date or None)
        if (start_date and flt.start_date is None) or (end_date and flt.end_date is None):
            raise ValueError("Dates must look like YYYY-MM-DD.")
    else:
        flt = flt.with_month_year(_check_month(month), year)

    state = await load_state(backend)
    records = sold_view(state.sold, flt)
    total = sum(r.sale_amount for r in records)
    data = {
        "count": len(records),
        "total_revenue": round(total, 2),
        "filter": {
            "start_date": flt.start_date,
            "end_date": flt.end_date,
            "month": flt.month,
            "year": flt.year,
        },
        "make_options": make_options(state.sold),
        "year_options": sale_year_options(state.sold),
        "vehicles": [vehicle_summary(v) for v in records],
    }
    text = listing(
        f"Sold vehicles: {len(records)} ({money(total)})",
        [vehicle_line(v) for v in records],
        empty="No sold vehicles match your filters",
    )
    return respond(_TOOL_SOLD, data, text, raw=raw)


async def list_payments_impl(
    backend: InventoryBackend,
    *,
    search: str = "",
    payment_method: str = "",
    month: int | None = None,
    year: int | None = None,
    raw: bool = False,
) -> str:
    flt = PaymentFilter(
        search=search, payment_method=payment_method, month=_check_month(month), year=year
    )
    state = await load_state(backend)
    records = payments_view(state.sold, flt)
    total = sum(r.sale_amount for r in records)
    data = {
        "count": len(records),
        "total": round(total, 2),
        "payment_method_options": payment_method_options(state.sold),
        "year_options": sale_year_options(state.sold),
        "payments": [vehicle_summary(v) for v in records],
    }
    lines = [
        f"{r.stock_number} | {r.title} | {money(r.sale_amount)} | "
        f"{r.payment_method or 'n/a'} {r.payment_reference}".rstrip()
        for r in records
    ]
    text = listing(
        f"Payments: {len(records)} totaling {money(total)}", lines, empty="No payments found"
    )
    return respond(_TOOL_PAYMENTS, data, text, raw=raw)


async def list_trade_ins_impl(
    backend: InventoryBackend,
    *,
    search: str = "",
    make: str = "",
    raw: bool = False,
) -> str:
    state = await load_state(backend)
    awaiting, picked_up = split_trade_ins(filter_trade_ins(state.trade_ins, search=search, make=make))
    data = {
        "awaiting_pickup": [t.to_dict() for t in awaiting],
        "picked_up": [t.to_dict() for t in picked_up],
        "make_options": make_options(state.trade_ins),
    }
    text = "\n\n".join([
        listing(
            f"Awaiting pickup ({len(awaiting)})",
            [trade_in_line(t) for t in awaiting],
            empty="None",
        ),
        listing(
            f"Picked up ({len(picked_up)})",
            [trade_in_line(t) for t in picked_up],
            empty="None",
        ),
    ])
    return respond(_TOOL_TRADE_INS, data, text, raw=raw)


async def get_vehicle_impl(
    backend: InventoryBackend, *, vehicle_id: str, raw: bool = False
) -> str:
    state = await load_state(backend)
    found = state.find_vehicle(vehicle_id)
    if found is None:
        raise ValueError(f"Vehicle '{vehicle_id}' not found.")
    record, source = found
    data = {"source": source, "vehicle": record.to_dict(), "summary": vehicle_summary(record)}

    lines = [vehicle_line(record), f"Collection: {source}"]
    if record.fleet_company or record.operation_company:
        lines.append(f"Fleet: {record.fleet_company or '-'} | Operation: {record.operation_company or '-'}")
    if record.customer and record.customer.full_name:
        lines.append(f"Customer: {record.customer.full_name} {record.customer.phone}".rstrip())
    if record.pickup_date:
        lines.append(f"Pickup: {record.pickup_date} {record.pickup_time or ''}".rstrip())
    if record.documents:
        lines.append("Documents: " + ", ".join(d.file_name for d in record.documents))
    return respond(_TOOL_DETAILS, data, "\n".join(lines), raw=raw)
