"""LotDash MCP server: FastMCP entry point for the dealer inventory dashboard."""

from __future__ import annotations

import logging
import os
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP

from lot_mcp.clients.dashboard import DashboardAPIError
from lot_mcp.data.state import backend_session
from lot_mcp.tools.documents import (
    attach_document_impl,
    detach_document_impl,
    get_document_impl,
    list_documents_impl,
)
from lot_mcp.tools.duplicates import find_duplicates_impl, remove_duplicates_impl
from lot_mcp.tools.ingestion import (
    export_backup_impl,
    export_csv_impl,
    get_example_csv_impl,
    import_backup_impl,
    import_csv_impl,
    preview_backup_import_impl,
    preview_csv_import_impl,
)
from lot_mcp.tools.maintenance import clear_in_stock_dates_impl, fix_in_transit_dates_impl
from lot_mcp.tools.reports import (
    get_chart_data_impl,
    get_payment_comparison_impl,
    get_revenue_report_impl,
    get_weekly_sales_impl,
)
from lot_mcp.tools.responses import format_api_error, log_and_return_tool_error
from lot_mcp.tools.trade_ins import (
    add_trade_in_impl,
    delete_trade_in_impl,
    edit_trade_in_impl,
    get_trade_in_keytag_impl,
    toggle_trade_in_pickup_impl,
)
from lot_mcp.tools.vehicles import (
    add_vehicle_impl,
    change_status_impl,
    delete_vehicle_impl,
    edit_vehicle_impl,
    mark_sold_impl,
    return_to_inventory_impl,
    save_customer_info_impl,
    save_payment_info_impl,
    schedule_pickup_impl,
)
from lot_mcp.tools.views import (
    get_dashboard_impl,
    get_vehicle_impl,
    list_inventory_impl,
    list_payments_impl,
    list_sold_vehicles_impl,
    list_trade_ins_impl,
)

# Load .env from project root (no extra dependency)
_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"
if _ENV_FILE.is_file():
    for line in _ENV_FILE.read_text().splitlines():
        line = line.strip()
        if line and not line.startswith("#") and "=" in line:
            k, _, v = line.partition("=")
            os.environ.setdefault(k.strip(), v.strip())

mcp = FastMCP("LotDash")
logger = logging.getLogger(__name__)


async def _call_backend_tool(
    tool_name: str,
    impl: Callable[..., Awaitable[str]],
    *,
    user_message: str,
    raw: bool = False,
    **kwargs: Any,
) -> str:
    """Open a backend session, run ``impl`` and turn failures into messages."""
    try:
        async with backend_session() as backend:
            return await impl(backend, raw=raw, **kwargs)
    except DashboardAPIError as exc:
        logger.warning("Tool %s: backend error %s (%s)", tool_name, exc.code, exc)
        return format_api_error(tool_name, exc, raw=raw)
    except ValueError as exc:
        return str(exc)
    except Exception as exc:
        return log_and_return_tool_error(
            tool_name=tool_name, exc=exc, user_message=user_message
        )


def _changes(**fields: Any) -> dict[str, Any]:
    return {k: v for k, v in fields.items() if v is not None}


# ── Views ───────────────────────────────────────────────────────────


@mcp.tool()
async def get_dashboard(raw: bool = False) -> str:
    """Stat cards, oldest and newest units on the lot, and this week's sales."""
    return await _call_backend_tool(
        "get_dashboard",
        get_dashboard_impl,
        raw=raw,
        user_message="I am having trouble loading the dashboard right now. Please try again in a moment.",
    )


@mcp.tool()
async def list_inventory(
    search: str = "", make: str = "", status: str = "", raw: bool = False
) -> str:
    """List active inventory.

    Without status, in-transit units are hidden (main inventory page).
    status: in-stock, in-transit, pdi, pending-pickup or pickup-scheduled.
    """
    return await _call_backend_tool(
        "list_inventory",
        list_inventory_impl,
        search=search,
        make=make,
        status=status,
        raw=raw,
        user_message="I am having trouble loading inventory right now. Please try again in a moment.",
    )


@mcp.tool()
async def list_sold_vehicles(
    search: str = "",
    make: str = "",
    start_date: str = "",
    end_date: str = "",
    month: int | None = None,
    year: int | None = None,
    raw: bool = False,
) -> str:
    """List sold vehicles, newest sale first.

    start_date/end_date (YYYY-MM-DD) take precedence over month/year.
    """
    return await _call_backend_tool(
        "list_sold_vehicles",
        list_sold_vehicles_impl,
        search=search,
        make=make,
        start_date=start_date,
        end_date=end_date,
        month=month,
        year=year,
        raw=raw,
        user_message="I am having trouble loading sold vehicles right now. Please try again in a moment.",
    )


@mcp.tool()
async def list_payments(
    search: str = "",
    payment_method: str = "",
    month: int | None = None,
    year: int | None = None,
    raw: bool = False,
) -> str:
    """List recorded payments on sold vehicles."""
    return await _call_backend_tool(
        "list_payments",
        list_payments_impl,
        search=search,
        payment_method=payment_method,
        month=month,
        year=year,
        raw=raw,
        user_message="I am having trouble loading payments right now. Please try again in a moment.",
    )


@mcp.tool()
async def list_trade_ins(search: str = "", make: str = "", raw: bool = False) -> str:
    """List trade-ins split into awaiting pickup and picked up."""
    return await _call_backend_tool(
        "list_trade_ins",
        list_trade_ins_impl,
        search=search,
        make=make,
        raw=raw,
        user_message="I am having trouble loading trade-ins right now. Please try again in a moment.",
    )


@mcp.tool()
async def get_vehicle(vehicle_id: str, raw: bool = False) -> str:
    """Full details for one vehicle from inventory or the sold archive."""
    return await _call_backend_tool(
        "get_vehicle",
        get_vehicle_impl,
        vehicle_id=vehicle_id,
        raw=raw,
        user_message="I am having trouble loading that vehicle right now. Please try again in a moment.",
    )


# ── Analytics ───────────────────────────────────────────────────────


@mcp.tool()
async def get_revenue_report(granularity: str = "monthly", raw: bool = False) -> str:
    """Revenue and units sold per period.

    granularity: weekly, monthly or yearly
    """
    return await _call_backend_tool(
        "get_revenue_report",
        get_revenue_report_impl,
        granularity=granularity,
        raw=raw,
        user_message="I am having trouble building the revenue report right now. Please try again in a moment.",
    )


@mcp.tool()
async def get_payment_comparison(raw: bool = False) -> str:
    """This month vs last month and this year vs last year payment totals."""
    return await _call_backend_tool(
        "get_payment_comparison",
        get_payment_comparison_impl,
        raw=raw,
        user_message="I am having trouble comparing payments right now. Please try again in a moment.",
    )


@mcp.tool()
async def get_weekly_sales(raw: bool = False) -> str:
    """Vehicles sold Monday through Saturday of the current week."""
    return await _call_backend_tool(
        "get_weekly_sales",
        get_weekly_sales_impl,
        raw=raw,
        user_message="I am having trouble loading weekly sales right now. Please try again in a moment.",
    )


@mcp.tool()
async def get_chart_data(granularity: str = "monthly", raw: bool = False) -> str:
    """Every analytics series: revenue, days to sale, status mix, models, payments, fleets."""
    return await _call_backend_tool(
        "get_chart_data",
        get_chart_data_impl,
        granularity=granularity,
        raw=raw,
        user_message="I am having trouble building chart data right now. Please try again in a moment.",
    )


# ── Duplicates ──────────────────────────────────────────────────────


@mcp.tool()
async def find_duplicates(raw: bool = False) -> str:
    """Scan inventory and sold vehicles for duplicate VINs without deleting anything."""
    return await _call_backend_tool(
        "find_duplicates",
        find_duplicates_impl,
        raw=raw,
        user_message="I am having trouble scanning for duplicates right now. Please try again in a moment.",
    )


@mcp.tool()
async def remove_duplicates(raw: bool = False) -> str:
    """Delete duplicate VIN records, keeping the most recently added copy of each."""
    return await _call_backend_tool(
        "remove_duplicates",
        remove_duplicates_impl,
        raw=raw,
        user_message="I am having trouble removing duplicates right now. Please try again in a moment.",
    )


# ── CSV import / export ─────────────────────────────────────────────


@mcp.tool()
async def preview_csv_import(csv_text: str, raw: bool = False) -> str:
    """Validate a CSV import without writing anything."""
    try:
        return await preview_csv_import_impl(csv_text, raw=raw)
    except Exception as exc:
        return log_and_return_tool_error(
            tool_name="preview_csv_import",
            exc=exc,
            user_message="I am having trouble reading that CSV right now. Please try again in a moment.",
        )


@mcp.tool()
async def import_csv(csv_text: str, raw: bool = False) -> str:
    """Import vehicles from CSV text, skipping VINs that already exist.

    Rows with a sale date or status 'sold' go to the sold archive.
    """
    return await _call_backend_tool(
        "import_csv",
        import_csv_impl,
        csv_text=csv_text,
        raw=raw,
        user_message="I am having trouble importing that CSV right now. Please try again in a moment.",
    )


@mcp.tool()
async def get_example_csv(raw: bool = False) -> str:
    """Return the CSV import template with sample rows."""
    return await get_example_csv_impl(raw=raw)


@mcp.tool()
async def export_csv(
    view: str = "inventory",
    search: str = "",
    make: str = "",
    payment_method: str = "",
    month: int | None = None,
    year: int | None = None,
    raw: bool = False,
) -> str:
    """Export a view as CSV.

    view: inventory, sold, payments, trade-ins, full, or a status page
    (in-stock, in-transit, pdi, pending-pickup, pickup-scheduled)
    """
    return await _call_backend_tool(
        "export_csv",
        export_csv_impl,
        view=view,
        search=search,
        make=make,
        payment_method=payment_method,
        month=month,
        year=year,
        raw=raw,
        user_message="I am having trouble exporting that view right now. Please try again in a moment.",
    )


# ── JSON backup ─────────────────────────────────────────────────────


@mcp.tool()
async def export_backup(raw: bool = False) -> str:
    """Export inventory, sold vehicles and trade-ins as one JSON backup file."""
    return await _call_backend_tool(
        "export_backup",
        export_backup_impl,
        raw=raw,
        user_message="I am having trouble exporting a backup right now. Please try again in a moment.",
    )


@mcp.tool()
async def preview_backup_import(backup_json: str, raw: bool = False) -> str:
    """Check a JSON backup file and count its records without writing anything."""
    try:
        return await preview_backup_import_impl(backup_json, raw=raw)
    except Exception as exc:
        return log_and_return_tool_error(
            tool_name="preview_backup_import",
            exc=exc,
            user_message="I am having trouble reading that backup right now. Please try again in a moment.",
        )


@mcp.tool()
async def import_backup(backup_json: str, duplicate_action: str = "skip", raw: bool = False) -> str:
    """Restore a JSON backup file.

    duplicate_action: skip (keep stored records) or overwrite (replace records
    whose VIN already exists in the same collection)
    """
    return await _call_backend_tool(
        "import_backup",
        import_backup_impl,
        backup_json=backup_json,
        duplicate_action=duplicate_action,
        raw=raw,
        user_message="I am having trouble importing that backup right now. Please try again in a moment.",
    )


# ── Vehicles ────────────────────────────────────────────────────────


@mcp.tool()
async def add_vehicle(
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
    """Add a vehicle to active inventory.

    A blank stock number is generated from the VIN.
    """
    return await _call_backend_tool(
        "add_vehicle",
        add_vehicle_impl,
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
        in_stock_date=in_stock_date,
        raw=raw,
        user_message="I am having trouble adding that vehicle right now. Please try again in a moment.",
    )


@mcp.tool()
async def edit_vehicle(
    vehicle_id: str,
    stock_number: str | None = None,
    vin: str | None = None,
    year: int | None = None,
    make: str | None = None,
    model: str | None = None,
    trim: str | None = None,
    color: str | None = None,
    fleet_company: str | None = None,
    operation_company: str | None = None,
    in_stock_date: str | None = None,
    raw: bool = False,
) -> str:
    """Edit a vehicle. Omitted fields are left unchanged; an empty in_stock_date clears it."""
    return await _call_backend_tool(
        "edit_vehicle",
        edit_vehicle_impl,
        vehicle_id=vehicle_id,
        changes=_changes(
            stock_number=stock_number,
            vin=vin,
            year=year,
            make=make,
            model=model,
            trim=trim,
            color=color,
            fleet_company=fleet_company,
            operation_company=operation_company,
            in_stock_date=in_stock_date,
        ),
        raw=raw,
        user_message="I am having trouble updating that vehicle right now. Please try again in a moment.",
    )


@mcp.tool()
async def save_customer_info(
    vehicle_id: str,
    first_name: str = "",
    last_name: str = "",
    phone: str = "",
    notes: str = "",
    raw: bool = False,
) -> str:
    """Save buyer contact details. Recorded payment fields are kept."""
    return await _call_backend_tool(
        "save_customer_info",
        save_customer_info_impl,
        vehicle_id=vehicle_id,
        first_name=first_name,
        last_name=last_name,
        phone=phone,
        notes=notes,
        raw=raw,
        user_message="I am having trouble saving customer information right now. Please try again in a moment.",
    )


@mcp.tool()
async def save_payment_info(
    vehicle_id: str,
    sale_amount: float = 0,
    sale_date: str = "",
    payment_method: str = "",
    payment_reference: str = "",
    raw: bool = False,
) -> str:
    """Save sale amount, date and payment details. Customer contact fields are kept."""
    return await _call_backend_tool(
        "save_payment_info",
        save_payment_info_impl,
        vehicle_id=vehicle_id,
        sale_amount=sale_amount,
        sale_date=sale_date,
        payment_method=payment_method,
        payment_reference=payment_reference,
        raw=raw,
        user_message="I am having trouble saving payment information right now. Please try again in a moment.",
    )


@mcp.tool()
async def change_status(vehicle_id: str, status: str, raw: bool = False) -> str:
    """Change a vehicle's status.

    Setting a sold vehicle to any other status moves it back to inventory.
    Use mark_sold and schedule_pickup for those two statuses.
    """
    return await _call_backend_tool(
        "change_status",
        change_status_impl,
        vehicle_id=vehicle_id,
        status=status,
        raw=raw,
        user_message="I am having trouble changing that status right now. Please try again in a moment.",
    )


@mcp.tool()
async def schedule_pickup(
    vehicle_id: str,
    pickup_date: str,
    pickup_time: str = "",
    pickup_notes: str = "",
    raw: bool = False,
) -> str:
    """Schedule a customer pickup for an inventory vehicle."""
    return await _call_backend_tool(
        "schedule_pickup",
        schedule_pickup_impl,
        vehicle_id=vehicle_id,
        pickup_date=pickup_date,
        pickup_time=pickup_time,
        pickup_notes=pickup_notes,
        raw=raw,
        user_message="I am having trouble scheduling that pickup right now. Please try again in a moment.",
    )


@mcp.tool()
async def mark_sold(
    vehicle_id: str,
    sale_amount: float = 0,
    sale_date: str = "",
    payment_method: str = "",
    payment_reference: str = "",
    notes: str = "",
    trade_in: dict[str, Any] | None = None,
    raw: bool = False,
) -> str:
    """Move a vehicle to sold.

    trade_in: optional {vin, year, make, model, trim, color, stock_number, mileage}
    """
    return await _call_backend_tool(
        "mark_sold",
        mark_sold_impl,
        vehicle_id=vehicle_id,
        sale_amount=sale_amount,
        sale_date=sale_date,
        payment_method=payment_method,
        payment_reference=payment_reference,
        notes=notes,
        trade_in=trade_in,
        raw=raw,
        user_message="I am having trouble marking that vehicle sold right now. Please try again in a moment.",
    )


@mcp.tool()
async def complete_pickup(
    vehicle_id: str,
    sale_amount: float = 0,
    sale_date: str = "",
    payment_method: str = "",
    payment_reference: str = "",
    notes: str = "",
    trade_in: dict[str, Any] | None = None,
    raw: bool = False,
) -> str:
    """Complete a scheduled pickup, moving the vehicle to sold."""
    return await _call_backend_tool(
        "complete_pickup",
        mark_sold_impl,
        vehicle_id=vehicle_id,
        sale_amount=sale_amount,
        sale_date=sale_date,
        payment_method=payment_method,
        payment_reference=payment_reference,
        notes=notes,
        trade_in=trade_in,
        complete_pickup=True,
        raw=raw,
        user_message="I am having trouble completing that pickup right now. Please try again in a moment.",
    )


@mcp.tool()
async def return_to_inventory(vehicle_id: str, status: str = "in-stock", raw: bool = False) -> str:
    """Move a sold vehicle back to active inventory."""
    return await _call_backend_tool(
        "return_to_inventory",
        return_to_inventory_impl,
        vehicle_id=vehicle_id,
        status=status,
        raw=raw,
        user_message="I am having trouble moving that vehicle back right now. Please try again in a moment.",
    )


@mcp.tool()
async def delete_vehicle(vehicle_id: str, raw: bool = False) -> str:
    """Permanently delete a vehicle from inventory or the sold archive."""
    return await _call_backend_tool(
        "delete_vehicle",
        delete_vehicle_impl,
        vehicle_id=vehicle_id,
        raw=raw,
        user_message="I am having trouble deleting that vehicle right now. Please try again in a moment.",
    )


# ── Trade-ins ───────────────────────────────────────────────────────


@mcp.tool()
async def add_trade_in(
    vin: str,
    year: int | None = None,
    make: str = "",
    model: str = "",
    trim: str = "",
    color: str = "",
    stock_number: str = "",
    mileage: int = 0,
    notes: str = "",
    parent_vehicle_id: str = "",
    raw: bool = False,
) -> str:
    """Add a trade-in. A blank stock number becomes TI-<id>."""
    return await _call_backend_tool(
        "add_trade_in",
        add_trade_in_impl,
        vin=vin,
        year=year,
        make=make,
        model=model,
        trim=trim,
        color=color,
        stock_number=stock_number,
        mileage=mileage,
        notes=notes,
        parent_vehicle_id=parent_vehicle_id or None,
        raw=raw,
        user_message="I am having trouble adding that trade-in right now. Please try again in a moment.",
    )


@mcp.tool()
async def edit_trade_in(
    trade_in_id: str,
    stock_number: str | None = None,
    vin: str | None = None,
    year: int | None = None,
    make: str | None = None,
    model: str | None = None,
    trim: str | None = None,
    color: str | None = None,
    mileage: int | None = None,
    notes: str | None = None,
    raw: bool = False,
) -> str:
    """Edit a trade-in. Omitted fields are left unchanged."""
    return await _call_backend_tool(
        "edit_trade_in",
        edit_trade_in_impl,
        trade_in_id=trade_in_id,
        changes=_changes(
            stock_number=stock_number,
            vin=vin,
            year=year,
            make=make,
            model=model,
            trim=trim,
            color=color,
            mileage=mileage,
            notes=notes,
        ),
        raw=raw,
        user_message="I am having trouble updating that trade-in right now. Please try again in a moment.",
    )


@mcp.tool()
async def toggle_trade_in_pickup(trade_in_id: str, raw: bool = False) -> str:
    """Flip a trade-in between awaiting pickup and picked up."""
    return await _call_backend_tool(
        "toggle_trade_in_pickup",
        toggle_trade_in_pickup_impl,
        trade_in_id=trade_in_id,
        raw=raw,
        user_message="I am having trouble updating that trade-in right now. Please try again in a moment.",
    )


@mcp.tool()
async def delete_trade_in(trade_in_id: str, raw: bool = False) -> str:
    """Permanently delete a trade-in."""
    return await _call_backend_tool(
        "delete_trade_in",
        delete_trade_in_impl,
        trade_in_id=trade_in_id,
        raw=raw,
        user_message="I am having trouble deleting that trade-in right now. Please try again in a moment.",
    )


@mcp.tool()
async def get_trade_in_keytag(trade_in_id: str, raw: bool = False) -> str:
    """Key tag text for a trade-in."""
    return await _call_backend_tool(
        "get_trade_in_keytag",
        get_trade_in_keytag_impl,
        trade_in_id=trade_in_id,
        raw=raw,
        user_message="I am having trouble building that key tag right now. Please try again in a moment.",
    )


# ── Documents ───────────────────────────────────────────────────────


@mcp.tool()
async def attach_document(
    vehicle_id: str,
    file_name: str,
    content_base64: str,
    content_type: str = "application/pdf",
    raw: bool = False,
) -> str:
    """Upload a PDF (max 10MB, base64 encoded) to a vehicle."""
    return await _call_backend_tool(
        "attach_document",
        attach_document_impl,
        vehicle_id=vehicle_id,
        file_name=file_name,
        content_base64=content_base64,
        content_type=content_type,
        raw=raw,
        user_message="I am having trouble uploading that document right now. Please try again in a moment.",
    )


@mcp.tool()
async def list_documents(vehicle_id: str, raw: bool = False) -> str:
    """List documents uploaded for a vehicle."""
    return await _call_backend_tool(
        "list_documents",
        list_documents_impl,
        vehicle_id=vehicle_id,
        raw=raw,
        user_message="I am having trouble listing documents right now. Please try again in a moment.",
    )


@mcp.tool()
async def get_document(document_id: str, download: bool = False, raw: bool = False) -> str:
    """Fetch a document's content as base64."""
    return await _call_backend_tool(
        "get_document",
        get_document_impl,
        document_id=document_id,
        download=download,
        raw=raw,
        user_message="I am having trouble fetching that document right now. Please try again in a moment.",
    )


@mcp.tool()
async def detach_document(vehicle_id: str, document_id: str, raw: bool = False) -> str:
    """Delete a document and remove it from the vehicle."""
    return await _call_backend_tool(
        "detach_document",
        detach_document_impl,
        vehicle_id=vehicle_id,
        document_id=document_id,
        raw=raw,
        user_message="I am having trouble deleting that document right now. Please try again in a moment.",
    )


# ── Maintenance ─────────────────────────────────────────────────────


@mcp.tool()
async def fix_in_transit_dates(raw: bool = False) -> str:
    """Clear the in-stock date on every in-transit vehicle."""
    return await _call_backend_tool(
        "fix_in_transit_dates",
        fix_in_transit_dates_impl,
        raw=raw,
        user_message="I am having trouble fixing in-transit dates right now. Please try again in a moment.",
    )


@mcp.tool()
async def clear_in_stock_dates(count: int, raw: bool = False) -> str:
    """Clear the in-stock date on the N most recently added vehicles."""
    return await _call_backend_tool(
        "clear_in_stock_dates",
        clear_in_stock_dates_impl,
        count=count,
        raw=raw,
        user_message="I am having trouble clearing in-stock dates right now. Please try again in a moment.",
    )


if __name__ == "__main__":
    mcp.run()
