"""CSV and JSON backup import/export tool implementations."""

from __future__ import annotations

import json

from lot_mcp.constants import VEHICLE_STATUSES
from lot_mcp.data.backend import InventoryBackend
from lot_mcp.data.state import load_state
from lot_mcp.filters import (
    InventoryFilter,
    PaymentFilter,
    SoldFilter,
    inventory_view,
    payments_view,
    sold_view,
    status_view,
)
from lot_mcp.ingestion.backup import (
    BackupImportError,
    backup_filename,
    export_backup,
    import_backup,
    preview_backup,
)
from lot_mcp.ingestion.csv_import import (
    EXAMPLE_CSV_FILENAME,
    CSVImportError,
    example_csv,
    import_csv,
    preview_csv,
)
from lot_mcp.ingestion.export import (
    export_filename,
    full_csv,
    inventory_csv,
    payments_csv,
    payments_filename,
    sold_csv,
    trade_ins_csv,
)
from lot_mcp.tools.responses import format_error, respond

EXPORT_VIEWS = ("inventory", "sold", "payments", "trade-ins", "full", *VEHICLE_STATUSES)


def _summary_lines(errors: list[str], limit: int = 20) -> list[str]:
    lines = [f"  {e}" for e in errors[:limit]]
    if len(errors) > limit:
        lines.append(f"  ... and {len(errors) - limit} more")
    return lines


async def preview_csv_import_impl(csv_text: str, *, raw: bool = False) -> str:
    """Dry run: parse and validate without writing anything."""
    try:
        preview = preview_csv(csv_text)
    except CSVImportError as exc:
        return format_error(
            tool_name="preview_csv_import", raw=raw, code="INVALID_CSV", message=str(exc)
        )
    data = preview.to_dict()
    lines = [
        f"{data['ready']} vehicles ready to import ({data['ready_as_sold']} as sold)",
    ]
    if preview.errors:
        lines.append(f"{len(preview.errors)} errors found:")
        lines.extend(_summary_lines(preview.errors))
    return respond("preview_csv_import", data, "\n".join(lines), raw=raw)


async def import_csv_impl(backend: InventoryBackend, csv_text: str, *, raw: bool = False) -> str:
    try:
        report = await import_csv(backend, csv_text)
    except CSVImportError as exc:
        return format_error(
            tool_name="import_csv", raw=raw, code="INVALID_CSV", message=str(exc)
        )

    lines = [f"{report.imported} vehicles imported successfully"]
    if report.imported_as_sold:
        lines.append(f"{report.imported_as_sold} imported as sold")
    if report.duplicates_skipped:
        lines.append(f"{report.duplicates_skipped} duplicates skipped")
        lines.extend(_summary_lines(report.duplicates))
    if report.validation_failed:
        lines.append(f"{report.validation_failed} rows failed validation")
    if report.failed:
        lines.append(f"{report.failed} vehicles failed")
    if report.errors:
        lines.append("Errors:")
        lines.extend(_summary_lines(report.errors))
    return respond("import_csv", report.to_dict(), "\n".join(lines), raw=raw)


async def get_example_csv_impl(*, raw: bool = False) -> str:
    content = example_csv()
    data = {"filename": EXAMPLE_CSV_FILENAME, "content": content}
    return respond("get_example_csv", data, f"{EXAMPLE_CSV_FILENAME}\n\n{content}", raw=raw)


async def export_csv_impl(
    backend: InventoryBackend,
    *,
    view: str = "inventory",
    search: str = "",
    make: str = "",
    payment_method: str = "",
    month: int | None = None,
    year: int | None = None,
    raw: bool = False,
) -> str:
    """Export one dashboard view as quoted CSV with the view's filters applied."""
    if view not in EXPORT_VIEWS:
        raise ValueError(f"Unknown export view '{view}'. Use one of: {', '.join(EXPORT_VIEWS)}.")

    state = await load_state(backend)
    if view == "inventory":
        rows = inventory_view(state.inventory, InventoryFilter(search=search, make=make))
        content, filename = inventory_csv(rows), export_filename("inventory")
    elif view == "sold":
        rows = sold_view(state.sold, SoldFilter(search=search, make=make).with_month_year(month, year))
        content, filename = sold_csv(rows), export_filename("sold-vehicles")
    elif view == "payments":
        rows = payments_view(
            state.sold,
            PaymentFilter(search=search, payment_method=payment_method, month=month, year=year),
        )
        content, filename = payments_csv(rows), payments_filename(month, year)
    elif view == "trade-ins":
        rows = state.trade_ins
        content, filename = trade_ins_csv(rows), export_filename("tradeins")
    elif view == "full":
        rows = [*state.inventory, *state.sold]
        content, filename = full_csv(rows), export_filename("full")
    else:
        rows = status_view(state.inventory, view, search=search, make=make)
        content, filename = inventory_csv(rows), export_filename(view)

    if not rows:
        return "No vehicles to export"
    data = {"filename": filename, "rows": len(rows), "content": content}
    return respond(
        "export_csv", data, f"Exported {len(rows)} row(s) to {filename}\n\n{content}", raw=raw
    )


# ── JSON backup ─────────────────────────────────────────────────────


async def export_backup_impl(backend: InventoryBackend, *, raw: bool = False) -> str:
    backup = await export_backup(backend)
    filename = backup_filename()
    counts = {
        "inventory": len(backup["inventory"]),
        "sold_vehicles": len(backup["soldVehicles"]),
        "trade_ins": len(backup["tradeIns"]),
        "documents": len(backup["documents"]),
    }
    content = json.dumps(backup, indent=2)
    data = {"filename": filename, "counts": counts, "content": content}
    text = (
        f"Exported {counts['inventory']} inventory, {counts['sold_vehicles']} sold, "
        f"{counts['trade_ins']} trade-in(s) to {filename}\n\n{content}"
    )
    return respond("export_backup", data, text, raw=raw)


async def preview_backup_import_impl(backup_json: str, *, raw: bool = False) -> str:
    try:
        preview = preview_backup(backup_json)
    except BackupImportError as exc:
        return format_error(
            tool_name="preview_backup_import", raw=raw, code="INVALID_BACKUP", message=str(exc)
        )
    text = (
        f"Export from {preview.export_date or 'unknown date'} "
        f"(version {preview.version or '?'}): "
        f"{preview.inventory} inventory, {preview.sold_vehicles} sold, "
        f"{preview.trade_ins} trade-in(s), {preview.documents} document(s)"
    )
    return respond("preview_backup_import", preview.to_dict(), text, raw=raw)


async def import_backup_impl(
    backend: InventoryBackend,
    backup_json: str,
    duplicate_action: str = "skip",
    *,
    raw: bool = False,
) -> str:
    try:
        report = await import_backup(backend, backup_json, duplicate_action)
    except BackupImportError as exc:
        return format_error(
            tool_name="import_backup", raw=raw, code="INVALID_BACKUP", message=str(exc)
        )

    lines = [
        f"Imported {report.total_imported}, skipped {report.total_skipped}, "
        f"errors {report.total_errors}",
    ]
    for label, result in (
        ("Trade-ins", report.trade_ins),
        ("Inventory", report.inventory),
        ("Sold vehicles", report.sold_vehicles),
    ):
        lines.append(
            f"{label}: {result.imported} imported, {result.skipped} skipped, "
            f"{len(result.errors)} error(s)"
        )
        lines.extend(_summary_lines([f"{e['vin'] or '?'}: {e['error']}" for e in result.errors]))
    return respond("import_backup", report.to_dict(), "\n".join(lines), raw=raw)
