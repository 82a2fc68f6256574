"""Duplicate VIN scan and cleanup tools."""

from __future__ import annotations

from lot_mcp.data.backend import InventoryBackend
from lot_mcp.data.state import load_state
from lot_mcp.reconcile.duplicates import DuplicateGroup, remove_duplicates, scan_duplicates
from lot_mcp.tools.formatting import listing
from lot_mcp.tools.responses import respond


def _group_line(group: DuplicateGroup) -> str:
    removing = ", ".join(
        f"{r.record.stock_number or r.record.id} ({r.source})" for r in group.remove
    )
    return (
        f"{group.vin}: keep {group.keep.record.stock_number or group.keep.record.id} "
        f"({group.keep.source}), remove {removing}"
    )


async def find_duplicates_impl(backend: InventoryBackend, *, raw: bool = False) -> str:
    state = await load_state(backend)
    groups = scan_duplicates(state.inventory, state.sold)
    marked = sum(len(g.remove) for g in groups)
    data = {
        "groups": [g.to_dict() for g in groups],
        "group_count": len(groups),
        "records_to_remove": marked,
    }
    text = listing(
        f"{len(groups)} duplicate VIN(s), {marked} record(s) to remove",
        [_group_line(g) for g in groups],
        empty="No duplicate VINs found.",
    )
    return respond("find_duplicates", data, text, raw=raw)


async def remove_duplicates_impl(backend: InventoryBackend, *, raw: bool = False) -> str:
    """Scan, then delete every duplicate except the most recently added copy."""
    state = await load_state(backend)
    groups = scan_duplicates(state.inventory, state.sold)
    if not groups:
        return respond(
            "remove_duplicates",
            {"groups": [], "removed": 0, "failed": 0, "errors": []},
            "No duplicate VINs found.",
            raw=raw,
        )

    report = await remove_duplicates(backend, groups)
    await state.reload(backend)
    data = {"groups": [g.to_dict() for g in groups], **report.to_dict()}
    lines = [f"Removed {report.removed} duplicate record(s)"]
    if report.failed:
        lines.append(f"{report.failed} failed:")
        lines.extend(f"  {e}" for e in report.errors)
    return respond("remove_duplicates", data, "\n".join(lines), raw=raw)
