"""Bulk data-fix tools."""

from __future__ import annotations

from lot_mcp import lifecycle
from lot_mcp.data.backend import InventoryBackend
from lot_mcp.data.state import load_state
from lot_mcp.lifecycle import BatchResult
from lot_mcp.tools.responses import respond


def _batch_text(result: BatchResult, noun: str) -> str:
    if not result.success and not result.errors:
        return f"No {noun} needed updating."
    lines = [f"Updated {result.success} {noun}"]
    if result.errors:
        lines.append(f"{result.errors} error(s):")
        lines.extend(f"  {m}" for m in result.messages)
    return "\n".join(lines)


async def fix_in_transit_dates_impl(backend: InventoryBackend, *, raw: bool = False) -> str:
    state = await load_state(backend)
    result = await lifecycle.fix_in_transit_dates(state, backend)
    return respond(
        "fix_in_transit_dates", result.to_dict(), _batch_text(result, "in-transit vehicle(s)"), raw=raw
    )


async def clear_in_stock_dates_impl(
    backend: InventoryBackend, *, count: int, raw: bool = False
) -> str:
    """Clear the in-stock date on the ``count`` most recently added vehicles."""
    state = await load_state(backend)
    result = await lifecycle.batch_clear_in_stock_dates(state, backend, count)
    return respond(
        "clear_in_stock_dates", result.to_dict(), _batch_text(result, "vehicle(s)"), raw=raw
    )
