"""Trade-in tool implementations."""

from __future__ import annotations

from typing import Any

from lot_mcp import lifecycle
from lot_mcp.data.backend import InventoryBackend
from lot_mcp.data.records import TradeInRecord
from lot_mcp.data.state import load_state
from lot_mcp.lifecycle import TradeInDraft
from lot_mcp.tools.formatting import trade_in_line
from lot_mcp.tools.responses import respond


def _trade_in_response(tool_name: str, record: TradeInRecord, headline: str, *, raw: bool) -> str:
    return respond(
        tool_name, {"trade_in": record.to_dict()}, f"{headline}\n{trade_in_line(record)}", raw=raw
    )


async def add_trade_in_impl(
    backend: InventoryBackend,
    *,
    vin: str,
    year: int | None = None,
    make: str = "",
    model: str = "",
    trim: str = "",
    color: str = "",
    stock_number: str = "",
    mileage: int = 0,
    notes: str = "",
    parent_vehicle_id: str | None = None,
    raw: bool = False,
) -> str:
    draft = TradeInDraft(
        vin=vin,
        year=year,
        make=make,
        model=model,
        trim=trim,
        color=color,
        stock_number=stock_number,
        mileage=mileage,
        notes=notes,
    )
    state = await load_state(backend)
    record = await lifecycle.add_trade_in(
        state, backend, draft, parent_vehicle_id=parent_vehicle_id
    )
    return _trade_in_response("add_trade_in", record, "Trade-in added.", raw=raw)


async def edit_trade_in_impl(
    backend: InventoryBackend,
    *,
    trade_in_id: str,
    changes: dict[str, Any],
    raw: bool = False,
) -> str:
    if not changes:
        raise ValueError("No changes given.")
    state = await load_state(backend)
    record = await lifecycle.edit_trade_in(state, backend, trade_in_id, **changes)
    return _trade_in_response("edit_trade_in", record, "Trade-in updated.", raw=raw)


async def toggle_trade_in_pickup_impl(
    backend: InventoryBackend, *, trade_in_id: str, raw: bool = False
) -> str:
    state = await load_state(backend)
    record = await lifecycle.toggle_trade_in_pickup(state, backend, trade_in_id)
    headline = "Marked as picked up." if record.picked_up else "Marked as awaiting pickup."
    return _trade_in_response("toggle_trade_in_pickup", record, headline, raw=raw)


async def delete_trade_in_impl(
    backend: InventoryBackend, *, trade_in_id: str, raw: bool = False
) -> str:
    state = await load_state(backend)
    await lifecycle.delete_trade_in(state, backend, trade_in_id)
    return respond(
        "delete_trade_in",
        {"trade_in_id": trade_in_id},
        f"Trade-in {trade_in_id} deleted.",
        raw=raw,
    )


async def get_trade_in_keytag_impl(
    backend: InventoryBackend, *, trade_in_id: str, raw: bool = False
) -> str:
    """Key tag lines for a trade-in, top to bottom."""
    state = await load_state(backend)
    record = state.find_trade_in(trade_in_id)
    if record is None:
        raise ValueError(f"Trade-in '{trade_in_id}' not found.")
    tag = lifecycle.trade_in_keytag(record)
    text = "\n".join(
        [tag["stock"], tag["vehicle"], tag["vin"], tag["color"], tag["mileage"], tag["tag"]]
    )
    return respond("get_trade_in_keytag", tag, text, raw=raw)
