"""Derived per-record metrics: aging, status labels, stat-card counts."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from lot_mcp.constants import (
    AGE_AGING_MAX_DAYS,
    AGE_FRESH_MAX_DAYS,
    AGE_TIER_AGING,
    AGE_TIER_FRESH,
    AGE_TIER_NEUTRAL,
    AGE_TIER_STALE,
    ON_LOT_STATUSES,
    STATUS_IN_TRANSIT,
    STATUS_PENDING_PICKUP,
    STATUS_PICKUP_SCHEDULED,
    STOCK_NUMBER_PREFIX,
)
from lot_mcp.data.records import TradeInRecord, VehicleRecord
from lot_mcp.normalization import normalize_vin, parse_local_date


def _as_date(value: date | datetime | str | None) -> date | None:
    if value is None:
        return date.today()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return parse_local_date(value)


def days_in_stock(
    record: VehicleRecord, as_of: date | datetime | str | None = None
) -> int | None:
    """Whole calendar days between ``in_stock_date`` and ``as_of`` (default today).

    Both ends are truncated to local midnight, so the result does not depend
    on the time of day.  ``None`` means the age is unknown.
    """
    start = parse_local_date(record.in_stock_date)
    if start is None:
        return None
    end = _as_date(as_of)
    if end is None:
        return None
    return (end - start).days


def dwell_days(record: VehicleRecord) -> int | None:
    """Days a sold vehicle sat in stock before its sale date."""
    if record.sale_date is None:
        return None
    return days_in_stock(record, record.sale_date)


def days_to_sale(record: VehicleRecord) -> int | None:
    """Dwell time used by the days-to-sale chart; ``None`` if either date is missing."""
    return dwell_days(record)


def age_color_tier(days: int | None) -> str:
    if days is None:
        return AGE_TIER_NEUTRAL
    if days <= AGE_FRESH_MAX_DAYS:
        return AGE_TIER_FRESH
    if days <= AGE_AGING_MAX_DAYS:
        return AGE_TIER_AGING
    return AGE_TIER_STALE


def format_status_label(status: str) -> str:
    """``pending-pickup`` → ``Pending Pickup``.  ``pdi`` renders as ``Pdi``."""
    return " ".join(word.capitalize() for word in status.split("-"))


def auto_stock_number(vin: str) -> str:
    """Default stock number: ``CD`` plus the last five VIN characters."""
    normalized = normalize_vin(vin)
    if len(normalized) != 17:
        return ""
    return f"{STOCK_NUMBER_PREFIX}{normalized[-5:]}"


def status_counts(
    inventory: list[VehicleRecord],
    sold: list[VehicleRecord],
    trade_ins: list[TradeInRecord] | None = None,
) -> dict[str, int]:
    """Numbers behind the dashboard stat cards."""
    return {
        "total_active": len(inventory),
        "on_lot": sum(1 for v in inventory if v.status in ON_LOT_STATUSES),
        "in_transit": sum(1 for v in inventory if v.status == STATUS_IN_TRANSIT),
        "pending_pickup": sum(1 for v in inventory if v.status == STATUS_PENDING_PICKUP),
        "pickup_scheduled": sum(1 for v in inventory if v.status == STATUS_PICKUP_SCHEDULED),
        "sold": len(sold),
        "trade_ins_awaiting_pickup": sum(1 for t in trade_ins or [] if not t.picked_up),
    }


def describe_age(record: VehicleRecord, as_of: Any = None) -> dict[str, Any]:
    """Age summary for one record as shown on the vehicle card."""
    days = days_in_stock(record, as_of)
    return {
        "days_in_stock": days,
        "age_tier": age_color_tier(days),
        "status_label": format_status_label(record.status),
    }
