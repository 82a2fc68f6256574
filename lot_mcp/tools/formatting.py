"""Plain-text rendering of records for tool responses."""

from __future__ import annotations

from typing import Any

from lot_mcp.data.records import TradeInRecord, VehicleRecord
from lot_mcp.ingestion.export import display_date
from lot_mcp.metrics import age_color_tier, days_in_stock, format_status_label

MAX_LISTED = 50


def money(amount: float) -> str:
    return f"${amount:,.2f}"


def vehicle_line(record: VehicleRecord) -> str:
    parts = [record.stock_number or str(record.id), f"{record.title} {record.trim}".strip()]
    parts.append(f"VIN {record.vin}")
    parts.append(format_status_label(record.status))
    if record.is_sold:
        if record.sale_date:
            parts.append(f"sold {display_date(record.sale_date)}")
        if record.sale_amount:
            parts.append(money(record.sale_amount))
        if record.customer and record.customer.full_name:
            parts.append(record.customer.full_name)
    else:
        days = days_in_stock(record)
        parts.append("age unknown" if days is None else f"{days} days ({age_color_tier(days)})")
    return " | ".join(parts)


def trade_in_line(record: TradeInRecord) -> str:
    state = f"picked up {display_date(record.picked_up_date)}" if record.picked_up else "awaiting pickup"
    return f"{record.stock_number} | {record.title} | VIN {record.vin} | {record.mileage:,} mi | {state}"


def vehicle_summary(record: VehicleRecord) -> dict[str, Any]:
    """Compact dict used in raw payloads."""
    days = None if record.is_sold else days_in_stock(record)
    return {
        "id": record.id,
        "stock_number": record.stock_number,
        "vin": record.vin,
        "vehicle": record.title,
        "trim": record.trim,
        "color": record.color,
        "status": record.status,
        "status_label": format_status_label(record.status),
        "fleet_company": record.fleet_company,
        "operation_company": record.operation_company,
        "in_stock_date": record.in_stock_date,
        "days_in_stock": days,
        "age_tier": age_color_tier(days),
        "customer": record.customer.full_name if record.customer else "",
        "sale_date": record.sale_date,
        "sale_amount": record.sale_amount,
        "payment_method": record.payment_method,
        "payment_reference": record.payment_reference,
    }


def listing(title: str, lines: list[str], *, empty: str) -> str:
    if not lines:
        return f"{title}\n{empty}"
    shown = lines[:MAX_LISTED]
    body = "\n".join(f"- {line}" for line in shown)
    if len(lines) > len(shown):
        body += f"\n... and {len(lines) - len(shown)} more"
    return f"{title}\n{body}"
