"""Revenue and payment analytics over the sold archive.

Period keys are human-readable labels (``Week 3, 2024``, ``Jan 2024``,
``2024``) and are ordered by parsing them back into a representative date.
Weeks are ISO-8601 (Monday-based) and carry their ISO year.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any

from lot_mcp.constants import (
    MONTH_ABBREVIATIONS,
    MONTH_NAMES,
    STATUS_IN_STOCK,
    STATUS_IN_TRANSIT,
    STATUS_PDI,
    STATUS_PENDING_PICKUP,
    STATUS_PICKUP_SCHEDULED,
    STATUS_SOLD,
)
from lot_mcp.data.records import VehicleRecord
from lot_mcp.filters import is_payment_record, sale_datetime, sort_by_sale_date_desc
from lot_mcp.metrics import days_to_sale

GRANULARITY_WEEKLY = "weekly"
GRANULARITY_MONTHLY = "monthly"
GRANULARITY_YEARLY = "yearly"
GRANULARITIES = (GRANULARITY_WEEKLY, GRANULARITY_MONTHLY, GRANULARITY_YEARLY)

TOP_N = 10

_WEEK_KEY_RE = re.compile(r"^Week (\d{1,2}), (\d{4})$")
_MONTH_KEY_RE = re.compile(r"^([A-Z][a-z]{2}) (\d{4})$")
_YEAR_KEY_RE = re.compile(r"^(\d{4})$")

# Display order and labels for the status doughnut.
_STATUS_CHART_LABELS = (
    (STATUS_IN_STOCK, "In Stock"),
    (STATUS_PDI, "PDI"),
    (STATUS_PENDING_PICKUP, "Pending Pickup"),
    (STATUS_PICKUP_SCHEDULED, "Pickup Scheduled"),
)


def _check_granularity(granularity: str) -> str:
    if granularity not in GRANULARITIES:
        raise ValueError(
            f"Unknown granularity '{granularity}'. Use one of: {', '.join(GRANULARITIES)}."
        )
    return granularity


def period_key(moment: date | datetime, granularity: str = GRANULARITY_MONTHLY) -> str:
    _check_granularity(granularity)
    if granularity == GRANULARITY_WEEKLY:
        iso = moment.isocalendar()
        return f"Week {iso[1]}, {iso[0]}"
    if granularity == GRANULARITY_MONTHLY:
        return f"{MONTH_ABBREVIATIONS[moment.month - 1]} {moment.year}"
    return str(moment.year)


def parse_period_key(key: str, granularity: str = GRANULARITY_MONTHLY) -> date | None:
    """Representative date for a period key; week N maps to Jan 1 + (N-1)*7 days."""
    _check_granularity(granularity)
    if granularity == GRANULARITY_WEEKLY:
        match = _WEEK_KEY_RE.match(key)
        if not match:
            return None
        week, year = int(match.group(1)), int(match.group(2))
        return date(year, 1, 1) + timedelta(days=(week - 1) * 7)
    if granularity == GRANULARITY_MONTHLY:
        match = _MONTH_KEY_RE.match(key)
        if not match or match.group(1) not in MONTH_ABBREVIATIONS:
            return None
        return date(int(match.group(2)), MONTH_ABBREVIATIONS.index(match.group(1)) + 1, 1)
    match = _YEAR_KEY_RE.match(key)
    return date(int(match.group(1)), 1, 1) if match else None


@dataclass
class RevenuePoint:
    period: str
    total: float = 0.0
    count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"period": self.period, "total": round(self.total, 2), "count": self.count}


def revenue_series(
    sold: list[VehicleRecord], granularity: str = GRANULARITY_MONTHLY
) -> list[RevenuePoint]:
    """Sale amounts summed per period, oldest period first."""
    _check_granularity(granularity)
    buckets: dict[str, RevenuePoint] = {}
    for record in sold:
        sold_at = sale_datetime(record)
        if sold_at is None:
            continue
        key = period_key(sold_at, granularity)
        point = buckets.setdefault(key, RevenuePoint(period=key))
        point.total += record.sale_amount
        point.count += 1
    return sorted(
        buckets.values(),
        key=lambda p: parse_period_key(p.period, granularity) or date.min,
    )


# ── Period-over-period ─────────────────────────────────────────────


def pct_delta(current: float, previous: float) -> float:
    """Percent change; 0 when there is nothing to compare against."""
    if not previous:
        return 0.0
    return (current - previous) / previous * 100


@dataclass
class PeriodComparison:
    current_label: str
    previous_label: str
    current_total: float = 0.0
    previous_total: float = 0.0
    current_count: int = 0
    previous_count: int = 0

    @property
    def revenue_delta_pct(self) -> float:
        return pct_delta(self.current_total, self.previous_total)

    @property
    def count_delta_pct(self) -> float:
        return pct_delta(self.current_count, self.previous_count)

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_label": self.current_label,
            "previous_label": self.previous_label,
            "current_total": round(self.current_total, 2),
            "previous_total": round(self.previous_total, 2),
            "current_count": self.current_count,
            "previous_count": self.previous_count,
            "revenue_delta_pct": round(self.revenue_delta_pct, 1),
            "count_delta_pct": round(self.count_delta_pct, 1),
        }


def _payments(sold: list[VehicleRecord]) -> list[tuple[datetime, float]]:
    """``(sale datetime, amount)`` for payment records; a missing amount counts as 0."""
    pairs = []
    for record in sold:
        if not is_payment_record(record):
            continue
        sold_at = sale_datetime(record)
        if sold_at is not None:
            pairs.append((sold_at, record.sale_amount or 0.0))
    return pairs


def month_over_month(
    sold: list[VehicleRecord], now: datetime | None = None
) -> PeriodComparison:
    today = now or datetime.now()
    prev_year, prev_month = (
        (today.year - 1, 12) if today.month == 1 else (today.year, today.month - 1)
    )
    result = PeriodComparison(
        current_label=f"{MONTH_NAMES[today.month - 1]} {today.year}",
        previous_label=f"{MONTH_NAMES[prev_month - 1]} {prev_year}",
    )
    for sold_at, amount in _payments(sold):
        if (sold_at.year, sold_at.month) == (today.year, today.month):
            result.current_total += amount
            result.current_count += 1
        elif (sold_at.year, sold_at.month) == (prev_year, prev_month):
            result.previous_total += amount
            result.previous_count += 1
    return result


def year_over_year(sold: list[VehicleRecord], now: datetime | None = None) -> PeriodComparison:
    today = now or datetime.now()
    result = PeriodComparison(
        current_label=str(today.year),
        previous_label=str(today.year - 1),
    )
    for sold_at, amount in _payments(sold):
        if sold_at.year == today.year:
            result.current_total += amount
            result.current_count += 1
        elif sold_at.year == today.year - 1:
            result.previous_total += amount
            result.previous_count += 1
    return result


# ── Weekly sales widget ─────────────────────────────────────────────


def weekly_window(today: date | datetime | None = None) -> tuple[date, date]:
    """Monday through Saturday of the current week; Sunday belongs to the week before."""
    day = today or date.today()
    if isinstance(day, datetime):
        day = day.date()
    monday = day - timedelta(days=day.weekday())
    return monday, monday + timedelta(days=5)


@dataclass
class WeeklySales:
    start: date
    end: date
    vehicles: list[VehicleRecord] = field(default_factory=list)

    @property
    def total_revenue(self) -> float:
        return sum(v.sale_amount for v in self.vehicles)

    @property
    def label(self) -> str:
        def _fmt(d: date) -> str:
            return f"{MONTH_ABBREVIATIONS[d.month - 1]} {d.day}, {d.year}"

        return f"{_fmt(self.start)} - {_fmt(self.end)}"


def weekly_sales(
    sold: list[VehicleRecord], today: date | datetime | None = None
) -> WeeklySales:
    monday, saturday = weekly_window(today)
    in_window = []
    for record in sold:
        sold_at = sale_datetime(record)
        if sold_at is not None and monday <= sold_at.date() <= saturday:
            in_window.append(record)
    return WeeklySales(start=monday, end=saturday, vehicles=sort_by_sale_date_desc(in_window))


# ── Chart series ────────────────────────────────────────────────────


def average_days_to_sale(sold: list[VehicleRecord]) -> list[dict[str, Any]]:
    """Mean dwell per sale month, chronological.  Negative dwell is dropped."""
    totals: dict[str, list[int]] = {}
    for record in sold:
        days = days_to_sale(record)
        sold_at = sale_datetime(record)
        if days is None or days < 0 or sold_at is None:
            continue
        totals.setdefault(period_key(sold_at), []).append(days)
    ordered = sorted(totals, key=lambda k: parse_period_key(k) or date.min)
    return [
        {
            "month": key,
            "average_days": round(sum(totals[key]) / len(totals[key]), 1),
            "count": len(totals[key]),
        }
        for key in ordered
    ]


def status_distribution(inventory: list[VehicleRecord]) -> dict[str, int]:
    """Unit counts per on-lot status; in-transit units are not on the chart."""
    counts = Counter(v.status for v in inventory if v.status != STATUS_IN_TRANSIT)
    return {label: counts.get(status, 0) for status, label in _STATUS_CHART_LABELS}


def _ranked(counter: Counter[str], limit: int | None = None) -> list[dict[str, Any]]:
    # Counter.most_common keeps first-seen order among equal counts.
    return [{"name": name, "count": count} for name, count in counter.most_common(limit)]


def model_counts(inventory: list[VehicleRecord]) -> list[dict[str, Any]]:
    return _ranked(
        Counter(
            f"{v.make} {v.model}".strip() for v in inventory if v.status != STATUS_IN_TRANSIT
        )
    )


def payment_method_distribution(sold: list[VehicleRecord]) -> dict[str, int]:
    return dict(Counter(v.payment_method for v in sold if v.payment_method))


def top_sold_models(sold: list[VehicleRecord], limit: int = TOP_N) -> list[dict[str, Any]]:
    return _ranked(Counter(f"{v.make} {v.model}".strip() for v in sold), limit)


def top_fleet_companies(
    inventory: list[VehicleRecord], limit: int = TOP_N
) -> list[dict[str, Any]]:
    return _ranked(
        Counter(
            v.fleet_company
            for v in inventory
            if v.fleet_company and v.status not in (STATUS_SOLD, STATUS_IN_TRANSIT)
        ),
        limit,
    )


def chart_series(
    inventory: list[VehicleRecord],
    sold: list[VehicleRecord],
    granularity: str = GRANULARITY_MONTHLY,
) -> dict[str, Any]:
    """Every series the analytics page plots, keyed by chart."""
    return {
        "revenue": [p.to_dict() for p in revenue_series(sold, granularity)],
        "average_days_to_sale": average_days_to_sale(sold),
        "status_distribution": status_distribution(inventory),
        "model_counts": model_counts(inventory),
        "payment_methods": payment_method_distribution(sold),
        "top_sold_models": top_sold_models(sold),
        "top_fleet_companies": top_fleet_companies(inventory),
    }
