"""Revenue, payment comparison and chart-series tools."""

from __future__ import annotations

from lot_mcp.analytics import (
    GRANULARITY_MONTHLY,
    chart_series,
    month_over_month,
    revenue_series,
    weekly_sales,
    year_over_year,
)
from lot_mcp.data.backend import InventoryBackend
from lot_mcp.data.state import load_state
from lot_mcp.tools.formatting import listing, money, vehicle_line, vehicle_summary
from lot_mcp.tools.responses import respond

_PERIOD_NOUNS = {"weekly": "week", "monthly": "month", "yearly": "year"}


def _signed_pct(value: float) -> str:
    return f"{value:+.1f}%"


async def get_revenue_report_impl(
    backend: InventoryBackend,
    *,
    granularity: str = GRANULARITY_MONTHLY,
    raw: bool = False,
) -> str:
    state = await load_state(backend)
    points = revenue_series(state.sold, granularity)
    data = {"granularity": granularity, "series": [p.to_dict() for p in points]}
    text = listing(
        f"Revenue by {_PERIOD_NOUNS.get(granularity, granularity)}",
        [f"{p.period}: {money(p.total)} ({p.count} sold)" for p in points],
        empty="No sales data available",
    )
    return respond("get_revenue_report", data, text, raw=raw)


async def get_payment_comparison_impl(backend: InventoryBackend, *, raw: bool = False) -> str:
    """Month-over-month and year-over-year payment totals."""
    state = await load_state(backend)
    mom = month_over_month(state.sold)
    yoy = year_over_year(state.sold)
    data = {"month_over_month": mom.to_dict(), "year_over_year": yoy.to_dict()}
    text = "\n".join([
        f"{mom.current_label}: {money(mom.current_total)} from {mom.current_count} payment(s) "
        f"({_signed_pct(mom.revenue_delta_pct)} vs {mom.previous_label})",
        f"{yoy.current_label}: {money(yoy.current_total)} from {yoy.current_count} payment(s) "
        f"({_signed_pct(yoy.revenue_delta_pct)} vs {yoy.previous_label})",
    ])
    return respond("get_payment_comparison", data, text, raw=raw)


async def get_weekly_sales_impl(backend: InventoryBackend, *, raw: bool = False) -> str:
    state = await load_state(backend)
    week = weekly_sales(state.sold)
    data = {
        "start": week.start.isoformat(),
        "end": week.end.isoformat(),
        "count": len(week.vehicles),
        "total_revenue": round(week.total_revenue, 2),
        "vehicles": [vehicle_summary(v) for v in week.vehicles],
    }
    text = listing(
        f"Sales {week.label}: {len(week.vehicles)} vehicle(s), {money(week.total_revenue)}",
        [vehicle_line(v) for v in week.vehicles],
        empty="No vehicles sold this week",
    )
    return respond("get_weekly_sales", data, text, raw=raw)


async def get_chart_data_impl(
    backend: InventoryBackend,
    *,
    granularity: str = GRANULARITY_MONTHLY,
    raw: bool = False,
) -> str:
    state = await load_state(backend)
    series = chart_series(state.inventory, state.sold, granularity)

    sections = [
        listing(
            "Average days to sale",
            [f"{row['month']}: {row['average_days']} days ({row['count']})"
             for row in series["average_days_to_sale"]],
            empty="No sold vehicle data available",
        ),
        listing(
            "Inventory status",
            [f"{label}: {count}" for label, count in series["status_distribution"].items()],
            empty="No vehicles",
        ),
        listing(
            "Top selling models",
            [f"{row['name']}: {row['count']}" for row in series["top_sold_models"]],
            empty="No sold vehicle data available",
        ),
        listing(
            "Payment methods",
            [f"{name}: {count}" for name, count in series["payment_methods"].items()],
            empty="No payment data available",
        ),
        listing(
            "Fleet companies on lot",
            [f"{row['name']}: {row['count']}" for row in series["top_fleet_companies"]],
            empty="No fleet company data available",
        ),
    ]
    return respond("get_chart_data", series, "\n\n".join(sections), raw=raw)
