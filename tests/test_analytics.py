"""Revenue, period-over-period, weekly sales and chart series."""

from __future__ import annotations

from datetime import date, datetime

import pytest
from conftest import sold_vehicle, vehicle

from lot_mcp.analytics import (
    average_days_to_sale,
    chart_series,
    model_counts,
    month_over_month,
    parse_period_key,
    payment_method_distribution,
    pct_delta,
    period_key,
    revenue_series,
    status_distribution,
    top_fleet_companies,
    top_sold_models,
    weekly_sales,
    weekly_window,
    year_over_year,
)

# ── Period keys ─────────────────────────────────────────────────────


class TestPeriodKey:
    def test_monthly(self):
        assert period_key(date(2024, 2, 29)) == "Feb 2024"

    def test_yearly(self):
        assert period_key(date(2024, 2, 29), "yearly") == "2024"

    def test_weekly_uses_iso_week(self):
        assert period_key(date(2024, 1, 1), "weekly") == "Week 1, 2024"
        assert period_key(date(2024, 1, 7), "weekly") == "Week 1, 2024"
        assert period_key(date(2024, 1, 8), "weekly") == "Week 2, 2024"

    def test_weekly_carries_iso_year(self):
        assert period_key(date(2024, 12, 30), "weekly") == "Week 1, 2025"
        assert period_key(date(2023, 1, 1), "weekly") == "Week 52, 2022"

    def test_unknown_granularity(self):
        with pytest.raises(ValueError, match="Unknown granularity"):
            period_key(date(2024, 1, 1), "daily")

    def test_parse_back(self):
        assert parse_period_key("Mar 2024") == date(2024, 3, 1)
        assert parse_period_key("2023", "yearly") == date(2023, 1, 1)
        assert parse_period_key("Week 3, 2024", "weekly") == date(2024, 1, 15)
        assert parse_period_key("garbage") is None


# ── Revenue series ──────────────────────────────────────────────────


class TestRevenueSeries:
    def test_monthly_totals_chronological(self):
        sold = [
            sold_vehicle("2024-02-10", 200),
            sold_vehicle("2023-12-01", 50),
            sold_vehicle("2024-02-20", 300),
            sold_vehicle("2024-01-05", 100),
        ]
        series = revenue_series(sold)
        assert [(p.period, p.total, p.count) for p in series] == [
            ("Dec 2023", 50.0, 1),
            ("Jan 2024", 100.0, 1),
            ("Feb 2024", 500.0, 2),
        ]

    def test_missing_amount_counts_as_zero(self):
        series = revenue_series([sold_vehicle("2024-01-05", None)])
        assert (series[0].total, series[0].count) == (0.0, 1)

    def test_records_without_sale_date_skipped(self):
        assert revenue_series([sold_vehicle(None, 100)]) == []

    def test_yearly(self):
        sold = [sold_vehicle("2023-06-01", 10), sold_vehicle("2024-06-01", 20)]
        assert [p.period for p in revenue_series(sold, "yearly")] == ["2023", "2024"]

    def test_weekly_orders_across_years(self):
        sold = [sold_vehicle("2024-01-10", 1), sold_vehicle("2023-12-20", 1)]
        assert [p.period for p in revenue_series(sold, "weekly")] == ["Week 51, 2023", "Week 2, 2024"]

    def test_to_dict(self):
        point = revenue_series([sold_vehicle("2024-01-05", 10.25)])[0]
        assert point.to_dict() == {"period": "Jan 2024", "total": 10.25, "count": 1}


# ── Period over period ──────────────────────────────────────────────


class TestComparisons:
    def test_pct_delta_zero_previous(self):
        assert pct_delta(500, 0) == 0.0

    def test_pct_delta(self):
        assert pct_delta(150, 100) == 50.0
        assert pct_delta(50, 100) == -50.0

    def test_month_over_month(self):
        sold = [
            sold_vehicle("2024-03-02", 300),
            sold_vehicle("2024-03-20", 100),
            sold_vehicle("2024-02-14", 200),
            sold_vehicle("2023-03-10", 999),
        ]
        result = month_over_month(sold, now=datetime(2024, 3, 25))
        assert result.current_label == "March 2024"
        assert result.previous_label == "February 2024"
        assert (result.current_total, result.current_count) == (400.0, 2)
        assert (result.previous_total, result.previous_count) == (200.0, 1)
        assert result.revenue_delta_pct == 100.0
        assert result.count_delta_pct == 100.0

    def test_january_compares_to_previous_december(self):
        sold = [sold_vehicle("2023-12-31", 100), sold_vehicle("2024-01-02", 100)]
        result = month_over_month(sold, now=datetime(2024, 1, 15))
        assert result.previous_label == "December 2023"
        assert result.previous_total == 100.0
        assert result.revenue_delta_pct == 0.0

    def test_payment_without_amount_counts_as_zero(self):
        sold = [
            sold_vehicle("2024-03-10", None, customer={"paymentMethod": "Cash"}),
            sold_vehicle("2024-03-03", 100),
        ]
        result = month_over_month(sold, now=datetime(2024, 3, 20))
        assert (result.current_total, result.current_count) == (100.0, 2)

    def test_sale_without_payment_details_ignored(self):
        sold = [sold_vehicle("2024-03-02", 0), sold_vehicle("2024-03-03", 100)]
        result = month_over_month(sold, now=datetime(2024, 3, 25))
        assert result.current_count == 1

    def test_year_over_year(self):
        sold = [
            sold_vehicle("2024-01-05", 100),
            sold_vehicle("2023-06-01", 400),
            sold_vehicle("2022-06-01", 1000),
        ]
        result = year_over_year(sold, now=datetime(2024, 3, 1))
        assert (result.current_label, result.previous_label) == ("2024", "2023")
        assert result.revenue_delta_pct == -75.0
        assert result.to_dict()["revenue_delta_pct"] == -75.0

    def test_no_previous_period_is_zero_delta(self):
        result = year_over_year([sold_vehicle("2024-01-05", 100)], now=datetime(2024, 3, 1))
        assert result.revenue_delta_pct == 0.0


# ── Weekly sales ────────────────────────────────────────────────────


class TestWeeklySales:
    def test_window_midweek(self):
        assert weekly_window(date(2024, 3, 6)) == (date(2024, 3, 4), date(2024, 3, 9))

    def test_window_on_sunday_looks_back(self):
        monday, saturday = weekly_window(date(2024, 3, 10))
        assert monday == date(2024, 3, 4)
        assert saturday == date(2024, 3, 9)

    def test_window_on_monday(self):
        assert weekly_window(datetime(2024, 3, 4, 8, 0))[0] == date(2024, 3, 4)

    def test_sales_in_window(self):
        sold = [
            sold_vehicle("2024-03-04", 100, id=1),
            sold_vehicle("2024-03-09", 200, id=2),
            sold_vehicle("2024-03-10", 400, id=3),
            sold_vehicle("2024-03-03", 800, id=4),
        ]
        week = weekly_sales(sold, date(2024, 3, 6))
        assert [v.id for v in week.vehicles] == [2, 1]
        assert week.total_revenue == 300.0
        assert week.label == "Mar 4, 2024 - Mar 9, 2024"


# ── Chart series ────────────────────────────────────────────────────


class TestCharts:
    def test_average_days_to_sale_by_month(self):
        sold = [
            sold_vehicle("2024-01-11", 1, inStockDate="2024-01-01"),
            sold_vehicle("2024-01-21", 1, inStockDate="2024-01-01"),
            sold_vehicle("2023-12-05", 1, inStockDate="2023-12-01"),
        ]
        assert average_days_to_sale(sold) == [
            {"month": "Dec 2023", "average_days": 4.0, "count": 1},
            {"month": "Jan 2024", "average_days": 15.0, "count": 2},
        ]

    def test_negative_dwell_excluded(self):
        sold = [sold_vehicle("2024-01-01", 1, inStockDate="2024-02-01")]
        assert average_days_to_sale(sold) == []

    def test_status_distribution_excludes_in_transit(self, state):
        assert status_distribution(state.inventory) == {
            "In Stock": 1,
            "PDI": 1,
            "Pending Pickup": 0,
            "Pickup Scheduled": 1,
        }

    def test_model_counts(self, state):
        counts = model_counts(state.inventory)
        assert {"name": "Subaru Forester", "count": 1} not in counts
        assert len(counts) == 3

    def test_top_sold_models_ranked(self):
        sold = [
            sold_vehicle("2024-01-01", 1, model="WRX"),
            sold_vehicle("2024-01-01", 1, model="Outback"),
            sold_vehicle("2024-01-01", 1, model="Outback"),
        ]
        assert top_sold_models(sold) == [
            {"name": "Subaru Outback", "count": 2},
            {"name": "Subaru WRX", "count": 1},
        ]

    def test_top_sold_models_limit(self):
        sold = [sold_vehicle("2024-01-01", 1, model=f"M{i}") for i in range(12)]
        assert len(top_sold_models(sold)) == 10

    def test_top_fleet_companies(self, state):
        assert top_fleet_companies(state.inventory) == [
            {"name": "Acme Fleet", "count": 1},
            {"name": "ABC Rentals", "count": 1},
        ]

    def test_payment_methods(self, state):
        assert payment_method_distribution(state.sold) == {"ACH": 1, "Check": 1}

    def test_chart_series_keys(self, state):
        series = chart_series(state.inventory, state.sold)
        assert set(series) == {
            "revenue",
            "average_days_to_sale",
            "status_distribution",
            "model_counts",
            "payment_methods",
            "top_sold_models",
            "top_fleet_companies",
        }
        assert [p["period"] for p in series["revenue"]] == ["Jan 2024", "Feb 2024"]

    def test_status_distribution_empty(self):
        assert sum(status_distribution([vehicle(status="in-transit")]).values()) == 0
