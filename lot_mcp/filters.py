"""Filter/sort pipeline for the inventory, sold, payments and trade-in views.

All predicates are optional and AND-combined.  On the sold view a populated
date range wins over month/year: the pipeline never applies both.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from lot_mcp.constants import STATUS_IN_TRANSIT
from lot_mcp.data.records import TradeInRecord, VehicleRecord
from lot_mcp.normalization import is_blank, parse_datetime, parse_local_date

DEFAULT_WIDGET_SIZE = 5

_EPOCH = datetime(1970, 1, 1)


def _norm_term(term: str | None) -> str:
    return (term or "").strip().lower()


def _haystack(record: VehicleRecord, *, include_reference: bool = False) -> list[str]:
    fields = [
        record.stock_number,
        record.vin,
        record.make,
        record.model,
        record.title,
    ]
    if record.customer is not None:
        fields.append(record.customer.first_name)
        fields.append(record.customer.last_name)
        if include_reference:
            fields.append(record.customer.payment_reference)
    return [f.lower() for f in fields if f]


def matches_search(
    record: VehicleRecord, term: str | None, *, include_reference: bool = False
) -> bool:
    """Case-insensitive substring match over the searchable vehicle fields."""
    needle = _norm_term(term)
    if not needle:
        return True
    return any(needle in field for field in _haystack(record, include_reference=include_reference))


def sale_datetime(record: VehicleRecord) -> datetime | None:
    return parse_datetime(record.sale_date)


def sort_by_sale_date_desc(records: list[VehicleRecord]) -> list[VehicleRecord]:
    """Newest sale first; records without a sale date sort as the epoch."""
    return sorted(records, key=lambda r: sale_datetime(r) or _EPOCH, reverse=True)


def _month_year_match(record: VehicleRecord, month: int | None, year: int | None) -> bool:
    if month is None and year is None:
        return True
    sold_at = sale_datetime(record)
    if sold_at is None:
        return False
    if year is not None and sold_at.year != year:
        return False
    if month is not None and sold_at.month != month:
        return False
    return True


@dataclass(frozen=True)
class InventoryFilter:
    """Search/make/status predicates for the active inventory and status pages."""
    search: str = ""
    make: str = ""
    status: str = ""

    def matches(self, record: VehicleRecord) -> bool:
        if self.make and record.make != self.make:
            return False
        if self.status and record.status != self.status:
            return False
        return matches_search(record, self.search)

    def apply(self, records: list[VehicleRecord]) -> list[VehicleRecord]:
        return [r for r in records if self.matches(r)]


@dataclass(frozen=True)
class SoldFilter:
    """Sold-archive predicates.

    ``start_date``/``end_date`` form an inclusive calendar-date range.  When
    either end is set the range is used and ``month``/``year`` are ignored.
    """
    search: str = ""
    make: str = ""
    start_date: date | None = None
    end_date: date | None = None
    month: int | None = None
    year: int | None = None

    @property
    def has_date_range(self) -> bool:
        return self.start_date is not None or self.end_date is not None

    def with_date_range(self, start: Any = None, end: Any = None) -> SoldFilter:
        return dataclasses.replace(
            self,
            start_date=parse_local_date(start) if start is not None else None,
            end_date=parse_local_date(end) if end is not None else None,
            month=None,
            year=None,
        )

    def with_month_year(self, month: int | None = None, year: int | None = None) -> SoldFilter:
        return dataclasses.replace(self, start_date=None, end_date=None, month=month, year=year)

    def _date_match(self, record: VehicleRecord) -> bool:
        if self.has_date_range:
            sold_on = parse_local_date(record.sale_date)
            if sold_on is None:
                return False
            if self.start_date is not None and sold_on < self.start_date:
                return False
            if self.end_date is not None and sold_on > self.end_date:
                return False
            return True
        return _month_year_match(record, self.month, self.year)

    def matches(self, record: VehicleRecord) -> bool:
        if self.make and record.make != self.make:
            return False
        if not matches_search(record, self.search):
            return False
        return self._date_match(record)

    def apply(self, records: list[VehicleRecord]) -> list[VehicleRecord]:
        return sort_by_sale_date_desc([r for r in records if self.matches(r)])


@dataclass(frozen=True)
class PaymentFilter:
    """Payments-page predicates; search also covers the payment reference."""
    search: str = ""
    payment_method: str = ""
    month: int | None = None
    year: int | None = None

    def matches(self, record: VehicleRecord) -> bool:
        if self.payment_method and record.payment_method != self.payment_method:
            return False
        if not _month_year_match(record, self.month, self.year):
            return False
        return matches_search(record, self.search, include_reference=True)

    def apply(self, records: list[VehicleRecord]) -> list[VehicleRecord]:
        return sort_by_sale_date_desc([r for r in records if self.matches(r)])


def is_payment_record(record: VehicleRecord) -> bool:
    customer = record.customer
    if customer is None or not customer.has_sale_date:
        return False
    return bool(
        not is_blank(customer.payment_method)
        or not is_blank(customer.payment_reference)
        or customer.sale_amount
    )


def inventory_view(
    inventory: list[VehicleRecord], flt: InventoryFilter | None = None
) -> list[VehicleRecord]:
    """Main inventory page: in-transit units are listed on their own page."""
    visible = [r for r in inventory if r.status != STATUS_IN_TRANSIT]
    return (flt or InventoryFilter()).apply(visible)


def status_view(
    inventory: list[VehicleRecord], status: str, *, search: str = "", make: str = ""
) -> list[VehicleRecord]:
    return InventoryFilter(search=search, make=make, status=status).apply(inventory)


def sold_view(sold: list[VehicleRecord], flt: SoldFilter | None = None) -> list[VehicleRecord]:
    return (flt or SoldFilter()).apply(sold)


def payments_view(
    sold: list[VehicleRecord], flt: PaymentFilter | None = None
) -> list[VehicleRecord]:
    return (flt or PaymentFilter()).apply([r for r in sold if is_payment_record(r)])


def _stocked(records: list[VehicleRecord]) -> list[tuple[datetime, VehicleRecord]]:
    pairs = []
    for record in records:
        stocked_at = parse_datetime(record.in_stock_date)
        if stocked_at is not None:
            pairs.append((stocked_at, record))
    return pairs


def oldest_units(
    inventory: list[VehicleRecord], limit: int = DEFAULT_WIDGET_SIZE
) -> list[VehicleRecord]:
    pairs = sorted(_stocked(inventory), key=lambda p: p[0])
    return [r for _, r in pairs[:limit]]


def newest_units(
    inventory: list[VehicleRecord], limit: int = DEFAULT_WIDGET_SIZE
) -> list[VehicleRecord]:
    pairs = sorted(_stocked(inventory), key=lambda p: p[0], reverse=True)
    return [r for _, r in pairs[:limit]]


def make_options(records: list[VehicleRecord] | list[TradeInRecord]) -> list[str]:
    return sorted({r.make for r in records if r.make})


def sale_year_options(sold: list[VehicleRecord]) -> list[int]:
    years = {dt.year for dt in (sale_datetime(r) for r in sold) if dt is not None}
    return sorted(years, reverse=True)


def payment_method_options(sold: list[VehicleRecord]) -> list[str]:
    return sorted({r.payment_method for r in sold if r.payment_method})


# ── Trade-ins ───────────────────────────────────────────────────────


def filter_trade_ins(
    trade_ins: list[TradeInRecord], *, search: str = "", make: str = ""
) -> list[TradeInRecord]:
    needle = _norm_term(search)
    result = []
    for record in trade_ins:
        if make and record.make != make:
            continue
        if needle:
            fields = (record.stock_number, record.vin, record.make, record.model, record.title)
            if not any(needle in f.lower() for f in fields if f):
                continue
        result.append(record)
    return result


def split_trade_ins(
    trade_ins: list[TradeInRecord],
) -> tuple[list[TradeInRecord], list[TradeInRecord]]:
    """Return ``(awaiting_pickup, picked_up)`` preserving input order."""
    awaiting = [t for t in trade_ins if not t.picked_up]
    picked_up = [t for t in trade_ins if t.picked_up]
    return awaiting, picked_up
