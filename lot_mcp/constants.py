"""Shared constants used across the dashboard modules.

Single source of truth for the VIN pattern, the status enum, aging
thresholds, and the CSV column layout.
"""

from __future__ import annotations

import re

VIN_RE = re.compile(r"^[A-HJ-NPR-Z0-9]{17}$")

STATUS_IN_STOCK = "in-stock"
STATUS_IN_TRANSIT = "in-transit"
STATUS_PDI = "pdi"
STATUS_PENDING_PICKUP = "pending-pickup"
STATUS_PICKUP_SCHEDULED = "pickup-scheduled"
STATUS_SOLD = "sold"

VEHICLE_STATUSES: tuple[str, ...] = (
    STATUS_IN_STOCK,
    STATUS_IN_TRANSIT,
    STATUS_PDI,
    STATUS_PENDING_PICKUP,
    STATUS_PICKUP_SCHEDULED,
    STATUS_SOLD,
)

# Statuses counted as "on the lot" by the dashboard stat cards.
ON_LOT_STATUSES: frozenset[str] = frozenset({
    STATUS_IN_STOCK,
    STATUS_PDI,
    STATUS_PENDING_PICKUP,
    STATUS_PICKUP_SCHEDULED,
})

SOURCE_INVENTORY = "inventory"
SOURCE_SOLD = "sold"

# Aging tiers (days in stock, inclusive upper bounds).
AGE_FRESH_MAX_DAYS = 45
AGE_AGING_MAX_DAYS = 60
AGE_TIER_FRESH = "fresh"
AGE_TIER_AGING = "aging"
AGE_TIER_STALE = "stale"
AGE_TIER_NEUTRAL = "neutral"

STOCK_NUMBER_PREFIX = "CD"
TRADE_IN_STOCK_PREFIX = "TI-"

IMPORT_YEAR_MIN = 2000
IMPORT_YEAR_MAX = 2030

REQUIRED_CSV_HEADERS: tuple[str, ...] = (
    "Stock Number",
    "VIN",
    "Year",
    "Make",
    "Model",
    "Trim",
    "Color",
)

CSV_HEADERS: tuple[str, ...] = REQUIRED_CSV_HEADERS + (
    "Fleet Company",
    "Operation Company",
    "Status",
    "In Stock Date",
    "Customer First Name",
    "Customer Last Name",
    "Customer Phone",
    "Sale Date",
    "Sale Amount",
    "Payment Method",
    "Payment Reference",
)

MONTH_ABBREVIATIONS: tuple[str, ...] = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

MONTH_NAMES: tuple[str, ...] = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

MAX_DOCUMENT_BYTES = 10 * 1024 * 1024
