"""Duplicate VIN detection and removal across inventory and the sold archive.

The same VIN can end up in both collections after a half-finished move, or
twice in one collection after a repeated import.  ``scan_duplicates`` groups
colliding records and keeps the most recently added one; ``remove_duplicates``
deletes the rest one request at a time and keeps going on failure.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from lot_mcp.constants import SOURCE_INVENTORY, SOURCE_SOLD
from lot_mcp.data.backend import InventoryBackend, collection_for_source
from lot_mcp.data.records import VehicleRecord
from lot_mcp.normalization import normalize_vin, parse_datetime

logger = logging.getLogger(__name__)

_MISSING_DATE = datetime.min


@dataclass(frozen=True)
class SourcedRecord:
    """A vehicle tagged with the collection it was read from."""
    record: VehicleRecord
    source: str

    @property
    def added_at(self) -> datetime:
        return parse_datetime(self.record.date_added) or _MISSING_DATE

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.record.id,
            "source": self.source,
            "stock_number": self.record.stock_number,
            "vehicle": self.record.title,
            "status": self.record.status,
            "date_added": self.record.date_added,
        }


@dataclass(frozen=True)
class DuplicateGroup:
    vin: str
    keep: SourcedRecord
    remove: tuple[SourcedRecord, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "vin": self.vin,
            "keep": self.keep.to_dict(),
            "remove": [r.to_dict() for r in self.remove],
        }


@dataclass
class RemovalReport:
    removed: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"removed": self.removed, "failed": self.failed, "errors": list(self.errors)}


def tag_records(
    inventory: list[VehicleRecord], sold: list[VehicleRecord]
) -> list[SourcedRecord]:
    tagged = [SourcedRecord(r, SOURCE_INVENTORY) for r in inventory]
    tagged.extend(SourcedRecord(r, SOURCE_SOLD) for r in sold)
    return tagged


def scan_duplicates(
    inventory: list[VehicleRecord], sold: list[VehicleRecord]
) -> list[DuplicateGroup]:
    """Group records sharing an uppercased VIN; blank VINs never group.

    Groups come back in first-sighting order.  Inside a group the newest
    ``date_added`` survives; a missing date counts as the earliest, and ties
    keep scan order, so inventory beats sold on an exact tie.
    """
    seen: dict[str, SourcedRecord] = {}
    groups: dict[str, list[SourcedRecord]] = {}

    for tagged in tag_records(inventory, sold):
        vin = normalize_vin(tagged.record.vin)
        if not vin:
            continue
        first = seen.get(vin)
        if first is None:
            seen[vin] = tagged
            continue
        if vin not in groups:
            groups[vin] = [first]
        groups[vin].append(tagged)

    result = []
    for vin, members in groups.items():
        ordered = sorted(members, key=lambda m: m.added_at, reverse=True)
        result.append(DuplicateGroup(vin=vin, keep=ordered[0], remove=tuple(ordered[1:])))
    return result


async def remove_duplicates(
    backend: InventoryBackend, groups: list[DuplicateGroup]
) -> RemovalReport:
    """Delete every record marked for removal, one request each."""
    report = RemovalReport()
    for group in groups:
        for tagged in group.remove:
            collection = collection_for_source(tagged.source)
            try:
                await backend.delete_record(collection, tagged.record.id)
            except Exception as exc:
                report.failed += 1
                report.errors.append(
                    f"{tagged.record.stock_number or tagged.record.id} ({tagged.source}): {exc}"
                )
                logger.error(
                    "Failed to delete duplicate %s from %s: %s",
                    tagged.record.id,
                    collection,
                    exc,
                )
            else:
                report.removed += 1

    logger.info(
        "Duplicate removal finished: %d removed, %d failed", report.removed, report.failed
    )
    return report


async def find_and_remove_duplicates(
    backend: InventoryBackend,
    inventory: list[VehicleRecord],
    sold: list[VehicleRecord],
) -> tuple[list[DuplicateGroup], RemovalReport]:
    groups = scan_duplicates(inventory, sold)
    if not groups:
        return groups, RemovalReport()
    return groups, await remove_duplicates(backend, groups)
