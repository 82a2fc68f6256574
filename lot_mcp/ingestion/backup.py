"""Full-data JSON backup: export every collection, re-import with VIN matching.

The backup file carries an ``exportInfo`` header whose ``source`` marker must
match on import.  Import runs trade-ins, then inventory, then sold vehicles.
Within a collection a VIN that already exists is either skipped or replaced
(``overwrite`` deletes every stored copy before creating the backup's record).
A record that fails is reported and never stops the rest of the file.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from lot_mcp.clients.dashboard import (
    COLLECTION_INVENTORY,
    COLLECTION_SOLD,
    COLLECTION_TRADE_INS,
    DashboardAPIError,
)
from lot_mcp.constants import STATUS_IN_STOCK, STATUS_SOLD
from lot_mcp.data.backend import InventoryBackend
from lot_mcp.data.records import TradeInRecord, VehicleRecord
from lot_mcp.ingestion.csv_import import id_factory
from lot_mcp.normalization import is_blank, normalize_vin, utc_now_iso

logger = logging.getLogger(__name__)

BACKUP_SOURCE = "SubaruFleetInventory"
BACKUP_VERSION = "1.0"

DUPLICATE_SKIP = "skip"
DUPLICATE_OVERWRITE = "overwrite"
DUPLICATE_ACTIONS = (DUPLICATE_SKIP, DUPLICATE_OVERWRITE)

# File section -> collection, in import order.
_SECTIONS = (
    ("tradeIns", COLLECTION_TRADE_INS),
    ("inventory", COLLECTION_INVENTORY),
    ("soldVehicles", COLLECTION_SOLD),
)


class BackupImportError(ValueError):
    """The backup file as a whole cannot be imported."""


@dataclass
class BackupPreview:
    export_date: str | None
    version: str | None
    inventory: int = 0
    sold_vehicles: int = 0
    trade_ins: int = 0
    documents: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "export_date": self.export_date,
            "version": self.version,
            "inventory": self.inventory,
            "sold_vehicles": self.sold_vehicles,
            "trade_ins": self.trade_ins,
            "documents": self.documents,
        }


@dataclass
class SectionResult:
    imported: int = 0
    skipped: int = 0
    errors: list[dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"imported": self.imported, "skipped": self.skipped, "errors": list(self.errors)}


@dataclass
class BackupImportReport:
    trade_ins: SectionResult = field(default_factory=SectionResult)
    inventory: SectionResult = field(default_factory=SectionResult)
    sold_vehicles: SectionResult = field(default_factory=SectionResult)

    def section(self, collection: str) -> SectionResult:
        return {
            COLLECTION_TRADE_INS: self.trade_ins,
            COLLECTION_INVENTORY: self.inventory,
            COLLECTION_SOLD: self.sold_vehicles,
        }[collection]

    @property
    def total_imported(self) -> int:
        return self.trade_ins.imported + self.inventory.imported + self.sold_vehicles.imported

    @property
    def total_skipped(self) -> int:
        return self.trade_ins.skipped + self.inventory.skipped + self.sold_vehicles.skipped

    @property
    def total_errors(self) -> int:
        return (
            len(self.trade_ins.errors)
            + len(self.inventory.errors)
            + len(self.sold_vehicles.errors)
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "results": {
                "trade_ins": self.trade_ins.to_dict(),
                "inventory": self.inventory.to_dict(),
                "sold_vehicles": self.sold_vehicles.to_dict(),
            },
            "summary": {
                "total_imported": self.total_imported,
                "total_skipped": self.total_skipped,
                "total_errors": self.total_errors,
            },
        }


def backup_filename(today: date | None = None) -> str:
    return f"fleet-inventory-export-{(today or date.today()).isoformat()}.json"


def _vehicle_documents(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    documents = []
    for row in rows:
        for doc in row.get("documents") or []:
            if isinstance(doc, dict):
                documents.append({**doc, "vehicleId": row.get("id")})
    return documents


async def export_backup(
    backend: InventoryBackend, *, now_iso: str | None = None
) -> dict[str, Any]:
    """Every collection as stored, plus the document metadata attached to vehicles."""
    inventory = await backend.list_records(COLLECTION_INVENTORY)
    sold = await backend.list_records(COLLECTION_SOLD)
    trade_ins = await backend.list_records(COLLECTION_TRADE_INS)
    backup = {
        "exportInfo": {
            "exportDate": now_iso or utc_now_iso(),
            "version": BACKUP_VERSION,
            "source": BACKUP_SOURCE,
        },
        "inventory": inventory,
        "soldVehicles": sold,
        "tradeIns": trade_ins,
        "documents": _vehicle_documents([*inventory, *sold]),
    }
    logger.info(
        "Backup export: %d inventory, %d sold, %d trade-ins, %d documents",
        len(inventory),
        len(sold),
        len(trade_ins),
        len(backup["documents"]),
    )
    return backup


def load_backup(content: str | dict[str, Any]) -> dict[str, Any]:
    """Parse and validate a backup file; raises :class:`BackupImportError`."""
    if isinstance(content, str):
        if is_blank(content):
            raise BackupImportError("No data provided")
        try:
            data = json.loads(content)
        except json.JSONDecodeError as exc:
            raise BackupImportError(f"Failed to parse JSON file: {exc}") from exc
    else:
        data = content

    if not isinstance(data, dict) or not data:
        raise BackupImportError("No data provided")
    info = data.get("exportInfo")
    if not isinstance(info, dict) or info.get("source") != BACKUP_SOURCE:
        raise BackupImportError(f"Invalid export file. Expected {BACKUP_SOURCE} export.")
    if not any(data.get(section) for section, _ in _SECTIONS):
        raise BackupImportError("Export file contains no data to import")
    for section, _ in _SECTIONS:
        if not isinstance(data.get(section) or [], list):
            raise BackupImportError(f"Invalid export file. '{section}' must be a list.")
    return data


def preview_backup(content: str | dict[str, Any]) -> BackupPreview:
    data = load_backup(content)
    info = data["exportInfo"]
    return BackupPreview(
        export_date=info.get("exportDate"),
        version=info.get("version"),
        inventory=len(data.get("inventory") or []),
        sold_vehicles=len(data.get("soldVehicles") or []),
        trade_ins=len(data.get("tradeIns") or []),
        documents=len(data.get("documents") or []),
    )


def _normalize_vehicle(
    raw: dict[str, Any], collection: str, new_id: Callable[[], int], now_iso: str
) -> dict[str, Any]:
    record = VehicleRecord.from_dict(raw)
    default_status = STATUS_SOLD if collection == COLLECTION_SOLD else STATUS_IN_STOCK
    return record.with_changes(
        id=new_id() if is_blank(record.id) else record.id,
        status=record.status if not is_blank(raw.get("status")) else default_status,
        date_added=record.date_added or now_iso,
    ).to_dict()


def _normalize_trade_in(
    raw: dict[str, Any], collection: str, new_id: Callable[[], int], now_iso: str
) -> dict[str, Any]:
    record = TradeInRecord.from_dict(raw)
    return record.with_changes(
        id=new_id() if is_blank(record.id) else record.id,
        date_added=record.date_added or now_iso,
    ).to_dict()


async def _import_section(
    backend: InventoryBackend,
    collection: str,
    rows: list[Any],
    result: SectionResult,
    *,
    duplicate_action: str,
    new_id: Callable[[], int],
    now_iso: str,
) -> None:
    existing = await backend.list_records(collection)
    stored_ids = {str(r.get("id")) for r in existing}
    by_vin: dict[str, list[Any]] = {}
    for row in existing:
        vin = normalize_vin(row.get("vin"))
        if vin:
            by_vin.setdefault(vin, []).append(row.get("id"))

    normalize = _normalize_trade_in if collection == COLLECTION_TRADE_INS else _normalize_vehicle
    for raw in rows:
        if not isinstance(raw, dict):
            result.errors.append({"vin": "", "error": "Record is not an object"})
            continue
        vin = normalize_vin(raw.get("vin"))
        matches = by_vin.get(vin, []) if vin else []
        if matches and duplicate_action == DUPLICATE_SKIP:
            result.skipped += 1
            continue

        try:
            for record_id in matches:
                await backend.delete_record(collection, record_id)
                stored_ids.discard(str(record_id))
            by_vin.pop(vin, None)

            payload = normalize(raw, collection, new_id, now_iso)
            if str(payload["id"]) in stored_ids:
                raise ValueError(f"Record id {payload['id']} already exists")
            created = await backend.create_record(collection, payload)
        except (DashboardAPIError, ValueError) as exc:
            result.errors.append({"vin": vin, "error": str(exc)})
            logger.error("Backup import failed for %s %s: %s", collection, vin or "?", exc)
            continue

        result.imported += 1
        created_id = created.get("id", payload["id"])
        stored_ids.add(str(created_id))
        if vin:
            by_vin.setdefault(vin, []).append(created_id)


async def import_backup(
    backend: InventoryBackend,
    content: str | dict[str, Any],
    duplicate_action: str = DUPLICATE_SKIP,
    *,
    new_id: Callable[[], int] | None = None,
    now_iso: str | None = None,
) -> BackupImportReport:
    """Import a backup file section by section.

    Existing VINs are matched within the same collection only.  A failed load
    of a collection raises before any record of that section is written.
    """
    if duplicate_action not in DUPLICATE_ACTIONS:
        raise BackupImportError(
            f"Unknown duplicate action '{duplicate_action}'. "
            f"Use one of: {', '.join(DUPLICATE_ACTIONS)}."
        )
    data = load_backup(content)
    make_id = new_id or id_factory()
    stamp = now_iso or utc_now_iso()

    report = BackupImportReport()
    for section, collection in _SECTIONS:
        await _import_section(
            backend,
            collection,
            data.get(section) or [],
            report.section(collection),
            duplicate_action=duplicate_action,
            new_id=make_id,
            now_iso=stamp,
        )

    logger.info(
        "Backup import finished (%s): %d imported, %d skipped, %d errors",
        duplicate_action,
        report.total_imported,
        report.total_skipped,
        report.total_errors,
    )
    return report
