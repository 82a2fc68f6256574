"""Full-data JSON backup: export layout, file validation, skip/overwrite import."""

from __future__ import annotations

import json
from datetime import date
from typing import Any

import pytest

from lot_mcp.clients.dashboard import (
    COLLECTION_INVENTORY,
    COLLECTION_SOLD,
    COLLECTION_TRADE_INS,
    DashboardAPIError,
)
from lot_mcp.data.backend import InMemoryBackend
from lot_mcp.ingestion.backup import (
    BackupImportError,
    backup_filename,
    export_backup,
    import_backup,
    load_backup,
    preview_backup,
)
from lot_mcp.ingestion.csv_import import id_factory

NOW = "2024-03-01T12:00:00.000Z"
NEW_VIN = "2HGFC2F59JH512345"
OTHER_VIN = "5YJ3E1EA7KF317000"


def _backup(**sections: Any) -> dict[str, Any]:
    return {
        "exportInfo": {"exportDate": NOW, "version": "1.0", "source": "SubaruFleetInventory"},
        **sections,
    }


async def _import(backend, data, action="skip"):
    return await import_backup(backend, data, action, new_id=id_factory(5_000), now_iso=NOW)


def _by_id(backend: InMemoryBackend, collection: str) -> dict[Any, dict[str, Any]]:
    return {r["id"]: r for r in backend.records(collection)}


# ── Export ──────────────────────────────────────────────────────────


class TestExportBackup:
    async def test_header_and_collections(self, backend):
        backup = await export_backup(backend, now_iso=NOW)
        assert backup["exportInfo"] == {
            "exportDate": NOW,
            "version": "1.0",
            "source": "SubaruFleetInventory",
        }
        assert [r["id"] for r in backup["inventory"]] == [1, 2, 3, 4]
        assert [r["id"] for r in backup["soldVehicles"]] == [10, 11]
        assert [r["id"] for r in backup["tradeIns"]] == [100, 101]
        assert backup["documents"] == []

    async def test_documents_carry_vehicle_id(self):
        backend = InMemoryBackend(
            sold=[{"id": 9, "vin": NEW_VIN, "documents": [{"id": "doc-1", "fileName": "title.pdf"}]}]
        )
        backup = await export_backup(backend, now_iso=NOW)
        assert backup["documents"] == [{"id": "doc-1", "fileName": "title.pdf", "vehicleId": 9}]

    async def test_failed_load_raises(self, backend):
        backend.fail_on("GET", COLLECTION_SOLD)
        with pytest.raises(DashboardAPIError):
            await export_backup(backend)

    def test_filename(self):
        assert backup_filename(date(2024, 3, 1)) == "fleet-inventory-export-2024-03-01.json"


# ── File validation ─────────────────────────────────────────────────


class TestLoadBackup:
    @pytest.mark.parametrize("content", ["", "   ", {}])
    def test_empty_rejected(self, content):
        with pytest.raises(BackupImportError, match="No data provided"):
            load_backup(content)

    def test_bad_json_rejected(self):
        with pytest.raises(BackupImportError, match="Failed to parse JSON file"):
            load_backup("{not json")

    def test_missing_source_marker(self):
        with pytest.raises(BackupImportError, match="Expected SubaruFleetInventory export"):
            load_backup({"inventory": [{"id": 1}]})

    def test_wrong_source_marker(self):
        data = _backup(inventory=[{"id": 1}])
        data["exportInfo"]["source"] = "SomethingElse"
        with pytest.raises(BackupImportError, match="Invalid export file"):
            load_backup(data)

    def test_no_records(self):
        with pytest.raises(BackupImportError, match="contains no data to import"):
            load_backup(_backup(inventory=[], soldVehicles=[], tradeIns=[]))

    def test_section_must_be_list(self):
        with pytest.raises(BackupImportError, match="'inventory' must be a list"):
            load_backup(_backup(inventory={"id": 1}))

    def test_json_text_accepted(self):
        data = load_backup(json.dumps(_backup(tradeIns=[{"id": 1}])))
        assert data["tradeIns"] == [{"id": 1}]

    def test_preview_counts(self):
        preview = preview_backup(json.dumps(_backup(inventory=[{}, {}], documents=[{}])))
        assert preview.to_dict() == {
            "export_date": NOW,
            "version": "1.0",
            "inventory": 2,
            "sold_vehicles": 0,
            "trade_ins": 0,
            "documents": 1,
        }


# ── Import ──────────────────────────────────────────────────────────


class TestImportBackup:
    async def test_skip_existing_vins(self, backend):
        data = _backup(
            inventory=[
                {"id": 1, "vin": "1HGBH41JXMN109186", "stockNumber": "SUB001-R"},
                {"vin": NEW_VIN, "stockNumber": "NEW", "year": 2019, "make": "Honda"},
            ],
            tradeIns=[{"id": 100, "vin": "2T1BURHE5JC012345"}],
        )
        report = await _import(backend, data)
        assert report.inventory.to_dict() == {"imported": 1, "skipped": 1, "errors": []}
        assert report.trade_ins.skipped == 1
        assert report.to_dict()["summary"] == {
            "total_imported": 1,
            "total_skipped": 2,
            "total_errors": 0,
        }
        stored = _by_id(backend, COLLECTION_INVENTORY)
        assert stored[1]["stockNumber"] == "SUB001"
        assert stored[5001]["stockNumber"] == "NEW"
        assert stored[5001]["status"] == "in-stock"
        assert stored[5001]["dateAdded"] == NOW

    async def test_overwrite_replaces_matching_vin(self, backend):
        data = _backup(
            inventory=[{"id": 1, "vin": "1hgbh41jxmn109186", "stockNumber": "SUB001-R", "status": "PDI"}]
        )
        report = await _import(backend, data, "overwrite")
        assert report.inventory.imported == 1
        assert report.inventory.skipped == 0
        writes = [c for c in backend.calls if c[0] != "GET"]
        assert writes == [("DELETE", COLLECTION_INVENTORY, 1), ("POST", COLLECTION_INVENTORY, 1)]
        stored = _by_id(backend, COLLECTION_INVENTORY)[1]
        assert (stored["stockNumber"], stored["status"]) == ("SUB001-R", "pdi")

    async def test_vins_matched_within_collection_only(self, backend):
        # JF1VA1C60M9812345 exists in the sold archive, not in inventory.
        data = _backup(inventory=[{"id": 60, "vin": "JF1VA1C60M9812345"}])
        report = await _import(backend, data)
        assert report.inventory.imported == 1

    async def test_duplicate_within_file_skipped(self):
        backend = InMemoryBackend()
        data = _backup(inventory=[{"id": 60, "vin": NEW_VIN}, {"id": 61, "vin": NEW_VIN}])
        report = await _import(backend, data)
        assert (report.inventory.imported, report.inventory.skipped) == (1, 1)

    async def test_sold_section_defaults_to_sold(self):
        backend = InMemoryBackend()
        report = await _import(backend, _backup(soldVehicles=[{"id": 70, "vin": NEW_VIN}]))
        assert report.sold_vehicles.imported == 1
        assert _by_id(backend, COLLECTION_SOLD)[70]["status"] == "sold"

    async def test_sections_imported_in_order(self):
        backend = InMemoryBackend()
        data = _backup(
            soldVehicles=[{"id": 3, "vin": NEW_VIN}],
            inventory=[{"id": 2, "vin": OTHER_VIN}],
            tradeIns=[{"id": 1, "vin": "2T1BURHE5JC012345"}],
        )
        await _import(backend, data)
        posts = [c[1] for c in backend.calls if c[0] == "POST"]
        assert posts == [COLLECTION_TRADE_INS, COLLECTION_INVENTORY, COLLECTION_SOLD]

    async def test_failing_record_does_not_stop_batch(self):
        backend = InMemoryBackend()
        backend.fail_on("POST", COLLECTION_INVENTORY, 50)
        data = _backup(inventory=[{"id": 50, "vin": NEW_VIN}, {"id": 51, "vin": OTHER_VIN}])
        report = await _import(backend, data)
        assert report.inventory.imported == 1
        assert report.inventory.errors == [
            {"vin": NEW_VIN, "error": "Simulated POST failure on /inventory."}
        ]
        assert list(_by_id(backend, COLLECTION_INVENTORY)) == [51]

    async def test_failed_delete_keeps_stored_record(self, backend):
        backend.fail_on("DELETE", COLLECTION_INVENTORY, 1)
        data = _backup(inventory=[{"id": 1, "vin": "1HGBH41JXMN109186", "stockNumber": "X"}])
        report = await _import(backend, data, "overwrite")
        assert report.inventory.imported == 0
        assert len(report.inventory.errors) == 1
        assert _by_id(backend, COLLECTION_INVENTORY)[1]["stockNumber"] == "SUB001"

    async def test_id_collision_reported(self, backend):
        data = _backup(inventory=[{"id": 2, "vin": NEW_VIN}])
        report = await _import(backend, data)
        assert report.inventory.errors == [{"vin": NEW_VIN, "error": "Record id 2 already exists"}]
        assert _by_id(backend, COLLECTION_INVENTORY)[2]["vin"] == "4S4BTANC5M3128456"

    async def test_non_object_record_reported(self):
        backend = InMemoryBackend()
        report = await _import(backend, _backup(tradeIns=["junk", {"id": 1, "vin": NEW_VIN}]))
        assert report.trade_ins.imported == 1
        assert report.trade_ins.errors == [{"vin": "", "error": "Record is not an object"}]

    async def test_failed_load_aborts_before_writes(self, backend):
        backend.fail_on("GET", COLLECTION_TRADE_INS)
        data = _backup(
            tradeIns=[{"id": 200, "vin": NEW_VIN}], inventory=[{"id": 60, "vin": OTHER_VIN}]
        )
        with pytest.raises(DashboardAPIError):
            await _import(backend, data)
        assert [c for c in backend.calls if c[0] == "POST"] == []

    async def test_unknown_duplicate_action(self, backend):
        with pytest.raises(BackupImportError, match="Unknown duplicate action 'merge'"):
            await _import(backend, _backup(inventory=[{"id": 60, "vin": NEW_VIN}]), "merge")
        assert backend.calls == []

    async def test_export_restores_into_empty_backend(self, backend):
        content = json.dumps(await export_backup(backend))
        target = InMemoryBackend()
        report = await import_backup(target, content)
        assert report.total_imported == 8
        assert report.total_errors == 0
        assert _by_id(target, COLLECTION_SOLD)[10]["customer"]["paymentMethod"] == "ACH"
        assert _by_id(target, COLLECTION_TRADE_INS)[101]["pickedUp"] is True

        again = await import_backup(target, content)
        assert (again.total_imported, again.total_skipped) == (0, 8)
