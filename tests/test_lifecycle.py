"""Lifecycle operations: create/edit, status moves, trade-ins, documents, data fixes."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import pytest

from lot_mcp import lifecycle
from lot_mcp.clients.dashboard import (
    COLLECTION_INVENTORY,
    COLLECTION_SOLD,
    COLLECTION_TRADE_INS,
    DashboardAPIError,
)
from lot_mcp.constants import MAX_DOCUMENT_BYTES
from lot_mcp.data.backend import InMemoryBackend
from lot_mcp.data.state import load_state
from lot_mcp.lifecycle import OUTCOME_FAILURE, OUTCOME_PARTIAL, OUTCOME_SUCCESS, TradeInDraft
from lot_mcp.normalization import parse_local_date

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
NEW_VIN = "2HGFC2F59JH512345"


def _record(backend: InMemoryBackend, collection: str, record_id) -> dict | None:
    for row in backend.records(collection):
        if row["id"] == record_id:
            return row
    return None


def _writes(backend: InMemoryBackend) -> list[tuple]:
    return [c for c in backend.calls if c[0] != "GET"]


# ── Create / edit ───────────────────────────────────────────────────


class TestAddVehicle:
    async def test_creates_with_generated_stock_number(self, backend, state):
        record = await lifecycle.add_vehicle(
            state, backend, vin=NEW_VIN.lower(), year="2022", make="Honda", model="Civic",
            in_stock_date="2024-02-20", new_id=lambda: 77, now=NOW,
        )
        assert record.id == 77
        assert record.vin == NEW_VIN
        assert record.stock_number == "CD12345"
        assert record.year == 2022
        assert record.date_added == "2024-03-01T12:00:00.000Z"
        assert parse_local_date(record.in_stock_date).isoformat() == "2024-02-20"
        assert _record(backend, COLLECTION_INVENTORY, 77)["stockNumber"] == "CD12345"
        assert state.find_vehicle(77) is not None

    async def test_in_transit_has_no_in_stock_date(self, backend, state):
        record = await lifecycle.add_vehicle(
            state, backend, vin=NEW_VIN, year=2022, make="Honda", model="Civic",
            status="in-transit", in_stock_date="2024-02-20",
        )
        assert record.in_stock_date is None

    async def test_invalid_vin_rejected(self, backend, state):
        with pytest.raises(ValueError, match="Invalid VIN format"):
            await lifecycle.add_vehicle(state, backend, vin="SHORT", year=2022, make="H", model="C")
        assert _writes(backend) == []

    async def test_cannot_add_as_sold(self, backend, state):
        with pytest.raises(ValueError, match="cannot be added as sold"):
            await lifecycle.add_vehicle(
                state, backend, vin=NEW_VIN, year=2022, make="H", model="C", status="sold"
            )

    async def test_year_must_be_whole_number(self, backend, state):
        with pytest.raises(ValueError, match="whole number"):
            await lifecycle.add_vehicle(state, backend, vin=NEW_VIN, year="20x2", make="H", model="C")


class TestEditVehicle:
    async def test_updates_inventory_record(self, backend, state):
        updated = await lifecycle.edit_vehicle(state, backend, "1", color="Red", year="2023")
        assert (updated.color, updated.year) == ("Red", 2023)
        stored = _record(backend, COLLECTION_INVENTORY, 1)
        assert stored["color"] == "Red"
        assert stored["fleetCompany"] == "Acme Fleet"

    async def test_sold_record_updated_in_sold_collection(self, backend, state):
        await lifecycle.edit_vehicle(state, backend, 10, trim="Premium")
        assert ("PUT", COLLECTION_SOLD, 10) in backend.calls
        assert _record(backend, COLLECTION_SOLD, 10)["trim"] == "Premium"

    async def test_blank_in_stock_date_clears(self, backend, state):
        updated = await lifecycle.edit_vehicle(state, backend, 1, in_stock_date="")
        assert updated.in_stock_date is None

    async def test_unknown_field_rejected(self, backend, state):
        with pytest.raises(ValueError, match="Fields not editable: status"):
            await lifecycle.edit_vehicle(state, backend, 1, status="sold")

    async def test_invalid_vin_rejected(self, backend, state):
        with pytest.raises(ValueError, match="Invalid VIN"):
            await lifecycle.edit_vehicle(state, backend, 1, vin="1HGBH41JXMN10918I")

    async def test_missing_vehicle(self, backend, state):
        with pytest.raises(ValueError, match="not found"):
            await lifecycle.edit_vehicle(state, backend, 999, color="Red")


class TestCustomerAndPayment:
    async def test_customer_save_keeps_payment(self, backend, state):
        updated = await lifecycle.save_customer_info(
            state, backend, 10, first_name="Janet", last_name="Doe", phone="555-0000"
        )
        assert updated.customer.full_name == "Janet Doe"
        assert updated.sale_amount == 28500.0
        assert updated.payment_method == "ACH"
        assert _record(backend, COLLECTION_SOLD, 10)["customer"]["firstName"] == "Janet"

    async def test_payment_save_keeps_customer(self, backend, state):
        updated = await lifecycle.save_payment_info(
            state, backend, 10, sale_amount="$30,000", sale_date="2024-01-06",
            payment_method="Wire", payment_reference="W1",
        )
        assert updated.customer.full_name == "Jane Doe"
        assert updated.sale_amount == 30000.0
        assert updated.sale_date == "2024-01-06"

    async def test_customer_on_inventory_vehicle(self, backend, state):
        updated = await lifecycle.save_customer_info(state, backend, 1, first_name="Al")
        assert updated.customer.first_name == "Al"
        assert updated.sale_date is None


class TestDeleteVehicle:
    async def test_routes_to_owning_collection(self, backend, state):
        assert await lifecycle.delete_vehicle(state, backend, 10) == COLLECTION_SOLD
        assert await lifecycle.delete_vehicle(state, backend, 1) == COLLECTION_INVENTORY
        assert state.find_vehicle(10) is None
        assert state.find_vehicle(1) is None


# ── Status transitions ─────────────────────────────────────────────


class TestChangeStatus:
    async def test_plain_change(self, backend, state):
        result = await lifecycle.change_status(state, backend, 1, "PDI")
        assert result.ok
        assert _record(backend, COLLECTION_INVENTORY, 1)["status"] == "pdi"

    async def test_leaving_pickup_scheduled_clears_pickup(self, backend, state):
        await lifecycle.change_status(state, backend, 4, "in-stock")
        stored = _record(backend, COLLECTION_INVENTORY, 4)
        assert stored["status"] == "in-stock"
        assert "pickupDate" not in stored
        assert "pickupTime" not in stored

    @pytest.mark.parametrize("status", ["sold", "pickup-scheduled"])
    async def test_statuses_needing_details_rejected(self, backend, state, status):
        with pytest.raises(ValueError, match="Use "):
            await lifecycle.change_status(state, backend, 1, status)
        assert _writes(backend) == []

    async def test_invalid_status(self, backend, state):
        with pytest.raises(ValueError, match="Invalid status"):
            await lifecycle.change_status(state, backend, 1, "lost")

    async def test_sold_vehicle_returns_to_inventory(self, backend, state):
        result = await lifecycle.change_status(state, backend, 10, "pdi")
        assert result.outcome == OUTCOME_SUCCESS
        assert _record(backend, COLLECTION_INVENTORY, 10)["status"] == "pdi"
        assert _record(backend, COLLECTION_SOLD, 10) is None

    async def test_sold_to_sold_is_noop(self, backend, state):
        result = await lifecycle.change_status(state, backend, 10, "sold")
        assert result.ok
        assert _writes(backend) == []


class TestSchedulePickup:
    async def test_sets_pickup_fields(self, backend, state):
        updated = await lifecycle.schedule_pickup(
            state, backend, 1, pickup_date="2024-03-05", pickup_time="14:00"
        )
        assert updated.status == "pickup-scheduled"
        stored = _record(backend, COLLECTION_INVENTORY, 1)
        assert (stored["pickupDate"], stored["pickupTime"]) == ("2024-03-05", "14:00")
        assert "pickupNotes" not in stored

    async def test_date_required(self, backend, state):
        with pytest.raises(ValueError, match="Pickup date is required"):
            await lifecycle.schedule_pickup(state, backend, 1, pickup_date=" ")

    async def test_sold_vehicle_rejected(self, backend, state):
        with pytest.raises(ValueError, match="active inventory"):
            await lifecycle.schedule_pickup(state, backend, 10, pickup_date="2024-03-05")


class TestMarkSold:
    async def test_moves_vehicle_to_sold(self, backend, state):
        result = await lifecycle.mark_sold(
            state, backend, 4, sale_amount="35000", sale_date="2024-02-28",
            payment_method="Check", payment_reference="CHK1", notes="Paid in full",
        )
        assert result.outcome == OUTCOME_SUCCESS
        assert _writes(backend) == [
            ("POST", COLLECTION_SOLD, 4),
            ("DELETE", COLLECTION_INVENTORY, 4),
        ]
        stored = _record(backend, COLLECTION_SOLD, 4)
        assert stored["status"] == "sold"
        assert stored["customer"]["firstName"] == "John"
        assert stored["customer"]["saleAmount"] == 35000.0
        assert stored["customer"]["notes"] == "Paid in full"
        assert "pickupDate" not in stored
        assert state.find_vehicle(4)[1] == "sold"

    async def test_already_sold_is_updated_in_place(self, backend, state):
        result = await lifecycle.mark_sold(state, backend, 10, sale_amount=29000, sale_date="2024-01-05")
        assert result.ok
        assert _writes(backend) == [("PUT", COLLECTION_SOLD, 10)]

    async def test_failed_sold_write_leaves_inventory(self, backend, state, caplog):
        backend.fail_on("POST", COLLECTION_SOLD)
        with caplog.at_level(logging.ERROR):
            result = await lifecycle.mark_sold(state, backend, 1, sale_date="2024-02-28")
        assert result.outcome == OUTCOME_FAILURE
        assert result.message.startswith("Failed to mark vehicle as sold")
        assert _record(backend, COLLECTION_INVENTORY, 1) is not None
        assert ("DELETE", COLLECTION_INVENTORY, 1) not in backend.calls

    async def test_failed_delete_is_partial(self, backend, state, caplog):
        backend.fail_on("DELETE", COLLECTION_INVENTORY, 1)
        with caplog.at_level(logging.WARNING):
            result = await lifecycle.mark_sold(state, backend, 1, sale_date="2024-02-28")
        assert result.outcome == OUTCOME_PARTIAL
        assert not result.ok
        assert "SUB001" in result.message
        assert _record(backend, COLLECTION_INVENTORY, 1) is not None
        assert _record(backend, COLLECTION_SOLD, 1) is not None
        assert "still in inventory" in caplog.text

    async def test_trade_in_recorded(self, backend, state):
        draft = TradeInDraft(vin=NEW_VIN, year=2019, make="Honda", model="Civic", mileage="61000")
        result = await lifecycle.mark_sold(
            state, backend, 1, sale_date="2024-02-28", trade_in=draft,
            new_id=lambda: 500, now=NOW,
        )
        assert result.ok
        assert result.trade_in.stock_number == "TI-500"
        stored = _record(backend, COLLECTION_TRADE_INS, 500)
        assert stored["notes"] == "Trade-in for SUB001 (2024 Subaru Outback)"
        assert stored["mileage"] == 61000
        assert stored["pickedUp"] is False
        assert result.to_dict()["trade_in"]["id"] == 500

    async def test_bad_trade_in_vin_blocks_sale(self, backend, state):
        with pytest.raises(ValueError, match="Invalid VIN"):
            await lifecycle.mark_sold(
                state, backend, 1, sale_date="2024-02-28", trade_in=TradeInDraft(vin="NOPE")
            )
        assert _writes(backend) == []

    async def test_trade_in_failure_is_warning(self, backend, state):
        backend.fail_on("POST", COLLECTION_TRADE_INS)
        result = await lifecycle.mark_sold(
            state, backend, 1, sale_date="2024-02-28", trade_in=TradeInDraft(vin=NEW_VIN)
        )
        assert result.outcome == OUTCOME_SUCCESS
        assert result.trade_in is None
        assert result.warnings and result.warnings[0].startswith("Trade-in could not be added")
        assert _record(backend, COLLECTION_SOLD, 1) is not None


class TestCompletePickup:
    async def test_requires_scheduled_pickup(self, backend, state):
        with pytest.raises(ValueError, match="does not have a pickup scheduled"):
            await lifecycle.complete_pickup(state, backend, 1, sale_date="2024-02-28")

    async def test_completes_sale(self, backend, state):
        result = await lifecycle.complete_pickup(state, backend, 4, sale_date="2024-03-01", sale_amount=1)
        assert result.ok
        assert _record(backend, COLLECTION_INVENTORY, 4) is None


class TestReturnToInventory:
    async def test_reverse_move_order(self, backend, state):
        result = await lifecycle.return_to_inventory(state, backend, 10)
        assert result.ok
        assert _writes(backend) == [
            ("POST", COLLECTION_INVENTORY, 10),
            ("DELETE", COLLECTION_SOLD, 10),
        ]
        restored = _record(backend, COLLECTION_INVENTORY, 10)
        assert restored["status"] == "in-stock"
        assert restored["customer"]["saleAmount"] == 28500

    async def test_partial_when_sold_delete_fails(self, backend, state):
        backend.fail_on("DELETE", COLLECTION_SOLD, 10)
        result = await lifecycle.return_to_inventory(state, backend, 10)
        assert result.outcome == OUTCOME_PARTIAL
        assert _record(backend, COLLECTION_SOLD, 10) is not None
        assert _record(backend, COLLECTION_INVENTORY, 10) is not None

    async def test_failure_when_create_fails(self, backend, state):
        backend.fail_on("POST", COLLECTION_INVENTORY)
        result = await lifecycle.return_to_inventory(state, backend, 10)
        assert result.outcome == OUTCOME_FAILURE
        assert _record(backend, COLLECTION_SOLD, 10) is not None

    async def test_only_sold_vehicles(self, backend, state):
        with pytest.raises(ValueError, match="not in the sold archive"):
            await lifecycle.return_to_inventory(state, backend, 1)

    async def test_sold_is_not_a_target_status(self, backend, state):
        with pytest.raises(ValueError):
            await lifecycle.return_to_inventory(state, backend, 10, status="sold")


# ── Trade-ins ───────────────────────────────────────────────────────


class TestTradeIns:
    async def test_add_with_parent_link(self, backend, state):
        record = await lifecycle.add_trade_in(
            state, backend, TradeInDraft(vin=NEW_VIN, make="Honda", model="Civic"),
            parent_vehicle_id="1", new_id=lambda: 300,
        )
        assert record.stock_number == "TI-300"
        assert _record(backend, COLLECTION_INVENTORY, 1)["tradeInId"] == 300
        assert state.find_trade_in(300) is not None

    async def test_parent_link_failure_is_logged(self, backend, state, caplog):
        backend.fail_on("PUT", COLLECTION_INVENTORY, 1)
        with caplog.at_level(logging.WARNING):
            await lifecycle.add_trade_in(
                state, backend, TradeInDraft(vin=NEW_VIN), parent_vehicle_id=1, new_id=lambda: 300
            )
        assert _record(backend, COLLECTION_TRADE_INS, 300) is not None
        assert "not linked" in caplog.text

    async def test_add_keeps_given_stock_number(self, backend, state):
        record = await lifecycle.add_trade_in(
            state, backend, TradeInDraft(vin=NEW_VIN, stock_number="T-9")
        )
        assert record.stock_number == "T-9"

    async def test_add_rejects_bad_vin(self, backend, state):
        with pytest.raises(ValueError):
            await lifecycle.add_trade_in(state, backend, TradeInDraft(vin="123"))

    async def test_edit(self, backend, state):
        updated = await lifecycle.edit_trade_in(state, backend, 100, mileage="-5", color="Gold")
        assert updated.mileage == 0
        assert _record(backend, COLLECTION_TRADE_INS, 100)["color"] == "Gold"

    async def test_edit_unknown_field(self, backend, state):
        with pytest.raises(ValueError, match="Fields not editable"):
            await lifecycle.edit_trade_in(state, backend, 100, picked_up=True)

    async def test_toggle_sets_and_clears_date(self, backend, state):
        picked = await lifecycle.toggle_trade_in_pickup(state, backend, 100, now=NOW)
        assert picked.picked_up
        assert picked.picked_up_date == "2024-03-01T12:00:00.000Z"

        back = await lifecycle.toggle_trade_in_pickup(state, backend, 100)
        assert not back.picked_up
        assert back.picked_up_date is None

    async def test_delete(self, backend, state):
        await lifecycle.delete_trade_in(state, backend, 101)
        assert state.find_trade_in(101) is None

    async def test_delete_missing(self, backend, state):
        with pytest.raises(ValueError, match="not found"):
            await lifecycle.delete_trade_in(state, backend, 999)

    def test_keytag(self, state):
        tag = lifecycle.trade_in_keytag(state.find_trade_in(100))
        assert tag == {
            "stock": "TI-100",
            "vehicle": "2018 Toyota Corolla",
            "vin": "VIN: JC012345",
            "color": "Color: Silver",
            "mileage": "Miles: 45,000",
            "tag": "TRADE-IN",
        }

    def test_keytag_without_mileage(self, state):
        record = state.find_trade_in(100).with_changes(mileage=0, color="")
        tag = lifecycle.trade_in_keytag(record)
        assert tag["mileage"] == "TRADE-IN"
        assert tag["color"] == "Color: N/A"

    def test_draft_from_dict(self):
        draft = TradeInDraft.from_dict({"vin": NEW_VIN, "mileage": 10, "unknown": "x"})
        assert (draft.vin, draft.mileage) == (NEW_VIN, 10)
        with pytest.raises(ValueError, match="VIN is required"):
            TradeInDraft.from_dict({"make": "Honda"})


# ── Documents ───────────────────────────────────────────────────────


class TestDocuments:
    async def test_attach_and_detach(self, backend, state):
        meta = await lifecycle.attach_document(
            state, backend, 1, file_name="title.pdf", content=b"%PDF-1.4 test"
        )
        assert meta.file_name == "title.pdf"
        stored = _record(backend, COLLECTION_INVENTORY, 1)
        assert [d["id"] for d in stored["documents"]] == [meta.id]
        assert await backend.fetch_document(meta.id) == b"%PDF-1.4 test"

        updated = await lifecycle.detach_document(state, backend, 1, meta.id)
        assert updated.documents == []
        with pytest.raises(DashboardAPIError):
            await backend.fetch_document(meta.id)

    async def test_pdf_only(self, backend, state):
        with pytest.raises(ValueError, match="Please select a PDF file."):
            await lifecycle.attach_document(
                state, backend, 1, file_name="a.png", content=b"x", content_type="image/png"
            )

    async def test_size_limit(self, backend, state):
        with pytest.raises(ValueError, match="less than 10MB"):
            await lifecycle.attach_document(
                state, backend, 1, file_name="big.pdf", content=b"0" * (MAX_DOCUMENT_BYTES + 1)
            )
        assert _writes(backend) == []

    async def test_detach_unknown_document(self, backend, state):
        with pytest.raises(ValueError, match="not found on vehicle"):
            await lifecycle.detach_document(state, backend, 1, "doc-404")


# ── Maintenance ─────────────────────────────────────────────────────


class TestMaintenance:
    async def test_fix_in_transit_dates(self):
        backend = InMemoryBackend(inventory=[
            {"id": 1, "vin": NEW_VIN, "status": "in-transit", "inStockDate": "2024-01-01"},
            {"id": 2, "vin": NEW_VIN, "status": "in-transit", "inStockDate": None},
            {"id": 3, "vin": NEW_VIN, "status": "in-stock", "inStockDate": "2024-01-01"},
        ])
        state = await load_state(backend)
        result = await lifecycle.fix_in_transit_dates(state, backend)
        assert (result.success, result.errors) == (1, 0)
        assert _record(backend, COLLECTION_INVENTORY, 1)["inStockDate"] is None
        assert _record(backend, COLLECTION_INVENTORY, 3)["inStockDate"] == "2024-01-01"

    async def test_batch_clear_newest_first(self, backend, state):
        result = await lifecycle.batch_clear_in_stock_dates(state, backend, 2)
        assert result.success == 2
        assert _record(backend, COLLECTION_INVENTORY, 4)["inStockDate"] is None
        assert _record(backend, COLLECTION_INVENTORY, 3)["inStockDate"] is None
        assert _record(backend, COLLECTION_INVENTORY, 1)["inStockDate"] is not None

    async def test_batch_continues_on_error(self, backend, state):
        backend.fail_on("PUT", COLLECTION_INVENTORY, 4)
        result = await lifecycle.batch_clear_in_stock_dates(state, backend, 2)
        assert (result.success, result.errors) == (1, 1)
        assert result.messages[0].startswith("SUB004:")

    @pytest.mark.parametrize("count", [0, -3])
    async def test_batch_count_must_be_positive(self, backend, state, count):
        with pytest.raises(ValueError, match="Please enter a valid number"):
            await lifecycle.batch_clear_in_stock_dates(state, backend, count)
