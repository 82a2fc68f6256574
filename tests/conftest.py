"""Shared test fixtures: sample records and in-memory backend injection."""

from __future__ import annotations

from typing import Any

import pytest

from lot_mcp.data.backend import InMemoryBackend
from lot_mcp.data.records import TradeInRecord, VehicleRecord
from lot_mcp.data.state import AppState, load_state, set_backend_override

# Timestamps are naive (local time) so calendar-day assertions hold in any TZ.


def sample_inventory() -> list[dict[str, Any]]:
    return [
        {
            "id": 1,
            "vin": "1HGBH41JXMN109186",
            "stockNumber": "SUB001",
            "year": 2024,
            "make": "Subaru",
            "model": "Outback",
            "trim": "Premium",
            "color": "Crystal White Pearl",
            "fleetCompany": "Acme Fleet",
            "operationCompany": "Northeast Operations",
            "status": "in-stock",
            "dateAdded": "2024-01-15T10:00:00",
            "inStockDate": "2024-01-15T00:00:00",
            "documents": [],
        },
        {
            "id": 2,
            "vin": "4S4BTANC5M3128456",
            "stockNumber": "SUB002",
            "year": 2024,
            "make": "Subaru",
            "model": "Forester",
            "trim": "Sport",
            "color": "Magnetite Gray Metallic",
            "fleetCompany": "ABC Rentals",
            "operationCompany": "West Coast Ops",
            "status": "in-transit",
            "dateAdded": "2024-01-20T10:00:00",
            "inStockDate": None,
            "documents": [],
        },
        {
            "id": 3,
            "vin": "JF2SKAGC8MH523789",
            "stockNumber": "SUB003",
            "year": 2023,
            "make": "Subaru",
            "model": "Crosstrek",
            "trim": "Limited",
            "color": "Horizon Blue Pearl",
            "fleetCompany": "ABC Rentals",
            "operationCompany": "",
            "status": "pdi",
            "dateAdded": "2024-02-01T10:00:00",
            "inStockDate": "2024-02-01T00:00:00",
            "documents": [],
        },
        {
            "id": 4,
            "vin": "4S3GTAA68M1742590",
            "stockNumber": "SUB004",
            "year": 2024,
            "make": "Subaru",
            "model": "Ascent",
            "trim": "Touring",
            "color": "Autumn Green Metallic",
            "fleetCompany": "",
            "operationCompany": "",
            "status": "pickup-scheduled",
            "dateAdded": "2024-02-10T10:00:00",
            "inStockDate": "2024-02-10T00:00:00",
            "pickupDate": "2024-03-01",
            "pickupTime": "10:00",
            "customer": {"firstName": "John", "lastName": "Smith", "phone": "555-123-4567"},
            "documents": [],
        },
    ]


def sample_sold() -> list[dict[str, Any]]:
    return [
        {
            "id": 10,
            "vin": "JF1VA1C60M9812345",
            "stockNumber": "SUB010",
            "year": 2023,
            "make": "Subaru",
            "model": "WRX",
            "trim": "Base",
            "color": "World Rally Blue",
            "status": "sold",
            "dateAdded": "2023-11-01T10:00:00",
            "inStockDate": "2023-11-01T00:00:00",
            "customer": {
                "firstName": "Jane",
                "lastName": "Doe",
                "phone": "555-987-6543",
                "saleDate": "2024-01-05",
                "saleAmount": 28500,
                "paymentMethod": "ACH",
                "paymentReference": "TXN123456",
            },
            "documents": [],
        },
        {
            "id": 11,
            "vin": "4S4BSANC1K3345678",
            "stockNumber": "SUB011",
            "year": 2022,
            "make": "Subaru",
            "model": "Outback",
            "trim": "Limited",
            "color": "Ice Silver Metallic",
            "status": "sold",
            "dateAdded": "2023-12-01T10:00:00",
            "inStockDate": "2023-12-01T00:00:00",
            "customer": {
                "firstName": "Bob",
                "lastName": "Lee",
                "saleDate": "2024-02-10",
                "saleAmount": 31000,
                "paymentMethod": "Check",
                "paymentReference": "CHK555",
            },
            "documents": [],
        },
    ]


def sample_trade_ins() -> list[dict[str, Any]]:
    return [
        {
            "id": 100,
            "vin": "2T1BURHE5JC012345",
            "stockNumber": "TI-100",
            "year": 2018,
            "make": "Toyota",
            "model": "Corolla",
            "trim": "LE",
            "color": "Silver",
            "mileage": 45000,
            "notes": "",
            "pickedUp": False,
            "pickedUpDate": None,
            "dateAdded": "2024-01-05T12:00:00",
        },
        {
            "id": 101,
            "vin": "1FTEW1EP7JKD54321",
            "stockNumber": "TI-101",
            "year": 2018,
            "make": "Ford",
            "model": "F-150",
            "trim": "XLT",
            "color": "Black",
            "mileage": 82000,
            "notes": "",
            "pickedUp": True,
            "pickedUpDate": "2024-02-12T09:00:00",
            "dateAdded": "2024-02-10T12:00:00",
        },
    ]


def vehicle(**overrides: Any) -> VehicleRecord:
    """Build a VehicleRecord from camelCase overrides on a minimal base."""
    data: dict[str, Any] = {
        "id": 1,
        "vin": "1HGBH41JXMN109186",
        "stockNumber": "SUB001",
        "year": 2024,
        "make": "Subaru",
        "model": "Outback",
        "status": "in-stock",
    }
    data.update(overrides)
    return VehicleRecord.from_dict(data)


def sold_vehicle(sale_date: str | None, amount: Any = 0, **overrides: Any) -> VehicleRecord:
    customer = {"firstName": "Pat", "lastName": "Buyer", "saleAmount": amount}
    if sale_date is not None:
        customer["saleDate"] = sale_date
    customer.update(overrides.pop("customer", {}))
    return vehicle(status="sold", customer=customer, **overrides)


def trade_in(**overrides: Any) -> TradeInRecord:
    data = dict(sample_trade_ins()[0])
    data.update(overrides)
    return TradeInRecord.from_dict(data)


@pytest.fixture()
def backend() -> InMemoryBackend:
    """A fresh in-memory backend seeded with sample records."""
    return InMemoryBackend(
        inventory=sample_inventory(),
        sold=sample_sold(),
        trade_ins=sample_trade_ins(),
    )


@pytest.fixture()
def empty_backend() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture()
async def state(backend: InMemoryBackend) -> AppState:
    return await load_state(backend)


@pytest.fixture(autouse=True)
def _inject_test_backend(backend: InMemoryBackend):
    """Route every server tool call to the test's in-memory backend."""
    set_backend_override(backend)
    yield
    set_backend_override(None)
