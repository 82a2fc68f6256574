"""Application state and the backend facade.

``AppState`` holds the three collections the dashboard renders from.  It is
passed explicitly to every operation and replaced wholesale by ``reload``
after each backend round trip.  ``backend_session`` hands out the active
backend: the test override when one is set, otherwise a logged-in
``DashboardAPIClient``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

from lot_mcp.clients.dashboard import (
    COLLECTION_INVENTORY,
    COLLECTION_SOLD,
    COLLECTION_TRADE_INS,
    DashboardAPIClient,
    DashboardAPIError,
)
from lot_mcp.config import DashboardConfig
from lot_mcp.constants import SOURCE_INVENTORY, SOURCE_SOLD
from lot_mcp.data.backend import InventoryBackend
from lot_mcp.data.records import TradeInRecord, VehicleRecord
from lot_mcp.normalization import normalize_vin

logger = logging.getLogger(__name__)

_backend_override: InventoryBackend | None = None


def same_id(left: Any, right: Any) -> bool:
    """Ids arrive as ints from JSON and as strings from tool arguments."""
    return left is not None and right is not None and str(left) == str(right)


@dataclass
class AppState:
    """Snapshot of active inventory, the sold archive, and trade-ins."""
    inventory: list[VehicleRecord] = field(default_factory=list)
    sold: list[VehicleRecord] = field(default_factory=list)
    trade_ins: list[TradeInRecord] = field(default_factory=list)

    def find_vehicle(self, vehicle_id: Any) -> tuple[VehicleRecord, str] | None:
        """Locate a vehicle and the source (``inventory``/``sold``) holding it."""
        for record in self.inventory:
            if same_id(record.id, vehicle_id):
                return record, SOURCE_INVENTORY
        for record in self.sold:
            if same_id(record.id, vehicle_id):
                return record, SOURCE_SOLD
        return None

    def find_trade_in(self, trade_in_id: Any) -> TradeInRecord | None:
        for record in self.trade_ins:
            if same_id(record.id, trade_in_id):
                return record
        return None

    def known_vins(self) -> set[str]:
        """Uppercased VINs present in either vehicle collection."""
        vins = {normalize_vin(r.vin) for r in self.inventory}
        vins.update(normalize_vin(r.vin) for r in self.sold)
        vins.discard("")
        return vins

    async def reload(self, backend: InventoryBackend) -> AppState:
        """Re-fetch all three collections concurrently and replace them.

        A collection that fails to load aborts the reload and leaves the
        previous snapshot untouched.
        """
        inventory, sold, trade_ins = await asyncio.gather(
            _load(backend, COLLECTION_INVENTORY),
            _load(backend, COLLECTION_SOLD),
            _load(backend, COLLECTION_TRADE_INS),
        )
        self.inventory = [VehicleRecord.from_dict(r) for r in inventory]
        self.sold = [VehicleRecord.from_dict(r) for r in sold]
        self.trade_ins = [TradeInRecord.from_dict(r) for r in trade_ins]
        return self


async def _load(backend: InventoryBackend, collection: str) -> list[dict[str, Any]]:
    try:
        return await backend.list_records(collection)
    except DashboardAPIError as exc:
        logger.error("Error loading %s: %s", collection, exc)
        raise


async def load_state(backend: InventoryBackend) -> AppState:
    return await AppState().reload(backend)


def set_backend_override(backend: InventoryBackend | None) -> None:
    """Inject a backend instance for testing."""
    global _backend_override  # noqa: PLW0603
    _backend_override = backend


def get_backend_override() -> InventoryBackend | None:
    return _backend_override


@asynccontextmanager
async def backend_session(
    config: DashboardConfig | None = None,
) -> AsyncIterator[InventoryBackend]:
    """Yield the active backend for the duration of one tool call."""
    if _backend_override is not None:
        yield _backend_override
        return

    resolved = config or DashboardConfig.from_env()
    async with DashboardAPIClient(resolved) as client:
        if resolved.has_credentials:
            await client.login()
        yield client
