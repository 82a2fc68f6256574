"""Dashboard REST backend client."""

from lot_mcp.clients.dashboard import (
    COLLECTION_INVENTORY,
    COLLECTION_SOLD,
    COLLECTION_TRADE_INS,
    COLLECTIONS,
    DashboardAPIClient,
    DashboardAPIError,
)

__all__ = [
    "COLLECTIONS",
    "COLLECTION_INVENTORY",
    "COLLECTION_SOLD",
    "COLLECTION_TRADE_INS",
    "DashboardAPIClient",
    "DashboardAPIError",
]
