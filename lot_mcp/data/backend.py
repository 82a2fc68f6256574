"""InventoryBackend protocol and an in-memory implementation.

The protocol mirrors the REST collections one-for-one, so the aiohttp
``DashboardAPIClient`` satisfies it structurally.  ``InMemoryBackend`` backs
tests and offline runs and can be told to fail specific calls.
"""

from __future__ import annotations

import copy
import itertools
from typing import Any, Protocol, runtime_checkable

from lot_mcp.clients.dashboard import (
    COLLECTION_INVENTORY,
    COLLECTION_SOLD,
    COLLECTION_TRADE_INS,
    COLLECTIONS,
    DashboardAPIError,
)
from lot_mcp.constants import SOURCE_INVENTORY, SOURCE_SOLD
from lot_mcp.normalization import utc_now_iso

_SOURCE_TO_COLLECTION = {
    SOURCE_INVENTORY: COLLECTION_INVENTORY,
    SOURCE_SOLD: COLLECTION_SOLD,
}


def collection_for_source(source: str) -> str:
    """Map a record source tag (``inventory``/``sold``) to its REST collection."""
    try:
        return _SOURCE_TO_COLLECTION[source]
    except KeyError:
        raise ValueError(f"Unknown record source '{source}'.") from None


@runtime_checkable
class InventoryBackend(Protocol):
    """Async persistence operations used by the dashboard core."""

    async def list_records(self, collection: str) -> list[dict[str, Any]]: ...

    async def create_record(self, collection: str, record: dict[str, Any]) -> dict[str, Any]: ...

    async def update_record(
        self, collection: str, record_id: Any, record: dict[str, Any]
    ) -> dict[str, Any]: ...

    async def delete_record(self, collection: str, record_id: Any) -> None: ...

    async def upload_document(
        self, vehicle_id: Any, file_name: str, content: bytes
    ) -> dict[str, Any]: ...

    async def fetch_document(self, document_id: str, *, download: bool = False) -> bytes: ...

    async def delete_document(self, document_id: str) -> None: ...


class InMemoryBackend:
    """Dict-backed :class:`InventoryBackend` with call log and failure injection."""

    def __init__(
        self,
        *,
        inventory: list[dict[str, Any]] | None = None,
        sold: list[dict[str, Any]] | None = None,
        trade_ins: list[dict[str, Any]] | None = None,
    ) -> None:
        self._collections: dict[str, dict[Any, dict[str, Any]]] = {c: {} for c in COLLECTIONS}
        self._documents: dict[str, tuple[dict[str, Any], bytes]] = {}
        self._doc_ids = itertools.count(1)
        self._failures: set[tuple[str, str, Any]] = set()
        self.calls: list[tuple[str, str, Any]] = []
        for collection, rows in (
            (COLLECTION_INVENTORY, inventory),
            (COLLECTION_SOLD, sold),
            (COLLECTION_TRADE_INS, trade_ins),
        ):
            for row in rows or []:
                self._collections[collection][row["id"]] = copy.deepcopy(row)

    # ── Test hooks ──────────────────────────────────────────────────

    def fail_on(self, method: str, collection: str, record_id: Any = None) -> None:
        """Make ``method`` on ``collection`` raise; ``record_id=None`` matches any id."""
        self._failures.add((method, collection, record_id))

    def records(self, collection: str) -> list[dict[str, Any]]:
        return [copy.deepcopy(r) for r in self._store(collection).values()]

    def _store(self, collection: str) -> dict[Any, dict[str, Any]]:
        if collection not in self._collections:
            raise ValueError(f"Unknown collection '{collection}'.")
        return self._collections[collection]

    def _enter(self, method: str, collection: str, record_id: Any = None) -> None:
        self.calls.append((method, collection, record_id))
        if (method, collection, None) in self._failures or (
            record_id is not None and (method, collection, record_id) in self._failures
        ):
            raise DashboardAPIError(
                f"Simulated {method} failure on /{collection}.",
                code="HTTP_ERROR",
                status=500,
                details={"collection": collection, "id": record_id},
            )

    def _missing(self, collection: str, record_id: Any) -> DashboardAPIError:
        return DashboardAPIError(
            "Record not found",
            code="HTTP_ERROR",
            status=404,
            details={"collection": collection, "id": record_id},
        )

    # ── InventoryBackend ────────────────────────────────────────────

    async def list_records(self, collection: str) -> list[dict[str, Any]]:
        store = self._store(collection)
        self._enter("GET", collection)
        return [copy.deepcopy(r) for r in store.values()]

    async def create_record(self, collection: str, record: dict[str, Any]) -> dict[str, Any]:
        store = self._store(collection)
        record_id = record.get("id")
        self._enter("POST", collection, record_id)
        if record_id is None:
            record_id = max((k for k in store if isinstance(k, int)), default=0) + 1
        stored = copy.deepcopy(record)
        stored["id"] = record_id
        store[record_id] = stored
        return copy.deepcopy(stored)

    async def update_record(
        self, collection: str, record_id: Any, record: dict[str, Any]
    ) -> dict[str, Any]:
        store = self._store(collection)
        self._enter("PUT", collection, record_id)
        if record_id not in store:
            raise self._missing(collection, record_id)
        stored = copy.deepcopy(record)
        stored["id"] = record_id
        store[record_id] = stored
        return copy.deepcopy(stored)

    async def delete_record(self, collection: str, record_id: Any) -> None:
        store = self._store(collection)
        self._enter("DELETE", collection, record_id)
        if record_id not in store:
            raise self._missing(collection, record_id)
        del store[record_id]

    async def upload_document(
        self, vehicle_id: Any, file_name: str, content: bytes
    ) -> dict[str, Any]:
        self._enter("POST", "documents", vehicle_id)
        meta = {
            "id": f"doc-{next(self._doc_ids)}",
            "fileName": file_name,
            "fileSize": len(content),
            "uploadDate": utc_now_iso(),
        }
        self._documents[meta["id"]] = (meta, bytes(content))
        return dict(meta)

    async def fetch_document(self, document_id: str, *, download: bool = False) -> bytes:
        self._enter("GET", "documents", document_id)
        if document_id not in self._documents:
            raise self._missing("documents", document_id)
        return self._documents[document_id][1]

    async def delete_document(self, document_id: str) -> None:
        self._enter("DELETE", "documents", document_id)
        if document_id not in self._documents:
            raise self._missing("documents", document_id)
        del self._documents[document_id]
