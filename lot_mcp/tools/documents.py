"""Vehicle document (PDF) tool implementations."""

from __future__ import annotations

import base64
import binascii

from lot_mcp import lifecycle
from lot_mcp.data.backend import InventoryBackend
from lot_mcp.data.state import load_state
from lot_mcp.lifecycle import PDF_CONTENT_TYPE
from lot_mcp.tools.responses import respond


def _decode(content_base64: str) -> bytes:
    try:
        return base64.b64decode(content_base64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("Document content must be base64 encoded.") from exc


async def attach_document_impl(
    backend: InventoryBackend,
    *,
    vehicle_id: str,
    file_name: str,
    content_base64: str,
    content_type: str = PDF_CONTENT_TYPE,
    raw: bool = False,
) -> str:
    content = _decode(content_base64)
    state = await load_state(backend)
    meta = await lifecycle.attach_document(
        state,
        backend,
        vehicle_id,
        file_name=file_name,
        content=content,
        content_type=content_type,
    )
    return respond(
        "attach_document",
        {"vehicle_id": vehicle_id, "document": meta.to_dict()},
        f"Uploaded {meta.file_name} ({len(content):,} bytes) as document {meta.id}.",
        raw=raw,
    )


async def list_documents_impl(
    backend: InventoryBackend, *, vehicle_id: str, raw: bool = False
) -> str:
    state = await load_state(backend)
    found = state.find_vehicle(vehicle_id)
    if found is None:
        raise ValueError(f"Vehicle '{vehicle_id}' not found.")
    record, _ = found
    data = {"vehicle_id": vehicle_id, "documents": [d.to_dict() for d in record.documents]}
    if not record.documents:
        return respond("list_documents", data, "No documents uploaded.", raw=raw)
    lines = [f"- {d.id}: {d.file_name}" for d in record.documents]
    return respond(
        "list_documents", data, f"Documents for {record.stock_number}\n" + "\n".join(lines), raw=raw
    )


async def get_document_impl(
    backend: InventoryBackend, *, document_id: str, download: bool = False, raw: bool = False
) -> str:
    """Fetch a document's bytes, returned base64 encoded."""
    content = await backend.fetch_document(document_id, download=download)
    encoded = base64.b64encode(content).decode("ascii")
    data = {"document_id": document_id, "size": len(content), "content_base64": encoded}
    return respond("get_document", data, encoded, raw=raw)


async def detach_document_impl(
    backend: InventoryBackend, *, vehicle_id: str, document_id: str, raw: bool = False
) -> str:
    state = await load_state(backend)
    record = await lifecycle.detach_document(state, backend, vehicle_id, document_id)
    return respond(
        "detach_document",
        {"vehicle_id": vehicle_id, "document_id": document_id, "remaining": len(record.documents)},
        f"Document {document_id} deleted.",
        raw=raw,
    )
