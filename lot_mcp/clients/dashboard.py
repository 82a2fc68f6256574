"""Async client for the dashboard REST backend."""

from __future__ import annotations

import json
import logging
from typing import Any

import aiohttp

from lot_mcp.config import DashboardConfig

logger = logging.getLogger(__name__)

COLLECTION_INVENTORY = "inventory"
COLLECTION_SOLD = "sold-vehicles"
COLLECTION_TRADE_INS = "trade-ins"
COLLECTIONS = (COLLECTION_INVENTORY, COLLECTION_SOLD, COLLECTION_TRADE_INS)


class DashboardAPIError(RuntimeError):
    """Raised for backend request failures with structured metadata."""

    def __init__(
        self,
        message: str,
        *,
        code: str,
        status: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.status = status
        self.details = details or {}


def _check_collection(collection: str) -> str:
    if collection not in COLLECTIONS:
        raise ValueError(f"Unknown collection '{collection}'.")
    return collection


class DashboardAPIClient:
    """aiohttp client for ``/inventory``, ``/sold-vehicles``, ``/trade-ins``,
    ``/documents`` and the session-auth endpoints.

    The session cookie issued by ``/login`` lives in the client's cookie jar
    and is sent with every later call.
    """

    def __init__(self, config: DashboardConfig | None = None) -> None:
        self.config = config or DashboardConfig()
        self.session: aiohttp.ClientSession | None = None
        self._timeout = aiohttp.ClientTimeout(total=self.config.timeout_seconds)

    async def __aenter__(self) -> DashboardAPIClient:
        self.session = aiohttp.ClientSession(
            cookie_jar=aiohttp.CookieJar(unsafe=True),
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self.session:
            await self.session.close()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: Any = None,
        data: Any = None,
        binary: bool = False,
    ) -> Any:
        if not self.session:
            raise RuntimeError("Client not entered as context manager")

        url = f"{self.config.api_base}{path}"
        try:
            async with self.session.request(
                method,
                url,
                json=json_body,
                data=data,
                timeout=self._timeout,
            ) as resp:
                if binary and resp.status < 400:
                    return await resp.read()

                raw_text = await resp.text()
                payload: Any
                if raw_text:
                    try:
                        payload = json.loads(raw_text)
                    except json.JSONDecodeError:
                        payload = {"raw": raw_text}
                else:
                    payload = {}

                if resp.status >= 400:
                    message = f"Request failed with HTTP {resp.status}."
                    if isinstance(payload, dict):
                        message = str(
                            payload.get("error") or payload.get("message") or message
                        )
                    raise DashboardAPIError(
                        message,
                        code="NOT_AUTHENTICATED" if resp.status == 401 else "HTTP_ERROR",
                        status=resp.status,
                        details=payload if isinstance(payload, dict) else {"response": payload},
                    )
                return payload
        except DashboardAPIError:
            raise
        except TimeoutError as exc:
            raise DashboardAPIError(
                "Dashboard request timed out.",
                code="TIMEOUT",
                details={"method": method, "path": path},
            ) from exc
        except aiohttp.ClientError as exc:
            logger.error("Dashboard client error (%s %s): %s", method, path, exc)
            raise DashboardAPIError(
                "Dashboard request failed due to a network/client error.",
                code="NETWORK_ERROR",
                details={"method": method, "path": path, "error": str(exc)},
            ) from exc

    # ── Auth ────────────────────────────────────────────────────────

    async def login(self, username: str | None = None, password: str | None = None) -> dict[str, Any]:
        body = {
            "username": username if username is not None else self.config.username,
            "password": password if password is not None else self.config.password,
        }
        data = await self._request("POST", "/login", json_body=body)
        return data if isinstance(data, dict) else {"data": data}

    async def logout(self) -> None:
        await self._request("POST", "/logout")

    async def auth_status(self) -> dict[str, Any]:
        data = await self._request("GET", "/auth/status")
        return data if isinstance(data, dict) else {"data": data}

    # ── Collections ─────────────────────────────────────────────────

    async def list_records(self, collection: str) -> list[dict[str, Any]]:
        data = await self._request("GET", f"/{_check_collection(collection)}")
        if isinstance(data, list):
            return [r for r in data if isinstance(r, dict)]
        return []

    async def create_record(self, collection: str, record: dict[str, Any]) -> dict[str, Any]:
        data = await self._request("POST", f"/{_check_collection(collection)}", json_body=record)
        return data if isinstance(data, dict) else dict(record)

    async def update_record(
        self, collection: str, record_id: Any, record: dict[str, Any]
    ) -> dict[str, Any]:
        data = await self._request(
            "PUT", f"/{_check_collection(collection)}/{record_id}", json_body=record
        )
        return data if isinstance(data, dict) else dict(record)

    async def delete_record(self, collection: str, record_id: Any) -> None:
        await self._request("DELETE", f"/{_check_collection(collection)}/{record_id}")

    # ── Documents ───────────────────────────────────────────────────

    async def upload_document(
        self, vehicle_id: Any, file_name: str, content: bytes
    ) -> dict[str, Any]:
        """Upload a PDF and return the ``document`` metadata the backend assigns."""
        form = aiohttp.FormData()
        form.add_field(
            "file", content, filename=file_name, content_type="application/pdf"
        )
        form.add_field("vehicleId", str(vehicle_id))
        form.add_field("fileName", file_name)
        data = await self._request("POST", "/documents/upload", data=form)
        document = data.get("document") if isinstance(data, dict) else None
        if not isinstance(document, dict):
            raise DashboardAPIError(
                "Upload response did not include document metadata.",
                code="HTTP_ERROR",
                details={"response": data},
            )
        return document

    async def fetch_document(self, document_id: str, *, download: bool = False) -> bytes:
        action = "download" if download else "view"
        return await self._request("GET", f"/documents/{action}/{document_id}", binary=True)

    async def delete_document(self, document_id: str) -> None:
        await self._request("DELETE", f"/documents/delete/{document_id}")
