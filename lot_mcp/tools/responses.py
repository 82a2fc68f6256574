"""Shared response helpers for tool implementations."""

from __future__ import annotations

import json
import logging
from typing import Any

from lot_mcp.clients.dashboard import DashboardAPIError

logger = logging.getLogger(__name__)


def build_raw_response(tool_name: str, data: Any) -> str:
    payload = {
        "_raw": True,
        "_tool": tool_name,
        "_meta": {"schema_version": 1},
        "data": data,
    }
    return json.dumps(payload, indent=2, default=str)


def respond(tool_name: str, data: Any, text: str, *, raw: bool) -> str:
    """Raw JSON envelope when ``raw`` is set, otherwise the text summary."""
    if raw:
        return build_raw_response(tool_name, data)
    return text


def format_error(
    *,
    tool_name: str,
    raw: bool,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> str:
    if not raw:
        return message

    payload: dict[str, Any] = {"error": True, "code": code, "message": message}
    if details:
        payload["details"] = details
    return build_raw_response(tool_name, payload)


def format_api_error(tool_name: str, exc: DashboardAPIError, *, raw: bool) -> str:
    if exc.code == "NOT_AUTHENTICATED":
        message = "The dashboard backend rejected the session. Check LOTDASH_USERNAME/PASSWORD."
    else:
        message = f"Dashboard backend error: {exc}"
    details = dict(exc.details)
    if exc.status is not None:
        details["status"] = exc.status
    return format_error(
        tool_name=tool_name, raw=raw, code=exc.code, message=message, details=details
    )


def log_and_return_tool_error(*, tool_name: str, exc: Exception, user_message: str) -> str:
    logger.exception("Tool %s failed: %s", tool_name, exc)
    return user_message
