"""Runtime configuration for the dashboard backend connection."""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_API_BASE = "http://localhost:3000/api"
DEFAULT_TIMEOUT_SECONDS = 15.0


@dataclass(frozen=True)
class DashboardConfig:
    """Connection settings for the inventory REST backend."""
    api_base: str = DEFAULT_API_BASE
    username: str = ""
    password: str = ""
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)

    @classmethod
    def from_env(cls) -> DashboardConfig:
        """Build a config from ``LOTDASH_*`` environment variables."""
        raw_timeout = os.environ.get("LOTDASH_TIMEOUT_SECONDS", "").strip()
        try:
            timeout = float(raw_timeout) if raw_timeout else DEFAULT_TIMEOUT_SECONDS
        except ValueError:
            timeout = DEFAULT_TIMEOUT_SECONDS
        return cls(
            api_base=os.environ.get("LOTDASH_API_BASE", DEFAULT_API_BASE).rstrip("/"),
            username=os.environ.get("LOTDASH_USERNAME", ""),
            password=os.environ.get("LOTDASH_PASSWORD", ""),
            timeout_seconds=timeout if timeout > 0 else DEFAULT_TIMEOUT_SECONDS,
        )
