"""
Ports shared across components.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol


class TimePort(Protocol):
    """Time provider interface."""

    def now_utc(self) -> datetime:
        """Get current UTC time."""
        ...


class SiteDirectoryPort(Protocol):
    """Resolves a site id to its owner."""

    def resolve(self, site_id: str) -> str | None:
        """Return the owner id, or None when the site does not exist."""
        ...
