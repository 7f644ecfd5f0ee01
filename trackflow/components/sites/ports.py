"""
Sites component - Port interfaces.
"""

from __future__ import annotations

from typing import Protocol

from trackflow.core.entities import Site
from trackflow.core.ports import TimePort

__all__ = ["SiteDataPort", "SiteRepoPort", "TimePort"]


class SiteRepoPort(Protocol):
    """Repository interface for sites."""

    def save(self, site: Site) -> Site:
        """Insert a site."""
        ...

    def get_by_id(self, site_id: str) -> Site | None:
        """Fetch a site regardless of owner."""
        ...

    def list_by_owner(self, owner_id: str) -> list[Site]:
        """Sites owned by one identity, newest first."""
        ...

    def delete(self, site_id: str) -> None:
        """Delete site row."""
        ...

    def resolve(self, site_id: str) -> str | None:
        """Owner id of a site, or None."""
        ...


class SiteDataPort(Protocol):
    """Anything holding per-site rows that must go when the site goes."""

    def delete_site(self, site_id: str) -> int:
        ...
