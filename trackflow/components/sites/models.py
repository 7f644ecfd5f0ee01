"""
Sites component - Data models.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from trackflow.core.entities import Site

# --- Validation Errors ---


@dataclass(frozen=True)
class SiteValidationError:
    """Site validation error."""

    code: str
    message: str
    field: str | None = None


# --- Input Models ---


@dataclass(frozen=True)
class CreateSiteInput:
    owner_id: str
    name: str
    domain: str


@dataclass(frozen=True)
class GetSiteInput:
    site_id: str
    owner_id: str


@dataclass(frozen=True)
class DeleteSiteInput:
    site_id: str
    owner_id: str


# --- Output Models ---


@dataclass(frozen=True)
class SiteOperationOutput:
    site: Site | None
    errors: list[SiteValidationError] = field(default_factory=list)
    success: bool = True


@dataclass(frozen=True)
class GetSiteOutput:
    site: Site


@dataclass(frozen=True)
class SiteListOutput:
    sites: list[Site]
    total: int


@dataclass(frozen=True)
class DeleteSiteOutput:
    events_removed: int
    payments_removed: int
    success: bool = True
