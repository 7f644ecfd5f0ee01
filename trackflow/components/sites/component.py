"""
Sites component - Tenant registry.

Each site belongs to exactly one owner. Events are accepted for a site id
only while the site exists, and every query is scoped to an owned site.

Invariants:
- Sites of one owner are never visible to another
- Missing and foreign sites are reported identically
- Deleting a site removes its events and payments
"""

from __future__ import annotations

from ._impl import SiteService
from .models import (
    CreateSiteInput,
    DeleteSiteInput,
    DeleteSiteOutput,
    GetSiteInput,
    GetSiteOutput,
    SiteListOutput,
    SiteOperationOutput,
)
from .ports import SiteDataPort, SiteRepoPort, TimePort

# --- Component Entry Points ---


def run_create(
    inp: CreateSiteInput,
    *,
    repo: SiteRepoPort,
    time_port: TimePort,
) -> SiteOperationOutput:
    """
    Register a new site for an owner.

    Args:
        inp: Owner, display name and domain.
        repo: Site repository port.
        time_port: Time port for created_at.

    Returns:
        SiteOperationOutput with the site or validation errors.
    """
    service = SiteService(repo=repo, time_port=time_port)
    site, errors = service.create(inp.owner_id, inp.name, inp.domain)
    return SiteOperationOutput(site=site, errors=errors, success=site is not None)


def run_list(owner_id: str, *, repo: SiteRepoPort) -> SiteListOutput:
    """List the sites of one owner, newest first."""
    sites = repo.list_by_owner(owner_id)
    return SiteListOutput(sites=sites, total=len(sites))


def run_get(
    inp: GetSiteInput,
    *,
    repo: SiteRepoPort,
    time_port: TimePort,
) -> GetSiteOutput:
    """
    Fetch one owned site.

    Raises:
        AccessDeniedError: site missing or owned by someone else.
    """
    service = SiteService(repo=repo, time_port=time_port)
    return GetSiteOutput(site=service.get(inp.site_id, inp.owner_id))


def run_delete(
    inp: DeleteSiteInput,
    *,
    repo: SiteRepoPort,
    time_port: TimePort,
    event_store: SiteDataPort | None = None,
    payment_store: SiteDataPort | None = None,
) -> DeleteSiteOutput:
    """
    Delete an owned site and everything recorded for it.

    Raises:
        AccessDeniedError: site missing or owned by someone else.
    """
    service = SiteService(
        repo=repo,
        time_port=time_port,
        event_store=event_store,
        payment_store=payment_store,
    )
    events_removed, payments_removed = service.delete(inp.site_id, inp.owner_id)
    return DeleteSiteOutput(
        events_removed=events_removed,
        payments_removed=payments_removed,
    )
