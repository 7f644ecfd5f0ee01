"""
Site management API Routes.

Every route is scoped to the bearer token's owner. Foreign and missing site
ids both answer 404.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from trackflow.api.deps import (
    get_clock,
    get_current_owner,
    get_event_store,
    get_payment_store,
    get_site_repo,
)
from trackflow.components.analytics import EventStorePort, PaymentStorePort
from trackflow.components.sites import (
    CreateSiteInput,
    DeleteSiteInput,
    GetSiteInput,
    SiteRepoPort,
    run_create,
    run_delete,
    run_get,
    run_list,
)
from trackflow.core.entities import Site
from trackflow.core.ports import TimePort

router = APIRouter()


# --- Request/Response Models ---


class SiteCreateRequest(BaseModel):
    name: str = Field(..., description="Display name")
    domain: str = Field(..., description="Site domain, e.g. example.com")


class SiteResponse(BaseModel):
    id: str
    name: str
    domain: str
    created_at: str


class SiteListResponse(BaseModel):
    sites: list[SiteResponse]
    total: int


class SiteDeleteResponse(BaseModel):
    ok: bool = True
    events_removed: int
    payments_removed: int


def _to_response(site: Site) -> SiteResponse:
    return SiteResponse(
        id=site.id,
        name=site.name,
        domain=site.domain,
        created_at=site.created_at.isoformat(),
    )


# --- Routes ---


@router.get("", response_model=SiteListResponse)
def list_sites(
    owner_id: str = Depends(get_current_owner),
    repo: SiteRepoPort = Depends(get_site_repo),
) -> SiteListResponse:
    """List the caller's sites, newest first."""
    result = run_list(owner_id, repo=repo)
    return SiteListResponse(sites=[_to_response(s) for s in result.sites], total=result.total)


@router.post("", response_model=SiteResponse, status_code=status.HTTP_201_CREATED)
def create_site(
    body: SiteCreateRequest,
    owner_id: str = Depends(get_current_owner),
    repo: SiteRepoPort = Depends(get_site_repo),
    clock: TimePort = Depends(get_clock),
) -> SiteResponse:
    """Register a site for the caller."""
    result = run_create(
        CreateSiteInput(owner_id=owner_id, name=body.name, domain=body.domain),
        repo=repo,
        time_port=clock,
    )
    if result.site is None:
        err = result.errors[0]
        raise HTTPException(status_code=400, detail=err.message)
    return _to_response(result.site)


@router.get("/{site_id}", response_model=SiteResponse)
def get_site(
    site_id: str,
    owner_id: str = Depends(get_current_owner),
    repo: SiteRepoPort = Depends(get_site_repo),
    clock: TimePort = Depends(get_clock),
) -> SiteResponse:
    result = run_get(GetSiteInput(site_id=site_id, owner_id=owner_id), repo=repo, time_port=clock)
    return _to_response(result.site)


@router.delete("/{site_id}", response_model=SiteDeleteResponse)
def delete_site(
    site_id: str,
    owner_id: str = Depends(get_current_owner),
    repo: SiteRepoPort = Depends(get_site_repo),
    clock: TimePort = Depends(get_clock),
    event_store: EventStorePort = Depends(get_event_store),
    payment_store: PaymentStorePort = Depends(get_payment_store),
) -> SiteDeleteResponse:
    """Delete a site together with all of its events and payments."""
    result = run_delete(
        DeleteSiteInput(site_id=site_id, owner_id=owner_id),
        repo=repo,
        time_port=clock,
        event_store=event_store,
        payment_store=payment_store,
    )
    return SiteDeleteResponse(
        events_removed=result.events_removed,
        payments_removed=result.payments_removed,
    )
