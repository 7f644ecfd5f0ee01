"""
Ingestion API Routes.

Public endpoint for the tracking script. No auth: the site_id in the payload
must resolve to a registered site.

The tracking script posts with navigator.sendBeacon, which sends the JSON
as text/plain, so the body is read and decoded here rather than by FastAPI.
"""

from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from trackflow.api.deps import get_clock, get_event_store, get_rules, get_site_repo
from trackflow.components.analytics import (
    EventStorePort,
    IngestEventInput,
    run_ingest,
)
from trackflow.components.sites import SiteRepoPort
from trackflow.core.ports import TimePort
from trackflow.rules.models import Rules

router = APIRouter()


# --- Response Models ---


class CollectResponse(BaseModel):
    """Success response."""

    ok: bool = True


class ErrorResponse(BaseModel):
    """Error response."""

    ok: bool = False
    errors: list[dict[str, Any]]


# --- Routes ---


@router.post(
    "/collect",
    response_model=CollectResponse,
    responses={400: {"model": ErrorResponse}},
)
async def collect(
    request: Request,
    event_store: EventStorePort = Depends(get_event_store),
    sites: SiteRepoPort = Depends(get_site_repo),
    clock: TimePort = Depends(get_clock),
    rules: Rules = Depends(get_rules),
) -> CollectResponse | JSONResponse:
    """
    Ingest one tracking event.

    Malformed payloads and unknown sites get 400 with field errors.
    """
    raw = await request.body()
    try:
        data = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError):
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(
                errors=[{"code": "invalid_json", "message": "Body must be JSON", "field": None}]
            ).model_dump(),
        )

    run_ingest(
        IngestEventInput(data=data),
        event_store=event_store,
        sites=sites,
        time_port=clock,
        rules=rules,
    )
    return CollectResponse()
