"""
Domain entities for TrackFlow.

- Site: tenant boundary, owned by exactly one identity
- Event: immutable behavioral fact from the tracking script
- Payment: independent revenue fact, linked to events only by visitor_id

Events and payments are append-only. They are removed only in bulk, together
with their parent site.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import uuid4

__all__ = [
    "EventType",
    "Event",
    "Payment",
    "Site",
]


class EventType(str, Enum):
    """Event types emitted by the tracking script."""

    PAGEVIEW = "pageview"
    EVENT = "event"
    GOAL = "goal"
    IDENTIFY = "identify"
    REVENUE = "revenue"
    ENGAGEMENT = "engagement"
    OUTBOUND_CLICK = "outbound_click"
    DOWNLOAD = "download"
    SEARCH = "search"


# --- Site ---


@dataclass(frozen=True)
class Site:
    """A tracked website. Every query is scoped by (id, owner_id)."""

    id: str
    owner_id: str
    name: str
    domain: str
    created_at: datetime


# --- Event ---


@dataclass(frozen=True)
class Event:
    """
    Canonical event record.

    All optional columns are present with None defaults so aggregations can
    rely on attribute presence. raw_payload keeps the inbound JSON verbatim.
    """

    site_id: str
    visitor_id: str
    session_id: str
    event_type: EventType
    timestamp: datetime

    # Page
    url: str | None = None
    path: str | None = None
    hostname: str | None = None
    title: str | None = None

    # Attribution
    referrer: str | None = None
    source: str | None = None
    medium: str | None = None
    utm_source: str | None = None
    utm_medium: str | None = None
    utm_campaign: str | None = None
    utm_term: str | None = None
    utm_content: str | None = None
    ref: str | None = None

    # Device
    device_type: str | None = None
    browser: str | None = None
    os: str | None = None
    screen_width: int | None = None
    screen_height: int | None = None
    language: str | None = None
    timezone: str | None = None

    # Custom data
    event_name: str | None = None
    event_data: dict[str, Any] | None = None
    revenue: Decimal | None = None
    currency: str | None = None

    raw_payload: dict[str, Any] = field(default_factory=dict)


# --- Payment ---


@dataclass(frozen=True)
class Payment:
    """Recorded payment. visitor_id is None when attribution is unknown."""

    site_id: str
    amount: Decimal
    created_at: datetime
    visitor_id: str | None = None
    currency: str = "USD"
    customer_email: str | None = None
    product_name: str | None = None
    id: str = field(default_factory=lambda: str(uuid4()))
