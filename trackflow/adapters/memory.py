"""
In-memory implementations of the storage ports, for tests and local runs.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from trackflow.core.entities import Event, EventType, Payment, Site


class InMemorySiteRepo:
    """In-memory site repository."""

    def __init__(self) -> None:
        self._sites: dict[str, Site] = {}

    def save(self, site: Site) -> Site:
        self._sites[site.id] = site
        return site

    def get_by_id(self, site_id: str) -> Site | None:
        return self._sites.get(site_id)

    def list_by_owner(self, owner_id: str) -> list[Site]:
        owned = [s for s in self._sites.values() if s.owner_id == owner_id]
        return sorted(owned, key=lambda s: (-s.created_at.timestamp(), s.id))

    def delete(self, site_id: str) -> None:
        self._sites.pop(site_id, None)

    def resolve(self, site_id: str) -> str | None:
        site = self._sites.get(site_id)
        return site.owner_id if site else None


class InMemoryEventStore:
    """In-memory event log."""

    def __init__(self) -> None:
        self._events: list[Event] = []

    def append(self, event: Event) -> None:
        self._events.append(event)

    def list_events(
        self,
        site_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        event_types: Iterable[EventType] | None = None,
    ) -> list[Event]:
        types = {EventType(t) for t in event_types} if event_types is not None else None
        matched = [
            e
            for e in self._events
            if e.site_id == site_id
            and (start is None or e.timestamp >= start)
            and (end is None or e.timestamp < end)
            and (types is None or e.event_type in types)
        ]
        return sorted(matched, key=lambda e: e.timestamp)

    def first_seen(self, site_id: str, since: datetime) -> dict[str, datetime]:
        first: dict[str, datetime] = {}
        for e in self._events:
            if e.site_id != site_id:
                continue
            current = first.get(e.visitor_id)
            if current is None or e.timestamp < current:
                first[e.visitor_id] = e.timestamp
        return {v: ts for v, ts in first.items() if ts >= since}

    def latest_source(self, site_id: str, visitor_id: str, at: datetime) -> str | None:
        latest: Event | None = None
        for e in self._events:
            if (
                e.site_id == site_id
                and e.visitor_id == visitor_id
                and e.timestamp <= at
                and e.source is not None
                and (latest is None or e.timestamp >= latest.timestamp)
            ):
                latest = e
        return latest.source if latest else None

    def delete_site(self, site_id: str) -> int:
        kept = [e for e in self._events if e.site_id != site_id]
        removed = len(self._events) - len(kept)
        self._events = kept
        return removed

    def all(self) -> list[Event]:
        return list(self._events)


class InMemoryPaymentStore:
    """In-memory payment log."""

    def __init__(self) -> None:
        self._payments: list[Payment] = []

    def append(self, payment: Payment) -> None:
        self._payments.append(payment)

    def list_payments(
        self,
        site_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        currency: str | None = None,
    ) -> list[Payment]:
        matched = [
            p
            for p in self._payments
            if p.site_id == site_id
            and (start is None or p.created_at >= start)
            and (end is None or p.created_at < end)
            and (currency is None or p.currency == currency)
        ]
        return sorted(matched, key=lambda p: p.created_at)

    def delete_site(self, site_id: str) -> int:
        kept = [p for p in self._payments if p.site_id != site_id]
        removed = len(self._payments) - len(kept)
        self._payments = kept
        return removed
