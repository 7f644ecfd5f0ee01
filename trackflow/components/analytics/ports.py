"""
Analytics component port definitions.

Stores are append-only for the engine; delete_site exists only for the
bulk removal that follows a site deletion.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Protocol

from trackflow.core.entities import Event, EventType, Payment
from trackflow.core.ports import SiteDirectoryPort, TimePort

__all__ = [
    "EventStorePort",
    "PaymentStorePort",
    "SiteDirectoryPort",
    "TimePort",
]


class EventStorePort(Protocol):
    """Event log interface."""

    def append(self, event: Event) -> None:
        """Append a normalized event."""
        ...

    def list_events(
        self,
        site_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        event_types: Iterable[EventType] | None = None,
    ) -> list[Event]:
        """Events for one site with start <= timestamp < end, oldest first."""
        ...

    def first_seen(self, site_id: str, since: datetime) -> dict[str, datetime]:
        """
        Global first event time per visitor.

        Only visitors whose first-ever event is at or after `since`.
        """
        ...

    def latest_source(self, site_id: str, visitor_id: str, at: datetime) -> str | None:
        """Most recent classified source for a visitor at or before `at`."""
        ...

    def delete_site(self, site_id: str) -> int:
        """Remove every event of a site. Returns the number removed."""
        ...


class PaymentStorePort(Protocol):
    """Payment log interface."""

    def append(self, payment: Payment) -> None:
        """Record a payment."""
        ...

    def list_payments(
        self,
        site_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        currency: str | None = None,
    ) -> list[Payment]:
        """Payments for one site with start <= created_at < end, oldest first."""
        ...

    def delete_site(self, site_id: str) -> int:
        """Remove every payment of a site. Returns the number removed."""
        ...
