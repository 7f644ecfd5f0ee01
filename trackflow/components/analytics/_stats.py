"""
Stats aggregation - overview counts, deltas, daily series and breakdowns.

Key behaviors:
- All counts are over one event type (pageview unless asked otherwise)
- Time series rows come from a generated date spine, so empty days are
  present with zero counts
- delta() returns 0 when the previous value is 0
- Empty input is a normal state and yields zero-valued results
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal

from trackflow.core.entities import Event, EventType

from .models import (
    BreakdownRow,
    Changes,
    Dimension,
    Overview,
    RealtimeVisitor,
    TimeseriesPoint,
    Window,
)

# --- Rounding ---


def round_half_up(value: float | Decimal, ndigits: int = 0) -> Decimal:
    """Round half away from zero (12.5 -> 13), unlike round()."""
    quantum = Decimal(1).scaleb(-ndigits)
    return Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)


def percent(part: int, whole: int) -> int:
    """Integer percentage of part in whole; 0 when whole is 0."""
    if whole == 0:
        return 0
    return int(round_half_up(Decimal(part) * 100 / Decimal(whole)))


def delta(current: int | float, previous: int | float) -> float:
    """
    Percent change from previous to current, one decimal place.

    Returns 0 when previous is 0: there is no baseline to compare against.
    """
    if not previous:
        return 0.0
    change = (Decimal(str(current)) - Decimal(str(previous))) / Decimal(str(previous)) * 100
    return float(round_half_up(change, 1))


# --- Filtering ---


def in_window(
    events: Iterable[Event],
    window: Window,
    event_type: EventType | None = EventType.PAGEVIEW,
) -> list[Event]:
    """Events inside the window, optionally of one type."""
    return [
        e
        for e in events
        if window.contains(e.timestamp) and (event_type is None or e.event_type == event_type)
    ]


# --- Overview ---


def overview(
    events: Iterable[Event],
    window: Window,
    event_type: EventType = EventType.PAGEVIEW,
) -> Overview:
    """Distinct visitors, row count, distinct sessions and active days."""
    rows = in_window(events, window, event_type)
    if not rows:
        return Overview()

    return Overview(
        unique_visitors=len({e.visitor_id for e in rows}),
        pageviews=len(rows),
        sessions=len({e.session_id for e in rows}),
        active_days=len({e.timestamp.date() for e in rows}),
    )


def compare(current: Overview, previous: Overview) -> Changes:
    """Deltas for the headline counts."""
    return Changes(
        visitors=delta(current.unique_visitors, previous.unique_visitors),
        pageviews=delta(current.pageviews, previous.pageviews),
        sessions=delta(current.sessions, previous.sessions),
    )


# --- Time Series ---


def timeseries(
    events: Iterable[Event],
    window: Window,
    event_type: EventType = EventType.PAGEVIEW,
) -> list[TimeseriesPoint]:
    """One row per calendar day of the window, ascending, zero-filled."""
    visitors: dict[date, set[str]] = defaultdict(set)
    sessions: dict[date, set[str]] = defaultdict(set)
    views: dict[date, int] = defaultdict(int)

    for e in in_window(events, window, event_type):
        day = e.timestamp.date()
        visitors[day].add(e.visitor_id)
        sessions[day].add(e.session_id)
        views[day] += 1

    return [
        TimeseriesPoint(
            date=day,
            visitors=len(visitors.get(day, ())),
            pageviews=views.get(day, 0),
            sessions=len(sessions.get(day, ())),
        )
        for day in window.days()
    ]


# --- Breakdown ---


def _dimension_key(event: Event, dimension: Dimension) -> tuple[str | None, str | None]:
    if dimension == "source":
        return event.source, event.medium
    if dimension == "path":
        return event.path, None
    if dimension == "device_type":
        return event.device_type, None
    if dimension == "browser":
        return event.browser, None
    if dimension == "os":
        return event.os, None
    msg = f"Unknown dimension: {dimension}"
    raise ValueError(msg)


def breakdown(
    events: Iterable[Event],
    window: Window,
    dimension: Dimension,
    limit: int = 10,
    event_type: EventType = EventType.PAGEVIEW,
) -> list[BreakdownRow]:
    """
    Group by a dimension, ordered by distinct visitors descending.

    Ties break on pageviews descending, then on the key. Path rows carry the
    title of the latest event for that path.
    """
    visitors: dict[tuple[str | None, str | None], set[str]] = defaultdict(set)
    views: dict[tuple[str | None, str | None], int] = defaultdict(int)
    titles: dict[tuple[str | None, str | None], tuple[datetime, str | None]] = {}

    for e in in_window(events, window, event_type):
        key = _dimension_key(e, dimension)
        visitors[key].add(e.visitor_id)
        views[key] += 1
        if dimension == "path":
            seen = titles.get(key)
            if seen is None or e.timestamp >= seen[0]:
                titles[key] = (e.timestamp, e.title)

    ordered = sorted(
        visitors,
        key=lambda k: (-len(visitors[k]), -views[k], k[0] or "", k[1] or ""),
    )

    return [
        BreakdownRow(
            key=key[0],
            medium=key[1],
            visitors=len(visitors[key]),
            pageviews=views[key],
            title=titles[key][1] if key in titles else None,
        )
        for key in ordered[:limit]
    ]


# --- Realtime ---


def realtime(events: Iterable[Event], window: Window, max_visitors: int = 20) -> tuple[int, list[RealtimeVisitor]]:
    """
    Visitors active in the window, across all event types.

    Each visitor is reported with the details of their latest event.
    """
    latest: dict[str, Event] = {}
    for e in in_window(events, window, event_type=None):
        current = latest.get(e.visitor_id)
        if current is None or e.timestamp >= current.timestamp:
            latest[e.visitor_id] = e

    ordered = sorted(latest.values(), key=lambda e: (e.timestamp, e.visitor_id), reverse=True)
    visitors = [
        RealtimeVisitor(
            visitor_id=e.visitor_id,
            last_seen=e.timestamp,
            path=e.path,
            title=e.title,
            device_type=e.device_type,
            browser=e.browser,
            source=e.source,
        )
        for e in ordered[:max_visitors]
    ]
    return len(latest), visitors
