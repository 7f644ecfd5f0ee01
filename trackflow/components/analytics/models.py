"""
Analytics component input/output models.

Windows are half-open: start <= timestamp < end, tz-aware UTC.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from typing import Any, Literal

from trackflow.core.entities import Event, EventType, Payment

Dimension = Literal["path", "source", "device_type", "browser", "os"]
StepType = Literal["pageview", "event"]


# --- Configuration ---


@dataclass(frozen=True)
class AnalyticsConfig:
    """Query-side configuration."""

    periods: tuple[tuple[str, int], ...] = (("7d", 7), ("30d", 30), ("90d", 90))
    default_period: str = "30d"
    default_limit: int = 10
    max_limit: int = 100
    retention_weeks: int = 8
    max_funnel_steps: int = 10
    realtime_window_minutes: int = 5
    realtime_max_visitors: int = 20

    def period_days(self, period: str) -> int:
        """Map a period label ("7d") to its length in days."""
        for label, days in self.periods:
            if label == period:
                return days
        allowed = ", ".join(label for label, _ in self.periods)
        raise ValueError(f"Unknown period '{period}' (expected one of: {allowed})")

    def clamp_limit(self, limit: int | None) -> int:
        if limit is None:
            return self.default_limit
        return max(1, min(limit, self.max_limit))


DEFAULT_ANALYTICS_CONFIG = AnalyticsConfig()


# --- Window ---


def _as_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC)


def start_of_day(ts: datetime) -> datetime:
    """Midnight UTC of the day holding ts."""
    return _as_utc(ts).replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_week(ts: datetime) -> datetime:
    """Monday 00:00 UTC of the ISO week holding ts."""
    day = start_of_day(ts)
    return day - timedelta(days=day.weekday())


@dataclass(frozen=True)
class Window:
    """Half-open UTC time window."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        object.__setattr__(self, "start", _as_utc(self.start))
        object.__setattr__(self, "end", _as_utc(self.end))
        if self.end < self.start:
            raise ValueError("Window end must not be before its start")

    @classmethod
    def for_period(cls, days: int, now: datetime) -> Window:
        """
        Trailing window of `days` calendar days ending now.

        Today counts as the last (partial) day.
        """
        if days < 1:
            raise ValueError("Period must cover at least one day")
        start = start_of_day(now) - timedelta(days=days - 1)
        return cls(start=start, end=_as_utc(now))

    def previous(self) -> Window:
        """Window of the same length immediately before this one."""
        return Window(start=self.start - (self.end - self.start), end=self.start)

    def contains(self, ts: datetime) -> bool:
        return self.start <= _as_utc(ts) < self.end

    def days(self) -> Iterator[date]:
        """Calendar days touched by the window, ascending."""
        if self.end == self.start:
            return
        last = (self.end - timedelta(microseconds=1)).date()
        current = self.start.date()
        while current <= last:
            yield current
            current += timedelta(days=1)


# --- Input Models ---


@dataclass(frozen=True)
class IngestEventInput:
    """Raw event payload from the tracking script."""

    data: dict[str, Any]


@dataclass(frozen=True)
class QueryInput:
    """Site-scoped query. `window` wins over `period` when both are set."""

    site_id: str
    owner_id: str
    period: str | None = None
    window: Window | None = None
    event_type: EventType = EventType.PAGEVIEW


@dataclass(frozen=True)
class BreakdownInput(QueryInput):
    dimension: Dimension = "path"
    limit: int | None = None


@dataclass(frozen=True)
class FunnelStep:
    """One funnel stage predicate."""

    type: StepType
    value: str
    label: str | None = None

    @property
    def step_label(self) -> str:
        return self.label or self.value


@dataclass(frozen=True)
class FunnelInput(QueryInput):
    steps: tuple[FunnelStep, ...] = ()


@dataclass(frozen=True)
class RetentionInput:
    site_id: str
    owner_id: str
    weeks: int | None = None


@dataclass(frozen=True)
class RealtimeInput:
    site_id: str
    owner_id: str


@dataclass(frozen=True)
class RevenueInput(QueryInput):
    currency: str | None = None


@dataclass(frozen=True)
class RecordPaymentInput:
    site_id: str
    owner_id: str
    amount: Decimal
    visitor_id: str | None = None
    currency: str = "USD"
    customer_email: str | None = None
    product_name: str | None = None


# --- Output Models ---


@dataclass(frozen=True)
class IngestOutput:
    event: Event
    accepted: bool = True


@dataclass(frozen=True)
class Overview:
    unique_visitors: int = 0
    pageviews: int = 0
    sessions: int = 0
    active_days: int = 0


@dataclass(frozen=True)
class Changes:
    """Percent change against the previous window."""

    visitors: float = 0.0
    pageviews: float = 0.0
    sessions: float = 0.0


@dataclass(frozen=True)
class StatsOutput:
    window: Window
    overview: Overview
    previous: Overview
    changes: Changes


@dataclass(frozen=True)
class TimeseriesPoint:
    date: date
    visitors: int = 0
    pageviews: int = 0
    sessions: int = 0


@dataclass(frozen=True)
class TimeseriesOutput:
    window: Window
    points: tuple[TimeseriesPoint, ...]


@dataclass(frozen=True)
class BreakdownRow:
    """
    One group of a breakdown.

    key is the dimension value; for the source dimension it is the source and
    medium carries the medium.
    """

    key: str | None
    visitors: int
    pageviews: int
    medium: str | None = None
    title: str | None = None


@dataclass(frozen=True)
class BreakdownOutput:
    dimension: Dimension
    rows: tuple[BreakdownRow, ...]


@dataclass(frozen=True)
class FunnelStepResult:
    step_label: str
    count: int
    dropoff_percent: int


@dataclass(frozen=True)
class FunnelOutput:
    steps: tuple[FunnelStepResult, ...]
    overall_conversion: float = 0.0


@dataclass(frozen=True)
class CohortRow:
    cohort_week: date
    cohort_size: int
    retention: dict[int, int] = field(default_factory=dict)


@dataclass(frozen=True)
class RetentionOutput:
    cohorts: tuple[CohortRow, ...]


@dataclass(frozen=True)
class RevenueBySource:
    source: str
    revenue: Decimal
    payments: int


@dataclass(frozen=True)
class RevenueByCurrency:
    currency: str
    total_revenue: Decimal
    total_payments: int
    avg_payment: Decimal


@dataclass(frozen=True)
class RevenueOutput:
    total_revenue: Decimal
    total_payments: int
    by_source: tuple[RevenueBySource, ...]
    by_currency: tuple[RevenueByCurrency, ...]


@dataclass(frozen=True)
class RealtimeVisitor:
    visitor_id: str
    last_seen: datetime
    path: str | None = None
    title: str | None = None
    device_type: str | None = None
    browser: str | None = None
    source: str | None = None


@dataclass(frozen=True)
class RealtimeOutput:
    count: int
    visitors: tuple[RealtimeVisitor, ...]


@dataclass(frozen=True)
class PaymentOutput:
    payment: Payment
