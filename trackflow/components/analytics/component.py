"""
Analytics component - Event ingestion and aggregation.

Ingests tracking events for registered sites and derives the read-side views:
overview stats, daily series, breakdowns, funnels, retention cohorts,
realtime visitors and revenue attribution.

Invariants:
- Every query is scoped to one site and checked against the caller first
- Read paths never mutate the event or payment log
- Windows are half-open [start, end) in UTC
- Empty data yields zero-valued results, never an error
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation

from trackflow.components.sites import require_site_access
from trackflow.core.entities import EventType, Payment
from trackflow.core.errors import FieldError, UnknownTenantError, ValidationError
from trackflow.core.services.traffic import ClassifierConfig, HostRule
from trackflow.rules.models import Rules

from ._funnel import funnel
from ._normalize import MAX_AMOUNT, NormalizerConfig, create_event_normalizer
from ._retention import earliest_cohort_week, retention
from ._revenue import attribute_revenue
from ._stats import breakdown, compare, overview, realtime, timeseries
from .models import (
    DEFAULT_ANALYTICS_CONFIG,
    AnalyticsConfig,
    BreakdownInput,
    BreakdownOutput,
    FunnelInput,
    FunnelOutput,
    IngestEventInput,
    IngestOutput,
    PaymentOutput,
    QueryInput,
    RealtimeInput,
    RealtimeOutput,
    RecordPaymentInput,
    RetentionInput,
    RetentionOutput,
    RevenueInput,
    RevenueOutput,
    StatsOutput,
    TimeseriesOutput,
    Window,
)
from .ports import EventStorePort, PaymentStorePort, SiteDirectoryPort, TimePort

logger = logging.getLogger(__name__)


# --- Configuration ---


def build_classifier_config(rules: Rules | None) -> ClassifierConfig:
    """Host table in rules order: social, search, launch."""
    if rules is None:
        return ClassifierConfig()

    sections = (rules.classifier.social, rules.classifier.search, rules.classifier.launch)
    return ClassifierConfig(
        rules=tuple(
            HostRule(source=r.source, medium=r.medium, patterns=tuple(r.hosts))
            for section in sections
            for r in section
        )
    )


def build_normalizer_config(rules: Rules | None) -> NormalizerConfig:
    """Build ingestion config from rules."""
    if rules is None:
        return NormalizerConfig()

    ingestion = rules.ingestion
    return NormalizerConfig(
        allowed_event_types=frozenset(ingestion.allowed_event_types),
        max_id_length=ingestion.max_id_length,
        max_timestamp_age_seconds=ingestion.max_timestamp_age_seconds,
        max_timestamp_future_seconds=ingestion.max_timestamp_future_seconds,
        classifier=build_classifier_config(rules),
    )


def build_analytics_config(rules: Rules | None) -> AnalyticsConfig:
    """Build query config from rules."""
    if rules is None:
        return DEFAULT_ANALYTICS_CONFIG

    analytics = rules.analytics
    return AnalyticsConfig(
        periods=tuple(analytics.periods.items()),
        default_period=analytics.default_period,
        default_limit=analytics.default_limit,
        max_limit=analytics.max_limit,
        retention_weeks=analytics.retention_weeks,
        max_funnel_steps=analytics.max_funnel_steps,
        realtime_window_minutes=analytics.realtime_window_minutes,
        realtime_max_visitors=analytics.realtime_max_visitors,
    )


def resolve_window(inp: QueryInput, config: AnalyticsConfig, time_port: TimePort) -> Window:
    """Explicit window if given, otherwise the trailing period ending now."""
    if inp.window is not None:
        return inp.window
    period = inp.period or config.default_period
    return Window.for_period(config.period_days(period), time_port.now_utc())


# --- Ingestion ---


def run_ingest(
    inp: IngestEventInput,
    *,
    event_store: EventStorePort,
    sites: SiteDirectoryPort,
    time_port: TimePort,
    rules: Rules | None = None,
) -> IngestOutput:
    """
    Normalize one tracking payload and append it to the event log.

    Raises:
        ValidationError: payload malformed; nothing is written.
        UnknownTenantError: site_id unknown; nothing is written.
    """
    normalizer = create_event_normalizer(
        sites=sites,
        time_port=time_port,
        config=build_normalizer_config(rules),
    )

    try:
        event = normalizer.normalize(inp.data)
    except ValidationError as e:
        logger.info("Rejected event: %s", ", ".join(err.code for err in e.errors))
        raise
    except UnknownTenantError as e:
        logger.warning("Rejected event for unknown site %s", e.site_id)
        raise

    event_store.append(event)
    return IngestOutput(event=event)


# --- Stats ---


def run_stats(
    inp: QueryInput,
    *,
    event_store: EventStorePort,
    sites: SiteDirectoryPort,
    time_port: TimePort,
    rules: Rules | None = None,
) -> StatsOutput:
    """
    Overview of the window with deltas against the previous window.

    Raises:
        AccessDeniedError: caller does not own the site.
    """
    require_site_access(sites, inp.site_id, inp.owner_id)
    window = resolve_window(inp, build_analytics_config(rules), time_port)
    previous_window = window.previous()

    events = event_store.list_events(
        inp.site_id,
        start=previous_window.start,
        end=window.end,
        event_types=[inp.event_type],
    )

    current = overview(events, window, inp.event_type)
    previous = overview(events, previous_window, inp.event_type)

    return StatsOutput(
        window=window,
        overview=current,
        previous=previous,
        changes=compare(current, previous),
    )


def run_timeseries(
    inp: QueryInput,
    *,
    event_store: EventStorePort,
    sites: SiteDirectoryPort,
    time_port: TimePort,
    rules: Rules | None = None,
) -> TimeseriesOutput:
    """Daily visitors / pageviews / sessions with every day present."""
    require_site_access(sites, inp.site_id, inp.owner_id)
    window = resolve_window(inp, build_analytics_config(rules), time_port)

    events = event_store.list_events(
        inp.site_id,
        start=window.start,
        end=window.end,
        event_types=[inp.event_type],
    )
    return TimeseriesOutput(
        window=window,
        points=tuple(timeseries(events, window, inp.event_type)),
    )


def run_breakdown(
    inp: BreakdownInput,
    *,
    event_store: EventStorePort,
    sites: SiteDirectoryPort,
    time_port: TimePort,
    rules: Rules | None = None,
) -> BreakdownOutput:
    """Top values of one dimension, ranked by distinct visitors."""
    require_site_access(sites, inp.site_id, inp.owner_id)
    config = build_analytics_config(rules)
    window = resolve_window(inp, config, time_port)

    events = event_store.list_events(
        inp.site_id,
        start=window.start,
        end=window.end,
        event_types=[inp.event_type],
    )
    rows = breakdown(
        events,
        window,
        inp.dimension,
        limit=config.clamp_limit(inp.limit),
        event_type=inp.event_type,
    )
    return BreakdownOutput(dimension=inp.dimension, rows=tuple(rows))


# --- Funnel ---


def run_funnel(
    inp: FunnelInput,
    *,
    event_store: EventStorePort,
    sites: SiteDirectoryPort,
    time_port: TimePort,
    rules: Rules | None = None,
) -> FunnelOutput:
    """
    Evaluate a funnel over one windowed fetch.

    Raises:
        AccessDeniedError: caller does not own the site.
        InvalidFunnelError: step list cannot be evaluated.
    """
    require_site_access(sites, inp.site_id, inp.owner_id)
    config = build_analytics_config(rules)
    window = resolve_window(inp, config, time_port)

    events = event_store.list_events(
        inp.site_id,
        start=window.start,
        end=window.end,
        event_types=[EventType.PAGEVIEW, EventType.EVENT],
    )
    return funnel(events, inp.steps, window, max_steps=config.max_funnel_steps)


# --- Retention ---


def run_retention(
    inp: RetentionInput,
    *,
    event_store: EventStorePort,
    sites: SiteDirectoryPort,
    time_port: TimePort,
    rules: Rules | None = None,
) -> RetentionOutput:
    """Weekly cohorts for the trailing weeks, oldest first."""
    require_site_access(sites, inp.site_id, inp.owner_id)
    config = build_analytics_config(rules)
    weeks = inp.weeks or config.retention_weeks
    now = time_port.now_utc()
    since = earliest_cohort_week(now, weeks)

    first_seen = event_store.first_seen(inp.site_id, since)
    events = event_store.list_events(inp.site_id, start=since)

    return RetentionOutput(cohorts=tuple(retention(first_seen, events, now, weeks)))


# --- Realtime ---


def run_realtime(
    inp: RealtimeInput,
    *,
    event_store: EventStorePort,
    sites: SiteDirectoryPort,
    time_port: TimePort,
    rules: Rules | None = None,
) -> RealtimeOutput:
    """Visitors with any event in the last few minutes."""
    require_site_access(sites, inp.site_id, inp.owner_id)
    config = build_analytics_config(rules)
    now = time_port.now_utc()
    window = Window(start=now - timedelta(minutes=config.realtime_window_minutes), end=now)

    events = event_store.list_events(inp.site_id, start=window.start, end=window.end)
    count, visitors = realtime(events, window, config.realtime_max_visitors)
    return RealtimeOutput(count=count, visitors=tuple(visitors))


# --- Revenue ---


def _validate_amount(value: Decimal | int | float | str) -> Decimal:
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        amount = Decimal("NaN")
    if not amount.is_finite():
        raise ValidationError(
            [FieldError(code="invalid_amount", message="Amount must be a number", field_name="amount")]
        )
    if amount < 0:
        raise ValidationError(
            [FieldError(code="negative_amount", message="Amount must not be negative", field_name="amount")]
        )
    if amount >= MAX_AMOUNT:
        raise ValidationError(
            [FieldError(code="invalid_amount", message=f"Amount must be below {MAX_AMOUNT:f}", field_name="amount")]
        )
    return amount


def run_record_payment(
    inp: RecordPaymentInput,
    *,
    payment_store: PaymentStorePort,
    sites: SiteDirectoryPort,
    time_port: TimePort,
) -> PaymentOutput:
    """
    Record a payment against an owned site.

    Raises:
        AccessDeniedError: caller does not own the site.
        ValidationError: amount is negative or not a number.
    """
    require_site_access(sites, inp.site_id, inp.owner_id)

    payment = Payment(
        site_id=inp.site_id,
        amount=_validate_amount(inp.amount),
        created_at=time_port.now_utc(),
        visitor_id=inp.visitor_id or None,
        currency=(inp.currency or "USD").upper(),
        customer_email=inp.customer_email,
        product_name=inp.product_name,
    )
    payment_store.append(payment)
    logger.info("Recorded payment %s for site %s", payment.id, inp.site_id)
    return PaymentOutput(payment=payment)


def run_revenue(
    inp: RevenueInput,
    *,
    event_store: EventStorePort,
    payment_store: PaymentStorePort,
    sites: SiteDirectoryPort,
    time_port: TimePort,
    rules: Rules | None = None,
) -> RevenueOutput:
    """
    Revenue in the window credited to each visitor's latest source.

    Raises:
        AccessDeniedError: caller does not own the site.
    """
    require_site_access(sites, inp.site_id, inp.owner_id)
    window = resolve_window(inp, build_analytics_config(rules), time_port)

    currency = inp.currency.upper() if inp.currency else None
    payments = payment_store.list_payments(
        inp.site_id,
        start=window.start,
        end=window.end,
        currency=currency,
    )

    def lookup(visitor_id: str, at: datetime) -> str | None:
        return event_store.latest_source(inp.site_id, visitor_id, at)

    return attribute_revenue(payments, lookup)
