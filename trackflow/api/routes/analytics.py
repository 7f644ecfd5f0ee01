"""
Analytics query API Routes.

All routes live under /api/sites/{site_id} and require a bearer token.
Access checks happen in the component entry points; AccessDeniedError and
InvalidFunnelError are mapped to HTTP by the app's error handlers.
"""

from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from trackflow.api.deps import AnalyticsPorts, get_analytics_ports, get_current_owner
from trackflow.components.analytics import (
    BreakdownInput,
    BreakdownRow,
    Dimension,
    FunnelInput,
    FunnelStep,
    Overview,
    QueryInput,
    RealtimeInput,
    RecordPaymentInput,
    RetentionInput,
    RevenueInput,
    run_breakdown,
    run_funnel,
    run_realtime,
    run_record_payment,
    run_retention,
    run_revenue,
    run_stats,
    run_timeseries,
)
from trackflow.rules.models import Rules

router = APIRouter()


# --- Request/Response Models ---


class OverviewResponse(BaseModel):
    unique_visitors: int
    pageviews: int
    sessions: int
    active_days: int


class ChangesResponse(BaseModel):
    """Percent change against the previous period."""

    visitors: float
    pageviews: float
    sessions: float


class StatsResponse(BaseModel):
    period: str
    start: str
    end: str
    overview: OverviewResponse
    previous: OverviewResponse
    changes: ChangesResponse


class TimeseriesPointResponse(BaseModel):
    date: str
    visitors: int
    pageviews: int
    sessions: int


class TimeseriesResponse(BaseModel):
    period: str
    points: list[TimeseriesPointResponse]


class PageRow(BaseModel):
    path: str | None
    title: str | None
    visitors: int
    pageviews: int


class PagesResponse(BaseModel):
    period: str
    pages: list[PageRow]


class SourceRow(BaseModel):
    source: str | None
    medium: str | None
    visitors: int
    pageviews: int


class SourcesResponse(BaseModel):
    period: str
    sources: list[SourceRow]


class DimensionRow(BaseModel):
    name: str | None
    visitors: int
    pageviews: int


class DevicesResponse(BaseModel):
    period: str
    devices: list[DimensionRow]
    browsers: list[DimensionRow]
    os: list[DimensionRow]


class RealtimeVisitorResponse(BaseModel):
    visitor_id: str
    last_seen: str
    path: str | None
    title: str | None
    device_type: str | None
    browser: str | None
    source: str | None


class RealtimeResponse(BaseModel):
    count: int
    visitors: list[RealtimeVisitorResponse]


class FunnelStepRequest(BaseModel):
    # Unknown types are rejected by the funnel analyzer with a 400
    type: str
    value: str
    label: str | None = None


class FunnelRequest(BaseModel):
    steps: list[FunnelStepRequest]
    period: str | None = None


class FunnelStepResponse(BaseModel):
    step_label: str
    count: int
    dropoff_percent: int


class FunnelResponse(BaseModel):
    period: str
    steps: list[FunnelStepResponse]
    overall_conversion: float


class CohortResponse(BaseModel):
    cohort_week: str
    cohort_size: int
    retention: dict[int, int]


class RetentionResponse(BaseModel):
    cohorts: list[CohortResponse]


class PaymentRequest(BaseModel):
    amount: Decimal = Field(..., description="Payment amount, non-negative")
    visitor_id: str | None = None
    currency: str = "USD"
    customer_email: str | None = None
    product_name: str | None = None


class PaymentResponse(BaseModel):
    ok: bool = True
    id: str
    amount: float
    currency: str
    created_at: str


class RevenueSourceRow(BaseModel):
    source: str
    revenue: float
    payments: int


class RevenueCurrencyRow(BaseModel):
    currency: str
    total_revenue: float
    total_payments: int
    avg_payment: float


class RevenueResponse(BaseModel):
    period: str
    currency: str | None
    total_revenue: float
    total_payments: int
    by_source: list[RevenueSourceRow]
    by_currency: list[RevenueCurrencyRow]


# --- Helper Functions ---


def resolve_period(period: str | None, rules: Rules) -> str:
    """Validate a period label against the configured periods."""
    value = period or rules.analytics.default_period
    if value not in rules.analytics.periods:
        allowed = ", ".join(rules.analytics.periods)
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid period: {value}. Must be one of: {allowed}",
        )
    return value


def _overview(o: Overview) -> OverviewResponse:
    return OverviewResponse(
        unique_visitors=o.unique_visitors,
        pageviews=o.pageviews,
        sessions=o.sessions,
        active_days=o.active_days,
    )


def _dimension_rows(rows: tuple[BreakdownRow, ...]) -> list[DimensionRow]:
    return [DimensionRow(name=r.key, visitors=r.visitors, pageviews=r.pageviews) for r in rows]


# --- Routes ---


@router.get("/{site_id}/stats", response_model=StatsResponse)
def get_stats(
    site_id: str,
    period: str | None = Query(None, description="7d, 30d or 90d"),
    owner_id: str = Depends(get_current_owner),
    ports: AnalyticsPorts = Depends(get_analytics_ports),
) -> StatsResponse:
    """Overview with changes against the previous period."""
    label = resolve_period(period, ports.rules)
    result = run_stats(
        QueryInput(site_id=site_id, owner_id=owner_id, period=label),
        event_store=ports.event_store,
        sites=ports.sites,
        time_port=ports.clock,
        rules=ports.rules,
    )
    return StatsResponse(
        period=label,
        start=result.window.start.isoformat(),
        end=result.window.end.isoformat(),
        overview=_overview(result.overview),
        previous=_overview(result.previous),
        changes=ChangesResponse(
            visitors=result.changes.visitors,
            pageviews=result.changes.pageviews,
            sessions=result.changes.sessions,
        ),
    )


@router.get("/{site_id}/timeseries", response_model=TimeseriesResponse)
def get_timeseries(
    site_id: str,
    period: str | None = Query(None, description="7d, 30d or 90d"),
    owner_id: str = Depends(get_current_owner),
    ports: AnalyticsPorts = Depends(get_analytics_ports),
) -> TimeseriesResponse:
    """One point per day, zero-filled."""
    label = resolve_period(period, ports.rules)
    result = run_timeseries(
        QueryInput(site_id=site_id, owner_id=owner_id, period=label),
        event_store=ports.event_store,
        sites=ports.sites,
        time_port=ports.clock,
        rules=ports.rules,
    )
    return TimeseriesResponse(
        period=label,
        points=[
            TimeseriesPointResponse(
                date=p.date.isoformat(),
                visitors=p.visitors,
                pageviews=p.pageviews,
                sessions=p.sessions,
            )
            for p in result.points
        ],
    )


@router.get("/{site_id}/pages", response_model=PagesResponse)
def get_pages(
    site_id: str,
    period: str | None = Query(None, description="7d, 30d or 90d"),
    limit: int | None = Query(None, ge=1, le=100),
    owner_id: str = Depends(get_current_owner),
    ports: AnalyticsPorts = Depends(get_analytics_ports),
) -> PagesResponse:
    label = resolve_period(period, ports.rules)
    result = run_breakdown(
        BreakdownInput(site_id=site_id, owner_id=owner_id, period=label, dimension="path", limit=limit),
        event_store=ports.event_store,
        sites=ports.sites,
        time_port=ports.clock,
        rules=ports.rules,
    )
    return PagesResponse(
        period=label,
        pages=[
            PageRow(path=r.key, title=r.title, visitors=r.visitors, pageviews=r.pageviews)
            for r in result.rows
        ],
    )


@router.get("/{site_id}/sources", response_model=SourcesResponse)
def get_sources(
    site_id: str,
    period: str | None = Query(None, description="7d, 30d or 90d"),
    limit: int | None = Query(None, ge=1, le=100),
    owner_id: str = Depends(get_current_owner),
    ports: AnalyticsPorts = Depends(get_analytics_ports),
) -> SourcesResponse:
    label = resolve_period(period, ports.rules)
    result = run_breakdown(
        BreakdownInput(site_id=site_id, owner_id=owner_id, period=label, dimension="source", limit=limit),
        event_store=ports.event_store,
        sites=ports.sites,
        time_port=ports.clock,
        rules=ports.rules,
    )
    return SourcesResponse(
        period=label,
        sources=[
            SourceRow(source=r.key, medium=r.medium, visitors=r.visitors, pageviews=r.pageviews)
            for r in result.rows
        ],
    )


@router.get("/{site_id}/devices", response_model=DevicesResponse)
def get_devices(
    site_id: str,
    period: str | None = Query(None, description="7d, 30d or 90d"),
    limit: int | None = Query(None, ge=1, le=100),
    owner_id: str = Depends(get_current_owner),
    ports: AnalyticsPorts = Depends(get_analytics_ports),
) -> DevicesResponse:
    """Device type, browser and OS breakdowns."""
    label = resolve_period(period, ports.rules)
    rows: dict[str, list[DimensionRow]] = {}
    dimensions: tuple[Dimension, ...] = ("device_type", "browser", "os")
    for dimension in dimensions:
        result = run_breakdown(
            BreakdownInput(
                site_id=site_id,
                owner_id=owner_id,
                period=label,
                dimension=dimension,
                limit=limit,
            ),
            event_store=ports.event_store,
            sites=ports.sites,
            time_port=ports.clock,
            rules=ports.rules,
        )
        rows[dimension] = _dimension_rows(result.rows)

    return DevicesResponse(
        period=label,
        devices=rows["device_type"],
        browsers=rows["browser"],
        os=rows["os"],
    )


@router.get("/{site_id}/realtime", response_model=RealtimeResponse)
def get_realtime(
    site_id: str,
    owner_id: str = Depends(get_current_owner),
    ports: AnalyticsPorts = Depends(get_analytics_ports),
) -> RealtimeResponse:
    """Visitors active in the last few minutes."""
    result = run_realtime(
        RealtimeInput(site_id=site_id, owner_id=owner_id),
        event_store=ports.event_store,
        sites=ports.sites,
        time_port=ports.clock,
        rules=ports.rules,
    )
    return RealtimeResponse(
        count=result.count,
        visitors=[
            RealtimeVisitorResponse(
                visitor_id=v.visitor_id,
                last_seen=v.last_seen.isoformat(),
                path=v.path,
                title=v.title,
                device_type=v.device_type,
                browser=v.browser,
                source=v.source,
            )
            for v in result.visitors
        ],
    )


@router.post("/{site_id}/funnel", response_model=FunnelResponse)
def post_funnel(
    site_id: str,
    body: FunnelRequest,
    owner_id: str = Depends(get_current_owner),
    ports: AnalyticsPorts = Depends(get_analytics_ports),
) -> FunnelResponse:
    """Evaluate an ad-hoc funnel."""
    label = resolve_period(body.period, ports.rules)
    steps = tuple(
        FunnelStep(type=s.type, value=s.value, label=s.label)  # type: ignore[arg-type]
        for s in body.steps
    )
    result = run_funnel(
        FunnelInput(site_id=site_id, owner_id=owner_id, period=label, steps=steps),
        event_store=ports.event_store,
        sites=ports.sites,
        time_port=ports.clock,
        rules=ports.rules,
    )
    return FunnelResponse(
        period=label,
        steps=[
            FunnelStepResponse(
                step_label=s.step_label,
                count=s.count,
                dropoff_percent=s.dropoff_percent,
            )
            for s in result.steps
        ],
        overall_conversion=result.overall_conversion,
    )


@router.get("/{site_id}/retention", response_model=RetentionResponse)
def get_retention(
    site_id: str,
    owner_id: str = Depends(get_current_owner),
    ports: AnalyticsPorts = Depends(get_analytics_ports),
) -> RetentionResponse:
    """Weekly retention cohorts."""
    result = run_retention(
        RetentionInput(site_id=site_id, owner_id=owner_id),
        event_store=ports.event_store,
        sites=ports.sites,
        time_port=ports.clock,
        rules=ports.rules,
    )
    return RetentionResponse(
        cohorts=[
            CohortResponse(
                cohort_week=c.cohort_week.isoformat(),
                cohort_size=c.cohort_size,
                retention=c.retention,
            )
            for c in result.cohorts
        ]
    )


@router.post("/{site_id}/revenue", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
def post_payment(
    site_id: str,
    body: PaymentRequest,
    owner_id: str = Depends(get_current_owner),
    ports: AnalyticsPorts = Depends(get_analytics_ports),
) -> PaymentResponse:
    """Record a payment."""
    result = run_record_payment(
        RecordPaymentInput(
            site_id=site_id,
            owner_id=owner_id,
            amount=body.amount,
            visitor_id=body.visitor_id,
            currency=body.currency,
            customer_email=body.customer_email,
            product_name=body.product_name,
        ),
        payment_store=ports.payment_store,
        sites=ports.sites,
        time_port=ports.clock,
    )
    payment = result.payment
    return PaymentResponse(
        id=payment.id,
        amount=float(payment.amount),
        currency=payment.currency,
        created_at=payment.created_at.isoformat(),
    )


@router.get("/{site_id}/revenue", response_model=RevenueResponse)
def get_revenue(
    site_id: str,
    period: str | None = Query(None, description="7d, 30d or 90d"),
    currency: str | None = Query(None, description="Only payments in this currency"),
    owner_id: str = Depends(get_current_owner),
    ports: AnalyticsPorts = Depends(get_analytics_ports),
) -> RevenueResponse:
    """Revenue by currency and by attributed traffic source."""
    label = resolve_period(period, ports.rules)
    result = run_revenue(
        RevenueInput(site_id=site_id, owner_id=owner_id, period=label, currency=currency),
        event_store=ports.event_store,
        payment_store=ports.payment_store,
        sites=ports.sites,
        time_port=ports.clock,
        rules=ports.rules,
    )
    return RevenueResponse(
        period=label,
        currency=currency.upper() if currency else None,
        total_revenue=float(result.total_revenue),
        total_payments=result.total_payments,
        by_source=[
            RevenueSourceRow(source=r.source, revenue=float(r.revenue), payments=r.payments)
            for r in result.by_source
        ],
        by_currency=[
            RevenueCurrencyRow(
                currency=r.currency,
                total_revenue=float(r.total_revenue),
                total_payments=r.total_payments,
                avg_payment=float(r.avg_payment),
            )
            for r in result.by_currency
        ],
    )
