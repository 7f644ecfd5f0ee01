"""
Analytics component - Event ingestion and aggregation.
"""

from ._funnel import funnel, step_matches, validate_steps
from ._normalize import (
    EventNormalizer,
    NormalizerConfig,
    create_event_normalizer,
)
from ._retention import retention
from ._revenue import UNKNOWN_SOURCE, attribute_revenue
from ._stats import (
    breakdown,
    compare,
    delta,
    overview,
    percent,
    realtime,
    round_half_up,
    timeseries,
)
from .component import (
    build_analytics_config,
    build_classifier_config,
    build_normalizer_config,
    resolve_window,
    run_breakdown,
    run_funnel,
    run_ingest,
    run_realtime,
    run_record_payment,
    run_retention,
    run_revenue,
    run_stats,
    run_timeseries,
)
from .models import (
    AnalyticsConfig,
    BreakdownInput,
    BreakdownOutput,
    BreakdownRow,
    Changes,
    CohortRow,
    Dimension,
    FunnelInput,
    FunnelOutput,
    FunnelStep,
    FunnelStepResult,
    IngestEventInput,
    IngestOutput,
    Overview,
    PaymentOutput,
    QueryInput,
    RealtimeInput,
    RealtimeOutput,
    RealtimeVisitor,
    RecordPaymentInput,
    RetentionInput,
    RetentionOutput,
    RevenueByCurrency,
    RevenueBySource,
    RevenueInput,
    RevenueOutput,
    StatsOutput,
    TimeseriesOutput,
    TimeseriesPoint,
    Window,
    start_of_day,
    start_of_week,
)
from .ports import EventStorePort, PaymentStorePort

__all__ = [
    # Engine
    "EventNormalizer",
    "NormalizerConfig",
    "UNKNOWN_SOURCE",
    "attribute_revenue",
    "breakdown",
    "compare",
    "create_event_normalizer",
    "delta",
    "funnel",
    "overview",
    "percent",
    "realtime",
    "retention",
    "round_half_up",
    "step_matches",
    "timeseries",
    "validate_steps",
    # Entry points
    "build_analytics_config",
    "build_classifier_config",
    "build_normalizer_config",
    "resolve_window",
    "run_breakdown",
    "run_funnel",
    "run_ingest",
    "run_realtime",
    "run_record_payment",
    "run_retention",
    "run_revenue",
    "run_stats",
    "run_timeseries",
    # Models
    "AnalyticsConfig",
    "BreakdownInput",
    "BreakdownOutput",
    "BreakdownRow",
    "Changes",
    "CohortRow",
    "Dimension",
    "FunnelInput",
    "FunnelOutput",
    "FunnelStep",
    "FunnelStepResult",
    "IngestEventInput",
    "IngestOutput",
    "Overview",
    "PaymentOutput",
    "QueryInput",
    "RealtimeInput",
    "RealtimeOutput",
    "RealtimeVisitor",
    "RecordPaymentInput",
    "RetentionInput",
    "RetentionOutput",
    "RevenueByCurrency",
    "RevenueBySource",
    "RevenueInput",
    "RevenueOutput",
    "StatsOutput",
    "TimeseriesOutput",
    "TimeseriesPoint",
    "Window",
    "start_of_day",
    "start_of_week",
    # Ports
    "EventStorePort",
    "PaymentStorePort",
]
