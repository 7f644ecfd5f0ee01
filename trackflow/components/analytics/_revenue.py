"""
Revenue attribution - joins payments to the visitor's traffic source.

Payments carry no event reference. Each one is credited to the latest
classified source seen for its visitor at or before the payment time.
Payments without a visitor, or whose visitor has no earlier events, land in
the "unknown" bucket, so the per-source totals always add up to the total.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Iterable
from datetime import datetime
from decimal import Decimal, localcontext

from trackflow.core.entities import Payment

from .models import RevenueByCurrency, RevenueBySource, RevenueOutput

UNKNOWN_SOURCE = "unknown"

CENT = Decimal("0.01")

# (visitor_id, at) -> source
SourceLookup = Callable[[str, datetime], str | None]


def attributed_source(payment: Payment, lookup: SourceLookup) -> str:
    if not payment.visitor_id:
        return UNKNOWN_SOURCE
    return lookup(payment.visitor_id, payment.created_at) or UNKNOWN_SOURCE


def average_payment(total: Decimal, count: int) -> Decimal:
    """Mean payment rounded to cents, whatever the magnitude of the total."""
    mean = total / count
    with localcontext() as ctx:
        # Quantizing to cents needs every integer digit plus two
        ctx.prec = max(ctx.prec, mean.adjusted() + 3)
        return mean.quantize(CENT)


def attribute_revenue(payments: Iterable[Payment], lookup: SourceLookup) -> RevenueOutput:
    """Aggregate revenue by attributed source and by currency."""
    source_revenue: dict[str, Decimal] = defaultdict(Decimal)
    source_count: dict[str, int] = defaultdict(int)
    currency_revenue: dict[str, Decimal] = defaultdict(Decimal)
    currency_count: dict[str, int] = defaultdict(int)
    # Visitors usually pay more than once; look each (visitor, time) up once
    cache: dict[tuple[str, datetime], str | None] = {}

    def cached_lookup(visitor_id: str, at: datetime) -> str | None:
        key = (visitor_id, at)
        if key not in cache:
            cache[key] = lookup(visitor_id, at)
        return cache[key]

    total = Decimal(0)
    count = 0
    for payment in payments:
        source = attributed_source(payment, cached_lookup)
        source_revenue[source] += payment.amount
        source_count[source] += 1
        currency_revenue[payment.currency] += payment.amount
        currency_count[payment.currency] += 1
        total += payment.amount
        count += 1

    by_source = sorted(
        (
            RevenueBySource(source=s, revenue=source_revenue[s], payments=source_count[s])
            for s in source_revenue
        ),
        key=lambda r: (-r.revenue, r.source),
    )
    by_currency = sorted(
        (
            RevenueByCurrency(
                currency=c,
                total_revenue=currency_revenue[c],
                total_payments=currency_count[c],
                avg_payment=average_payment(currency_revenue[c], currency_count[c]),
            )
            for c in currency_revenue
        ),
        key=lambda r: (-r.total_revenue, r.currency),
    )

    return RevenueOutput(
        total_revenue=total,
        total_payments=count,
        by_source=tuple(by_source),
        by_currency=tuple(by_currency),
    )
