"""
Retention cohorts - weekly first-seen buckets.

A visitor's cohort is the calendar week (Monday 00:00 UTC) of their first
event ever seen for the site, not the first event inside some query window.
weeks_later counts whole weeks between the cohort week and the week of each
later event.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from datetime import datetime, timedelta

from trackflow.core.entities import Event

from ._stats import percent
from .models import CohortRow, start_of_week


def earliest_cohort_week(now: datetime, weeks: int) -> datetime:
    """Start of the oldest cohort week still reported."""
    return start_of_week(now) - timedelta(weeks=weeks - 1)


def weeks_between(cohort_week: datetime, activity_week: datetime) -> int:
    return (activity_week - cohort_week).days // 7


def retention(
    first_seen: dict[str, datetime],
    events: Iterable[Event],
    now: datetime,
    weeks: int = 8,
) -> list[CohortRow]:
    """
    Cohort table for the trailing `weeks` weeks, oldest cohort first.

    retention[offset] is the share of the cohort (0-100) active in week
    `offset`; every offset up to the current week is present.
    """
    current_week = start_of_week(now)
    earliest = earliest_cohort_week(now, weeks)

    members: dict[datetime, set[str]] = defaultdict(set)
    cohort_of: dict[str, datetime] = {}
    for visitor_id, first in first_seen.items():
        week = start_of_week(first)
        if earliest <= week <= current_week:
            members[week].add(visitor_id)
            cohort_of[visitor_id] = week

    retained: dict[tuple[datetime, int], set[str]] = defaultdict(set)
    for event in events:
        cohort_week = cohort_of.get(event.visitor_id)
        if cohort_week is None:
            continue
        offset = weeks_between(cohort_week, start_of_week(event.timestamp))
        if offset >= 0:
            retained[(cohort_week, offset)].add(event.visitor_id)

    rows: list[CohortRow] = []
    for cohort_week in sorted(members):
        size = len(members[cohort_week])
        if size == 0:
            continue
        elapsed = weeks_between(cohort_week, current_week)
        rows.append(
            CohortRow(
                cohort_week=cohort_week.date(),
                cohort_size=size,
                retention={
                    offset: percent(len(retained.get((cohort_week, offset), ())), size)
                    for offset in range(elapsed + 1)
                },
            )
        )
    return rows
