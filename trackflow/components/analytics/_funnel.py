"""
Funnel analysis - sequential set narrowing.

V0 is the set of visitors matching step 0 in the window; each later Vi is
the subset of V(i-1) that also matched step i in the same window. Steps are
co-occurrence predicates: there is no ordering-by-time between them.

Drop-off at step i is round((|V(i-1)| - |Vi|) / |V(i-1)| * 100). Once a step
has no visitors, every later step reports count 0 and drop-off 100.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from trackflow.core.entities import Event, EventType
from trackflow.core.errors import InvalidFunnelError

from ._stats import percent
from .models import FunnelOutput, FunnelStep, FunnelStepResult, Window

STEP_EVENT_TYPES = {
    "pageview": EventType.PAGEVIEW,
    "event": EventType.EVENT,
}

MIN_STEPS = 2


def validate_steps(steps: Sequence[FunnelStep], max_steps: int = 10) -> None:
    """Raise InvalidFunnelError for a definition that cannot be evaluated."""
    if len(steps) < MIN_STEPS:
        raise InvalidFunnelError(f"A funnel needs at least {MIN_STEPS} steps, got {len(steps)}")
    if len(steps) > max_steps:
        raise InvalidFunnelError(f"A funnel may have at most {max_steps} steps, got {len(steps)}")

    for index, step in enumerate(steps):
        if step.type not in STEP_EVENT_TYPES:
            raise InvalidFunnelError(f"Step {index}: unknown type '{step.type}'")
        if not isinstance(step.value, str) or not step.value.strip():
            raise InvalidFunnelError(f"Step {index}: value is required")


def step_matches(step: FunnelStep, event: Event) -> bool:
    """
    Check one event against a step predicate.

    pageview steps compare the path; a trailing "*" matches by prefix.
    event steps compare the custom event name.
    """
    if event.event_type != STEP_EVENT_TYPES[step.type]:
        return False

    if step.type == "pageview":
        if event.path is None:
            return False
        if step.value.endswith("*"):
            return event.path.startswith(step.value[:-1])
        return event.path == step.value

    return event.event_name == step.value


def step_visitors(steps: Sequence[FunnelStep], events: Iterable[Event], window: Window) -> list[set[str]]:
    """Visitor set matching each step, in one pass over the events."""
    matched: list[set[str]] = [set() for _ in steps]
    for event in events:
        if not window.contains(event.timestamp):
            continue
        for index, step in enumerate(steps):
            if step_matches(step, event):
                matched[index].add(event.visitor_id)
    return matched


def funnel(
    events: Iterable[Event],
    steps: Sequence[FunnelStep],
    window: Window,
    max_steps: int = 10,
) -> FunnelOutput:
    """Evaluate a funnel over the events of one site."""
    validate_steps(steps, max_steps)

    matched = step_visitors(steps, events, window)

    results: list[FunnelStepResult] = []
    survivors = matched[0]
    results.append(FunnelStepResult(step_label=steps[0].step_label, count=len(survivors), dropoff_percent=0))

    for step, visitors in zip(steps[1:], matched[1:], strict=True):
        previous = len(survivors)
        if previous == 0:
            results.append(FunnelStepResult(step_label=step.step_label, count=0, dropoff_percent=100))
            continue

        survivors = survivors & visitors
        results.append(
            FunnelStepResult(
                step_label=step.step_label,
                count=len(survivors),
                dropoff_percent=percent(previous - len(survivors), previous),
            )
        )

    overall = percent(results[-1].count, results[0].count)

    return FunnelOutput(steps=tuple(results), overall_conversion=float(overall))
