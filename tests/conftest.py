import os
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest

from trackflow.adapters.clock import FixedClock
from trackflow.adapters.sqlite.migrator import SQLiteMigrator
from trackflow.core.entities import Event, EventType
from trackflow.rules.loader import load_rules
from trackflow.rules.models import Rules

# Saturday; the ISO week starts Monday 2024-06-10
NOW = datetime(2024, 6, 15, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def rules() -> Rules:
    # Load REAL rules from project root; tests run from project root.
    rules_path = Path("rules.yaml").resolve()
    if not rules_path.exists():
        raise FileNotFoundError(f"Rules not found at {rules_path}")
    return load_rules(rules_path)


@pytest.fixture
def make_event() -> Callable[..., Event]:
    """Factory for events; site_id defaults to "site-1", type to pageview."""

    def _make(
        visitor_id: str,
        timestamp: datetime,
        event_type: EventType = EventType.PAGEVIEW,
        **fields: Any,
    ) -> Event:
        fields.setdefault("site_id", "site-1")
        fields.setdefault("session_id", f"s-{visitor_id}")
        return Event(
            visitor_id=visitor_id,
            event_type=event_type,
            timestamp=timestamp,
            **fields,
        )

    return _make


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    """Temporary SQLite database with all migrations applied."""
    path = os.path.join(str(tmp_path), "trackflow.db")
    SQLiteMigrator(path, "migrations").run_migrations()
    return path
