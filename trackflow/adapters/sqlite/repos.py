"""
SQLite adapters for the site, event and payment ports.

Timestamps are stored as fixed-width ISO-8601 UTC strings so that range
filters can compare them as text. Amounts are stored as Decimal text.
Each call opens its own short-lived connection unless one is injected.
"""

from __future__ import annotations

import json
import sqlite3
import time
from collections.abc import Iterable
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from trackflow.core.entities import Event, EventType, Payment, Site
from trackflow.core.errors import QueryTimeoutError

# -----------------------------------------------------------------------------
# Helper functions
# -----------------------------------------------------------------------------

TS_FORMAT = "%Y-%m-%dT%H:%M:%S.%f+00:00"

# SQLite VM instructions between deadline checks
PROGRESS_STEPS = 1000


def dict_factory(cursor: sqlite3.Cursor, row: tuple[Any, ...]) -> dict[str, Any]:
    """Convert SQLite row to dictionary."""
    return {col[0]: row[idx] for idx, col in enumerate(cursor.description)}


def format_ts(ts: datetime) -> str:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC).strftime(TS_FORMAT)


def parse_ts(s: str) -> datetime:
    return datetime.fromisoformat(s).astimezone(UTC)


def parse_json(s: str | None) -> Any:
    return json.loads(s) if s else None


# -----------------------------------------------------------------------------
# Base SQLite Repository
# -----------------------------------------------------------------------------


class SQLiteRepoBase:
    """Base class for SQLite repositories."""

    def __init__(
        self,
        db_path: str,
        connection: sqlite3.Connection | None = None,
        query_timeout_seconds: float | None = None,
    ):
        self.db_path = db_path
        self._external_conn = connection
        self.query_timeout_seconds = query_timeout_seconds

    def _get_conn(self) -> sqlite3.Connection:
        """Get database connection (uses external if provided)."""
        if self._external_conn is not None:
            return self._external_conn

        conn = sqlite3.connect(self.db_path)
        conn.row_factory = dict_factory
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    def _should_close(self) -> bool:
        """Whether to close connection after use."""
        return self._external_conn is None

    def _query(self, sql: str, params: Iterable[Any] = ()) -> list[dict[str, Any]]:
        """
        Run a read query under the configured deadline.

        Raises:
            QueryTimeoutError: the statement ran past query_timeout_seconds.
        """
        conn = self._get_conn()
        timeout = self.query_timeout_seconds
        if timeout is not None:
            deadline = time.monotonic() + timeout
            conn.set_progress_handler(lambda: int(time.monotonic() > deadline), PROGRESS_STEPS)
        try:
            return conn.execute(sql, tuple(params)).fetchall()
        except sqlite3.OperationalError as e:
            if timeout is not None and "interrupted" in str(e):
                raise QueryTimeoutError(f"Query exceeded {timeout}s") from e
            raise
        finally:
            if timeout is not None:
                conn.set_progress_handler(None, 0)
            if self._should_close():
                conn.close()

    def _execute(self, sql: str, params: Iterable[Any] = ()) -> int:
        """Run one write statement and commit. Returns the affected row count."""
        conn = self._get_conn()
        try:
            cursor = conn.execute(sql, tuple(params))
            if self._should_close():
                conn.commit()
            return cursor.rowcount
        except Exception:
            if self._should_close():
                conn.rollback()
            raise
        finally:
            if self._should_close():
                conn.close()


# -----------------------------------------------------------------------------
# Site Repository
# -----------------------------------------------------------------------------


class SQLiteSiteRepo(SQLiteRepoBase):
    """SQLite implementation of SiteRepoPort."""

    def save(self, site: Site) -> Site:
        self._execute(
            """
            INSERT INTO sites (id, owner_id, name, domain, created_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name=excluded.name,
                domain=excluded.domain
            """,
            (site.id, site.owner_id, site.name, site.domain, format_ts(site.created_at)),
        )
        return site

    def get_by_id(self, site_id: str) -> Site | None:
        rows = self._query("SELECT * FROM sites WHERE id = ?", (site_id,))
        return self._map_row(rows[0]) if rows else None

    def list_by_owner(self, owner_id: str) -> list[Site]:
        rows = self._query(
            "SELECT * FROM sites WHERE owner_id = ? ORDER BY created_at DESC, id",
            (owner_id,),
        )
        return [self._map_row(r) for r in rows]

    def delete(self, site_id: str) -> None:
        self._execute("DELETE FROM sites WHERE id = ?", (site_id,))

    def resolve(self, site_id: str) -> str | None:
        rows = self._query("SELECT owner_id FROM sites WHERE id = ?", (site_id,))
        return rows[0]["owner_id"] if rows else None

    def _map_row(self, row: dict[str, Any]) -> Site:
        return Site(
            id=row["id"],
            owner_id=row["owner_id"],
            name=row["name"],
            domain=row["domain"],
            created_at=parse_ts(row["created_at"]),
        )


# -----------------------------------------------------------------------------
# Event Store
# -----------------------------------------------------------------------------

EVENT_COLUMNS = (
    "site_id",
    "visitor_id",
    "session_id",
    "event_type",
    "timestamp",
    "url",
    "path",
    "hostname",
    "title",
    "referrer",
    "source",
    "medium",
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
    "ref",
    "device_type",
    "browser",
    "os",
    "screen_width",
    "screen_height",
    "language",
    "timezone",
    "event_name",
    "event_data",
    "revenue",
    "currency",
    "raw_payload",
)


class SQLiteEventStore(SQLiteRepoBase):
    """SQLite implementation of EventStorePort."""

    def append(self, event: Event) -> None:
        values = {
            "site_id": event.site_id,
            "visitor_id": event.visitor_id,
            "session_id": event.session_id,
            "event_type": event.event_type.value,
            "timestamp": format_ts(event.timestamp),
            "url": event.url,
            "path": event.path,
            "hostname": event.hostname,
            "title": event.title,
            "referrer": event.referrer,
            "source": event.source,
            "medium": event.medium,
            "utm_source": event.utm_source,
            "utm_medium": event.utm_medium,
            "utm_campaign": event.utm_campaign,
            "utm_term": event.utm_term,
            "utm_content": event.utm_content,
            "ref": event.ref,
            "device_type": event.device_type,
            "browser": event.browser,
            "os": event.os,
            "screen_width": event.screen_width,
            "screen_height": event.screen_height,
            "language": event.language,
            "timezone": event.timezone,
            "event_name": event.event_name,
            "event_data": json.dumps(event.event_data) if event.event_data is not None else None,
            "revenue": str(event.revenue) if event.revenue is not None else None,
            "currency": event.currency,
            "raw_payload": json.dumps(event.raw_payload, default=str),
        }
        placeholders = ", ".join("?" for _ in EVENT_COLUMNS)
        self._execute(
            f"INSERT INTO events ({', '.join(EVENT_COLUMNS)}) VALUES ({placeholders})",
            [values[c] for c in EVENT_COLUMNS],
        )

    def list_events(
        self,
        site_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        event_types: Iterable[EventType] | None = None,
    ) -> list[Event]:
        clauses = ["site_id = ?"]
        params: list[Any] = [site_id]
        if start is not None:
            clauses.append("timestamp >= ?")
            params.append(format_ts(start))
        if end is not None:
            clauses.append("timestamp < ?")
            params.append(format_ts(end))
        if event_types is not None:
            types = [EventType(t).value for t in event_types]
            clauses.append(f"event_type IN ({', '.join('?' for _ in types)})")
            params.extend(types)

        rows = self._query(
            f"SELECT * FROM events WHERE {' AND '.join(clauses)} ORDER BY timestamp, id",
            params,
        )
        return [self._map_row(r) for r in rows]

    def first_seen(self, site_id: str, since: datetime) -> dict[str, datetime]:
        rows = self._query(
            """
            SELECT visitor_id, MIN(timestamp) AS first_ts
            FROM events
            WHERE site_id = ?
            GROUP BY visitor_id
            HAVING MIN(timestamp) >= ?
            """,
            (site_id, format_ts(since)),
        )
        return {r["visitor_id"]: parse_ts(r["first_ts"]) for r in rows}

    def latest_source(self, site_id: str, visitor_id: str, at: datetime) -> str | None:
        rows = self._query(
            """
            SELECT source FROM events
            WHERE site_id = ? AND visitor_id = ? AND timestamp <= ? AND source IS NOT NULL
            ORDER BY timestamp DESC, id DESC
            LIMIT 1
            """,
            (site_id, visitor_id, format_ts(at)),
        )
        return rows[0]["source"] if rows else None

    def delete_site(self, site_id: str) -> int:
        return self._execute("DELETE FROM events WHERE site_id = ?", (site_id,))

    def _map_row(self, row: dict[str, Any]) -> Event:
        return Event(
            site_id=row["site_id"],
            visitor_id=row["visitor_id"],
            session_id=row["session_id"],
            event_type=EventType(row["event_type"]),
            timestamp=parse_ts(row["timestamp"]),
            url=row["url"],
            path=row["path"],
            hostname=row["hostname"],
            title=row["title"],
            referrer=row["referrer"],
            source=row["source"],
            medium=row["medium"],
            utm_source=row["utm_source"],
            utm_medium=row["utm_medium"],
            utm_campaign=row["utm_campaign"],
            utm_term=row["utm_term"],
            utm_content=row["utm_content"],
            ref=row["ref"],
            device_type=row["device_type"],
            browser=row["browser"],
            os=row["os"],
            screen_width=row["screen_width"],
            screen_height=row["screen_height"],
            language=row["language"],
            timezone=row["timezone"],
            event_name=row["event_name"],
            event_data=parse_json(row["event_data"]),
            revenue=Decimal(row["revenue"]) if row["revenue"] is not None else None,
            currency=row["currency"],
            raw_payload=parse_json(row["raw_payload"]) or {},
        )


# -----------------------------------------------------------------------------
# Payment Store
# -----------------------------------------------------------------------------


class SQLitePaymentStore(SQLiteRepoBase):
    """SQLite implementation of PaymentStorePort."""

    def append(self, payment: Payment) -> None:
        self._execute(
            """
            INSERT INTO payments (
                id, site_id, visitor_id, amount, currency,
                customer_email, product_name, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                payment.id,
                payment.site_id,
                payment.visitor_id,
                str(payment.amount),
                payment.currency,
                payment.customer_email,
                payment.product_name,
                format_ts(payment.created_at),
            ),
        )

    def list_payments(
        self,
        site_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        currency: str | None = None,
    ) -> list[Payment]:
        clauses = ["site_id = ?"]
        params: list[Any] = [site_id]
        if start is not None:
            clauses.append("created_at >= ?")
            params.append(format_ts(start))
        if end is not None:
            clauses.append("created_at < ?")
            params.append(format_ts(end))
        if currency is not None:
            clauses.append("currency = ?")
            params.append(currency)

        rows = self._query(
            f"SELECT * FROM payments WHERE {' AND '.join(clauses)} ORDER BY created_at, id",
            params,
        )
        return [self._map_row(r) for r in rows]

    def delete_site(self, site_id: str) -> int:
        return self._execute("DELETE FROM payments WHERE site_id = ?", (site_id,))

    def _map_row(self, row: dict[str, Any]) -> Payment:
        return Payment(
            id=row["id"],
            site_id=row["site_id"],
            visitor_id=row["visitor_id"],
            amount=Decimal(row["amount"]),
            currency=row["currency"],
            customer_email=row["customer_email"],
            product_name=row["product_name"],
            created_at=parse_ts(row["created_at"]),
        )
