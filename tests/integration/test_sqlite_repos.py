from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from trackflow.adapters.sqlite.repos import (
    SQLiteEventStore,
    SQLitePaymentStore,
    SQLiteSiteRepo,
)
from trackflow.core.entities import EventType, Payment, Site
from trackflow.core.errors import QueryTimeoutError

T0 = datetime(2024, 6, 10, 9, 30, tzinfo=UTC)


@pytest.fixture
def site_repo(db_path):
    return SQLiteSiteRepo(db_path)


@pytest.fixture(autouse=True)
def parent_sites(site_repo):
    # events and payments reference sites(id)
    for site_id in ("site-1", "site-2"):
        site_repo.save(Site(id=site_id, owner_id="seed", name=site_id, domain="seed.test", created_at=T0))


@pytest.fixture
def event_store(db_path):
    return SQLiteEventStore(db_path)


@pytest.fixture
def payment_store(db_path):
    return SQLitePaymentStore(db_path)


# --- Sites ---


def test_site_crud(site_repo):
    older = Site(id="s1", owner_id="owner-a", name="Blog", domain="example.com", created_at=T0)
    newer = Site(id="s2", owner_id="owner-a", name="Shop", domain="shop.test", created_at=T0 + timedelta(days=1))
    foreign = Site(id="s3", owner_id="owner-b", name="Other", domain="other.test", created_at=T0)
    for site in (older, newer, foreign):
        site_repo.save(site)

    assert site_repo.get_by_id("s1") == older
    assert [s.id for s in site_repo.list_by_owner("owner-a")] == ["s2", "s1"]
    assert site_repo.resolve("s3") == "owner-b"
    assert site_repo.resolve("missing") is None

    site_repo.delete("s1")
    assert site_repo.get_by_id("s1") is None


def test_site_save_is_upsert(site_repo):
    site = Site(id="s1", owner_id="owner-a", name="Blog", domain="example.com", created_at=T0)
    site_repo.save(site)
    site_repo.save(Site(id="s1", owner_id="owner-a", name="Renamed", domain="example.com", created_at=T0))

    assert site_repo.get_by_id("s1").name == "Renamed"
    assert len(site_repo.list_by_owner("owner-a")) == 1


# --- Events ---


def test_event_round_trip(event_store, make_event):
    event = make_event(
        "v1",
        T0,
        EventType.REVENUE,
        path="/checkout",
        source="google",
        medium="organic",
        screen_width=1440,
        event_data={"plan": "pro", "seats": 3},
        revenue=Decimal("19.99"),
        currency="USD",
        raw_payload={"site_id": "site-1", "amount": 19.99, "extra": [1, 2]},
    )
    event_store.append(event)

    (stored,) = event_store.list_events("site-1")

    assert stored == event
    assert stored.timestamp.tzinfo is not None
    assert stored.revenue == Decimal("19.99")


def test_list_events_window_and_types(event_store, make_event):
    event_store.append(make_event("v1", T0 - timedelta(microseconds=1)))
    event_store.append(make_event("v2", T0))
    event_store.append(make_event("v3", T0 + timedelta(hours=1), EventType.EVENT, event_name="signup"))
    event_store.append(make_event("v4", T0 + timedelta(days=1)))
    event_store.append(make_event("v5", T0, site_id="site-2"))

    window = event_store.list_events("site-1", start=T0, end=T0 + timedelta(days=1))
    assert [e.visitor_id for e in window] == ["v2", "v3"]

    pageviews = event_store.list_events("site-1", event_types=[EventType.PAGEVIEW])
    assert [e.visitor_id for e in pageviews] == ["v1", "v2", "v4"]


def test_first_seen_is_over_all_history(event_store, make_event):
    event_store.append(make_event("old", T0 - timedelta(days=60)))
    event_store.append(make_event("old", T0))
    event_store.append(make_event("new", T0 + timedelta(hours=2)))
    event_store.append(make_event("new", T0 + timedelta(days=3)))

    assert event_store.first_seen("site-1", T0) == {"new": T0 + timedelta(hours=2)}


def test_latest_source_at_or_before(event_store, make_event):
    event_store.append(make_event("v1", T0, source="google", medium="organic"))
    event_store.append(make_event("v1", T0 + timedelta(hours=1), source="twitter", medium="social"))
    event_store.append(make_event("v1", T0 + timedelta(hours=2), EventType.EVENT, event_name="x"))

    assert event_store.latest_source("site-1", "v1", T0 + timedelta(minutes=30)) == "google"
    assert event_store.latest_source("site-1", "v1", T0 + timedelta(hours=5)) == "twitter"
    assert event_store.latest_source("site-1", "v1", T0 - timedelta(seconds=1)) is None
    assert event_store.latest_source("site-2", "v1", T0 + timedelta(hours=5)) is None


def test_delete_site_events(event_store, make_event):
    event_store.append(make_event("v1", T0))
    event_store.append(make_event("v2", T0))
    event_store.append(make_event("v3", T0, site_id="site-2"))

    assert event_store.delete_site("site-1") == 2
    assert event_store.list_events("site-1") == []
    assert len(event_store.list_events("site-2")) == 1


def test_query_timeout(db_path):
    store = SQLiteEventStore(db_path, query_timeout_seconds=0.01)
    heavy = """
        WITH RECURSIVE n(x) AS (SELECT 1 UNION ALL SELECT x + 1 FROM n WHERE x < 50000000)
        SELECT count(*) AS c FROM n
    """
    with pytest.raises(QueryTimeoutError):
        store._query(heavy)


# --- Payments ---


def test_payments(payment_store):
    usd = Payment(site_id="site-1", amount=Decimal("42.10"), created_at=T0, visitor_id="v1", product_name="Pro")
    eur = Payment(site_id="site-1", amount=Decimal("9.99"), created_at=T0 + timedelta(hours=1), currency="EUR")
    other = Payment(site_id="site-2", amount=Decimal("1"), created_at=T0)
    for p in (usd, eur, other):
        payment_store.append(p)

    assert payment_store.list_payments("site-1") == [usd, eur]
    assert payment_store.list_payments("site-1", currency="EUR") == [eur]
    assert payment_store.list_payments("site-1", start=T0 + timedelta(minutes=1)) == [eur]
    assert payment_store.list_payments("site-1", end=T0 + timedelta(hours=1)) == [usd]

    assert payment_store.delete_site("site-1") == 2
    assert payment_store.list_payments("site-1") == []
