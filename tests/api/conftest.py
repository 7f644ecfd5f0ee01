from datetime import datetime

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from trackflow.adapters.clock import FixedClock
from trackflow.adapters.memory import InMemoryEventStore, InMemoryPaymentStore, InMemorySiteRepo
from trackflow.api import deps
from trackflow.api.auth_utils import create_access_token
from trackflow.api.errors import install_error_handlers
from trackflow.api.routes import analytics, collect, sites
from trackflow.core.entities import Site
from trackflow.rules.models import Rules

OWNER = "owner-a"
OTHER_OWNER = "owner-b"
SITE_ID = "site-1"


@pytest.fixture
def site_repo(now: datetime) -> InMemorySiteRepo:
    repo = InMemorySiteRepo()
    repo.save(Site(id=SITE_ID, owner_id=OWNER, name="Blog", domain="example.com", created_at=now))
    return repo


@pytest.fixture
def event_store() -> InMemoryEventStore:
    return InMemoryEventStore()


@pytest.fixture
def payment_store() -> InMemoryPaymentStore:
    return InMemoryPaymentStore()


@pytest.fixture
def app(
    site_repo: InMemorySiteRepo,
    event_store: InMemoryEventStore,
    payment_store: InMemoryPaymentStore,
    clock: FixedClock,
    rules: Rules,
) -> FastAPI:
    """Test app with all routers wired to in-memory stores."""
    app = FastAPI()
    install_error_handlers(app)
    app.include_router(collect.router)
    app.include_router(sites.router, prefix="/api/sites")
    app.include_router(analytics.router, prefix="/api/sites")

    app.dependency_overrides[deps.get_site_repo] = lambda: site_repo
    app.dependency_overrides[deps.get_event_store] = lambda: event_store
    app.dependency_overrides[deps.get_payment_store] = lambda: payment_store
    app.dependency_overrides[deps.get_clock] = lambda: clock
    app.dependency_overrides[deps.get_rules] = lambda: rules
    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


def bearer(owner_id: str) -> dict[str, str]:
    token = create_access_token({"sub": owner_id})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def owner_headers() -> dict[str, str]:
    return bearer(OWNER)


@pytest.fixture
def other_headers() -> dict[str, str]:
    """Valid token for an owner with no sites."""
    return bearer(OTHER_OWNER)
