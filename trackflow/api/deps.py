import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from trackflow.adapters.clock import SystemClock
from trackflow.adapters.sqlite.repos import (
    SQLiteEventStore,
    SQLitePaymentStore,
    SQLiteSiteRepo,
)
from trackflow.api.auth_utils import decode_access_token
from trackflow.components.analytics import EventStorePort, PaymentStorePort
from trackflow.components.sites import SiteRepoPort
from trackflow.core.ports import TimePort
from trackflow.rules.loader import load_rules
from trackflow.rules.models import Rules


# --- Settings ---
class Settings:
    def __init__(self) -> None:
        self.base_dir = Path(os.getcwd())
        self.data_dir = Path(os.environ.get("TRACKFLOW_DATA_DIR", "./data"))
        self.db_path = str(self.data_dir / "trackflow.db")
        self.migrations_dir = str(self.base_dir / "migrations")
        self.rules_path = Path(os.environ.get("TRACKFLOW_RULES_PATH", str(self.base_dir / "rules.yaml")))


@lru_cache
def get_settings() -> Settings:
    return Settings()


# --- Rules ---
@lru_cache
def get_rules(settings: Settings = Depends(get_settings)) -> Rules:
    return load_rules(settings.rules_path)


# --- Repos ---
def get_site_repo(settings: Settings = Depends(get_settings)) -> SiteRepoPort:
    return SQLiteSiteRepo(settings.db_path)


def get_event_store(
    settings: Settings = Depends(get_settings),
    rules: Rules = Depends(get_rules),
) -> EventStorePort:
    return SQLiteEventStore(
        settings.db_path,
        query_timeout_seconds=rules.analytics.query_timeout_seconds,
    )


def get_payment_store(
    settings: Settings = Depends(get_settings),
    rules: Rules = Depends(get_rules),
) -> PaymentStorePort:
    return SQLitePaymentStore(
        settings.db_path,
        query_timeout_seconds=rules.analytics.query_timeout_seconds,
    )


# Time adapter for deterministic time operations
_clock_instance: SystemClock | None = None


def get_clock() -> TimePort:
    """Get clock singleton."""
    global _clock_instance
    if _clock_instance is None:
        _clock_instance = SystemClock()
    return _clock_instance


# --- Ports bundle for the query routes ---
@dataclass(frozen=True)
class AnalyticsPorts:
    sites: SiteRepoPort
    event_store: EventStorePort
    payment_store: PaymentStorePort
    clock: TimePort
    rules: Rules


def get_analytics_ports(
    sites: SiteRepoPort = Depends(get_site_repo),
    event_store: EventStorePort = Depends(get_event_store),
    payment_store: PaymentStorePort = Depends(get_payment_store),
    clock: TimePort = Depends(get_clock),
    rules: Rules = Depends(get_rules),
) -> AnalyticsPorts:
    return AnalyticsPorts(
        sites=sites,
        event_store=event_store,
        payment_store=payment_store,
        clock=clock,
        rules=rules,
    )


# --- Auth ---
bearer_scheme = HTTPBearer(auto_error=False)


def get_current_owner(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    rules: Rules = Depends(get_rules),
) -> str:
    """Owner id from the bearer token's sub claim."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_access_token(credentials.credentials, algorithm=rules.auth.jwt_algorithm)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    owner_id = payload.get("sub")
    if not owner_id or not isinstance(owner_id, str):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    return owner_id
