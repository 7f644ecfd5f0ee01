import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from trackflow import __version__
from trackflow.adapters.sqlite.migrator import SQLiteMigrator
from trackflow.api.deps import get_settings
from trackflow.api.errors import install_error_handlers
from trackflow.rules.loader import load_rules

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()

    # Load rules and migrate on startup (fail-fast)
    try:
        load_rules(settings.rules_path)
        logger.info("Rules loaded from %s", settings.rules_path)
        settings.data_dir.mkdir(parents=True, exist_ok=True)
        SQLiteMigrator(settings.db_path, settings.migrations_dir).run_migrations()
    except Exception as e:
        logger.critical("Startup failed: %s", e)
        sys.exit(1)

    yield


app = FastAPI(
    title="TrackFlow API",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

install_error_handlers(app)

# --- Routers ---
from trackflow.api.routes import analytics, collect, sites  # noqa: E402

app.include_router(collect.router, prefix="", tags=["Ingestion"])
app.include_router(sites.router, prefix="/api/sites", tags=["Sites"])
app.include_router(analytics.router, prefix="/api/sites", tags=["Analytics"])


# The tracking script runs on customer sites, so /collect accepts any origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health_check() -> dict[str, Any]:
    """Health check endpoint."""
    return {"status": "ok", "service": "trackflow"}
