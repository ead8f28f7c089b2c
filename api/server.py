"""
Clinic Signal Engine API Server - REST API for the admin dashboard.
"""
# ruff: noqa: S104
# S104: Development server binding (guarded by __name__ check)

import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.engine_router import engine_router, has_engine, set_engine
from api.response_models import HealthResponse
from clinicops import __version__
from clinicops.config import CORS_ORIGINS, LOG_JSON, LOG_LEVEL
from clinicops.models import now_iso
from clinicops.observability import configure_logging
from clinicops.service import SignalEngine

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the engine on startup unless one was installed already (tests)."""
    opened = None
    if not has_engine():
        opened = SignalEngine.open()
        set_engine(opened)
        logger.info(f"Engine opened on {opened.store.db.db_path}")
    yield
    if opened is not None:
        opened.close()
        set_engine(None)


app = FastAPI(
    title="Clinic Signal Engine API",
    description="Tags, scores, alerts and streaks for the clinic directory",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware - configurable via CLINICOPS_CORS_ORIGINS
# Dev default: allow all origins; Production: set a comma-separated list
cors_origins = ["*"] if CORS_ORIGINS == ["*"] else [o.strip() for o in CORS_ORIGINS]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(engine_router)


@app.get("/health", response_model=HealthResponse)
def health() -> dict:
    """Liveness check (no auth)."""
    return {"status": "healthy", "version": __version__, "timestamp": now_iso()}


if __name__ == "__main__":
    json_logs = None if LOG_JSON is None else LOG_JSON == "1"
    configure_logging(LOG_LEVEL, json_logs)
    port = int(os.environ.get("CLINICOPS_PORT", "8420"))
    uvicorn.run(app, host="0.0.0.0", port=port)
