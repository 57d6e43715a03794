"""
BOQ Estimator API
FastAPI backend: work-package estimation, catalog resolution, BOQ versioning.
Async PostgreSQL via SQLAlchemy when DATABASE_URL is set, in-memory otherwise.
"""
import os
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

from boq_estimator.services.logging_config import setup_logging
from boq_estimator.services.middleware import RequestTimingMiddleware
from boq_estimator.services.errors import (
    ItemNotFound,
    PersistenceFailure,
    ProjectNotFound,
    VersionLocked,
    VersionNotFound,
)

# Load .env in dev (no-op when the file is missing)
from dotenv import load_dotenv
load_dotenv()

_log_level = os.getenv("LOG_LEVEL", "INFO")
_json_logs = os.getenv("LOG_FORMAT", "json").lower() != "text"
setup_logging(level=_log_level, json_output=_json_logs)
logger = logging.getLogger("boq-api")

_PROCESS_START = time.monotonic()

if not os.getenv("DATABASE_URL"):
    logger.warning("MISSING env var: DATABASE_URL — running in dev mode")


@asynccontextmanager
async def lifespan(app: FastAPI):
    from boq_estimator.db import init_db
    await init_db()
    yield


app = FastAPI(
    title="BOQ Estimator API",
    version="1.0.0",
    description="Work-package estimation and Bill of Quantities versioning",
    lifespan=lifespan,
)

app.add_middleware(RequestTimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Domain errors → HTTP
# ---------------------------------------------------------------------------

@app.exception_handler(VersionLocked)
async def version_locked_handler(request: Request, exc: VersionLocked):
    return JSONResponse(status_code=409, content={"detail": str(exc), "version_id": exc.version_id})


@app.exception_handler(VersionNotFound)
@app.exception_handler(ProjectNotFound)
@app.exception_handler(ItemNotFound)
async def not_found_handler(request: Request, exc: Exception):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(PersistenceFailure)
async def persistence_failure_handler(request: Request, exc: PersistenceFailure):
    logger.error("Persistence failure on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Storage temporarily unavailable; retry"})


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

from boq_estimator.api.boq_routes import router as boq_router  # noqa: E402
from boq_estimator.api.estimate_routes import router as estimate_router  # noqa: E402

app.include_router(boq_router)
app.include_router(estimate_router)


@app.get("/health")
async def health():
    from boq_estimator.db import database_configured
    return {
        "status": "ok",
        "store": "postgres" if database_configured() else "memory",
        "uptime_s": round(time.monotonic() - _PROCESS_START, 1),
    }
