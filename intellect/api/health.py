"""
Liveness and readiness probes.

Readiness pings both stores; with a database configured it also checks that
the required tables exist. No secrets are exposed.
"""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import inspect

from intellect.core.database import REQUIRED_TABLES, check_connection, get_engine
from intellect.core.dependencies import get_advocate_store, get_usage_store, using_database
from intellect.core.errors import StoreUnavailableError

logger = logging.getLogger("intellect")

router = APIRouter(tags=["health"])


@router.get("/healthz")
def healthz():
    """Lightweight liveness check (no deps)."""
    return {"status": "ok"}


@router.get("/readyz")
def readyz():
    """Readiness check: store connectivity + required tables."""
    storage = "memory"
    if using_database():
        storage = "database"
        if not check_connection():
            return JSONResponse(status_code=503, content={"status": "error", "detail": "database unreachable"})
        inspector = inspect(get_engine())
        missing = [t for t in REQUIRED_TABLES if not inspector.has_table(t)]
        if missing:
            detail = f"missing tables: {', '.join(missing)}"
            logger.warning(f"[readyz] {detail}")
            return JSONResponse(status_code=503, content={"status": "error", "detail": detail})

    try:
        get_usage_store().ping()
        get_advocate_store().ping()
    except StoreUnavailableError as e:
        logger.error(f"[readyz] store ping failed: {e.__cause__ or e}")
        return JSONResponse(status_code=503, content={"status": "error", "detail": "store unreachable"})

    return {"status": "ok", "storage": storage}
