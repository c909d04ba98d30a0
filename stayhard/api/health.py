"""
Liveness and readiness probes. Neither exposes configuration values.
"""

import logging
import time

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import inspect

from stayhard.core.config import settings
from stayhard.core.database import check_connection, get_engine, metadata

logger = logging.getLogger("stayhard")

root_router = APIRouter(tags=["health"])

REQUIRED_TABLES = sorted(metadata.tables)


def _not_ready(detail: str) -> JSONResponse:
    return JSONResponse(status_code=503, content={"status": "error", "detail": detail})


@root_router.get("/healthz")
def healthz(request: Request):
    started = getattr(request.app.state, "startup_time", None)
    return {
        "status": "ok",
        "env": settings.ENV,
        "uptime_seconds": round(time.time() - started, 1) if started else None,
    }


@root_router.get("/readyz")
def readyz():
    """Ready once the database answers and every table exists."""
    if not check_connection():
        return _not_ready("database unreachable")

    try:
        inspector = inspect(get_engine())
        missing = [t for t in REQUIRED_TABLES if not inspector.has_table(t)]
    except Exception as e:
        logger.error(f"[readyz] schema inspection failed: {e}")
        return _not_ready("database unreachable")

    if missing:
        detail = f"missing tables: {', '.join(missing)}"
        logger.warning(f"[readyz] {detail}")
        return _not_ready(detail)
    return {"status": "ok", "tables": len(REQUIRED_TABLES)}
