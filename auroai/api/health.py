"""Liveness and readiness probes."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import inspect, text

from auroai.core.database import get_engine, profiles, users

logger = logging.getLogger("auroai")

router = APIRouter()


def _not_ready(detail: str) -> JSONResponse:
    return JSONResponse(status_code=503, content={"status": "error", "detail": detail})


@router.get("/healthz")
def healthz():
    return {"status": "ok"}


@router.get("/readyz")
def readyz():
    """Ready once the database answers and the account tables exist."""
    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        present = set(inspect(engine).get_table_names())
    except Exception as e:
        logger.error("readyz.database_unreachable", extra={"error": str(e)})
        return _not_ready("database unreachable")

    missing = [table.name for table in (users, profiles) if table.name not in present]
    if missing:
        logger.warning("readyz.missing_tables", extra={"tables": ",".join(missing)})
        return _not_ready("missing tables: " + ", ".join(missing))
    return {"status": "ok"}
