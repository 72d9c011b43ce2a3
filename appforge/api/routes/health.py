"""
Health check endpoint for deployment monitoring.
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import text

from appforge.core.auth_dependency import get_store
from appforge.db.sql_store import SqlJobStore
from appforge.services.storage import JobStore

router = APIRouter(prefix="/api/health", tags=["Health"])


def _ping_database(store: SqlJobStore) -> None:
    db = store.session_factory()
    try:
        db.execute(text("SELECT 1"))
    finally:
        db.close()


@router.get("")
async def health_check(store: JobStore = Depends(get_store)):
    """
    Health check endpoint for deployment monitoring.

    Returns 200 with status "ok" when the store is reachable, "degraded"
    otherwise.
    """
    status = "ok"

    if isinstance(store, SqlJobStore):
        try:
            await run_in_threadpool(_ping_database, store)
            db_status = "connected"
        except Exception as e:
            db_status = f"error: {str(e)}"
            status = "degraded"
    else:
        db_status = "memory"

    return {
        "status": status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": db_status,
    }
