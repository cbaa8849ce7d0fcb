# WORKFLOW: Health check endpoints for monitoring and operational status.
# Used by: Load balancers, monitoring systems, operational dashboards
# Endpoints:
# 1. /healthz - Process is up and serving
# 2. /readyz - Catalog loaded and record store reachable
# 3. /livez - Liveness check for Kubernetes probes
#
# Readiness flow: /readyz -> engine on app.state -> catalog markets + store ping -> ready/not_ready
# Unready services still answer 200; the body says which dependency failed.

from typing import Dict

from fastapi import APIRouter, Request
import logging

from core.clock import utc_now
from core.config import settings
from db.session import check_db_connection
from db.store import SqlComplianceStore

logger = logging.getLogger(__name__)

router = APIRouter()


def _store_reachable(engine) -> bool:
    """SQL stores are pinged; the in-memory store is reachable whenever the engine exists."""
    store = getattr(engine, "store", None)
    if store is None:
        return False
    if isinstance(store, SqlComplianceStore):
        return check_db_connection(store.bind)
    return True


@router.get("/healthz")
async def health_check():
    """Basic health check. Always healthy while the process serves requests."""
    return {
        "status": "healthy",
        "timestamp": utc_now().isoformat(),
        "version": settings.version,
        "environment": settings.environment
    }


@router.get("/readyz")
def readiness_check(request: Request):
    """
    Readiness check endpoint.

    Returns:
        Overall status, per-dependency checks, the served markets and the store backend
    """
    engine = getattr(request.app.state, "compliance_engine", None)
    checks: Dict[str, bool] = {"catalog": False, "record_store": False}
    markets = []

    try:
        markets = engine.catalog.markets() if engine is not None else []
        checks["catalog"] = bool(markets)
    except Exception as e:
        logger.error(f"Catalog health check failed: {e}")

    try:
        checks["record_store"] = _store_reachable(engine)
    except Exception as e:
        logger.error(f"Record store health check failed: {e}")

    is_ready = all(checks.values())
    if not is_ready:
        logger.warning(f"Service not ready: {checks}")

    return {
        "status": "ready" if is_ready else "not_ready",
        "timestamp": utc_now().isoformat(),
        "checks": checks,
        "markets": markets,
        "store_backend": "sql" if isinstance(getattr(engine, "store", None), SqlComplianceStore) else "memory",
        "version": settings.version
    }


@router.get("/livez")
async def liveness_check():
    """Liveness probe."""
    return {
        "status": "alive",
        "timestamp": utc_now().isoformat()
    }
