#!/usr/bin/env python3
"""
Export Compliance API - application factory and default app instance.
"""

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from core.config import settings
from api.middleware.logging import LoggingMiddleware
from api.routers import compliance, health
from services.compliance_engine import ComplianceEngine

# Configure logging
logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)


def create_default_engine() -> ComplianceEngine:
    """Construct the engine from settings: catalog source and record store backend."""
    from db.store import create_store
    from etl.catalog_loader import load_catalog_file
    from services.catalog import create_default_catalog

    if settings.catalog_path:
        catalog = load_catalog_file(settings.catalog_path)
        logger.info(f"Catalog loaded from {settings.catalog_path}")
    else:
        catalog = create_default_catalog()
    store = create_store(settings.store_backend)
    return ComplianceEngine(store=store, catalog=catalog, settings=settings)


def create_app(engine: Optional[ComplianceEngine] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        engine: Compliance engine to serve; built from settings when omitted

    Returns:
        Configured FastAPI app with the engine on app.state
    """
    app = FastAPI(
        title=settings.project_name,
        version=settings.version,
        description="Export compliance tracking for agricultural batches: records, ledgers, "
                    "risk, timeline, cost and export readiness"
    )
    app.state.compliance_engine = engine or create_default_engine()

    app.add_middleware(LoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=settings.allowed_methods,
        allow_headers=settings.allowed_headers,
    )

    # Expose health checks both at root and versioned paths
    app.include_router(health.router)
    app.include_router(health.router, prefix=settings.api_v1_prefix)
    app.include_router(compliance.router, prefix=settings.api_v1_prefix)
    logger.info(f"Compliance and health routers included under {settings.api_v1_prefix}")
    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
