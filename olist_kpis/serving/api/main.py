"""
FastAPI Application Factory

Creates and configures the report API application.
"""

from typing import Callable, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from olist_kpis.config import get_settings
from olist_kpis.serving.api.middleware import RequestLoggingMiddleware
from olist_kpis.serving.api.routes import health_router, reports_router


def create_api_app(lifespan: Optional[Callable] = None) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        lifespan: Startup/shutdown context manager

    Returns:
        Configured FastAPI app instance
    """
    settings = get_settings()
    docs_url = None if settings.is_production else "/docs"

    app = FastAPI(
        title="Olist KPI API",
        description="Monthly KPIs, cohorts, category revenue and revenue concentration",
        version=settings.version,
        docs_url=docs_url,
        redoc_url=None if settings.is_production else "/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(health_router, prefix="/api/v1", tags=["Health"])
    app.include_router(reports_router, prefix="/api/v1/reports", tags=["Reports"])

    @app.get("/api/v1/info")
    async def api_info():
        """API information endpoint."""
        return {
            "name": settings.app_name,
            "version": settings.version,
            "environment": settings.app_env,
            "documentation": docs_url,
        }

    return app
