"""
FastAPI Production Application

Main entry point for the Olist KPI API.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
import structlog

from olist_kpis.config import get_settings
from olist_kpis.config.logging import configure_logging
from olist_kpis.database.connection import close_database, get_engine, init_database
from olist_kpis.ingestion.snapshot import Snapshot, SnapshotLoader
from olist_kpis.serving.api.main import create_api_app
from olist_kpis.serving.cache import close_redis, init_redis
from olist_kpis.serving.reports import ReportService, ReportUnavailableError

logger = structlog.get_logger(__name__)


def load_snapshot() -> Snapshot:
    """Read the current snapshot from the source database"""
    return SnapshotLoader(get_engine()).load()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()
    configure_logging()

    logger.info("Starting Olist KPI API", environment=settings.app_env)

    try:
        init_database()
        logger.info("Database initialized")
    except Exception as e:
        logger.warning(f"Database init failed: {e}")

    if settings.redis.enabled:
        try:
            await init_redis()
            logger.info("Redis initialized")
        except Exception as e:
            logger.warning(f"Redis init failed, serving without cache: {e}")

    app.state.report_service = ReportService(load_snapshot)

    try:
        await app.state.report_service.refresh()
    except ReportUnavailableError as e:
        logger.warning(f"Initial report computation skipped: {e}")

    yield

    logger.info("Shutting down...")
    close_database()
    await close_redis()


app = create_api_app(lifespan=lifespan)


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
