"""
Database Connection Management

SQLAlchemy 2.0 engine used to read the source tables.
Implements lazy initialization, health checks, and graceful shutdown.
"""

import time
from contextlib import contextmanager
from typing import Iterator, Optional

import structlog
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine

from olist_kpis.config import get_settings

logger = structlog.get_logger(__name__)

# Global engine
_engine: Optional[Engine] = None


def init_database(url: Optional[str] = None) -> Engine:
    """
    Initialize the database engine.

    Args:
        url: SQLAlchemy URL; defaults to the configured database

    Returns:
        Engine: The initialized database engine
    """
    global _engine

    if _engine is not None:
        logger.warning("Database already initialized")
        return _engine

    settings = get_settings()
    database_url = url or settings.database.sync_url

    engine_config = {
        "echo": settings.database.echo,
        "pool_pre_ping": True,
    }
    if not database_url.startswith("sqlite"):
        engine_config["pool_size"] = settings.database.pool_size

    _engine = create_engine(database_url, **engine_config)

    # Verify connection
    try:
        with _engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info(
            "Database connection established",
            dialect=_engine.dialect.name,
            database=_engine.url.database,
        )
    except Exception as e:
        logger.error("Failed to connect to database", error=str(e))
        _engine.dispose()
        _engine = None
        raise

    return _engine


def close_database() -> None:
    """Dispose of the engine and its connection pool."""
    global _engine

    if _engine is not None:
        _engine.dispose()
        _engine = None
        logger.info("Database connection pool closed")


def get_engine() -> Engine:
    """
    Get the database engine.

    Raises:
        RuntimeError: If database is not initialized
    """
    if _engine is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")
    return _engine


@contextmanager
def get_connection() -> Iterator[Connection]:
    """
    Get a read connection from the pool.

    Example:
        with get_connection() as conn:
            df = pl.read_database(query, conn)
    """
    engine = get_engine()
    with engine.connect() as conn:
        yield conn


def check_database_health() -> dict:
    """
    Check database health status.

    Returns:
        dict: Health status with latency information
    """
    try:
        start = time.perf_counter()
        with get_connection() as conn:
            conn.execute(text("SELECT 1"))
        latency_ms = (time.perf_counter() - start) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(latency_ms, 2),
        }
    except Exception as e:
        return {
            "status": "unhealthy",
            "error": str(e),
        }
