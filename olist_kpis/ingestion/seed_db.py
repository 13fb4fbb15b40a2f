"""
Development Database Seeding

Creates the base tables and fills them from a snapshot, typically one built
by SnapshotGenerator. Never used against a production store.
"""

from typing import Any, Dict, List

import structlog
from sqlalchemy import delete, insert
from sqlalchemy.engine import Engine

from olist_kpis.database.models import Base
from olist_kpis.ingestion.snapshot import TABLE_MODELS, RawTable, Snapshot

logger = structlog.get_logger(__name__)

CHUNK_SIZE = 1000

# Lookup tables first
LOAD_ORDER = [
    RawTable.CATEGORY_TRANSLATION,
    RawTable.PRODUCTS,
    RawTable.CUSTOMERS,
    RawTable.ORDERS,
    RawTable.ORDER_ITEMS,
]


def execute_batch_insert(conn, table: RawTable, records: List[Dict[str, Any]]) -> int:
    """Insert records in chunks"""
    model = TABLE_MODELS[table]
    for i in range(0, len(records), CHUNK_SIZE):
        conn.execute(insert(model), records[i:i + CHUNK_SIZE])
    logger.info(f"Inserted {len(records)} records into {model.__tablename__}")
    return len(records)


def seed_database(engine: Engine, snapshot: Snapshot, replace: bool = True) -> Dict[str, int]:
    """
    Create the base tables and load a snapshot into them.

    Args:
        engine: Target engine
        snapshot: Rows to load
        replace: Delete existing rows first

    Returns:
        Inserted row count per table
    """
    Base.metadata.create_all(engine)

    inserted = {}
    with engine.begin() as conn:
        if replace:
            for table in reversed(LOAD_ORDER):
                conn.execute(delete(TABLE_MODELS[table]))

        for table in LOAD_ORDER:
            records = snapshot.frame(table).to_dicts()
            inserted[table.value] = execute_batch_insert(conn, table, records) if records else 0

    logger.info("Database seeded", **inserted)
    return inserted
