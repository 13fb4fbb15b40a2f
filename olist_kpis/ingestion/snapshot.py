"""
Source Snapshot

Immutable, schema-conformed view of the five Olist base tables. Every KPI
view is a pure function of a Snapshot; nothing downstream mutates it.

Snapshots come either from the relational store (SnapshotLoader) or from
in-memory polars frames (Snapshot.from_frames).
"""

import hashlib
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

import polars as pl
import structlog
from sqlalchemy import select
from sqlalchemy.engine import Engine

from olist_kpis.database.models import (
    CategoryTranslation,
    Customer,
    Order,
    OrderItem,
    Product,
)

logger = structlog.get_logger(__name__)

TIMESTAMP = pl.Datetime("us")


class RawTable(str, Enum):
    """Base tables read by the pipeline"""
    ORDERS = "orders"
    ORDER_ITEMS = "order_items"
    CUSTOMERS = "customers"
    PRODUCTS = "products"
    CATEGORY_TRANSLATION = "category_translation"


TABLE_SCHEMAS: Dict[RawTable, Dict[str, pl.DataType]] = {
    RawTable.ORDERS: {
        "order_id": pl.Utf8,
        "customer_id": pl.Utf8,
        "order_status": pl.Utf8,
        "order_purchase_timestamp": TIMESTAMP,
        "order_approved_at": TIMESTAMP,
        "order_delivered_carrier_date": TIMESTAMP,
        "order_delivered_customer_date": TIMESTAMP,
        "order_estimated_delivery_date": TIMESTAMP,
    },
    RawTable.ORDER_ITEMS: {
        "order_id": pl.Utf8,
        "order_item_id": pl.Int64,
        "product_id": pl.Utf8,
        "seller_id": pl.Utf8,
        "shipping_limit_date": TIMESTAMP,
        "price": pl.Float64,
        "freight_value": pl.Float64,
    },
    RawTable.CUSTOMERS: {
        "customer_id": pl.Utf8,
        "customer_unique_id": pl.Utf8,
        "customer_zip_code_prefix": pl.Int64,
        "customer_city": pl.Utf8,
        "customer_state": pl.Utf8,
    },
    RawTable.PRODUCTS: {
        "product_id": pl.Utf8,
        "product_category_name": pl.Utf8,
    },
    RawTable.CATEGORY_TRANSLATION: {
        "product_category_name": pl.Utf8,
        "product_category_name_english": pl.Utf8,
    },
}

# Columns the views cannot do without; the rest are filled with nulls if absent
REQUIRED_COLUMNS: Dict[RawTable, List[str]] = {
    RawTable.ORDERS: ["order_id", "customer_id", "order_status", "order_purchase_timestamp"],
    RawTable.ORDER_ITEMS: ["order_id", "order_item_id", "product_id", "price"],
    RawTable.CUSTOMERS: ["customer_id", "customer_unique_id"],
    RawTable.PRODUCTS: ["product_id", "product_category_name"],
    RawTable.CATEGORY_TRANSLATION: ["product_category_name", "product_category_name_english"],
}

TABLE_MODELS = {
    RawTable.ORDERS: Order,
    RawTable.ORDER_ITEMS: OrderItem,
    RawTable.CUSTOMERS: Customer,
    RawTable.PRODUCTS: Product,
    RawTable.CATEGORY_TRANSLATION: CategoryTranslation,
}


class SnapshotSchemaError(ValueError):
    """A base table is missing columns the views depend on"""

    def __init__(self, table: RawTable, missing: List[str]):
        self.table = table
        self.missing = missing
        super().__init__(f"Table '{table.value}' is missing required columns: {missing}")


def _conform_column(name: str, source: pl.DataType, target: pl.DataType) -> pl.Expr:
    """Cast one column to its target dtype, parsing text timestamps"""
    col = pl.col(name)
    if target == TIMESTAMP and source == pl.Utf8:
        return col.str.to_datetime(time_unit="us", strict=False)
    return col.cast(target)


def conform_frame(df: pl.DataFrame, table: RawTable) -> pl.DataFrame:
    """
    Select and cast the columns of one base table.

    Raises:
        SnapshotSchemaError: if a required column is absent
    """
    missing = [c for c in REQUIRED_COLUMNS[table] if c not in df.columns]
    if missing:
        raise SnapshotSchemaError(table, missing)

    exprs = []
    for name, dtype in TABLE_SCHEMAS[table].items():
        if name in df.columns:
            exprs.append(_conform_column(name, df.schema[name], dtype).alias(name))
        else:
            exprs.append(pl.lit(None, dtype=dtype).alias(name))

    return df.select(exprs)


def empty_frame(table: RawTable) -> pl.DataFrame:
    """Zero-row frame with the table's schema"""
    return pl.DataFrame(schema=TABLE_SCHEMAS[table])


@dataclass(frozen=True)
class Snapshot:
    """Immutable set of the five base tables"""
    orders: pl.DataFrame
    order_items: pl.DataFrame
    customers: pl.DataFrame
    products: pl.DataFrame
    category_translation: pl.DataFrame
    loaded_at: Optional[datetime] = None

    @classmethod
    def from_frames(
        cls,
        orders: pl.DataFrame,
        order_items: pl.DataFrame,
        customers: pl.DataFrame,
        products: pl.DataFrame,
        category_translation: Optional[pl.DataFrame] = None,
    ) -> "Snapshot":
        """Build a snapshot from raw frames, conforming each to its schema"""
        if category_translation is None:
            category_translation = empty_frame(RawTable.CATEGORY_TRANSLATION)

        return cls(
            orders=conform_frame(orders, RawTable.ORDERS),
            order_items=conform_frame(order_items, RawTable.ORDER_ITEMS),
            customers=conform_frame(customers, RawTable.CUSTOMERS),
            products=conform_frame(products, RawTable.PRODUCTS),
            category_translation=conform_frame(category_translation, RawTable.CATEGORY_TRANSLATION),
            loaded_at=datetime.utcnow(),
        )

    def frame(self, table: RawTable) -> pl.DataFrame:
        """Frame for a base table"""
        return getattr(self, table.value)

    @property
    def row_counts(self) -> Dict[str, int]:
        return {table.value: self.frame(table).height for table in RawTable}

    def fingerprint(self) -> str:
        """
        Content hash of the snapshot.

        Independent of row order; changes whenever any base table changes, so
        it can key cached reports. Row hashes are only stable within one polars
        release, so the polars version is part of the digest: an upgrade yields
        new fingerprints instead of colliding with payloads cached by the old one.
        """
        digest = hashlib.sha256(f"polars={pl.__version__};".encode())
        for table in RawTable:
            frame = self.frame(table)
            digest.update(f"{table.value}:{frame.height};".encode())
            if frame.height:
                row_hash = frame.hash_rows(seed=0, seed_1=1, seed_2=2, seed_3=3).sum()
                digest.update(str(row_hash).encode())
        return digest.hexdigest()[:16]


class SnapshotLoader:
    """
    Reads the base tables from the relational store.

    Example:
        loader = SnapshotLoader(init_database())
        snapshot = loader.load()
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    def _read_table(self, table: RawTable, conn) -> pl.DataFrame:
        model = TABLE_MODELS[table]
        df = pl.read_database(
            select(model.__table__),
            conn,
            infer_schema_length=None,
        )
        logger.debug("Read source table", table=table.value, rows=df.height)
        return df

    def load(self) -> Snapshot:
        """Read all base tables and conform them into a Snapshot"""
        started_at = datetime.utcnow()

        with self.engine.connect() as conn:
            frames = {table: self._read_table(table, conn) for table in RawTable}

        snapshot = Snapshot.from_frames(
            orders=frames[RawTable.ORDERS],
            order_items=frames[RawTable.ORDER_ITEMS],
            customers=frames[RawTable.CUSTOMERS],
            products=frames[RawTable.PRODUCTS],
            category_translation=frames[RawTable.CATEGORY_TRANSLATION],
        )

        logger.info(
            "Snapshot loaded",
            duration_seconds=(datetime.utcnow() - started_at).total_seconds(),
            fingerprint=snapshot.fingerprint(),
            **snapshot.row_counts,
        )
        return snapshot
