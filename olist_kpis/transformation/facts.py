"""
Delivered Order Items (core fact view)

One row per (order, item) of a delivered order, carrying the durable customer
identity. Every revenue metric downstream is computed from this frame; the
orders table itself holds no monetary values.
"""

import polars as pl
import structlog

from olist_kpis.database.models import OrderStatus
from olist_kpis.ingestion.snapshot import Snapshot

logger = structlog.get_logger(__name__)

DELIVERED_STATUS = OrderStatus.DELIVERED.value

FACT_COLUMNS = [
    "order_id",
    "order_purchase_timestamp",
    "customer_unique_id",
    "product_id",
    "price",
    "freight_value",
]


def delivered_orders(snapshot: Snapshot, status: str = DELIVERED_STATUS) -> pl.DataFrame:
    """Orders whose status equals the delivered value exactly"""
    return snapshot.orders.filter(pl.col("order_status") == status)


def delivered_order_items(snapshot: Snapshot, status: str = DELIVERED_STATUS) -> pl.DataFrame:
    """
    Build the delivered fact view.

    Inner-join semantics: delivered orders with no items or whose customer_id
    has no customers row are excluded. The drops are counted and logged.

    Args:
        snapshot: Source tables
        status: Status value of a completed order (case and spelling sensitive)

    Returns:
        DataFrame with FACT_COLUMNS
    """
    orders = delivered_orders(snapshot, status).select(
        ["order_id", "customer_id", "order_purchase_timestamp"]
    )
    items = snapshot.order_items.select(["order_id", "product_id", "price", "freight_value"])
    customers = snapshot.customers.select(["customer_id", "customer_unique_id"])

    without_items = orders.join(items, on="order_id", how="anti").height
    without_customer = orders.join(customers, on="customer_id", how="anti").height
    if without_items or without_customer:
        logger.warning(
            "Delivered orders excluded from fact view",
            delivered_orders_without_items=without_items,
            delivered_orders_without_customer=without_customer,
        )

    fact = (
        orders
        .join(items, on="order_id", how="inner")
        .join(customers, on="customer_id", how="inner")
        .select(FACT_COLUMNS)
    )

    logger.info(
        "Delivered fact view built",
        delivered_orders=orders.height,
        fact_rows=fact.height,
    )
    return fact


def month_start(column: str) -> pl.Expr:
    """Calendar-month truncation of a timestamp column, as a date"""
    return pl.col(column).dt.truncate("1mo").cast(pl.Date)


def dated(frame: pl.DataFrame, column: str = "order_purchase_timestamp", view: str = "fact") -> pl.DataFrame:
    """
    Rows carrying a purchase timestamp.

    Month-bucketed views cannot place an undated row, so they skip it; the
    skipped count is logged. Views that ignore time keep these rows.
    """
    undated = frame.get_column(column).null_count()
    if undated:
        logger.warning("Rows without purchase timestamp excluded", view=view, rows=undated)
    return frame.filter(pl.col(column).is_not_null())
