"""
Delivery Performance

On-time delivery and lead time per purchase month. Only delivered orders with
both a customer delivery date and an estimated delivery date are measured.
"""

import polars as pl

from olist_kpis.ingestion.snapshot import Snapshot

from .facts import DELIVERED_STATUS, dated, delivered_orders, month_start

SECONDS_PER_DAY = 86_400


def delivery_performance(snapshot: Snapshot, status: str = DELIVERED_STATUS) -> pl.DataFrame:
    """
    Returns:
        DataFrame[month, measured_orders, on_time_orders, on_time_rate,
        avg_delivery_days] ordered by month
    """
    measured = dated(delivered_orders(snapshot, status), view="delivery_performance").filter(
        pl.col("order_delivered_customer_date").is_not_null()
        & pl.col("order_estimated_delivery_date").is_not_null()
    )

    return (
        measured
        .with_columns([
            month_start("order_purchase_timestamp").alias("month"),
            (
                pl.col("order_delivered_customer_date").dt.date()
                <= pl.col("order_estimated_delivery_date").dt.date()
            ).alias("on_time"),
            (
                (pl.col("order_delivered_customer_date") - pl.col("order_purchase_timestamp"))
                .dt.total_seconds() / SECONDS_PER_DAY
            ).alias("delivery_days"),
        ])
        .group_by("month")
        .agg([
            pl.len().cast(pl.Int64).alias("measured_orders"),
            pl.col("on_time").sum().cast(pl.Int64).alias("on_time_orders"),
            pl.col("delivery_days").mean().round(2).alias("avg_delivery_days"),
        ])
        .with_columns(
            (pl.col("on_time_orders") / pl.col("measured_orders")).round(4).alias("on_time_rate")
        )
        .select(["month", "measured_orders", "on_time_orders", "on_time_rate", "avg_delivery_days"])
        .sort("month")
    )
