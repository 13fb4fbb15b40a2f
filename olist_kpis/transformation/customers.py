"""
Customer Order Summary

Per-customer repeat behavior over the full delivered history, keyed by
customer_unique_id (customer_id is per order and never used here).
"""

import polars as pl


def customer_summary(fact: pl.DataFrame) -> pl.DataFrame:
    """
    Returns:
        DataFrame[customer_unique_id, order_count, total_revenue]
        ordered by customer_unique_id
    """
    return (
        fact
        .group_by("customer_unique_id")
        .agg([
            pl.col("order_id").n_unique().cast(pl.Int64).alias("order_count"),
            pl.col("price").sum().round(2).alias("total_revenue"),
        ])
        .sort("customer_unique_id")
    )
