"""
Revenue Concentration

How revenue and order frequency are distributed across customers:
- revenue_deciles: NTILE-style buckets over customers ranked by revenue
- order_count_distribution: customers per number of delivered orders
- top_customers: highest-revenue customers
"""

import polars as pl


def _rank_by_revenue(customers: pl.DataFrame) -> pl.DataFrame:
    """Highest revenue first; ties broken by customer_unique_id for a stable order"""
    return customers.sort(
        ["total_revenue", "customer_unique_id"],
        descending=[True, False],
    )


def ntile(n_rows: int, buckets: int) -> pl.Expr:
    """
    1-based bucket number of each row position, with SQL NTILE semantics.

    The first `n_rows % buckets` buckets hold one extra row. With fewer rows
    than buckets every row gets its own bucket.
    """
    size, remainder = divmod(n_rows, buckets)
    large_rows = remainder * (size + 1)
    position = pl.int_range(0, pl.len(), dtype=pl.Int64)

    return (
        pl.when(position < large_rows)
        .then(position // (size + 1) + 1)
        .otherwise(remainder + (position - large_rows) // max(size, 1) + 1)
    )


def revenue_deciles(customers: pl.DataFrame, buckets: int = 10) -> pl.DataFrame:
    """
    Bucket customers by total_revenue, decile 1 holding the top earners.

    Args:
        customers: Customer summary (customer_unique_id, total_revenue, ...)
        buckets: Number of buckets (10 for deciles)

    Returns:
        DataFrame[decile, customers, revenue, revenue_share] ordered by decile
    """
    if buckets < 1:
        raise ValueError("buckets must be at least 1")

    ranked = _rank_by_revenue(customers)
    total = ranked["total_revenue"].sum() if ranked.height else 0.0

    deciles = (
        ranked
        .with_columns(ntile(ranked.height, buckets).cast(pl.Int64).alias("decile"))
        .group_by("decile")
        .agg([
            pl.len().cast(pl.Int64).alias("customers"),
            pl.col("total_revenue").sum().round(2).alias("revenue"),
        ])
        .sort("decile")
    )

    return deciles.with_columns(
        (pl.col("revenue") / total if total else pl.lit(None, dtype=pl.Float64))
        .alias("revenue_share")
    )


def order_count_distribution(customers: pl.DataFrame) -> pl.DataFrame:
    """
    Returns:
        DataFrame[order_count, customers] ordered by order_count
    """
    return (
        customers
        .group_by("order_count")
        .agg(pl.len().cast(pl.Int64).alias("customers"))
        .sort("order_count")
    )


def top_customers(customers: pl.DataFrame, limit: int = 10) -> pl.DataFrame:
    """
    Returns:
        DataFrame[customer_unique_id, total_revenue] for the `limit` highest earners
    """
    return _rank_by_revenue(customers).select(["customer_unique_id", "total_revenue"]).head(limit)
