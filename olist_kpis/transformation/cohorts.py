"""
Customer Cohorts & Retention

Chain of derivations over the delivered fact view:

1. customer_cohorts: first delivered purchase month per customer
2. customer_activity: distinct months in which each customer bought
3. cohort_retention: distinct active customers per (cohort, activity month)
4. cohort_sizes: starting population of each cohort
5. retention_rates: active / cohort size, computed on read and never stored

Rows are ordered by cohort_month then month_number so a retention triangle
can be rendered directly.
"""

import polars as pl
import structlog

from .facts import dated, month_start

logger = structlog.get_logger(__name__)


def months_between(start: str, end: str) -> pl.Expr:
    """Whole calendar months from the start date column to the end date column"""
    return (
        (pl.col(end).dt.year().cast(pl.Int32) - pl.col(start).dt.year().cast(pl.Int32)) * 12
        + (pl.col(end).dt.month().cast(pl.Int32) - pl.col(start).dt.month().cast(pl.Int32))
    )


def customer_cohorts(fact: pl.DataFrame) -> pl.DataFrame:
    """
    Returns:
        DataFrame[customer_unique_id, cohort_month]
    """
    return (
        dated(fact, view="customer_cohorts")
        .group_by("customer_unique_id")
        .agg(pl.col("order_purchase_timestamp").min().alias("first_purchase"))
        .select([
            "customer_unique_id",
            month_start("first_purchase").alias("cohort_month"),
        ])
        .sort("customer_unique_id")
    )


def customer_activity(fact: pl.DataFrame) -> pl.DataFrame:
    """
    Returns:
        DataFrame[customer_unique_id, activity_month], one row per active month
    """
    return (
        dated(fact, view="customer_activity")
        .select([
            "customer_unique_id",
            month_start("order_purchase_timestamp").alias("activity_month"),
        ])
        .unique()
        .sort(["customer_unique_id", "activity_month"])
    )


def cohort_retention(cohorts: pl.DataFrame, activity: pl.DataFrame) -> pl.DataFrame:
    """
    Join cohort assignment to activity and count active customers per cell.

    Returns:
        DataFrame[cohort_month, activity_month, month_number, active_customers]
    """
    retention = (
        cohorts
        .join(activity, on="customer_unique_id", how="inner")
        .with_columns(months_between("cohort_month", "activity_month").alias("month_number"))
        .group_by(["cohort_month", "activity_month", "month_number"])
        .agg(pl.col("customer_unique_id").n_unique().cast(pl.Int64).alias("active_customers"))
        .sort(["cohort_month", "month_number"])
    )

    negative = retention.filter(pl.col("month_number") < 0).height
    if negative:
        # Unreachable when cohorts and activity come from the same fact frame
        logger.error("Retention cells precede their cohort", cells=negative)

    return retention


def cohort_sizes(cohorts: pl.DataFrame) -> pl.DataFrame:
    """
    Returns:
        DataFrame[cohort_month, cohort_size] ordered by cohort_month
    """
    return (
        cohorts
        .group_by("cohort_month")
        .agg(pl.col("customer_unique_id").n_unique().cast(pl.Int64).alias("cohort_size"))
        .sort("cohort_month")
    )


def retention_rates(retention: pl.DataFrame, sizes: pl.DataFrame) -> pl.DataFrame:
    """
    Attach cohort_size and retention_rate (active_customers / cohort_size)
    to each retention cell.
    """
    return (
        retention
        .join(sizes, on="cohort_month", how="left")
        .with_columns(
            (pl.col("active_customers") / pl.col("cohort_size")).alias("retention_rate")
        )
        .sort(["cohort_month", "month_number"])
    )


def retention_matrix(rates: pl.DataFrame) -> pl.DataFrame:
    """Pivot retention rates into one row per cohort and one column per month_number"""
    if rates.is_empty():
        return pl.DataFrame(schema={"cohort_month": pl.Date})

    matrix = (
        rates
        .with_columns(pl.col("month_number").cast(pl.Utf8))
        .pivot(on="month_number", index="cohort_month", values="retention_rate")
        .sort("cohort_month")
    )
    # month columns in numeric order
    months = sorted((c for c in matrix.columns if c != "cohort_month"), key=int)
    return matrix.select(["cohort_month", *months])
