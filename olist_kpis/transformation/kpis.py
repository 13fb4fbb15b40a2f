"""
Monthly Business KPIs

Revenue, distinct delivered orders and average order value per calendar
month of purchase.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

import polars as pl
import structlog

from .facts import dated, month_start

logger = structlog.get_logger(__name__)


def round_half_up(numerator: Optional[float], denominator: int = 1, places: int = 2) -> Optional[float]:
    """
    numerator / denominator rounded half-up, as SQL ROUND on NUMERIC does.

    The division happens in Decimal: a float quotient such as 1004.55 / 6
    lands just below the tie and would round down.
    """
    if numerator is None or not denominator:
        return None
    quantum = Decimal(1).scaleb(-places)
    quotient = Decimal(repr(numerator)) / denominator
    return float(quotient.quantize(quantum, rounding=ROUND_HALF_UP))


def monthly_kpis(fact: pl.DataFrame, aov_decimals: int = 2) -> pl.DataFrame:
    """
    Aggregate the delivered fact view by purchase month.

    Months without delivered orders are absent from the output; consumers
    should read a missing month as zero. Fact rows without a purchase
    timestamp are skipped.

    Returns:
        DataFrame[month, total_orders, revenue, aov] ordered by month
    """
    monthly = (
        dated(fact, view="monthly_kpis")
        .group_by(month_start("order_purchase_timestamp").alias("month"))
        .agg([
            pl.col("order_id").n_unique().cast(pl.Int64).alias("total_orders"),
            pl.col("price").sum().round(2).alias("revenue"),
        ])
        .sort("month")
    )

    aov = [
        round_half_up(revenue, orders, aov_decimals)
        for revenue, orders in zip(monthly["revenue"].to_list(), monthly["total_orders"].to_list())
    ]

    monthly = monthly.with_columns(pl.Series("aov", aov, dtype=pl.Float64))
    logger.debug("Monthly KPIs computed", months=monthly.height)
    return monthly
