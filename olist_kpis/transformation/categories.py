"""
Product Category Performance

Revenue and delivered order count per category, labelled in English where a
translation exists.
"""

import polars as pl
import structlog

logger = structlog.get_logger(__name__)

UNKNOWN_CATEGORY = "unknown"


def category_label(
    translated: str = "product_category_name_english",
    original: str = "product_category_name",
    unknown: str = UNKNOWN_CATEGORY,
) -> pl.Expr:
    """
    Resolve the display label of a category.

    Prefer the English translation, else the original (Portuguese) name.
    Products carrying no category at all fall into the `unknown` bucket.
    """
    return (
        pl.when(pl.col(translated).is_not_null())
        .then(pl.col(translated))
        .when(pl.col(original).is_not_null())
        .then(pl.col(original))
        .otherwise(pl.lit(unknown))
    )


def category_revenue(
    fact: pl.DataFrame,
    products: pl.DataFrame,
    category_translation: pl.DataFrame,
    unknown_label: str = UNKNOWN_CATEGORY,
) -> pl.DataFrame:
    """
    Aggregate delivered revenue by category.

    Fact rows whose product is missing from products are excluded (inner
    join); a missing translation falls back to the original name (left join).

    Returns:
        DataFrame[category, revenue, orders] ordered by revenue descending
    """
    enriched = (
        fact
        .join(products.select(["product_id", "product_category_name"]), on="product_id", how="inner")
        .join(category_translation, on="product_category_name", how="left")
    )

    uncategorized = enriched.filter(pl.col("product_category_name").is_null()).height
    if uncategorized:
        logger.warning(
            "Fact rows without product category bucketed",
            rows=uncategorized,
            label=unknown_label,
        )

    return (
        enriched
        .with_columns(category_label(unknown=unknown_label).alias("category"))
        .group_by("category")
        .agg([
            pl.col("price").sum().round(2).alias("revenue"),
            pl.col("order_id").n_unique().cast(pl.Int64).alias("orders"),
        ])
        .sort(["revenue", "category"], descending=[True, False])
    )
