"""
Unit Tests - Category, Concentration & Delivery Reports
"""
from datetime import date, datetime

import pytest
import polars as pl

from olist_kpis.ingestion.snapshot import Snapshot
from olist_kpis.transformation.facts import delivered_order_items
from olist_kpis.transformation.customers import customer_summary
from olist_kpis.transformation.categories import category_label, category_revenue
from olist_kpis.transformation.concentration import (
    ntile,
    order_count_distribution,
    revenue_deciles,
    top_customers,
)
from olist_kpis.transformation.delivery import delivery_performance


def customers_frame(revenues):
    """Customer summary with ids c00, c01, ... and the given revenues"""
    return pl.DataFrame(
        {
            "customer_unique_id": [f"c{i:02d}" for i in range(len(revenues))],
            "order_count": [1] * len(revenues),
            "total_revenue": revenues,
        },
        schema={"customer_unique_id": pl.Utf8, "order_count": pl.Int64, "total_revenue": pl.Float64},
    )


class TestCategoryRevenue:
    """Tests for revenue per category"""

    def test_category_revenue(self, snapshot):
        result = category_revenue(
            delivered_order_items(snapshot),
            snapshot.products,
            snapshot.category_translation,
        )

        assert result.to_dicts() == [
            {"category": "health_beauty", "revenue": 180.0, "orders": 2},
            {"category": "pc_gamer", "revenue": 50.0, "orders": 1},
            {"category": "sports_leisure", "revenue": 30.0, "orders": 1},
            {"category": "unknown", "revenue": 20.0, "orders": 1},
        ]

    def test_untranslated_falls_back_to_original(self, snapshot):
        result = category_revenue(
            delivered_order_items(snapshot),
            snapshot.products,
            snapshot.category_translation,
        )

        assert "pc_gamer" in result["category"].to_list()

    def test_unknown_label_configurable(self, snapshot):
        result = category_revenue(
            delivered_order_items(snapshot),
            snapshot.products,
            snapshot.category_translation,
            unknown_label="sem_categoria",
        )

        assert "sem_categoria" in result["category"].to_list()
        assert "unknown" not in result["category"].to_list()

    def test_revenue_totals_match_fact(self, snapshot):
        fact = delivered_order_items(snapshot)

        result = category_revenue(fact, snapshot.products, snapshot.category_translation)

        assert result["revenue"].sum() == pytest.approx(fact["price"].sum())

    def test_product_missing_from_catalog_excluded(self, snapshot):
        products = snapshot.products.filter(pl.col("product_id") != "p3")

        result = category_revenue(delivered_order_items(snapshot), products, snapshot.category_translation)

        assert "sports_leisure" not in result["category"].to_list()

    def test_without_translation_table(self, snapshot):
        translation = snapshot.category_translation.clear()

        result = category_revenue(delivered_order_items(snapshot), snapshot.products, translation)

        assert set(result["category"].to_list()) == {"beleza_saude", "pc_gamer", "esporte_lazer", "unknown"}

    def test_category_label(self):
        df = pl.DataFrame(
            {
                "product_category_name": ["a", "b", None],
                "product_category_name_english": ["A", None, None],
            },
            schema={"product_category_name": pl.Utf8, "product_category_name_english": pl.Utf8},
        )

        result = df.select(category_label().alias("label"))

        assert result["label"].to_list() == ["A", "b", "unknown"]


class TestNtile:
    """Tests for NTILE bucket assignment"""

    @pytest.mark.parametrize(
        "n_rows, buckets, expected",
        [
            (10, 10, [1] * 10),
            (25, 10, [3, 3, 3, 3, 3, 2, 2, 2, 2, 2]),
            (3, 10, [1, 1, 1]),
            (7, 3, [3, 2, 2]),
        ],
    )
    def test_bucket_sizes(self, n_rows, buckets, expected):
        df = pl.DataFrame({"x": list(range(n_rows))})

        buckets_col = df.select(ntile(n_rows, buckets).alias("bucket"))["bucket"]

        counts = buckets_col.value_counts().sort("bucket")["count"].to_list()
        assert counts == expected
        assert buckets_col.to_list() == sorted(buckets_col.to_list())


class TestRevenueDeciles:
    """Tests for revenue concentration buckets"""

    def test_top_spenders_in_first_decile(self):
        customers = customers_frame([float(v) for v in range(1, 21)])

        result = revenue_deciles(customers)

        assert result["decile"].to_list() == list(range(1, 11))
        assert result["customers"].to_list() == [2] * 10
        assert result["revenue"].to_list()[0] == 39.0
        assert result["revenue"].to_list()[-1] == 3.0

    def test_shares_sum_to_one(self):
        customers = customers_frame([5.0, 1.0, 3.0, 8.0, 2.5])

        result = revenue_deciles(customers)

        assert result["revenue_share"].sum() == pytest.approx(1.0)
        assert result["customers"].sum() == 5

    def test_fewer_customers_than_buckets(self, snapshot):
        result = revenue_deciles(customer_summary(delivered_order_items(snapshot)))

        assert result["decile"].to_list() == [1, 2]
        assert result["revenue"].to_list() == [180.0, 100.0]
        assert result["revenue_share"].to_list() == pytest.approx([180 / 280, 100 / 280])

    def test_ties_broken_by_customer_id(self):
        customers = customers_frame([10.0, 10.0])

        ranked = top_customers(customers, limit=2)

        assert ranked["customer_unique_id"].to_list() == ["c00", "c01"]

    def test_empty(self):
        result = revenue_deciles(customers_frame([]))

        assert result.height == 0

    def test_invalid_buckets(self):
        with pytest.raises(ValueError):
            revenue_deciles(customers_frame([1.0]), buckets=0)


class TestOrderFrequency:
    def test_distribution(self):
        customers = pl.DataFrame({
            "customer_unique_id": ["a", "b", "c", "d"],
            "order_count": [1, 1, 3, 1],
            "total_revenue": [1.0, 2.0, 3.0, 4.0],
        })

        result = order_count_distribution(customers)

        assert result.rows() == [(1, 3), (3, 1)]


class TestTopCustomers:
    def test_limit_and_order(self):
        customers = customers_frame([5.0, 50.0, 20.0, 1.0])

        result = top_customers(customers, limit=2)

        assert result.to_dicts() == [
            {"customer_unique_id": "c01", "total_revenue": 50.0},
            {"customer_unique_id": "c02", "total_revenue": 20.0},
        ]


class TestDeliveryPerformance:
    """Tests for on-time delivery per purchase month"""

    def test_delivery_performance(self, snapshot):
        result = delivery_performance(snapshot)

        assert result["month"].to_list() == [date(2017, 1, 1), date(2017, 2, 1), date(2017, 3, 1)]
        assert result["measured_orders"].to_list() == [2, 2, 1]
        assert result["on_time_orders"].to_list() == [1, 2, 1]
        assert result["on_time_rate"].to_list() == [0.5, 1.0, 1.0]
        assert result["avg_delivery_days"].to_list() == [23.0, 6.0, 25.5]

    def test_same_day_as_estimate_is_on_time(self, snapshot):
        """Delivered at noon on the estimated date counts as on time"""
        march = delivery_performance(snapshot).filter(pl.col("month") == date(2017, 3, 1))

        assert march["on_time_orders"].to_list() == [1]

    def test_missing_delivery_date_not_measured(self, orders_df, order_items_df, customers_df, products_df):
        orders = orders_df.filter(pl.col("order_id") == "o8")
        snapshot = Snapshot.from_frames(orders, order_items_df, customers_df, products_df)

        assert delivery_performance(snapshot).height == 0
