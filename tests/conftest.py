"""
Test Suite Configuration

The `snapshot` fixture is a small hand-built Olist snapshot:

- person A (c1, c2): delivered o1 (Jan, two items) and o2 (Mar)
- person B (c3, c8): delivered o3 (Jan, late) and o8 (Feb, no delivery date)
- person C (c4): o4 shipped
- person D (c5): o5 with the misspelled status "deliverd"
- person E (c6): o6 delivered without items
- o7 is delivered but its customer_id c7 has no customers row
- p2 (pc_gamer) has no translation, p4 has no category
"""
from datetime import datetime

import polars as pl
import pytest

from olist_kpis.config import Settings
from olist_kpis.config.settings import KpiSettings
from olist_kpis.ingestion.snapshot import Snapshot
from olist_kpis.transformation.pipeline import KpiPipeline


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        APP_ENV="testing",
        DEBUG=True,
    )


@pytest.fixture
def orders_df() -> pl.DataFrame:
    return pl.DataFrame({
        "order_id": ["o1", "o2", "o3", "o4", "o5", "o6", "o7", "o8"],
        "customer_id": ["c1", "c2", "c3", "c4", "c5", "c6", "c7", "c8"],
        "order_status": [
            "delivered", "delivered", "delivered", "shipped",
            "deliverd", "delivered", "delivered", "delivered",
        ],
        "order_purchase_timestamp": [
            datetime(2017, 1, 10, 10, 0),
            datetime(2017, 3, 5),
            datetime(2017, 1, 15),
            datetime(2017, 1, 20),
            datetime(2017, 2, 1),
            datetime(2017, 2, 11),
            datetime(2017, 2, 12),
            datetime(2017, 2, 3),
        ],
        "order_delivered_customer_date": [
            datetime(2017, 1, 20, 10, 0),
            datetime(2017, 3, 30, 12, 0),
            datetime(2017, 2, 20),
            None,
            datetime(2017, 2, 10),
            datetime(2017, 2, 20),
            datetime(2017, 2, 15),
            None,
        ],
        "order_estimated_delivery_date": [
            datetime(2017, 1, 25),
            datetime(2017, 3, 30),
            datetime(2017, 2, 10),
            datetime(2017, 2, 5),
            datetime(2017, 2, 15),
            datetime(2017, 2, 28),
            datetime(2017, 2, 20),
            datetime(2017, 2, 25),
        ],
    })


@pytest.fixture
def order_items_df() -> pl.DataFrame:
    return pl.DataFrame({
        "order_id": ["o1", "o1", "o2", "o3", "o4", "o5", "o7", "o8"],
        "order_item_id": [1, 2, 1, 1, 1, 1, 1, 1],
        "product_id": ["p1", "p2", "p3", "p1", "p2", "p1", "p2", "p4"],
        "price": [100.00, 50.00, 30.00, 80.00, 999.00, 500.00, 70.00, 20.00],
        "freight_value": [10.00, 5.00, 8.00, 12.00, 0.00, 0.00, 0.00, 4.50],
    })


@pytest.fixture
def customers_df() -> pl.DataFrame:
    return pl.DataFrame({
        "customer_id": ["c1", "c2", "c3", "c4", "c5", "c6", "c8"],
        "customer_unique_id": ["A", "A", "B", "C", "D", "E", "B"],
        "customer_state": ["SP", "SP", "RJ", "MG", "SP", "PR", "RJ"],
    })


@pytest.fixture
def products_df() -> pl.DataFrame:
    return pl.DataFrame(
        {
            "product_id": ["p1", "p2", "p3", "p4"],
            "product_category_name": ["beleza_saude", "pc_gamer", "esporte_lazer", None],
        },
        schema={"product_id": pl.Utf8, "product_category_name": pl.Utf8},
    )


@pytest.fixture
def translation_df() -> pl.DataFrame:
    return pl.DataFrame({
        "product_category_name": ["beleza_saude", "esporte_lazer"],
        "product_category_name_english": ["health_beauty", "sports_leisure"],
    })


@pytest.fixture
def snapshot(orders_df, order_items_df, customers_df, products_df, translation_df) -> Snapshot:
    return Snapshot.from_frames(
        orders=orders_df,
        order_items=order_items_df,
        customers=customers_df,
        products=products_df,
        category_translation=translation_df,
    )


@pytest.fixture
def pipeline(tmp_path) -> KpiPipeline:
    return KpiPipeline(
        kpi_settings=KpiSettings(),
        run_quality_checks=True,
        status_probes=["deliverd"],
        output_path=str(tmp_path / "curated"),
    )


def _make_fact(rows) -> pl.DataFrame:
    return pl.DataFrame(
        {
            "order_id": [r[0] for r in rows],
            "order_purchase_timestamp": [r[1] for r in rows],
            "customer_unique_id": [r[2] for r in rows],
            "product_id": ["p1"] * len(rows),
            "price": [r[3] for r in rows],
            "freight_value": [0.0] * len(rows),
        },
        schema={
            "order_id": pl.Utf8,
            "order_purchase_timestamp": pl.Datetime("us"),
            "customer_unique_id": pl.Utf8,
            "product_id": pl.Utf8,
            "price": pl.Float64,
            "freight_value": pl.Float64,
        },
    )


@pytest.fixture
def make_fact():
    """Factory of delivered fact frames from (order_id, purchased, customer_unique_id, price) tuples"""
    return _make_fact
