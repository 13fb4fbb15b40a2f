"""
Unit Tests - Report API
"""
import pytest
import polars as pl
from fastapi.testclient import TestClient

from olist_kpis.ingestion.snapshot import Snapshot
from olist_kpis.serving.api.main import create_api_app
from olist_kpis.serving.cache import CacheManager
from olist_kpis.serving.reports import ReportService


@pytest.fixture
def app(snapshot, pipeline):
    app = create_api_app()
    app.state.report_service = ReportService(
        lambda: snapshot,
        pipeline=pipeline,
        cache=CacheManager("test"),
    )
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


class TestReportEndpoints:
    """Tests for /api/v1/reports"""

    def test_monthly_kpis(self, client):
        response = client.get("/api/v1/reports/monthly-kpis")

        assert response.status_code == 200
        assert response.json() == [
            {"month": "2017-01-01", "total_orders": 2, "revenue": 230.0, "aov": 115.0},
            {"month": "2017-02-01", "total_orders": 1, "revenue": 20.0, "aov": 20.0},
            {"month": "2017-03-01", "total_orders": 1, "revenue": 30.0, "aov": 30.0},
        ]

    def test_customers_pagination(self, client):
        response = client.get("/api/v1/reports/customers", params={"limit": 1, "offset": 1})

        assert response.json() == [
            {"customer_unique_id": "B", "order_count": 2, "total_revenue": 100.0},
        ]

    def test_cohort_retention(self, client):
        body = client.get("/api/v1/reports/cohorts/retention").json()

        assert [cell["retention_rate"] for cell in body] == [1.0, 0.5, 0.5]
        assert body[0]["cohort_size"] == 2

    def test_cohort_matrix(self, client):
        body = client.get("/api/v1/reports/cohorts/matrix").json()

        assert body == [{"cohort_month": "2017-01-01", "rates": {"0": 1.0, "1": 0.5, "2": 0.5}}]

    def test_cohort_sizes(self, client):
        assert client.get("/api/v1/reports/cohorts/sizes").json() == [
            {"cohort_month": "2017-01-01", "cohort_size": 2},
        ]

    def test_categories(self, client):
        body = client.get("/api/v1/reports/categories").json()

        assert [c["category"] for c in body] == ["health_beauty", "pc_gamer", "sports_leisure", "unknown"]

    def test_concentration(self, client):
        deciles = client.get("/api/v1/reports/concentration/deciles").json()
        frequency = client.get("/api/v1/reports/concentration/order-frequency").json()
        top = client.get("/api/v1/reports/concentration/top-customers").json()

        assert [d["decile"] for d in deciles] == [1, 2]
        assert frequency == [{"order_count": 2, "customers": 2}]
        assert [c["customer_unique_id"] for c in top] == ["A", "B"]

    def test_delivery_performance(self, client):
        body = client.get("/api/v1/reports/delivery-performance").json()

        assert [m["on_time_rate"] for m in body] == [0.5, 1.0, 1.0]

    def test_quality(self, client):
        body = client.get("/api/v1/reports/quality").json()

        assert body["audit_enabled"] is True
        assert body["profile"]["order_grain_ok"] is True

    def test_status_and_refresh(self, client):
        assert client.get("/api/v1/reports/status").json()["loaded"] is False

        response = client.post("/api/v1/reports/refresh")

        assert response.status_code == 200
        body = response.json()
        assert body["loaded"] is True
        assert body["fact_rows"] == 5
        assert body["reports"]["monthly_kpis"]["succeeded"] is True

    def test_request_id_header(self, client):
        response = client.get("/api/v1/reports/monthly-kpis", headers={"X-Request-ID": "abc"})

        assert response.headers["X-Request-ID"] == "abc"


class TestUndatedOrders:
    """Delivered orders without a purchase timestamp"""

    @pytest.fixture
    def client(self, pipeline, orders_df, order_items_df, customers_df, products_df, translation_df):
        orders = orders_df.with_columns(
            pl.when(pl.col("order_id") == "o3")
            .then(None)
            .otherwise(pl.col("order_purchase_timestamp"))
            .alias("order_purchase_timestamp")
        )
        snapshot = Snapshot.from_frames(orders, order_items_df, customers_df, products_df, translation_df)
        app = create_api_app()
        app.state.report_service = ReportService(lambda: snapshot, pipeline=pipeline, cache=CacheManager("test"))

        with TestClient(app) as client:
            yield client

    @pytest.mark.parametrize(
        "path, month_field",
        [
            ("/api/v1/reports/monthly-kpis", "month"),
            ("/api/v1/reports/cohorts/retention", "cohort_month"),
            ("/api/v1/reports/cohorts/sizes", "cohort_month"),
            ("/api/v1/reports/cohorts/matrix", "cohort_month"),
            ("/api/v1/reports/delivery-performance", "month"),
        ],
    )
    def test_month_reports_skip_undated(self, client, path, month_field):
        response = client.get(path)

        assert response.status_code == 200
        assert all(row[month_field] is not None for row in response.json())

    def test_undated_revenue_kept_for_customers(self, client):
        body = client.get("/api/v1/reports/customers").json()

        assert {"customer_unique_id": "B", "order_count": 2, "total_revenue": 100.0} in body


class TestUnavailable:
    """Errors surface as 503"""

    def test_snapshot_load_failure(self, pipeline):
        def failing():
            raise ConnectionError("database down")

        app = create_api_app()
        app.state.report_service = ReportService(failing, pipeline=pipeline, cache=CacheManager("test"))

        with TestClient(app) as client:
            response = client.get("/api/v1/reports/monthly-kpis")

        assert response.status_code == 503
        assert "database down" in response.json()["detail"]

    def test_service_not_initialized(self):
        with TestClient(create_api_app()) as client:
            response = client.get("/api/v1/reports/monthly-kpis")

        assert response.status_code == 503


class TestHealthEndpoints:
    """Tests for health checks"""

    def test_liveness(self, client):
        assert client.get("/api/v1/health/live").json() == {"status": "alive"}

    def test_health_degraded_without_database(self, client):
        body = client.get("/api/v1/health").json()

        assert body["status"] == "degraded"
        assert body["checks"]["database"]["status"] == "unhealthy"

    def test_readiness_without_database(self, client):
        response = client.get("/api/v1/health/ready")

        assert response.status_code == 503

    def test_info(self, client):
        assert client.get("/api/v1/info").json()["documentation"] == "/docs"
