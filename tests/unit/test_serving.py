"""
Unit Tests - Report Cache & Report Service
"""
import fnmatch
from datetime import date

import pytest

from olist_kpis.ingestion.snapshot import Snapshot
from olist_kpis.serving import cache as cache_module
from olist_kpis.serving.cache import CacheManager
from olist_kpis.serving.reports import ReportService, ReportUnavailableError
from olist_kpis.transformation.pipeline import ReportName


class FakeRedis:
    """In-memory stand-in for redis.asyncio.Redis"""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    async def ping(self):
        return True

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value):
        self.store[key] = value

    async def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttls[key] = ttl

    async def scan_iter(self, match):
        for key in list(self.store):
            if fnmatch.fnmatch(key, match):
                yield key

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            removed += self.store.pop(key, None) is not None
        return removed


@pytest.fixture
def fake_redis(monkeypatch):
    redis = FakeRedis()
    monkeypatch.setattr(cache_module, "_redis_client", redis)
    return redis


class TestCacheManager:
    """Tests for CacheManager"""

    @pytest.mark.asyncio
    async def test_passthrough_without_redis(self):
        cache = CacheManager("test")
        calls = []

        async def factory():
            calls.append(1)
            return [1, 2]

        assert await cache.get_or_set("k", factory) == [1, 2]
        assert await cache.get_or_set("k", factory) == [1, 2]
        assert len(calls) == 2
        assert await cache.invalidate_all() == 0

    @pytest.mark.asyncio
    async def test_get_or_set_with_redis(self, fake_redis):
        cache = CacheManager("test", default_ttl=60)
        calls = []

        async def factory():
            calls.append(1)
            return {"a": 1}

        assert await cache.get_or_set("k", factory) == {"a": 1}
        assert await cache.get_or_set("k", factory) == {"a": 1}
        assert len(calls) == 1
        assert fake_redis.ttls["test:k"] == 60

    @pytest.mark.asyncio
    async def test_empty_list_is_a_hit(self, fake_redis):
        cache = CacheManager("test")
        await cache.set("empty", [])

        assert await cache.get("empty") == []

    @pytest.mark.asyncio
    async def test_invalidate_namespace(self, fake_redis):
        await CacheManager("a").set("k", 1)
        await CacheManager("b").set("k", 2)

        assert await CacheManager("a").invalidate_all() == 1
        assert await CacheManager("b").get("k") == 2

    @pytest.mark.asyncio
    async def test_dates_serialized_as_text(self, fake_redis):
        cache = CacheManager("test")
        await cache.set("d", [{"month": date(2017, 1, 1)}])

        assert await cache.get("d") == [{"month": "2017-01-01"}]


class TestReportService:
    """Tests for ReportService"""

    @pytest.fixture
    def service(self, snapshot, pipeline):
        return ReportService(lambda: snapshot, pipeline=pipeline, cache=CacheManager("test"))

    @pytest.mark.asyncio
    async def test_loads_on_first_use(self, service):
        assert service.status() == {"loaded": False}

        rows = await service.report(ReportName.MONTHLY_KPIS)

        assert [r["total_orders"] for r in rows] == [2, 1, 1]
        assert service.status()["loaded"] is True

    @pytest.mark.asyncio
    async def test_refresh_keeps_run_when_unchanged(self, service):
        first = await service.current_run()

        second = await service.refresh()

        assert second is first

    @pytest.mark.asyncio
    async def test_refresh_recomputes_on_change(self, snapshot, pipeline, orders_df, order_items_df, customers_df, products_df):
        snapshots = [
            snapshot,
            Snapshot.from_frames(orders_df.head(3), order_items_df, customers_df, products_df),
        ]
        service = ReportService(lambda: snapshots[0], pipeline=pipeline, cache=CacheManager("test"))

        first = await service.current_run()
        snapshots.pop(0)
        second = await service.refresh()

        assert second.fingerprint != first.fingerprint
        assert service.snapshot.orders.height == 3

    @pytest.mark.asyncio
    async def test_load_failure(self, pipeline):
        def failing():
            raise ConnectionError("database down")

        service = ReportService(failing, pipeline=pipeline, cache=CacheManager("test"))

        with pytest.raises(ReportUnavailableError):
            await service.report(ReportName.MONTHLY_KPIS)

    @pytest.mark.asyncio
    async def test_failed_report_unavailable(self, snapshot, pipeline):
        def broken(fact, snapshot):
            raise ValueError("boom")

        pipeline.register_report(ReportName.REVENUE_DECILES, broken)
        service = ReportService(lambda: snapshot, pipeline=pipeline, cache=CacheManager("test"))

        with pytest.raises(ReportUnavailableError):
            await service.report(ReportName.REVENUE_DECILES)
        assert await service.report(ReportName.MONTHLY_KPIS)

    @pytest.mark.asyncio
    async def test_retention_matrix(self, service):
        rows = await service.retention_matrix()

        assert len(rows) == 1
        assert rows[0]["rates"] == {"0": 1.0, "1": 0.5, "2": 0.5}

    @pytest.mark.asyncio
    async def test_quality_report(self, service):
        report = await service.quality_report()

        assert report["audit_enabled"] is True
        assert report["profile"]["row_counts"]["orders"] == 8
        assert set(report["audit"]) == {"orders", "order_items", "customers", "products"}

    @pytest.mark.asyncio
    async def test_reports_cached_by_fingerprint(self, service, fake_redis):
        await service.report(ReportName.MONTHLY_KPIS)

        run = await service.current_run()
        assert f"test:{run.fingerprint}:monthly_kpis" in fake_redis.store
