"""
Report Service

Holds the current snapshot and the PipelineRun computed from it, and serves
report rows to the API. A run is memoised per snapshot fingerprint; refresh()
reloads the source tables and only recomputes when the fingerprint changed.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional

import polars as pl
import structlog

from olist_kpis.ingestion.snapshot import Snapshot
from olist_kpis.quality.checks import profile_snapshot
from olist_kpis.transformation.cohorts import retention_matrix
from olist_kpis.transformation.pipeline import KpiPipeline, PipelineRun, ReportName

from .cache import CacheManager, reports_cache

logger = structlog.get_logger(__name__)

SnapshotSource = Callable[[], Snapshot]

MATRIX_KEY = "cohort_matrix"


class ReportUnavailableError(RuntimeError):
    """Raised when a report cannot be served from the current snapshot"""


class ReportService:
    """
    Serves KPI reports for the latest snapshot.

    Example:
        service = ReportService(SnapshotLoader(get_engine()).load)
        rows = await service.report(ReportName.MONTHLY_KPIS)
    """

    def __init__(
        self,
        source: SnapshotSource,
        pipeline: Optional[KpiPipeline] = None,
        cache: Optional[CacheManager] = None,
    ):
        self.source = source
        self.pipeline = pipeline or KpiPipeline()
        self.cache = cache or reports_cache
        self._snapshot: Optional[Snapshot] = None
        self._run: Optional[PipelineRun] = None
        self._lock = asyncio.Lock()

    @property
    def snapshot(self) -> Optional[Snapshot]:
        return self._snapshot

    async def _load(self) -> PipelineRun:
        try:
            snapshot = await asyncio.to_thread(self.source)
        except Exception as e:
            logger.error("Snapshot load failed", error=str(e), error_type=type(e).__name__)
            raise ReportUnavailableError(f"Snapshot could not be loaded: {e}") from e

        fingerprint = snapshot.fingerprint()
        if self._run is not None and self._run.fingerprint == fingerprint:
            logger.info("Snapshot unchanged, keeping reports", fingerprint=fingerprint)
            self._snapshot = snapshot
            return self._run

        run = await self.pipeline.run(snapshot)
        self._snapshot, self._run = snapshot, run
        return run

    async def refresh(self) -> PipelineRun:
        """Reload the snapshot and recompute reports if it changed"""
        async with self._lock:
            return await self._load()

    async def current_run(self) -> PipelineRun:
        """Run for the current snapshot, loading it on first use"""
        if self._run is None:
            async with self._lock:
                if self._run is None:
                    await self._load()
        return self._run

    async def _cached(
        self,
        run: PipelineRun,
        key: str,
        compute: Callable[[], Awaitable[List[Dict[str, Any]]]],
    ) -> List[Dict[str, Any]]:
        return await self.cache.get_or_set(f"{run.fingerprint}:{key}", compute)

    @staticmethod
    def _frame(run: PipelineRun, name: ReportName) -> pl.DataFrame:
        try:
            return run.frame(name)
        except KeyError as e:
            raise ReportUnavailableError(f"Report '{name.value}' was not computed") from e
        except RuntimeError as e:
            raise ReportUnavailableError(str(e)) from e

    async def report(self, name: ReportName) -> List[Dict[str, Any]]:
        """
        Rows of a report for the current snapshot.

        Raises:
            ReportUnavailableError: snapshot failed to load or the report failed
        """
        run = await self.current_run()

        async def compute() -> List[Dict[str, Any]]:
            return self._frame(run, name).to_dicts()

        return await self._cached(run, name.value, compute)

    async def retention_matrix(self) -> List[Dict[str, Any]]:
        """Retention rates as one row per cohort with a rate per month_number"""
        run = await self.current_run()

        async def compute() -> List[Dict[str, Any]]:
            matrix = retention_matrix(self._frame(run, ReportName.COHORT_RETENTION))
            rows = []
            for row in matrix.to_dicts():
                cohort_month = row.pop("cohort_month")
                rows.append({"cohort_month": cohort_month, "rates": row})
            return rows

        return await self._cached(run, MATRIX_KEY, compute)

    async def quality_report(self) -> Dict[str, Any]:
        """Snapshot profile plus the audit findings of the current run"""
        run = await self.current_run()
        profile = await asyncio.to_thread(profile_snapshot, self._snapshot)

        return {
            "fingerprint": run.fingerprint,
            "profile": profile.to_dict(),
            "audit_enabled": run.quality is not None,
            "audit": {
                table: result.to_dict() for table, result in (run.quality or {}).items()
            },
        }

    def status(self) -> Dict[str, Any]:
        """Summary of the current run"""
        if self._run is None:
            return {"loaded": False}

        run = self._run
        return {
            "loaded": True,
            "fingerprint": run.fingerprint,
            "fact_rows": run.fact_rows,
            "row_counts": self._snapshot.row_counts,
            "computed_at": run.completed_at,
            "reports": {
                name.value: {
                    "succeeded": result.succeeded,
                    "rows": result.rows,
                    "duration_seconds": round(result.duration_seconds, 4),
                    "errors": result.errors,
                }
                for name, result in run.results.items()
            },
        }
