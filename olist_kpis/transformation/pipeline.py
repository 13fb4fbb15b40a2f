"""
KPI Pipeline

Orchestrates the report chain: builds the delivered fact view once, then
computes every report from it in worker threads. Reports are fault-isolated;
a failure is recorded on its ReportResult and the others still complete.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

import polars as pl
import structlog

from olist_kpis.config import get_settings
from olist_kpis.config.settings import KpiSettings
from olist_kpis.ingestion.snapshot import Snapshot
from olist_kpis.quality.checks import audit_snapshot
from olist_kpis.quality.validators import ValidationResult

from .categories import category_revenue
from .cohorts import (
    cohort_retention,
    cohort_sizes,
    customer_activity,
    customer_cohorts,
    retention_rates,
)
from .concentration import order_count_distribution, revenue_deciles, top_customers
from .customers import customer_summary
from .delivery import delivery_performance
from .facts import delivered_order_items
from .kpis import monthly_kpis

logger = structlog.get_logger(__name__)


class ReportName(str, Enum):
    """Reports produced by the pipeline"""
    MONTHLY_KPIS = "monthly_kpis"
    CUSTOMER_SUMMARY = "customer_summary"
    CUSTOMER_COHORTS = "customer_cohorts"
    COHORT_RETENTION = "cohort_retention"
    COHORT_SIZES = "cohort_sizes"
    CATEGORY_REVENUE = "category_revenue"
    REVENUE_DECILES = "revenue_deciles"
    ORDER_COUNT_DISTRIBUTION = "order_count_distribution"
    TOP_CUSTOMERS = "top_customers"
    DELIVERY_PERFORMANCE = "delivery_performance"


ReportBuilder = Callable[[pl.DataFrame, Snapshot], pl.DataFrame]


@dataclass
class ReportResult:
    """Result of computing one report"""
    name: ReportName
    frame: Optional[pl.DataFrame]
    started_at: datetime
    completed_at: datetime
    duration_seconds: float
    errors: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.frame is not None and not self.errors

    @property
    def rows(self) -> int:
        return self.frame.height if self.frame is not None else 0


@dataclass
class PipelineRun:
    """All report results computed from one snapshot"""
    fingerprint: str
    fact_rows: int
    results: Dict[ReportName, ReportResult]
    quality: Optional[Dict[str, ValidationResult]] = None
    started_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    def frame(self, name: ReportName) -> pl.DataFrame:
        """
        Frame of a successfully computed report.

        Raises:
            KeyError: if the report was not requested
            RuntimeError: if the report failed
        """
        result = self.results[name]
        if not result.succeeded:
            raise RuntimeError(f"Report '{name.value}' failed: {result.errors}")
        return result.frame

    @property
    def failed(self) -> List[ReportName]:
        return [name for name, result in self.results.items() if not result.succeeded]


class KpiPipeline:
    """
    KPI report pipeline.

    Example:
        pipeline = KpiPipeline()
        run = await pipeline.run(snapshot)
        monthly = run.frame(ReportName.MONTHLY_KPIS)
    """

    def __init__(
        self,
        kpi_settings: Optional[KpiSettings] = None,
        run_quality_checks: Optional[bool] = None,
        status_probes: Optional[List[str]] = None,
        output_path: Optional[str] = None,
    ):
        settings = get_settings()
        self.kpi = kpi_settings or settings.kpi
        self.run_quality_checks = (
            settings.data_quality.enable_data_quality_checks
            if run_quality_checks is None else run_quality_checks
        )
        self.status_probes = (
            settings.data_quality.status_probe_values if status_probes is None else status_probes
        )
        self.output_path = Path(output_path or settings.data_lake.curated_path)
        self.compression = settings.data_lake.compression
        self._builders = self._register_builders()

    def _register_builders(self) -> Dict[ReportName, ReportBuilder]:
        kpi = self.kpi

        def retention(fact: pl.DataFrame, snapshot: Snapshot) -> pl.DataFrame:
            cohorts = customer_cohorts(fact)
            cells = cohort_retention(cohorts, customer_activity(fact))
            return retention_rates(cells, cohort_sizes(cohorts))

        return {
            ReportName.MONTHLY_KPIS: lambda fact, _: monthly_kpis(fact, kpi.aov_decimals),
            ReportName.CUSTOMER_SUMMARY: lambda fact, _: customer_summary(fact),
            ReportName.CUSTOMER_COHORTS: lambda fact, _: customer_cohorts(fact),
            ReportName.COHORT_RETENTION: retention,
            ReportName.COHORT_SIZES: lambda fact, _: cohort_sizes(customer_cohorts(fact)),
            ReportName.CATEGORY_REVENUE: lambda fact, snapshot: category_revenue(
                fact,
                snapshot.products,
                snapshot.category_translation,
                kpi.unknown_category_label,
            ),
            ReportName.REVENUE_DECILES: lambda fact, _: revenue_deciles(
                customer_summary(fact), kpi.decile_buckets
            ),
            ReportName.ORDER_COUNT_DISTRIBUTION: lambda fact, _: order_count_distribution(
                customer_summary(fact)
            ),
            ReportName.TOP_CUSTOMERS: lambda fact, _: top_customers(
                customer_summary(fact), kpi.top_customers_limit
            ),
            ReportName.DELIVERY_PERFORMANCE: lambda _, snapshot: delivery_performance(
                snapshot, kpi.delivered_status
            ),
        }

    def register_report(self, name: ReportName, builder: ReportBuilder) -> None:
        """Replace the builder of a report"""
        self._builders[name] = builder

    def build_fact(self, snapshot: Snapshot) -> pl.DataFrame:
        """Delivered fact view for this pipeline's status rule"""
        return delivered_order_items(snapshot, self.kpi.delivered_status)

    def _run_report(self, name: ReportName, fact: pl.DataFrame, snapshot: Snapshot) -> ReportResult:
        started_at = datetime.utcnow()
        errors = []
        frame = None

        try:
            frame = self._builders[name](fact, snapshot)
        except Exception as e:
            logger.error("Report failed", report=name.value, error=str(e), error_type=type(e).__name__)
            errors.append(str(e))

        completed_at = datetime.utcnow()
        result = ReportResult(
            name=name,
            frame=frame,
            started_at=started_at,
            completed_at=completed_at,
            duration_seconds=(completed_at - started_at).total_seconds(),
            errors=errors,
        )
        if result.succeeded:
            logger.debug("Report computed", report=name.value, rows=result.rows)
        return result

    def _audit(self, snapshot: Snapshot) -> Optional[Dict[str, ValidationResult]]:
        try:
            return audit_snapshot(snapshot, self.kpi.delivered_status, self.status_probes)
        except Exception as e:
            logger.error("Snapshot audit failed", error=str(e))
            return None

    async def run(
        self,
        snapshot: Snapshot,
        reports: Optional[Iterable[ReportName]] = None,
    ) -> PipelineRun:
        """
        Compute reports from a snapshot.

        Args:
            snapshot: Source tables
            reports: Subset of reports to compute (default: all)

        Returns:
            PipelineRun with one ReportResult per requested report
        """
        started_at = datetime.utcnow()
        names = list(reports) if reports is not None else list(ReportName)

        logger.info("Starting KPI pipeline", reports=len(names), **snapshot.row_counts)

        fact = self.build_fact(snapshot)

        quality_task = (
            asyncio.to_thread(self._audit, snapshot) if self.run_quality_checks else None
        )
        report_tasks = [
            asyncio.to_thread(self._run_report, name, fact, snapshot) for name in names
        ]

        if quality_task is not None:
            quality, *results = await asyncio.gather(quality_task, *report_tasks)
        else:
            quality = None
            results = await asyncio.gather(*report_tasks)

        run = PipelineRun(
            fingerprint=snapshot.fingerprint(),
            fact_rows=fact.height,
            results={result.name: result for result in results},
            quality=quality,
            started_at=started_at,
            completed_at=datetime.utcnow(),
        )

        logger.info(
            "KPI pipeline complete",
            fingerprint=run.fingerprint,
            fact_rows=run.fact_rows,
            failed=[name.value for name in run.failed],
            duration_seconds=(run.completed_at - started_at).total_seconds(),
        )
        return run

    def export(self, run: PipelineRun, output_path: Optional[str] = None) -> Dict[ReportName, str]:
        """
        Write every successful report to `<output_path>/<fingerprint>/<report>.parquet`.

        Returns:
            Written file path per report
        """
        target = Path(output_path) if output_path else self.output_path
        target = target / run.fingerprint
        target.mkdir(parents=True, exist_ok=True)

        written = {}
        for name, result in run.results.items():
            if not result.succeeded:
                logger.warning("Skipping export of failed report", report=name.value)
                continue
            output_file = target / f"{name.value}.parquet"
            result.frame.write_parquet(output_file, compression=self.compression)
            written[name] = str(output_file)

        logger.info(f"Written {len(written)} reports to {target}")
        return written
