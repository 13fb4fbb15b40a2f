"""
Report API Endpoints

REST API over the KPI reports of the current snapshot.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel
import structlog

from olist_kpis.serving.reports import ReportService, ReportUnavailableError
from olist_kpis.transformation.pipeline import ReportName

router = APIRouter()
logger = structlog.get_logger(__name__)


def get_report_service(request: Request) -> ReportService:
    """Report service attached to the application state"""
    service = getattr(request.app.state, "report_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Report service not initialized")
    return service


class MonthlyKpi(BaseModel):
    """Orders, revenue and AOV of one purchase month"""
    month: date
    total_orders: int
    revenue: float
    aov: Optional[float]


class CustomerSummary(BaseModel):
    """Lifetime delivered activity of a customer"""
    customer_unique_id: str
    order_count: int
    total_revenue: float


class RetentionCell(BaseModel):
    """Active customers of a cohort in one activity month"""
    cohort_month: date
    activity_month: date
    month_number: int
    active_customers: int
    cohort_size: int
    retention_rate: float


class RetentionRow(BaseModel):
    """Retention rates of one cohort keyed by month_number"""
    cohort_month: date
    rates: Dict[int, Optional[float]]


class CohortSize(BaseModel):
    cohort_month: date
    cohort_size: int


class CategoryRevenue(BaseModel):
    category: str
    revenue: float
    orders: int


class RevenueDecile(BaseModel):
    """Revenue held by one customer bucket, 1 = top spenders"""
    decile: int
    customers: int
    revenue: float
    revenue_share: Optional[float]


class OrderFrequency(BaseModel):
    order_count: int
    customers: int


class TopCustomer(BaseModel):
    customer_unique_id: str
    total_revenue: float


class DeliveryPerformance(BaseModel):
    """On-time delivery of one purchase month"""
    month: date
    measured_orders: int
    on_time_orders: int
    on_time_rate: float
    avg_delivery_days: Optional[float]


class QualityReport(BaseModel):
    """Snapshot profile and audit results"""
    fingerprint: str
    profile: Dict[str, Any]
    audit_enabled: bool
    audit: Dict[str, Any]


class RunStatus(BaseModel):
    """Summary of the current pipeline run"""
    loaded: bool
    fingerprint: Optional[str] = None
    fact_rows: Optional[int] = None
    row_counts: Optional[Dict[str, int]] = None
    computed_at: Optional[datetime] = None
    reports: Optional[Dict[str, Any]] = None


async def _rows(service: ReportService, name: ReportName) -> List[Dict[str, Any]]:
    try:
        return await service.report(name)
    except ReportUnavailableError as e:
        logger.warning("Report unavailable", report=name.value, error=str(e))
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/monthly-kpis", response_model=List[MonthlyKpi])
async def get_monthly_kpis(service: ReportService = Depends(get_report_service)):
    """Delivered orders, revenue and AOV per purchase month."""
    return await _rows(service, ReportName.MONTHLY_KPIS)


@router.get("/customers", response_model=List[CustomerSummary])
async def get_customers(
    limit: int = Query(100, ge=1, le=10000),
    offset: int = Query(0, ge=0),
    service: ReportService = Depends(get_report_service),
):
    """Per-customer order count and revenue, ordered by customer_unique_id."""
    rows = await _rows(service, ReportName.CUSTOMER_SUMMARY)
    return rows[offset:offset + limit]


@router.get("/cohorts/retention", response_model=List[RetentionCell])
async def get_cohort_retention(service: ReportService = Depends(get_report_service)):
    """Retention cells with cohort size and rate."""
    return await _rows(service, ReportName.COHORT_RETENTION)


@router.get("/cohorts/matrix", response_model=List[RetentionRow])
async def get_retention_matrix(service: ReportService = Depends(get_report_service)):
    """Retention triangle, one row per cohort."""
    try:
        return await service.retention_matrix()
    except ReportUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/cohorts/sizes", response_model=List[CohortSize])
async def get_cohort_sizes(service: ReportService = Depends(get_report_service)):
    return await _rows(service, ReportName.COHORT_SIZES)


@router.get("/categories", response_model=List[CategoryRevenue])
async def get_category_revenue(service: ReportService = Depends(get_report_service)):
    """Revenue per product category, highest first."""
    return await _rows(service, ReportName.CATEGORY_REVENUE)


@router.get("/concentration/deciles", response_model=List[RevenueDecile])
async def get_revenue_deciles(service: ReportService = Depends(get_report_service)):
    return await _rows(service, ReportName.REVENUE_DECILES)


@router.get("/concentration/order-frequency", response_model=List[OrderFrequency])
async def get_order_frequency(service: ReportService = Depends(get_report_service)):
    return await _rows(service, ReportName.ORDER_COUNT_DISTRIBUTION)


@router.get("/concentration/top-customers", response_model=List[TopCustomer])
async def get_top_customers(service: ReportService = Depends(get_report_service)):
    return await _rows(service, ReportName.TOP_CUSTOMERS)


@router.get("/delivery-performance", response_model=List[DeliveryPerformance])
async def get_delivery_performance(service: ReportService = Depends(get_report_service)):
    """On-time rate and average delivery days per purchase month."""
    return await _rows(service, ReportName.DELIVERY_PERFORMANCE)


@router.get("/quality", response_model=QualityReport)
async def get_quality_report(service: ReportService = Depends(get_report_service)):
    """Snapshot profile and audit findings."""
    try:
        return await service.quality_report()
    except ReportUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/status", response_model=RunStatus)
async def get_status(service: ReportService = Depends(get_report_service)):
    return service.status()


@router.post("/refresh", response_model=RunStatus)
async def refresh_reports(service: ReportService = Depends(get_report_service)):
    """
    Reload the source tables.

    Reports are recomputed only when the snapshot fingerprint changed.
    """
    try:
        run = await service.refresh()
    except ReportUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))

    logger.info("Reports refreshed", fingerprint=run.fingerprint, failed=[n.value for n in run.failed])
    return service.status()
