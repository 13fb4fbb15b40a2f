"""
KPI Transformation Module
"""
from .facts import delivered_order_items
from .kpis import monthly_kpis
from .customers import customer_summary
from .cohorts import (
    cohort_retention,
    cohort_sizes,
    customer_activity,
    customer_cohorts,
    retention_matrix,
    retention_rates,
)
from .categories import category_label, category_revenue
from .concentration import order_count_distribution, revenue_deciles, top_customers
from .delivery import delivery_performance
from .pipeline import KpiPipeline, PipelineRun, ReportName, ReportResult

__all__ = [
    "delivered_order_items",
    "monthly_kpis",
    "customer_summary",
    "customer_cohorts",
    "customer_activity",
    "cohort_retention",
    "cohort_sizes",
    "retention_rates",
    "retention_matrix",
    "category_label",
    "category_revenue",
    "revenue_deciles",
    "order_count_distribution",
    "top_customers",
    "delivery_performance",
    "KpiPipeline",
    "PipelineRun",
    "ReportName",
    "ReportResult",
]
