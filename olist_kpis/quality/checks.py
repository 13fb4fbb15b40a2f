"""
Snapshot Audit & Profile

Data-quality checks over the Olist base tables. Every finding is a WARNING or
INFO: problems are reported, never fatal, and never stop report computation.

- audit_snapshot: per-table validation suites (grain, referential integrity,
  missing delivery dates, missing categories, misspelled statuses, inactive
  customers)
- profile_snapshot: row counts, time coverage, status distribution and price
  statistics
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import polars as pl
import structlog

from olist_kpis.database.models import OrderStatus
from olist_kpis.ingestion.snapshot import RawTable, Snapshot

from .validators import DataValidator, ValidationCheck, ValidationResult, ValidationSeverity

logger = structlog.get_logger(__name__)

WARNING = ValidationSeverity.WARNING
INFO = ValidationSeverity.INFO

DELIVERED_STATUS = OrderStatus.DELIVERED.value
DEFAULT_STATUS_PROBES = ["deliverd"]


def misspelled_status(status: str, probes: List[str]) -> pl.Expr:
    """
    Statuses that look like the delivered value without matching it exactly:
    known misspellings, or case and whitespace variants.
    """
    col = pl.col("order_status")
    near_miss = (col.str.strip_chars().str.to_lowercase() == status.lower()) & (col != status)
    return col.is_in(pl.Series(probes, dtype=pl.Utf8)) | near_miss


def create_orders_validator(
    snapshot: Snapshot,
    status: str = DELIVERED_STATUS,
    status_probes: Optional[List[str]] = None,
) -> DataValidator:
    """Validator for the orders table"""
    probes = DEFAULT_STATUS_PROBES if status_probes is None else status_probes
    return (
        DataValidator(name=RawTable.ORDERS.value)
        .add_unique_check("order_id", severity=WARNING)
        .add_not_null_check("order_purchase_timestamp", severity=WARNING)
        .add_referential_integrity_check(
            "customer_id",
            snapshot.customers,
            name="orders_customer_exists",
            severity=WARNING,
        )
        .add_row_check(
            "delivered_without_delivery_date",
            (pl.col("order_status") == status) & pl.col("order_delivered_customer_date").is_null(),
            "{count} delivered orders have no customer delivery date",
            severity=WARNING,
        )
        .add_row_check(
            "misspelled_delivered_status",
            misspelled_status(status, probes),
            "{count} orders carry a misspelled delivered status and are not counted as delivered",
            severity=WARNING,
        )
        .add_enum_check("order_status", [s.value for s in OrderStatus], severity=INFO)
    )


def create_order_items_validator(snapshot: Snapshot) -> DataValidator:
    """Validator for the order_items table"""
    return (
        DataValidator(name=RawTable.ORDER_ITEMS.value)
        .add_unique_check(["order_id", "order_item_id"], severity=WARNING)
        .add_not_null_check("price", severity=WARNING)
        .add_range_check("price", min_value=0, severity=WARNING)
        .add_range_check("freight_value", min_value=0, severity=WARNING)
        .add_referential_integrity_check(
            "order_id",
            snapshot.orders,
            name="order_items_order_exists",
            severity=WARNING,
        )
        .add_referential_integrity_check(
            "product_id",
            snapshot.products,
            name="order_items_product_exists",
            severity=WARNING,
        )
    )


def create_customers_validator(snapshot: Snapshot, status: str = DELIVERED_STATUS) -> DataValidator:
    """Validator for the customers table"""
    delivered_customer_ids = (
        snapshot.orders
        .filter(pl.col("order_status") == status)
        .join(snapshot.customers, on="customer_id", how="inner")["customer_unique_id"]
        .drop_nulls()
        .unique()
    )
    return (
        DataValidator(name=RawTable.CUSTOMERS.value)
        .add_unique_check("customer_id", severity=WARNING)
        .add_not_null_check("customer_unique_id", severity=WARNING)
        .add_row_check(
            "customers_without_delivered_orders",
            ~pl.col("customer_unique_id").is_in(delivered_customer_ids),
            "{count} customer records have no delivered orders and are excluded from all KPIs",
            severity=INFO,
        )
    )


def create_products_validator(snapshot: Snapshot) -> DataValidator:
    """Validator for the products table"""
    return (
        DataValidator(name=RawTable.PRODUCTS.value)
        .add_unique_check("product_id", severity=WARNING)
        .add_not_null_check("product_category_name", severity=WARNING)
        .add_referential_integrity_check(
            "product_category_name",
            snapshot.category_translation,
            name="category_has_translation",
            severity=INFO,
        )
    )


def audit_snapshot(
    snapshot: Snapshot,
    status: str = DELIVERED_STATUS,
    status_probes: Optional[List[str]] = None,
) -> Dict[str, ValidationResult]:
    """
    Run every table validator against the snapshot.

    Returns:
        Validation results keyed by table name
    """
    suites = {
        RawTable.ORDERS: create_orders_validator(snapshot, status, status_probes),
        RawTable.ORDER_ITEMS: create_order_items_validator(snapshot),
        RawTable.CUSTOMERS: create_customers_validator(snapshot, status),
        RawTable.PRODUCTS: create_products_validator(snapshot),
    }

    results = {
        table.value: validator.validate(snapshot.frame(table))
        for table, validator in suites.items()
    }

    findings = failed_checks(results)
    logger.info(
        "Snapshot audit complete",
        warnings=sum(1 for c in findings if c.severity == WARNING),
        infos=sum(1 for c in findings if c.severity == INFO),
    )
    return results


def failed_checks(results: Dict[str, ValidationResult]) -> List[ValidationCheck]:
    """All checks that did not pass, across tables"""
    return [check for result in results.values() for check in result.checks if not check.passed]


@dataclass
class SnapshotProfile:
    """Exploratory summary of a snapshot"""
    row_counts: Dict[str, int]
    distinct_orders: int
    purchase_from: Optional[datetime]
    purchase_to: Optional[datetime]
    status_distribution: Dict[str, int] = field(default_factory=dict)
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    price_mean: Optional[float] = None

    @property
    def order_grain_ok(self) -> bool:
        """One row per order_id"""
        return self.row_counts[RawTable.ORDERS.value] == self.distinct_orders

    def to_dict(self) -> Dict[str, Any]:
        return {
            "row_counts": self.row_counts,
            "distinct_orders": self.distinct_orders,
            "order_grain_ok": self.order_grain_ok,
            "purchase_from": self.purchase_from,
            "purchase_to": self.purchase_to,
            "status_distribution": self.status_distribution,
            "price_min": self.price_min,
            "price_max": self.price_max,
            "price_mean": self.price_mean,
        }


def profile_snapshot(snapshot: Snapshot) -> SnapshotProfile:
    """Row counts, purchase time coverage, status distribution and price stats"""
    orders = snapshot.orders
    prices = snapshot.order_items["price"]

    statuses = (
        orders
        .group_by("order_status")
        .agg(pl.len().alias("orders"))
        .sort("order_status", nulls_last=True)
    )

    return SnapshotProfile(
        row_counts=snapshot.row_counts,
        distinct_orders=orders["order_id"].n_unique() if orders.height else 0,
        purchase_from=orders["order_purchase_timestamp"].min(),
        purchase_to=orders["order_purchase_timestamp"].max(),
        status_distribution={
            str(row["order_status"]): row["orders"] for row in statuses.iter_rows(named=True)
        },
        price_min=prices.min(),
        price_max=prices.max(),
        price_mean=prices.mean(),
    )
