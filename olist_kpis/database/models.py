"""
Database Models - Olist Source Tables

Read-only ORM mirror of the five base tables the KPI views are computed from.
In production the tables are provisioned outside this package; the mappings
give the snapshot loader typed column access and let seed_db create a
development copy.

Tables:
- orders: one row per order (order grain)
- order_items: one row per (order, item sequence)
- customers: order-scoped customer_id mapped to the durable customer_unique_id
- products: product with its Portuguese category name
- category_translation: Portuguese -> English category lookup
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


# =============================================================================
# ENUMERATIONS
# =============================================================================

class OrderStatus(str, Enum):
    """Order status values present in the Olist dataset"""
    CREATED = "created"
    APPROVED = "approved"
    INVOICED = "invoiced"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    UNAVAILABLE = "unavailable"
    CANCELED = "canceled"


# =============================================================================
# SOURCE TABLES
# =============================================================================

class Order(Base):
    """
    Orders Table

    Holds no monetary values; revenue always comes from order_items.
    """
    __tablename__ = "orders"

    order_id: Mapped[str] = mapped_column(Text, primary_key=True)
    customer_id: Mapped[Optional[str]] = mapped_column(Text)
    order_status: Mapped[Optional[str]] = mapped_column(Text)
    order_purchase_timestamp: Mapped[Optional[datetime]] = mapped_column(DateTime)
    order_approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    order_delivered_carrier_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    order_delivered_customer_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    order_estimated_delivery_date: Mapped[Optional[datetime]] = mapped_column(DateTime)

    __table_args__ = (
        Index("ix_orders_status", "order_status"),
        Index("ix_orders_customer", "customer_id"),
    )


class OrderItem(Base):
    """
    Order Items Table

    Each item contributes independently to revenue (price) and freight.
    """
    __tablename__ = "order_items"

    order_id: Mapped[str] = mapped_column(Text, primary_key=True)
    order_item_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    product_id: Mapped[Optional[str]] = mapped_column(Text)
    seller_id: Mapped[Optional[str]] = mapped_column(Text)
    shipping_limit_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    freight_value: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))


class Customer(Base):
    """
    Customers Table

    customer_id is issued per order; customer_unique_id identifies the person
    and is the only valid key for repeat-purchase analysis.
    """
    __tablename__ = "customers"

    customer_id: Mapped[str] = mapped_column(Text, primary_key=True)
    customer_unique_id: Mapped[Optional[str]] = mapped_column(Text)
    customer_zip_code_prefix: Mapped[Optional[int]] = mapped_column(Integer)
    customer_city: Mapped[Optional[str]] = mapped_column(Text)
    customer_state: Mapped[Optional[str]] = mapped_column(String(2))

    __table_args__ = (
        Index("ix_customers_unique_id", "customer_unique_id"),
    )


class Product(Base):
    """Products Table"""
    __tablename__ = "products"

    product_id: Mapped[str] = mapped_column(Text, primary_key=True)
    product_category_name: Mapped[Optional[str]] = mapped_column(Text)


class CategoryTranslation(Base):
    """Category name lookup (Portuguese -> English); not guaranteed complete"""
    __tablename__ = "category_translation"

    product_category_name: Mapped[str] = mapped_column(Text, primary_key=True)
    product_category_name_english: Mapped[Optional[str]] = mapped_column(Text)
