"""
Database Module
"""
from .connection import init_database, close_database, get_engine, get_connection
from .models import Base, CategoryTranslation, Customer, Order, OrderItem, Product

__all__ = [
    "init_database",
    "close_database",
    "get_engine",
    "get_connection",
    "Base",
    "Order",
    "OrderItem",
    "Customer",
    "Product",
    "CategoryTranslation",
]
