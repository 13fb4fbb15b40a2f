"""
Data Generation Module
"""
from .generators import SnapshotGenerator, PersonGenerator, ProductGenerator, OrderGenerator

__all__ = [
    "SnapshotGenerator",
    "PersonGenerator",
    "ProductGenerator",
    "OrderGenerator",
]
