"""
Source Snapshot Module
"""
from .snapshot import RawTable, Snapshot, SnapshotLoader, SnapshotSchemaError
from .seed_db import seed_database

__all__ = [
    "RawTable",
    "Snapshot",
    "SnapshotLoader",
    "SnapshotSchemaError",
    "seed_database",
]
