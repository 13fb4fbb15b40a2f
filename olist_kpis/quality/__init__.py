"""
Data Quality Module
"""
from .validators import DataValidator, ValidationCheck, ValidationResult, ValidationSeverity
from .checks import SnapshotProfile, audit_snapshot, failed_checks, profile_snapshot

__all__ = [
    "DataValidator",
    "ValidationCheck",
    "ValidationResult",
    "ValidationSeverity",
    "SnapshotProfile",
    "audit_snapshot",
    "failed_checks",
    "profile_snapshot",
]
