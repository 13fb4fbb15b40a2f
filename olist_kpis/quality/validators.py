"""
Data Validation Module

Rule-based checks over the raw polars frames of a snapshot. Each check
counts offending rows; the severity decides whether a failure marks the
table as failed or only as partial.

Available checks:
- not null
- uniqueness of a column or a composite key
- numeric range and allowed values
- referential integrity against another frame
- row-level predicates
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import polars as pl
import structlog

logger = structlog.get_logger(__name__)


class ValidationSeverity(str, Enum):
    """Severity levels for validation failures"""
    ERROR = "error"  # marks the table as failed
    WARNING = "warning"  # reported, table is partial
    INFO = "info"


class ValidationStatus(str, Enum):
    """Overall validation status"""
    PASSED = "passed"
    FAILED = "failed"
    PARTIAL = "partial"


@dataclass
class ValidationCheck:
    """Outcome of one check against one frame"""
    name: str
    passed: bool
    severity: ValidationSeverity
    message: str
    details: Optional[Dict[str, Any]] = None
    failed_rows: int = 0
    total_rows: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "passed": self.passed,
            "severity": self.severity.value,
            "message": self.message,
            "details": self.details,
            "failed_rows": self.failed_rows,
            "total_rows": self.total_rows,
        }


@dataclass
class ValidationResult:
    """All checks run against one table"""
    status: ValidationStatus
    total_checks: int
    passed_checks: int
    failed_checks: int
    warning_count: int
    checks: List[ValidationCheck] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    @property
    def success_rate(self) -> float:
        if self.total_checks == 0:
            return 100.0
        return (self.passed_checks / self.total_checks) * 100

    def check(self, name: str) -> ValidationCheck:
        """Look up a check result by name"""
        found = next((c for c in self.checks if c.name == name), None)
        if found is None:
            raise KeyError(name)
        return found

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "total_checks": self.total_checks,
            "passed_checks": self.passed_checks,
            "failed_checks": self.failed_checks,
            "warning_count": self.warning_count,
            "success_rate": self.success_rate,
            "checks": [c.to_dict() for c in self.checks],
        }


CheckFunc = Callable[[pl.DataFrame], ValidationCheck]


def _outcome(
    name: str,
    severity: ValidationSeverity,
    failed: int,
    total: int,
    failure: str,
    success: str,
    details: Dict[str, Any],
) -> ValidationCheck:
    return ValidationCheck(
        name=name,
        passed=failed == 0,
        severity=severity,
        message=failure if failed else success,
        details=details,
        failed_rows=failed,
        total_rows=total,
    )


def _requires(columns: Sequence[str], name: str, severity: ValidationSeverity, body: CheckFunc) -> CheckFunc:
    """Wrap `body` so a frame lacking any of `columns` yields a failed check"""
    def check(df: pl.DataFrame) -> ValidationCheck:
        absent = [c for c in columns if c not in df.columns]
        if absent:
            return ValidationCheck(
                name=name,
                passed=False,
                severity=severity,
                message=f"Column '{absent[0]}' not found",
            )
        return body(df)

    return check


class DataValidator:
    """
    Chainable suite of checks for one table.

    Example:
        result = (
            DataValidator("order_items")
            .add_not_null_check("price")
            .add_range_check("price", min_value=0)
            .validate(df)
        )
    """

    def __init__(self, name: str = "dataset", strict_mode: bool = False):
        self.name = name
        self.strict_mode = strict_mode  # warnings fail the table
        self._checks: List[CheckFunc] = []

    def _add(self, check: CheckFunc) -> "DataValidator":
        self._checks.append(check)
        return self

    def add_not_null_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        name = f"not_null_{column}"

        def body(df: pl.DataFrame) -> ValidationCheck:
            nulls = df[column].null_count()
            return _outcome(
                name, severity, nulls, df.height,
                f"Column '{column}' has {nulls} null values",
                f"Column '{column}' has no null values",
                {"null_count": nulls, "null_percentage": (nulls / df.height) * 100 if df.height else 0},
            )

        return self._add(_requires([column], name, severity, body))

    def add_unique_check(
        self,
        columns: Union[str, Sequence[str]],
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Uniqueness of a single column or of a composite key"""
        key = [columns] if isinstance(columns, str) else list(columns)
        name = f"unique_{'_'.join(key)}"

        def body(df: pl.DataFrame) -> ValidationCheck:
            distinct = df.select(key).unique().height
            duplicates = df.height - distinct
            return _outcome(
                name, severity, duplicates, df.height,
                f"Key {key} has {duplicates} duplicate rows",
                f"Key {key} is unique",
                {"unique_count": distinct, "duplicate_count": duplicates},
            )

        return self._add(_requires(key, name, severity, body))

    def add_range_check(
        self,
        column: str,
        min_value: Optional[float] = None,
        max_value: Optional[float] = None,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        name = f"range_{column}"
        outside = pl.lit(False)
        if min_value is not None:
            outside = outside | (pl.col(column) < min_value)
        if max_value is not None:
            outside = outside | (pl.col(column) > max_value)

        def body(df: pl.DataFrame) -> ValidationCheck:
            count = df.filter(outside).height
            return _outcome(
                name, severity, count, df.height,
                f"Column '{column}' has {count} values outside range [{min_value}, {max_value}]",
                "All values in range",
                {"min": min_value, "max": max_value, "out_of_range_count": count},
            )

        return self._add(_requires([column], name, severity, body))

    def add_enum_check(
        self,
        column: str,
        allowed_values: List[Any],
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Non-null values must belong to `allowed_values`"""
        name = f"enum_{column}"

        def body(df: pl.DataFrame) -> ValidationCheck:
            invalid = df.filter(pl.col(column).is_not_null() & ~pl.col(column).is_in(allowed_values))
            return _outcome(
                name, severity, invalid.height, df.height,
                f"Column '{column}' has {invalid.height} invalid values",
                "All values are valid",
                {
                    "allowed_values": allowed_values,
                    "invalid_count": invalid.height,
                    "invalid_values": sorted(invalid[column].unique().to_list()),
                },
            )

        return self._add(_requires([column], name, severity, body))

    def add_referential_integrity_check(
        self,
        column: str,
        reference_df: pl.DataFrame,
        reference_column: Optional[str] = None,
        name: Optional[str] = None,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Every non-null value of `column` must exist in the reference frame"""
        reference = reference_df[reference_column or column].drop_nulls().unique()
        name = name or f"ref_integrity_{column}"

        def body(df: pl.DataFrame) -> ValidationCheck:
            orphans = df.filter(pl.col(column).is_not_null() & ~pl.col(column).is_in(reference)).height
            return _outcome(
                name, severity, orphans, df.height,
                f"Column '{column}' has {orphans} orphan records",
                "Referential integrity maintained",
                {"orphan_count": orphans},
            )

        return self._add(_requires([column], name, severity, body))

    def add_row_check(
        self,
        name: str,
        failing: pl.Expr,
        message_on_fail: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """No row may match the `failing` predicate; `{count}` is filled into the message"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            count = df.filter(failing).height
            return _outcome(
                name, severity, count, df.height,
                message_on_fail.format(count=count),
                "Check passed",
                {"failed_count": count},
            )

        return self._add(check)

    def validate(self, df: pl.DataFrame) -> ValidationResult:
        """
        Run every registered check against `df`.

        Args:
            df: Frame to validate

        Returns:
            ValidationResult holding one ValidationCheck per registered check
        """
        started_at = datetime.utcnow()
        logger.debug("Running validation checks", dataset=self.name, checks=len(self._checks), rows=df.height)

        results = [check(df) for check in self._checks]
        for result in results:
            if not result.passed and result.severity != ValidationSeverity.INFO:
                logger.warning(
                    "Validation failed",
                    dataset=self.name,
                    check=result.name,
                    message=result.message,
                    severity=result.severity.value,
                )

        passed = sum(r.passed for r in results)
        failed = sum(not r.passed and r.severity == ValidationSeverity.ERROR for r in results)
        warnings = sum(not r.passed and r.severity == ValidationSeverity.WARNING for r in results)

        if failed or (warnings and self.strict_mode):
            status = ValidationStatus.FAILED
        elif warnings:
            status = ValidationStatus.PARTIAL
        else:
            status = ValidationStatus.PASSED

        logger.info(
            "Validation complete",
            dataset=self.name,
            status=status.value,
            passed=passed,
            failed=failed,
            warnings=warnings,
        )

        return ValidationResult(
            status=status,
            total_checks=len(results),
            passed_checks=passed,
            failed_checks=failed,
            warning_count=warnings,
            checks=results,
            started_at=started_at,
            completed_at=datetime.utcnow(),
        )
