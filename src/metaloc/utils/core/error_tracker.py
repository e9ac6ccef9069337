"""
Per-run error tracking for metaloc.

Non-fatal failures (fetch, parse, missing reference, rejected update) are
logged with a severity tag and counted per category so that every phase can
report aggregated counts instead of a single pass/fail verdict.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime

from .exceptions import ErrorCategory, ErrorSeverity, MetalocError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ErrorRecord:
    """A single recorded failure."""

    timestamp: datetime
    phase: str
    category: ErrorCategory
    severity: ErrorSeverity
    message: str


def classify_exception(exception: BaseException) -> tuple[ErrorCategory, ErrorSeverity]:
    """Classify an exception to determine its ledger category."""
    if isinstance(exception, MetalocError):
        return exception.category, exception.severity

    error_str = str(exception).lower()
    exception_type = type(exception).__name__.lower()

    if any(keyword in exception_type for keyword in ("timeout", "connect", "network")):
        return ErrorCategory.CONNECTION, ErrorSeverity.HIGH

    if "parse" in exception_type or "xml" in exception_type:
        return ErrorCategory.PARSE, ErrorSeverity.MEDIUM

    if any(keyword in error_str for keyword in ("not found", "does not exist", "404")):
        return ErrorCategory.REFERENCE, ErrorSeverity.LOW

    return ErrorCategory.UNKNOWN, ErrorSeverity.MEDIUM


class ErrorTracker:
    """Collects failures for one export or import run."""

    def __init__(self) -> None:
        self._counts: dict[ErrorCategory, int] = defaultdict(int)
        self._records: list[ErrorRecord] = []

    def record(
        self,
        error: BaseException | str,
        phase: str,
        category: ErrorCategory | None = None,
        severity: ErrorSeverity | None = None,
    ) -> ErrorRecord:
        """
        Log and count a non-fatal failure.

        Args:
            error: The exception raised, or a plain diagnostic message
            phase: Name of the sheet or pipeline step the failure belongs to
            category: Explicit category, classified from the error if omitted
            severity: Explicit severity, classified from the error if omitted

        Returns:
            The stored record
        """
        if isinstance(error, BaseException):
            default_category, default_severity = classify_exception(error)
            message = str(error)
        else:
            default_category, default_severity = ErrorCategory.UNKNOWN, ErrorSeverity.LOW
            message = error

        record = ErrorRecord(
            timestamp=datetime.now(),
            phase=phase,
            category=category or default_category,
            severity=severity or default_severity,
            message=message,
        )
        self._counts[record.category] += 1
        self._records.append(record)

        log_line = f"[{record.severity.value}] {phase}: {message}"
        if record.severity == ErrorSeverity.CRITICAL:
            logger.critical(log_line)
        elif record.severity == ErrorSeverity.HIGH:
            logger.error(log_line)
        elif record.severity == ErrorSeverity.MEDIUM:
            logger.warning(log_line)
        else:
            logger.info(log_line)

        return record

    def count(self, category: ErrorCategory) -> int:
        """Number of failures recorded for a category."""
        return self._counts.get(category, 0)

    @property
    def total(self) -> int:
        return len(self._records)

    @property
    def records(self) -> list[ErrorRecord]:
        return list(self._records)

    def records_for(self, phase: str) -> list[ErrorRecord]:
        return [record for record in self._records if record.phase == phase]

    def get_summary(self) -> dict[str, int]:
        """Failure counts per category value."""
        return {category.value: count for category, count in self._counts.items()}

    def log_summary(self, phase: str) -> None:
        """Write the aggregated counts for a finished phase to the log."""
        summary = self.get_summary()
        if not summary:
            logger.info(f"{phase}: completed without errors")
            return
        details = ", ".join(f"{name}={count}" for name, count in sorted(summary.items()))
        logger.warning(f"{phase}: completed with {self.total} error(s) ({details})")
