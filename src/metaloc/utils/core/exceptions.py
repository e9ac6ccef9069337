"""
Exception classes for metaloc.

This module contains the error taxonomy shared by the export and import
pipelines. Every error carries a category and a severity so that the run
ledger can aggregate non-fatal failures per category while fatal ones abort
the run.
"""

from __future__ import annotations

from enum import Enum


class ErrorSeverity(Enum):
    """Error severity levels for classification and handling."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Categories of errors for appropriate handling strategies."""

    CONNECTION = "connection"
    FETCH = "fetch"
    PARSE = "parse"
    REFERENCE = "reference"
    UPDATE = "update"
    LOCALE = "locale"
    CONFIGURATION = "configuration"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


class MetalocError(Exception):
    """Base exception class for metaloc specific errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        user_message: str | None = None,
        context: object | None = None,
        recoverable: bool = True,
    ) -> None:
        super().__init__(message)
        self.category: ErrorCategory = category
        self.severity: ErrorSeverity = severity
        self.user_message: str = user_message or message
        self.context: object | None = context
        self.recoverable: bool = recoverable


class ConnectionUnavailableError(MetalocError):
    """The repository cannot be reached; aborts the run before any I/O."""

    def __init__(
        self,
        message: str,
        user_message: str | None = None,
        context: object | None = None,
    ) -> None:
        super().__init__(
            message,
            category=ErrorCategory.CONNECTION,
            severity=ErrorSeverity.CRITICAL,
            user_message=user_message,
            context=context,
            recoverable=False,
        )


class FetchError(MetalocError):
    """A repository read failed for one node; the node or sheet is omitted."""

    def __init__(
        self,
        message: str,
        user_message: str | None = None,
        context: object | None = None,
        recoverable: bool = True,
    ) -> None:
        super().__init__(
            message,
            category=ErrorCategory.FETCH,
            severity=ErrorSeverity.MEDIUM,
            user_message=user_message,
            context=context,
            recoverable=recoverable,
        )


class SheetParseError(MetalocError):
    """A worksheet is malformed (e.g. an unparsable language header)."""

    def __init__(
        self,
        message: str,
        sheet_name: str | None = None,
        user_message: str | None = None,
    ) -> None:
        super().__init__(
            message,
            category=ErrorCategory.PARSE,
            severity=ErrorSeverity.MEDIUM,
            user_message=user_message,
            context={"sheet": sheet_name},
        )
        self.sheet_name: str | None = sheet_name


class LayoutParseError(MetalocError):
    """An embedded layout document is not well-formed XML."""

    def __init__(
        self,
        message: str,
        document_id: str | None = None,
        user_message: str | None = None,
    ) -> None:
        super().__init__(
            message,
            category=ErrorCategory.PARSE,
            severity=ErrorSeverity.MEDIUM,
            user_message=user_message,
            context={"document_id": document_id},
        )
        self.document_id: str | None = document_id


class ReferenceNotFoundError(MetalocError):
    """A row references an id that is absent from the live repository."""

    def __init__(
        self,
        message: str,
        reference: str | None = None,
        user_message: str | None = None,
    ) -> None:
        super().__init__(
            message,
            category=ErrorCategory.REFERENCE,
            severity=ErrorSeverity.LOW,
            user_message=user_message,
            context={"reference": reference},
        )
        self.reference: str | None = reference


class UpdateError(MetalocError):
    """The repository rejected a single write."""

    def __init__(
        self,
        message: str,
        user_message: str | None = None,
        context: object | None = None,
    ) -> None:
        super().__init__(
            message,
            category=ErrorCategory.UPDATE,
            severity=ErrorSeverity.MEDIUM,
            user_message=user_message,
            context=context,
        )


class LocaleRestoreError(MetalocError):
    """The operator's original locale could not be restored."""

    def __init__(
        self,
        message: str,
        original_language: int | None = None,
        user_message: str | None = None,
    ) -> None:
        super().__init__(
            message,
            category=ErrorCategory.LOCALE,
            severity=ErrorSeverity.CRITICAL,
            user_message=user_message,
            context={"original_language": original_language},
            recoverable=False,
        )
        self.original_language: int | None = original_language


class ConfigurationError(MetalocError):
    """Configuration-related errors."""

    def __init__(
        self,
        message: str,
        user_message: str | None = None,
        context: object | None = None,
    ) -> None:
        super().__init__(
            message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.HIGH,
            recoverable=False,
            user_message=user_message,
            context=context,
        )


class RunCancelledError(MetalocError):
    """The caller cancelled the run; in-flight work is discarded."""

    def __init__(self, message: str, phase: str | None = None) -> None:
        super().__init__(
            message,
            category=ErrorCategory.CANCELLED,
            severity=ErrorSeverity.LOW,
            context={"phase": phase},
            recoverable=False,
        )
        self.phase: str | None = phase
