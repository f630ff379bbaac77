"""Custom exceptions for the Lazy Read store.

Provides a structured exception hierarchy with error codes and
machine-readable error information for better error handling.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Error codes for machine-readable error identification."""

    # Validation errors (1xxx)
    VALIDATION_FAILED = 1001
    REQUIRED_TEXT_MISSING = 1002
    INVALID_PAGE_NUMBER = 1003
    INVALID_SORT_ORDER = 1004

    # Storage errors (4xxx)
    STORAGE_WRITE_FAILED = 4002
    STORAGE_CONNECTION_FAILED = 4004
    TRANSACTION_FAILED = 4005

    # Schema errors (5xxx)
    SCHEMA_CREATION_FAILED = 5001
    MIGRATION_STEP_FAILED = 5002


class LazyReadError(Exception):
    """Base exception for all Lazy Read store errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "code": self.code.value,
            "code_name": self.code.name,
            "message": self.message,
            "details": self.details
        }

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.code.name}] {self.message} ({detail_str})"
        return f"[{self.code.name}] {self.message}"


class ValidationError(LazyReadError):
    """Raised when a caller-supplied entity fails a precondition.

    Always raised before any statement executes.
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED
    ):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:100]  # Truncate for safety

        super().__init__(message, code=code, details=details)
        self.field = field
        self.value = value


class InitializationError(LazyReadError):
    """Raised when the store cannot be opened or its base tables created."""

    def __init__(
        self,
        message: str,
        database_url: Optional[str] = None,
        code: ErrorCode = ErrorCode.SCHEMA_CREATION_FAILED,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if database_url:
            # Only the file name, never the full path
            details["store"] = database_url.rsplit("/", 1)[-1] or database_url
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.database_url = database_url
        self.original_error = original_error


class StorageError(LazyReadError):
    """Raised for storage/persistence errors."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        code: ErrorCode = ErrorCode.STORAGE_WRITE_FAILED,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.original_error = original_error


class TransactionError(StorageError):
    """Raised when a statement inside an atomic unit fails.

    Every statement of the unit has been rolled back by the time this is
    raised. The database error that caused it is chained as
    ``__cause__`` and kept unchanged on ``original_error``.
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(
            message,
            operation=operation,
            code=ErrorCode.TRANSACTION_FAILED,
            original_error=original_error
        )


class MigrationStepError(StorageError):
    """A single additive schema change that could not be applied.

    Never raised by the schema manager itself: failed steps are logged
    and collected on the ``SchemaReport``.
    """

    def __init__(
        self,
        step: str,
        original_error: Optional[Exception] = None
    ):
        super().__init__(
            f"Migration step '{step}' failed",
            operation="migrate",
            code=ErrorCode.MIGRATION_STEP_FAILED,
            original_error=original_error
        )
        self.step = step
        self.details["step"] = step
