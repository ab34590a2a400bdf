"""
Error classification and handling for photoshelf.

Every error raised by the asset lifecycle carries a category, a status
classification (validation / not_found / server_error) and a human-readable
message, so whichever layer renders results can pick an appropriate display.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

import duckdb

from .logging_config import get_logger, log_error

logger = get_logger(__name__)


class ErrorCategory(Enum):
    """Error categories for classification and handling."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    STORAGE = "storage"
    PERSISTENCE = "persistence"
    GENERATION = "generation"
    SYSTEM = "system"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorStatus(Enum):
    """Status classification seen by callers."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    SERVER_ERROR = "server_error"


HTTP_STATUS = {
    ErrorStatus.VALIDATION: 400,
    ErrorStatus.NOT_FOUND: 404,
    ErrorStatus.SERVER_ERROR: 500,
}


@dataclass
class ErrorInfo:
    """Structured error information."""

    category: ErrorCategory
    severity: ErrorSeverity
    status: ErrorStatus
    code: str
    message: str
    user_message: str
    details: dict[str, Any]
    timestamp: datetime
    recoverable: bool = True
    retry_suggested: bool = False

    @property
    def http_status(self) -> int:
        return HTTP_STATUS[self.status]

    def to_dict(self) -> dict[str, Any]:
        """Convert error info to dictionary."""
        return {
            "category": self.category.value,
            "severity": self.severity.value,
            "status": self.status.value,
            "http_status": self.http_status,
            "code": self.code,
            "message": self.message,
            "user_message": self.user_message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "recoverable": self.recoverable,
            "retry_suggested": self.retry_suggested,
        }


class PhotoShelfError(Exception):
    """Base exception class for photoshelf."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        status: ErrorStatus = ErrorStatus.SERVER_ERROR,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        recoverable: bool = True,
        retry_suggested: bool = False,
        original_exception: Exception | None = None,
    ):
        super().__init__(message)
        self.category = category
        self.severity = severity
        self.status = status
        self.code = code or f"{category.value}_error"
        self.user_message = user_message or self._generate_user_message()
        self.details = details or {}
        self.recoverable = recoverable
        self.retry_suggested = retry_suggested
        self.original_exception = original_exception
        self.timestamp = datetime.now()

        self._log_error()

    @property
    def http_status(self) -> int:
        return HTTP_STATUS[self.status]

    def _generate_user_message(self) -> str:
        """Generate user-friendly error message."""
        user_messages = {
            ErrorCategory.VALIDATION: "The request is missing required input or contains invalid input.",
            ErrorCategory.NOT_FOUND: "Image not found!",
            ErrorCategory.STORAGE: "The image files could not be written or removed.",
            ErrorCategory.PERSISTENCE: "The photo catalog could not be updated.",
            ErrorCategory.GENERATION: "Failure to create thumbnails!",
            ErrorCategory.SYSTEM: "A system error occurred.",
            ErrorCategory.UNKNOWN: "An unexpected error occurred.",
        }
        return user_messages.get(self.category, "An error occurred.")

    def _log_error(self) -> None:
        """Log the error; client-side errors are logged at warning level."""
        error_context = {
            "category": self.category.value,
            "severity": self.severity.value,
            "status": self.status.value,
            "code": self.code,
            "recoverable": self.recoverable,
            "retry_suggested": self.retry_suggested,
            **self.details,
        }

        if self.original_exception:
            error_context["original_exception"] = str(self.original_exception)

        if self.status is ErrorStatus.SERVER_ERROR:
            log_error(self, error_context)
        else:
            logger.warning("request_rejected", error_message=str(self), **error_context)

    def get_error_info(self) -> ErrorInfo:
        """Get structured error information."""
        return ErrorInfo(
            category=self.category,
            severity=self.severity,
            status=self.status,
            code=self.code,
            message=str(self),
            user_message=self.user_message,
            details=self.details,
            timestamp=self.timestamp,
            recoverable=self.recoverable,
            retry_suggested=self.retry_suggested,
        )


class ValidationError(PhotoShelfError):
    """Missing or malformed input. Never accompanied by side effects."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.LOW,
            status=ErrorStatus.VALIDATION,
            code=code or "validation_failed",
            user_message=user_message or message,
            details=details,
            recoverable=True,
            retry_suggested=False,
            original_exception=original_exception,
        )


class NotFoundError(PhotoShelfError):
    """No catalog record matched."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.NOT_FOUND,
            severity=ErrorSeverity.LOW,
            status=ErrorStatus.NOT_FOUND,
            code=code or "photo_not_found",
            user_message=user_message or "Image not found!",
            details=details,
            recoverable=True,
            retry_suggested=False,
            original_exception=original_exception,
        )


class StorageError(PhotoShelfError):
    """Writing or removing a variant file failed."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.STORAGE,
            severity=ErrorSeverity.HIGH,
            status=ErrorStatus.SERVER_ERROR,
            code=code or "storage_failed",
            user_message=user_message,
            details=details,
            recoverable=True,
            retry_suggested=True,
            original_exception=original_exception,
        )
        # Populated by the deletion pipeline when a cascade aborts midway
        self.outcome: Any = None


class PersistenceError(PhotoShelfError):
    """Inserting, removing or querying the catalog failed."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.PERSISTENCE,
            severity=ErrorSeverity.HIGH,
            status=ErrorStatus.SERVER_ERROR,
            code=code or "catalog_failed",
            user_message=user_message,
            details=details,
            recoverable=True,
            retry_suggested=True,
            original_exception=original_exception,
        )


class GenerationError(PhotoShelfError):
    """The derivative step failed. The stored original and its record are kept."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.GENERATION,
            severity=ErrorSeverity.MEDIUM,
            status=ErrorStatus.SERVER_ERROR,
            code=code or "thumbnail_generation_failed",
            user_message=user_message or "Failure to create thumbnails!",
            details=details,
            recoverable=True,
            retry_suggested=True,
            original_exception=original_exception,
        )
        # Populated by generators that finish a batch before failing
        self.report: Any = None


class ErrorHandler:
    """Turns any exception into structured error information."""

    def __init__(self) -> None:
        self.error_counts: dict[str, int] = {}
        self.logger = get_logger(__name__)

    def handle_error(
        self,
        error: Exception,
        context: dict[str, Any] | None = None,
    ) -> ErrorInfo:
        """
        Handle and classify errors.

        Args:
            error: Exception to handle
            context: Additional context information

        Returns:
            ErrorInfo: Structured error information
        """
        context = context or {}

        if isinstance(error, PhotoShelfError):
            error_info = error.get_error_info()
        else:
            error_info = self._classify_error(error, context).get_error_info()

        self._track_error(error_info.code)
        return error_info

    def _classify_error(self, error: Exception, context: dict[str, Any]) -> PhotoShelfError:
        """Wrap a foreign exception into the matching PhotoShelfError."""
        details = {"original_type": type(error).__name__, **context}

        if isinstance(error, duckdb.Error):
            return PersistenceError(str(error), details=details, original_exception=error)

        if isinstance(error, OSError):
            return StorageError(str(error), details=details, original_exception=error)

        return PhotoShelfError(
            message=str(error),
            category=ErrorCategory.UNKNOWN,
            severity=ErrorSeverity.MEDIUM,
            details=details,
            original_exception=error,
        )

    def _track_error(self, error_code: str) -> None:
        """Track error occurrence for monitoring."""
        self.error_counts[error_code] = self.error_counts.get(error_code, 0) + 1

        if self.error_counts[error_code] % 10 == 0:
            self.logger.warning("frequent_error_detected", error_code=error_code, count=self.error_counts[error_code])

    def get_error_statistics(self) -> dict[str, int]:
        """Get error occurrence statistics."""
        return self.error_counts.copy()

    def reset_statistics(self) -> None:
        """Reset error statistics."""
        self.error_counts.clear()


# Global error handler instance
error_handler = ErrorHandler()


def handle_error(error: Exception, context: dict[str, Any] | None = None) -> ErrorInfo:
    """Classify an error with the global handler."""
    return error_handler.handle_error(error, context)

