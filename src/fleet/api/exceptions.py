#!/usr/bin/env python3
"""Exception Hierarchy for the Fleet Sync Engine.

This module provides a structured exception hierarchy for handling errors
across the sync engine, the plugin registry, the history store and the
database layer.

Design Principles:
    - All exceptions inherit from FleetError base class
    - Every exception carries a stable machine-readable code
    - Exceptions preserve context (original error, timestamps, details)
    - The HTTP layer maps each code to a status via ``http_status``

Exception Hierarchy:
    FleetError (base)
    ├── ConfigurationError
    ├── ValidationError            (400)
    ├── NotFoundError              (404)
    ├── DuplicateNameError         (409)
    ├── ForbiddenError             (403)
    ├── UnprocessableEntityError   (422)
    ├── InitializationError        (500)
    ├── PluginExecutionError       (502)
    ├── HistoryPersistenceError    (log only)
    └── DatabaseError
        ├── ConnectionPoolError
        ├── TransactionError
        └── IntegrityError
"""
from datetime import UTC, datetime
from typing import Any, Optional

# ============================================
# Base Exception
# ============================================

class FleetError(Exception):
    """Base exception for all sync engine errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "NOT_FOUND")
        details: Additional context as a dictionary
        timestamp: When the error occurred
        cause: The original exception that caused this error
        recoverable: Whether this error might be recoverable with retry
    """

    http_status: int = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        recoverable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__.upper()
        self.details = details or {}
        self.timestamp = datetime.now(UTC)
        self.cause = cause
        self.recoverable = recoverable

        if cause:
            self.__cause__ = cause

    def __str__(self) -> str:
        parts = [self.message]
        if self.code:
            parts.insert(0, f"[{self.code}]")
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"({detail_str})")
        return " ".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"details={self.details!r}, "
            f"recoverable={self.recoverable})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "recoverable": self.recoverable,
            "cause": str(self.cause) if self.cause else None,
        }


# ============================================
# Configuration Errors
# ============================================

class ConfigurationError(FleetError):
    """Raised when configuration is missing or invalid."""

    def __init__(
        self,
        message: str,
        missing_keys: Optional[list[str]] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if missing_keys:
            details["missing_keys"] = missing_keys
        super().__init__(
            message,
            code="CONFIGURATION_ERROR",
            details=details,
            recoverable=False,
            **kwargs,
        )


# ============================================
# Request Errors
# ============================================

class ValidationError(FleetError):
    """Raised when a request or plugin config is rejected (HTTP 400)."""

    http_status = 400

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        super().__init__(
            message,
            code="VALIDATION_FAILED",
            details=details,
            recoverable=False,
            **kwargs,
        )


class NotFoundError(FleetError):
    """Raised when a plugin, result, schedule or record is unknown (HTTP 404)."""

    http_status = 404

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        **kwargs,
    ):
        message = f"{resource_type} not found"
        if resource_id:
            message = f"{resource_type} '{resource_id}' not found"

        details = kwargs.pop("details", {})
        details["resource_type"] = resource_type
        if resource_id:
            details["resource_id"] = resource_id

        super().__init__(
            message,
            code="NOT_FOUND",
            details=details,
            recoverable=False,
            **kwargs,
        )


class DuplicateNameError(FleetError):
    """Raised when registering a plugin whose name is already taken (HTTP 409)."""

    http_status = 409

    def __init__(self, name: str, **kwargs):
        super().__init__(
            f"Plugin '{name}' is already registered",
            code="DUPLICATE_NAME",
            details={"name": name},
            **kwargs,
        )


class ForbiddenError(FleetError):
    """Raised when a download path escapes the allowed base directory (HTTP 403)."""

    http_status = 403

    def __init__(self, message: str = "Download path not allowed", **kwargs):
        super().__init__(message, code="FORBIDDEN", **kwargs)


class UnprocessableEntityError(FleetError):
    """Raised when there is nothing to serve for a result (HTTP 422)."""

    http_status = 422

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code="UNPROCESSABLE_ENTITY", **kwargs)


# ============================================
# Plugin Errors
# ============================================

class InitializationError(FleetError):
    """Raised when a plugin fails to initialize; the plugin is not registered."""

    def __init__(self, name: str, **kwargs):
        super().__init__(
            f"Plugin '{name}' failed to initialize",
            code="INITIALIZATION_ERROR",
            details={"name": name},
            **kwargs,
        )


class PluginExecutionError(FleetError):
    """Wraps a failure raised inside a plugin's export/import/preview call.

    Never retried automatically. The coordinator records its code on the
    failed result instead of raising it to the caller.
    """

    http_status = 502

    def __init__(
        self,
        plugin_name: str,
        operation: str,
        **kwargs,
    ):
        cause = kwargs.get("cause")
        message = f"Plugin '{plugin_name}' {operation} failed"
        if cause:
            message = f"{message}: {cause}"
        details = kwargs.pop("details", {})
        details["plugin"] = plugin_name
        details["operation"] = operation
        super().__init__(
            message,
            code="PLUGIN_EXECUTION_ERROR",
            details=details,
            **kwargs,
        )


class HistoryPersistenceError(FleetError):
    """Raised internally when an audit record cannot be stored. Log only."""

    def __init__(self, kind: str, correlation_id: str, **kwargs):
        super().__init__(
            f"Failed to persist {kind} history for '{correlation_id}'",
            code="HISTORY_PERSISTENCE_ERROR",
            details={"kind": kind, "correlation_id": correlation_id},
            recoverable=True,
            **kwargs,
        )


# ============================================
# Database Errors
# ============================================

class DatabaseError(FleetError):
    """Base class for database-related errors."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("code", "DATABASE_ERROR")
        kwargs.setdefault("recoverable", True)
        super().__init__(message, **kwargs)


class ConnectionPoolError(DatabaseError):
    """Raised when database connection pool is exhausted or unavailable."""

    def __init__(
        self,
        message: str = "Database connection pool error",
        **kwargs,
    ):
        super().__init__(message, code="CONNECTION_POOL_ERROR", **kwargs)


class TransactionError(DatabaseError):
    """Raised when database transaction fails."""

    def __init__(
        self,
        message: str = "Database transaction failed",
        operation: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if operation:
            details["operation"] = operation
        super().__init__(
            message,
            code="TRANSACTION_ERROR",
            details=details,
            **kwargs,
        )


class IntegrityError(DatabaseError):
    """Raised when database integrity constraint is violated."""

    def __init__(
        self,
        message: str = "Database integrity error",
        constraint: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if constraint:
            details["constraint"] = constraint
        super().__init__(
            message,
            code="INTEGRITY_ERROR",
            details=details,
            recoverable=False,
            **kwargs,
        )


# ============================================
# Error Aggregation
# ============================================

class ErrorCollector:
    """Collect multiple errors for batch operations.

    Used by registry shutdown, where one failing cleanup must not stop
    the others.

    Example:
        collector = ErrorCollector()
        for plugin in plugins:
            try:
                plugin.cleanup()
            except Exception as e:
                collector.add(e, context={"plugin": name})
    """

    def __init__(self, max_errors: int = 100):
        self.errors: list[tuple[Exception, dict[str, Any]]] = []
        self.max_errors = max_errors

    def add(self, error: Exception, context: Optional[dict[str, Any]] = None):
        """Add an error with optional context."""
        if len(self.errors) < self.max_errors:
            self.errors.append((error, context or {}))

    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def count(self) -> int:
        return len(self.errors)

    def messages(self) -> list[str]:
        """Render each collected error with its context."""
        rendered = []
        for error, context in self.errors:
            prefix = ", ".join(f"{k}={v}" for k, v in context.items())
            rendered.append(f"{prefix}: {error}" if prefix else str(error))
        return rendered


__all__ = [
    "FleetError",
    "ConfigurationError",
    "ValidationError",
    "NotFoundError",
    "DuplicateNameError",
    "ForbiddenError",
    "UnprocessableEntityError",
    "InitializationError",
    "PluginExecutionError",
    "HistoryPersistenceError",
    "DatabaseError",
    "ConnectionPoolError",
    "TransactionError",
    "IntegrityError",
    "ErrorCollector",
]
