"""Shared infrastructure: exception hierarchy and database helpers.

Exceptions:
    FleetError: Base exception for all sync engine errors
    ValidationError, NotFoundError, DuplicateNameError: request errors
    ForbiddenError, UnprocessableEntityError: download errors
    InitializationError, PluginExecutionError: plugin errors
    HistoryPersistenceError: audit store failures (log only)
    DatabaseError: database operation failures
"""
from .exceptions import (
    ConfigurationError,
    ConnectionPoolError,
    DatabaseError,
    DuplicateNameError,
    ErrorCollector,
    FleetError,
    ForbiddenError,
    HistoryPersistenceError,
    InitializationError,
    IntegrityError,
    NotFoundError,
    PluginExecutionError,
    TransactionError,
    UnprocessableEntityError,
    ValidationError,
)

__all__ = [
    "ConfigurationError",
    "ConnectionPoolError",
    "DatabaseError",
    "DuplicateNameError",
    "ErrorCollector",
    "FleetError",
    "ForbiddenError",
    "HistoryPersistenceError",
    "InitializationError",
    "IntegrityError",
    "NotFoundError",
    "PluginExecutionError",
    "TransactionError",
    "UnprocessableEntityError",
    "ValidationError",
]
