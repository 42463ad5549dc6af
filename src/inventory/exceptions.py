"""Exception hierarchy for the inventory checkout ledger.

Every error raised by the ledger, the stores and the configuration layer
inherits from InventoryError, so callers can catch all of them with a
single except clause and still branch on the concrete type.

Exception Hierarchy:
    InventoryError (base)
    ├── ValidationError (malformed input - empty required field)
    ├── NotFoundError (referenced id does not exist)
    ├── ConflictError (state machine precondition violated)
    ├── ConfigurationError (fix config before retry)
    └── DatabaseError
        ├── ConnectionPoolError
        ├── TransactionError
        └── IntegrityError

None of these are retried internally. A failed ledger operation leaves
no partial state behind.
"""
from datetime import datetime, timezone
from typing import Any, Optional

# ============================================
# Base Exception
# ============================================

class InventoryError(Exception):
    """Base exception for all inventory errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "CONFLICT")
        details: Additional context as a dictionary
        timestamp: When the error occurred
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__.upper()
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)
        self.cause = cause

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
            f"details={self.details!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }


# ============================================
# Ledger Errors
# ============================================

class ValidationError(InventoryError):
    """Raised when input is malformed, e.g. an empty required field."""

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
            code="VALIDATION_ERROR",
            details=details,
            **kwargs,
        )
        self.field = field


class NotFoundError(InventoryError):
    """Raised when a referenced entity id does not exist."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[Any] = None,
        **kwargs,
    ):
        message = f"{resource_type} not found"
        if resource_id is not None:
            message = f"{resource_type} '{resource_id}' not found"

        details = kwargs.pop("details", {})
        details["resource_type"] = resource_type
        if resource_id is not None:
            details["resource_id"] = resource_id

        super().__init__(
            message,
            code="NOT_FOUND",
            details=details,
            **kwargs,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class ConflictError(InventoryError):
    """Raised when a state transition is not allowed.

    Examples: checking out an asset that is already on loan, checking in
    a checkout that is already closed, deleting an asset with loan history.
    """

    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        resource_id: Optional[Any] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if resource_type:
            details["resource_type"] = resource_type
        if resource_id is not None:
            details["resource_id"] = resource_id
        super().__init__(
            message,
            code="CONFLICT",
            details=details,
            **kwargs,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


# ============================================
# Configuration Errors
# ============================================

class ConfigurationError(InventoryError):
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
            **kwargs,
        )


# ============================================
# Database Errors
# ============================================

class DatabaseError(InventoryError):
    """Base class for database-related errors."""


class ConnectionPoolError(DatabaseError):
    """Raised when the database connection pool is exhausted or unavailable."""

    def __init__(
        self,
        message: str = "Database connection pool error",
        **kwargs,
    ):
        super().__init__(message, code="CONNECTION_POOL_ERROR", **kwargs)


class TransactionError(DatabaseError):
    """Raised when a database transaction fails."""

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
    """Raised when a database integrity constraint is violated."""

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
            **kwargs,
        )
        self.constraint = constraint


__all__ = [
    "InventoryError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "ConfigurationError",
    "DatabaseError",
    "ConnectionPoolError",
    "TransactionError",
    "IntegrityError",
]
