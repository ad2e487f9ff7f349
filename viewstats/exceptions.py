"""
Custom Exception Classes for viewstats

This module defines custom exceptions for consistent error responses.
Best-effort failures (geolocation, view writes, background recomputes)
never surface as exceptions; only synchronous analytics reads and
lookups of unknown entities do.
"""

from enum import Enum
from typing import Any

from fastapi import status


class ErrorCode(str, Enum):
    """Machine-readable error codes included in every error response."""

    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    RESOURCE_TYPE_UNSUPPORTED = "RESOURCE_TYPE_UNSUPPORTED"
    ANALYTICS_UNAVAILABLE = "ANALYTICS_UNAVAILABLE"
    DATABASE_ERROR = "DATABASE_ERROR"


class ViewStatsError(Exception):
    """Base exception class for all viewstats exceptions"""

    error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
        error_code: ErrorCode | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        if error_code is not None:
            self.error_code = error_code
        super().__init__(self.message)


# ============================================================================
# Resource Not Found Exceptions
# ============================================================================


class ResourceNotFoundError(ViewStatsError):
    """Raised when a tracked resource does not exist"""

    error_code = ErrorCode.RESOURCE_NOT_FOUND

    def __init__(self, resource_type: str, resource_id: Any | None = None):
        message = f"{resource_type.capitalize()} not found"
        if resource_id is not None:
            message = f"{resource_type.capitalize()} with id '{resource_id}' not found"
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class EntityNotFoundError(ResourceNotFoundError):
    """Raised when analytics are requested for an entity that does not exist"""


class UnsupportedResourceTypeError(ViewStatsError):
    """Raised when a resource or entity type is not one the service knows"""

    error_code = ErrorCode.RESOURCE_TYPE_UNSUPPORTED

    def __init__(self, resource_type: str):
        super().__init__(
            message=f"Unknown resource type '{resource_type}'",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource_type": resource_type},
        )


# ============================================================================
# Database & Service Exceptions
# ============================================================================


class DatabaseError(ViewStatsError):
    """Raised when a storage operation fails"""

    error_code = ErrorCode.DATABASE_ERROR

    def __init__(self, message: str = "A database error occurred", operation: str | None = None):
        details = {"operation": operation} if operation else {}
        super().__init__(message=message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, details=details)


class AnalyticsUnavailableError(ViewStatsError):
    """Raised when a synchronous aggregate calculation cannot read its raw sources"""

    error_code = ErrorCode.ANALYTICS_UNAVAILABLE

    def __init__(self, entity_type: str, entity_id: Any, reason: str | None = None):
        details: dict[str, Any] = {"entity_type": entity_type, "entity_id": entity_id, "retryable": True}
        if reason:
            details["reason"] = reason
        super().__init__(
            message=f"Analytics for {entity_type} '{entity_id}' are temporarily unavailable",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details=details,
        )
