"""Domain Errors - Centralized Exception Hierarchy"""
from typing import Any, Dict, Optional

from .enums import ErrorKind, MessageClass


class DomainError(Exception):
    """Base domain error - all errors extend this"""

    error_code: str = "DOMAIN_ERROR"
    http_status: int = 400
    kind: ErrorKind = ErrorKind.VALIDATION_ERROR
    message_class: MessageClass = MessageClass.INVALID_INPUT

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to API response dict"""
        return {
            "error": {
                "code": self.error_code,
                "kind": self.kind.value,
                "message_class": self.message_class.value,
                "message": self.message,
                "details": self.details
            }
        }


# Authentication & Authorization Errors
class AuthenticationError(DomainError):
    """Token missing, invalid, or expired"""
    error_code = "AUTHENTICATION_ERROR"
    http_status = 401
    kind = ErrorKind.AUTHENTICATION
    message_class = MessageClass.NOT_PERMITTED


class ForbiddenError(DomainError):
    """Actor lacks the role required for the attempted operation"""
    error_code = "FORBIDDEN"
    http_status = 403
    kind = ErrorKind.FORBIDDEN
    message_class = MessageClass.NOT_PERMITTED


# Validation Errors
class ValidationError(DomainError):
    """Malformed command payload"""
    error_code = "VALIDATION_ERROR"
    http_status = 400
    kind = ErrorKind.VALIDATION_ERROR
    message_class = MessageClass.INVALID_INPUT


# Not Found Errors
class NotFoundError(DomainError):
    """Resource not found"""
    error_code = "NOT_FOUND"
    http_status = 404
    kind = ErrorKind.NOT_FOUND
    message_class = MessageClass.GONE


class RequestNotFoundError(NotFoundError):
    """Request not found"""
    error_code = "REQUEST_NOT_FOUND"


class NotificationNotFoundError(NotFoundError):
    """Notification not found"""
    error_code = "NOTIFICATION_NOT_FOUND"


# State Errors
class InvalidTransitionError(DomainError):
    """Current state does not allow the requested operation"""
    error_code = "INVALID_TRANSITION"
    http_status = 409
    kind = ErrorKind.INVALID_TRANSITION
    message_class = MessageClass.NOT_PERMITTED

    def __init__(self, current_status: str, operation: str):
        super().__init__(
            f"Cannot {operation} a request in status {current_status}",
            details={"current_status": current_status, "operation": operation}
        )
        self.current_status = current_status
        self.operation = operation


class ConflictError(DomainError):
    """Optimistic concurrency conflict - another writer advanced the request"""
    error_code = "CONFLICT"
    http_status = 409
    kind = ErrorKind.CONFLICT
    message_class = MessageClass.RETRY


# Infrastructure Errors
class PersistenceError(DomainError):
    """Durable write failed for infrastructure reasons"""
    error_code = "PERSISTENCE_ERROR"
    http_status = 503
    kind = ErrorKind.PERSISTENCE_ERROR
    message_class = MessageClass.RETRY


class UnsupportedOperationError(DomainError):
    """Operation is never allowed (e.g. deleting audit entries)"""
    error_code = "UNSUPPORTED_OPERATION"
    http_status = 405
    kind = ErrorKind.UNSUPPORTED
    message_class = MessageClass.NOT_PERMITTED
