"""Domain Enumerations - All status and type definitions"""
from enum import Enum


class RequestStatus(str, Enum):
    """Request lifecycle status"""
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    IN_REVIEW = "IN_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class RequestType(str, Enum):
    """Kind of request being raised"""
    LEAVE = "LEAVE"
    EQUIPMENT = "EQUIPMENT"
    EXPENSE = "EXPENSE"
    ACCESS = "ACCESS"
    OTHER = "OTHER"


class RequestPriority(str, Enum):
    """Request priority"""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class RequestOperation(str, Enum):
    """Named operations on the request aggregate"""
    SUBMIT = "submit"
    BEGIN_REVIEW = "begin_review"
    APPROVE = "approve"
    REJECT = "reject"
    CANCEL = "cancel"
    REOPEN = "reopen"
    UPDATE = "update"
    ADD_ATTACHMENT = "add_attachment"
    REMOVE_ATTACHMENT = "remove_attachment"
    CHANGE_PRIORITY = "change_priority"


class UserRole(str, Enum):
    """Roles carried on the bearer token; any authenticated user may raise requests"""
    REVIEWER = "REVIEWER"
    ADMIN = "ADMIN"


class AuditEventType(str, Enum):
    """Fine-grained event types preserved in audit metadata"""
    # User
    USER_CREATED = "USER_CREATED"
    USER_UPDATED = "USER_UPDATED"
    USER_STATUS_CHANGED = "USER_STATUS_CHANGED"
    USER_ROLE_ASSIGNED = "USER_ROLE_ASSIGNED"
    USER_ROLE_REMOVED = "USER_ROLE_REMOVED"

    # Request
    REQUEST_CREATED = "REQUEST_CREATED"
    REQUEST_UPDATED = "REQUEST_UPDATED"
    REQUEST_SUBMITTED = "REQUEST_SUBMITTED"
    REQUEST_ASSIGNED = "REQUEST_ASSIGNED"
    REQUEST_STATUS_CHANGED = "REQUEST_STATUS_CHANGED"
    REQUEST_APPROVED = "REQUEST_APPROVED"
    REQUEST_REJECTED = "REQUEST_REJECTED"
    REQUEST_CANCELLED = "REQUEST_CANCELLED"
    REQUEST_REOPENED = "REQUEST_REOPENED"

    # Attachment
    ATTACHMENT_UPLOADED = "ATTACHMENT_UPLOADED"
    ATTACHMENT_DELETED = "ATTACHMENT_DELETED"

    # Comment
    COMMENT_CREATED = "COMMENT_CREATED"
    COMMENT_EDITED = "COMMENT_EDITED"
    COMMENT_DELETED = "COMMENT_DELETED"

    # System
    SYSTEM_LOGIN = "SYSTEM_LOGIN"
    SYSTEM_LOGOUT = "SYSTEM_LOGOUT"
    SYSTEM_ERROR = "SYSTEM_ERROR"


class AuditAction(str, Enum):
    """Coarse action stored on every audit entry"""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    VIEW = "VIEW"
    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    CANCEL = "CANCEL"


class NotificationType(str, Enum):
    """Notification feed categories"""
    REQUEST_CREATED = "REQUEST_CREATED"
    REQUEST_SUBMITTED = "REQUEST_SUBMITTED"
    REQUEST_APPROVED = "REQUEST_APPROVED"
    REQUEST_REJECTED = "REQUEST_REJECTED"
    REQUEST_ASSIGNED = "REQUEST_ASSIGNED"
    COMMENT_ADDED = "COMMENT_ADDED"
    MENTION = "MENTION"
    SYSTEM = "SYSTEM"


class EntityType(str, Enum):
    """Entities referenced by audit entries and notifications"""
    REQUEST = "REQUEST"
    ATTACHMENT = "ATTACHMENT"
    COMMENT = "COMMENT"
    USER = "USER"


class ErrorKind(str, Enum):
    """Stable error kinds surfaced to callers"""
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    CONFLICT = "CONFLICT"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    PERSISTENCE_ERROR = "PERSISTENCE_ERROR"
    UNSUPPORTED = "UNSUPPORTED"
    AUTHENTICATION = "AUTHENTICATION"


class MessageClass(str, Enum):
    """What the caller should do about an error"""
    NOT_PERMITTED = "NOT_PERMITTED"  # you can't do that
    RETRY = "RETRY"                  # reload and try again
    GONE = "GONE"                    # that no longer exists
    INVALID_INPUT = "INVALID_INPUT"  # fix the payload
