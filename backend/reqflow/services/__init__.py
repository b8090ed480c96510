"""Service modules - Business logic layer"""
from .request_service import RequestService
from .notification_service import NotificationService
from .directory_service import DirectoryService

__all__ = [
    "RequestService",
    "NotificationService",
    "DirectoryService",
]
