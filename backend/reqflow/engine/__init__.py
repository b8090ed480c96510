"""Lifecycle Engine - Orchestrates request commands and their side effects"""
from .engine import LifecycleEngine
from .permission_guard import PermissionGuard
from .audit_recorder import AuditRecorder, ACTION_TO_EVENT, EVENT_TO_ACTION
from .notification_dispatcher import NotificationDispatcher

__all__ = [
    "LifecycleEngine",
    "PermissionGuard",
    "AuditRecorder",
    "ACTION_TO_EVENT",
    "EVENT_TO_ACTION",
    "NotificationDispatcher",
]
