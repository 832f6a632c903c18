"""
Notification Services

Bounded notification queue with auto-dismiss timers and actions.
"""

from .queue import (
    ActionVariant,
    Notification,
    NotificationAction,
    NotificationConfig,
    NotificationQueue,
    NotificationType,
)

__all__ = [
    "ActionVariant",
    "Notification",
    "NotificationAction",
    "NotificationConfig",
    "NotificationQueue",
    "NotificationType",
]
