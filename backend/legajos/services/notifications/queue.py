"""
Notification Queue

Bounded, ordered set of user-facing messages with auto-dismiss timers.
Oldest notifications are evicted first when the queue is full.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

import structlog
from pydantic import BaseModel, ConfigDict, Field

from ...constants import get_current_timestamp

logger = structlog.get_logger()


class NotificationType(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    LOADING = "loading"


class ActionVariant(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    DANGER = "danger"


# Types that stay until dismissed unless the caller says otherwise
PERSISTENT_BY_DEFAULT = frozenset({NotificationType.ERROR, NotificationType.LOADING})


class NotificationConfig(BaseModel):
    """Notification queue configuration."""

    model_config = ConfigDict(extra="forbid")

    default_duration_seconds: float = Field(default=5.0, ge=0)
    max_notifications: int = Field(default=5, ge=1, le=100)
    deduplicate: bool = Field(
        default=False,
        description="Return the live notification instead of adding an identical one",
    )


@dataclass
class NotificationAction:
    label: str
    action: Callable[[], Any]
    variant: ActionVariant = ActionVariant.PRIMARY


@dataclass
class Notification:
    id: str
    type: NotificationType
    title: str
    message: str
    persistent: bool
    duration: Optional[float] = None
    actions: List[NotificationAction] = field(default_factory=list)
    created_at: datetime = field(default_factory=get_current_timestamp)
    # Text without the percentage suffix, for progress notifications
    base_message: Optional[str] = None


NotificationListener = Callable[[List[Notification]], None]


class NotificationQueue:
    """
    Notification store with subscriber callbacks.

    Non-persistent notifications schedule their own removal on the running
    event loop, so they must be created from inside it.
    """

    def __init__(self, config: Optional[NotificationConfig] = None):
        self.config = config or NotificationConfig()
        self._notifications: List[Notification] = []
        self._listeners: List[NotificationListener] = []
        self._timers: Dict[str, asyncio.TimerHandle] = {}

    def _notify(self) -> None:
        snapshot = list(self._notifications)
        for listener in list(self._listeners):
            listener(snapshot)

    def subscribe(self, listener: NotificationListener) -> Callable[[], None]:
        """
        Register a listener receiving the full notification list.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _find(self, notification_id: str) -> Optional[Notification]:
        return next((n for n in self._notifications if n.id == notification_id), None)

    def _add(
        self,
        type_: NotificationType,
        title: str,
        message: str,
        duration: Optional[float] = None,
        persistent: Optional[bool] = None,
        actions: Optional[List[NotificationAction]] = None,
    ) -> str:
        if persistent is None:
            persistent = type_ in PERSISTENT_BY_DEFAULT
        if duration is None:
            duration = self.config.default_duration_seconds

        if self.config.deduplicate:
            for existing in self._notifications:
                if (existing.type, existing.title, existing.message) == (
                    type_,
                    title,
                    message,
                ):
                    logger.debug("Duplicate notification", notification_id=existing.id)
                    return existing.id

        auto_dismiss = not persistent and duration > 0
        # Raises RuntimeError outside a running loop, before any mutation
        loop = asyncio.get_running_loop() if auto_dismiss else None

        notification = Notification(
            id=f"notification_{uuid4().hex}",
            type=type_,
            title=title,
            message=message,
            duration=duration,
            persistent=persistent,
            actions=list(actions or []),
        )

        while len(self._notifications) >= self.config.max_notifications:
            evicted = self._notifications.pop(0)
            self._cancel_timer(evicted.id)

        self._notifications.append(notification)

        if loop is not None:
            self._timers[notification.id] = loop.call_later(
                duration, self.remove, notification.id
            )

        logger.debug(
            "Notification added",
            notification_id=notification.id,
            type=type_.value,
            title=title,
        )
        self._notify()
        return notification.id

    def _cancel_timer(self, notification_id: str) -> None:
        handle = self._timers.pop(notification_id, None)
        if handle is not None:
            handle.cancel()

    def success(
        self,
        title: str,
        message: str,
        duration: Optional[float] = None,
        actions: Optional[List[NotificationAction]] = None,
        persistent: Optional[bool] = None,
    ) -> str:
        return self._add(
            NotificationType.SUCCESS, title, message, duration, persistent, actions
        )

    def error(
        self,
        title: str,
        message: str,
        duration: Optional[float] = None,
        actions: Optional[List[NotificationAction]] = None,
        persistent: Optional[bool] = None,
    ) -> str:
        return self._add(
            NotificationType.ERROR, title, message, duration, persistent, actions
        )

    def warning(
        self,
        title: str,
        message: str,
        duration: Optional[float] = None,
        actions: Optional[List[NotificationAction]] = None,
        persistent: Optional[bool] = None,
    ) -> str:
        return self._add(
            NotificationType.WARNING, title, message, duration, persistent, actions
        )

    def info(
        self,
        title: str,
        message: str,
        duration: Optional[float] = None,
        actions: Optional[List[NotificationAction]] = None,
        persistent: Optional[bool] = None,
    ) -> str:
        return self._add(
            NotificationType.INFO, title, message, duration, persistent, actions
        )

    def loading(
        self, title: str, message: str, persistent: Optional[bool] = None
    ) -> str:
        return self._add(
            NotificationType.LOADING, title, message, persistent=persistent
        )

    def remove(self, notification_id: str) -> bool:
        """Remove a notification. Unknown ids are ignored."""
        self._cancel_timer(notification_id)
        notification = self._find(notification_id)
        if notification is None:
            return False

        self._notifications.remove(notification)
        logger.debug("Notification removed", notification_id=notification_id)
        self._notify()
        return True

    def clear(self) -> None:
        for notification_id in list(self._timers):
            self._cancel_timer(notification_id)
        self._notifications.clear()
        self._notify()

    def get_notifications(self) -> List[Notification]:
        return list(self._notifications)

    def get_config(self) -> NotificationConfig:
        return self.config.model_copy()

    def update_config(self, **changes) -> None:
        self.config = NotificationConfig(**{**dict(self.config), **changes})

    # Convenience compositions

    def show_retry_error(
        self, title: str, message: str, on_retry: Callable[[], Any]
    ) -> str:
        """Error with a retry action and a cancel action that clears the queue."""
        return self.error(
            title,
            message,
            actions=[
                NotificationAction("Retry", on_retry, ActionVariant.PRIMARY),
                NotificationAction("Cancel", self.clear, ActionVariant.SECONDARY),
            ],
        )

    def show_success_with_action(
        self,
        title: str,
        message: str,
        action_label: str,
        on_action: Callable[[], Any],
    ) -> str:
        return self.success(
            title,
            message,
            actions=[
                NotificationAction(action_label, on_action, ActionVariant.PRIMARY)
            ],
        )

    def show_progress(self, title: str, message: str, percent: int) -> str:
        """Persistent loading notification showing a percentage."""
        notification_id = self.loading(
            title, f"{message} ({percent}%)", persistent=True
        )
        notification = self._find(notification_id)
        if notification is not None:
            notification.base_message = message
        return notification_id

    def update_progress(
        self, notification_id: str, percent: int, message: Optional[str] = None
    ) -> bool:
        """
        Rewrite a loading notification's message in place.

        Args:
            notification_id: Loading notification ID
            percent: Progress percentage to display
            message: New base message (keeps the current one when omitted)

        Returns:
            False if the id is unknown or not a loading notification
        """
        notification = self._find(notification_id)
        if notification is None or notification.type != NotificationType.LOADING:
            return False

        if message is None:
            message = notification.base_message or notification.message
        notification.base_message = message
        notification.message = f"{message} ({percent}%)"
        self._notify()
        return True
