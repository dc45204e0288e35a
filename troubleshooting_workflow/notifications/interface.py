"""
Notification Sink Interface.

The engine emits notification-worthy events (step activated, validation
failed, ...) into a sink it is given. How, or whether, they are shown is
up to the presentation layer.
"""
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Literal

from pydantic import Field

from ..state.models import CamelModel, utcnow

logger = logging.getLogger(__name__)

NotificationType = Literal["success", "info", "warning", "error"]


class Notification(CamelModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    type: NotificationType
    title: str
    message: str
    timestamp: datetime = Field(default_factory=utcnow)
    duration_ms: int = 3000


class NotificationSink(ABC):
    """
    Abstract Base Class interface that defines the contract for anything that
    receives workflow notifications (toast queue, websocket, log, ...).
    """

    @abstractmethod
    def emit(self, notification: Notification) -> None:
        pass


class InMemoryNotificationSink(NotificationSink):
    """
    Keeps the most recent notifications, newest first, up to `limit`.
    """

    def __init__(self, limit: int = 10):
        self.limit = limit
        self._notifications: List[Notification] = []

    def emit(self, notification: Notification) -> None:
        self._notifications = [notification, *self._notifications][: self.limit]

    def list(self) -> List[Notification]:
        return list(self._notifications)

    def dismiss(self, notification_id: str) -> bool:
        remaining = [n for n in self._notifications if n.id != notification_id]
        found = len(remaining) != len(self._notifications)
        self._notifications = remaining
        return found

    def dismiss_all(self) -> None:
        self._notifications = []


class LoggingNotificationSink(NotificationSink):
    """Writes notifications to the log. Useful when nothing displays them."""

    def emit(self, notification: Notification) -> None:
        level = logging.WARNING if notification.type == "error" else logging.INFO
        logger.log(level, f"[{notification.type}] {notification.title}: {notification.message}")
