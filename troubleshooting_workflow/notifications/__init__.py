"""
Notifications Layer - Notification Events and Their Text

Defines the NotificationSink contract the engine emits into, and the
Jinja2 templates notification messages are rendered from.
"""

from troubleshooting_workflow.notifications.interface import (
    InMemoryNotificationSink,
    LoggingNotificationSink,
    Notification,
    NotificationSink,
    NotificationType,
)
from troubleshooting_workflow.notifications.loader import render
from troubleshooting_workflow.notifications.templates import Template

__all__ = [
    "InMemoryNotificationSink",
    "LoggingNotificationSink",
    "Notification",
    "NotificationSink",
    "NotificationType",
    "Template",
    "render",
]
