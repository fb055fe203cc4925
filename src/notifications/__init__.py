"""Outbound notification and artifact delivery sinks."""

from .notification_manager import (
    NotificationChannel,
    NotificationManager,
    NotificationSink,
    create_notification_manager,
)
from .uploads import ArtifactSink, R2Uploader, create_uploader

__all__ = [
    "ArtifactSink",
    "NotificationChannel",
    "NotificationManager",
    "NotificationSink",
    "R2Uploader",
    "create_notification_manager",
    "create_uploader",
]
