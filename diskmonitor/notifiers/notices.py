"""Subscribers forwarding disk space change signals to people and logs."""

import socket
from typing import Optional

import apprise
import structlog

from diskmonitor.models import DiskSpaceSignal

logger = structlog.get_logger()


class LogSink:
    """Logs every disk space change signal."""

    def __init__(self):
        self.logger = logger.bind(component="LogSink")

    def __call__(self, signal: DiskSpaceSignal) -> None:
        self.logger.warning(
            "Disk space change",
            mount_path=signal.mount_path,
            percent_used=signal.percent_used,
        )


def build_notification_url(notification: dict) -> str:
    """Build Apprise URL for notification channel."""
    if uri := notification.get("uri"):
        return uri

    notification_type = notification.get("type")
    if notification_type == "telegram":
        token = notification.get("token")
        chat_id = notification.get("chat_id")
        if not token or not chat_id:
            raise ValueError("Telegram notifications require token and chat_id")
        return f"tgram://{token}/{chat_id}"
    raise ValueError(f"Unsupported notification type: {notification_type}")


class NotificationSink:
    """Sends disk space change signals through configured Apprise channels."""

    def __init__(self, notifications: list[dict], hostname: Optional[str] = None):
        """Initialize the notification sink.

        Args:
            notifications: Notification channel configurations
            hostname: Host name used in notification titles
        """
        self.logger = logger.bind(component="NotificationSink")
        self.apprise = apprise.Apprise()
        self.hostname = hostname or socket.gethostname()
        self._setup_notifications(notifications)

    def _setup_notifications(self, notifications: list[dict]) -> None:
        if not notifications:
            self.logger.debug("No notification channels configured")
            return

        for notification in notifications:
            if not notification.get("enabled", True):
                continue

            notification_type = notification.get("type", "unknown")
            if notification_type == "console":
                # Console output is covered by LogSink
                continue

            try:
                self.apprise.add(build_notification_url(notification))
                self.logger.debug("Added notification channel", type=notification_type)
            except Exception as e:
                self.logger.error(
                    "Failed to add notification channel",
                    type=notification_type,
                    error=str(e),
                )

    def __call__(self, signal: DiskSpaceSignal) -> None:
        if not self.apprise.servers:
            return

        title = f"Disk space warning on {self.hostname}"
        body = f"Mount: {signal.mount_path}\nUsed: {signal.percent_used}%"
        try:
            if not self.apprise.notify(title=title, body=body):
                self.logger.error("Failed to send notifications", title=title)
        except Exception as e:
            self.logger.error(
                "Failed to send notification through Apprise",
                error=str(e),
                exc_info=True,
            )
