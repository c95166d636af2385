"""
User Notifications

Fire-and-forget messages for the user (toasts in the mobile app).
Rendering is the UI's job; the core only decides what to say.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

import structlog


DEFAULT_ERROR_MESSAGE = "An error occurred"


class NotificationSeverity(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


DEFAULT_TITLES = {
    NotificationSeverity.SUCCESS: "Success",
    NotificationSeverity.ERROR: "Error",
    NotificationSeverity.WARNING: "Warning",
    NotificationSeverity.INFO: "Info",
}


class Notifier(ABC):
    """
    Abstract notification sink.

    Implementations must never raise; a failed notification is not a
    failed operation.
    """

    @abstractmethod
    def notify(
        self,
        severity: NotificationSeverity,
        message: str,
        title: Optional[str] = None,
    ) -> None:
        pass

    def success(self, message: str, title: Optional[str] = None) -> None:
        self.notify(NotificationSeverity.SUCCESS, message, title)

    def error(self, message: str, title: Optional[str] = None) -> None:
        self.notify(NotificationSeverity.ERROR, message or DEFAULT_ERROR_MESSAGE, title)

    def warning(self, message: str, title: Optional[str] = None) -> None:
        self.notify(NotificationSeverity.WARNING, message, title)

    def info(self, message: str, title: Optional[str] = None) -> None:
        self.notify(NotificationSeverity.INFO, message, title)


class LogNotifier(Notifier):
    """Writes notifications to the structured log."""

    def __init__(self):
        self._logger = structlog.get_logger("salesbook.notifications")

    def notify(
        self,
        severity: NotificationSeverity,
        message: str,
        title: Optional[str] = None,
    ) -> None:
        severity = NotificationSeverity(severity)
        if not message and severity is NotificationSeverity.ERROR:
            message = DEFAULT_ERROR_MESSAGE
        title = title or DEFAULT_TITLES[severity]

        if severity is NotificationSeverity.ERROR:
            self._logger.error("notification", title=title, message=message)
        elif severity is NotificationSeverity.WARNING:
            self._logger.warning("notification", title=title, message=message)
        else:
            self._logger.info(
                "notification",
                severity=severity.value,
                title=title,
                message=message,
            )
