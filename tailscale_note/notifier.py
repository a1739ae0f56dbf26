"""User-visible notices for sync results."""
import logging
from typing import Protocol

from plyer import notification

logger = logging.getLogger(__name__)

APP_TITLE = "Tailscale Note"


class Notifier(Protocol):
    def notify(self, message: str, *, error: bool = False) -> None: ...


class LogNotifier:
    """Surfaces notices through the console log."""

    def __init__(self, name: str = "tailscale_note.notice"):
        self.logger = logging.getLogger(name)

    def notify(self, message: str, *, error: bool = False) -> None:
        if error:
            self.logger.error("%s", message)
        else:
            self.logger.info("%s", message)


class DesktopNotifier:
    """Shows notices as OS desktop notifications (via plyer)."""

    def __init__(self, title: str = APP_TITLE, timeout: int = 5):
        self.title = title
        self.timeout = timeout

    def notify(self, message: str, *, error: bool = False) -> None:
        title = f"{self.title} - error" if error else self.title
        notification.notify(title=title, message=message, app_name=APP_TITLE, timeout=self.timeout)
