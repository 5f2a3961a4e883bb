"""
User-facing notification (toast) surface.
"""

from abc import ABC, abstractmethod

from shared.logging import get_logger


class Notifier(ABC):
    """Toast collaborator. The UI layer supplies a real one."""

    @abstractmethod
    def success(self, message: str) -> None:
        """Show a success toast."""

    @abstractmethod
    def warning(self, message: str) -> None:
        """Show a warning toast."""

    @abstractmethod
    def error(self, message: str) -> None:
        """Show an error toast."""


class LoggingNotifier(Notifier):
    """Notifier that only writes structured log events."""

    def __init__(self):
        self.logger = get_logger("visibility.notifications")

    def success(self, message: str) -> None:
        self.logger.info("Toast", kind="success", message=message)

    def warning(self, message: str) -> None:
        self.logger.warning("Toast", kind="warning", message=message)

    def error(self, message: str) -> None:
        self.logger.error("Toast", kind="error", message=message)
