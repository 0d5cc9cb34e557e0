"""
Notifier interface for Momentum.

Notifiers carry "the assistant is degraded" alerts out of the process:
a brain dump or refine that fell back because the model was unreachable.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from core.logger import get_logger


class NotificationPriority(Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


@dataclass
class Notification:
    title: str
    message: str
    priority: NotificationPriority = NotificationPriority.NORMAL
    created_at: Optional[str] = None
    data: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if self.created_at is None:
            self.created_at = datetime.now().isoformat()


class BaseNotifier(ABC):
    """Base class for all notifiers."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self.enabled = self.config.get("enabled", True)

    @abstractmethod
    def send(self, notification: Notification) -> bool:
        """
        Deliver a notification.

        Returns:
            True if delivered, False otherwise. Implementations do not raise.
        """

    @abstractmethod
    def get_name(self) -> str:
        ...

    def is_available(self) -> bool:
        return self.enabled


class LogNotifier(BaseNotifier):
    """Writes notifications to the application log."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)
        self.logger = get_logger("notify")

    def send(self, notification: Notification) -> bool:
        if not self.enabled:
            return False
        self.logger.warning("%s: %s", notification.title, notification.message)
        return True

    def get_name(self) -> str:
        return "log"
