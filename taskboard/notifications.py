"""
Transient user notifications.

Controllers report the outcome of every user action here instead of
raising: a success line, or an error line carrying the server's message.
Front ends subscribe to show them (toast, chat reply, log line).
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List

logger = logging.getLogger(__name__)


class Variant(Enum):
    DEFAULT = "default"
    DESTRUCTIVE = "destructive"


@dataclass
class Notification:
    title: str
    description: str
    variant: Variant = Variant.DEFAULT
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_error(self) -> bool:
        return self.variant == Variant.DESTRUCTIVE


class Notifier:
    """Fans notifications out to subscribers and keeps a short history."""

    def __init__(self, history_size: int = 50):
        self.history: List[Notification] = []
        self.history_size = history_size
        self.subscribers: List[Callable[[Notification], None]] = []

    def subscribe(self, callback: Callable[[Notification], None]) -> None:
        """Register a callback invoked for every notification."""
        self.subscribers.append(callback)

    def notify(self, notification: Notification) -> Notification:
        self.history.append(notification)
        del self.history[:-self.history_size]
        for callback in self.subscribers:
            try:
                callback(notification)
            except Exception as e:
                logger.warning(f"Notification subscriber failed: {e}")
        return notification

    def success(self, description: str) -> Notification:
        return self.notify(Notification("Success", description))

    def error(self, description: str) -> Notification:
        logger.warning(description)
        return self.notify(Notification("Error", description, Variant.DESTRUCTIVE))

    @property
    def last(self):
        return self.history[-1] if self.history else None
