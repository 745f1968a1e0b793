"""
Exceptions shared across the taskboard client.
"""
from typing import Optional


class TaskboardError(Exception):
    """Base class for all client-side errors."""
    pass


class ConfigError(TaskboardError):
    """Raised when configuration is invalid or incomplete."""
    pass


class ValidationError(TaskboardError):
    """Raised when user input fails validation before any network call."""
    pass


class DragInProgress(TaskboardError):
    """Raised when a drag starts while another gesture is still in flight."""
    pass


class ApiError(TaskboardError):
    """
    A failed backend call: transport error, timeout, or non-2xx response.

    `message` is the server-supplied `message` field when there is one.
    """

    def __init__(self, message: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message or f"API request failed (status={status})")
        self.message = message
        self.status = status

    def describe(self, fallback: str) -> str:
        """Server message if present, otherwise the caller's fallback text."""
        return self.message or fallback
