"""
Custom exceptions for the application.

Centralized exception hierarchy for the task tracker and its message bus.
"""

from typing import Any, Dict, Optional


class TaskTrackerError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        """
        Initialize base exception.

        Args:
            message: Human-readable error message
            details: Additional context (dict)
            original_error: Original exception if wrapped
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.original_error = original_error

    def __str__(self) -> str:
        """String representation with details."""
        base = self.message
        if self.details:
            base += f" | Details: {self.details}"
        if self.original_error:
            base += f" | Caused by: {type(self.original_error).__name__}"
        return base


class ConfigurationError(TaskTrackerError):
    """Configuration or settings error."""

    pass


class MessagingError(TaskTrackerError):
    """Base class for message bus errors."""

    pass


class BrokerConnectionError(MessagingError):
    """Broker unreachable after all connection attempts (fatal for startup)."""

    def __init__(
        self,
        message: str,
        attempts: int = 0,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, details, original_error)
        self.attempts = attempts


class PublishError(MessagingError):
    """Message was not accepted by the broker. Never retried internally."""

    def __init__(
        self,
        message: str,
        queue_name: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, details, original_error)
        self.queue_name = queue_name

    def __str__(self) -> str:
        base = super().__str__()
        if self.queue_name:
            base = f"[{self.queue_name}] {base}"
        return base


class SubscriptionError(MessagingError):
    """Queue declaration, QoS or consumer registration failed."""

    def __init__(
        self,
        message: str,
        queue_name: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, details, original_error)
        self.queue_name = queue_name

    def __str__(self) -> str:
        base = super().__str__()
        if self.queue_name:
            base = f"[{self.queue_name}] {base}"
        return base


class MessageEncodeError(MessagingError):
    """Envelope cannot be serialized."""

    pass


class MessageDecodeError(MessagingError):
    """Message body is not a valid envelope (poison message)."""

    pass


class DispatchCancelledError(MessagingError):
    """Delivery arrived after the processor was asked to stop."""

    pass


class ProcessorStateError(MessagingError):
    """Operation is not allowed in the processor's current state."""

    pass


__all__ = [
    "TaskTrackerError",
    "ConfigurationError",
    "MessagingError",
    "BrokerConnectionError",
    "PublishError",
    "SubscriptionError",
    "MessageEncodeError",
    "MessageDecodeError",
    "DispatchCancelledError",
    "ProcessorStateError",
]
