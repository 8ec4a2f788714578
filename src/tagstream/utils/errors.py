"""
Exception hierarchy for tagstream.

Every error carries a stable code, a category and an optional
ErrorContext, and can be rendered with to_dict() for --json output and
log records.
"""

from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class ErrorSeverity(Enum):
    """Error severity levels."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for classification."""
    NETWORK = "network"
    PROTOCOL = "protocol"
    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    INTERNAL = "internal"
    UNKNOWN = "unknown"


@dataclass
class ErrorContext:
    """Context information for an error."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    component: Optional[str] = None
    operation: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class TagStreamError(Exception):
    """Base exception for all tagstream errors."""

    code: str = "TAGSTREAM_ERROR"
    default_message: str = "An error occurred in tagstream"
    severity: ErrorSeverity = ErrorSeverity.ERROR
    category: ErrorCategory = ErrorCategory.UNKNOWN
    is_retryable: bool = False

    def __init__(
        self,
        message: Optional[str] = None,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
    ):
        self.message = message or self.default_message
        self.context = context or ErrorContext()
        self.cause = cause
        super().__init__(self.message)

    def get_suggestions(self) -> List[str]:
        """Get error resolution suggestions."""
        return []

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "severity": self.severity.value,
                "category": self.category.value,
                "is_retryable": self.is_retryable,
                "suggestions": self.get_suggestions(),
                "cause": str(self.cause) if self.cause else None,
                "context": {
                    "timestamp": self.context.timestamp.isoformat(),
                    "component": self.context.component,
                    "operation": self.context.operation,
                    "metadata": self.context.metadata,
                },
            }
        }


class ConfigurationError(TagStreamError):
    """Configuration errors."""
    code = "CONFIG_ERROR"
    default_message = "Configuration error"
    category = ErrorCategory.CONFIGURATION

    def get_suggestions(self) -> List[str]:
        return [
            "Check your configuration file syntax",
            "Check TAGSTREAM_* environment variables",
        ]


class ValidationError(TagStreamError):
    """Input validation errors."""
    code = "VALIDATION_ERROR"
    default_message = "Validation error"
    category = ErrorCategory.VALIDATION
    severity = ErrorSeverity.WARNING

    def __init__(self, field: str, value: Any, constraint: str, **kwargs):
        self.field = field
        self.value = value
        self.constraint = constraint
        message = f"Validation failed for field '{field}': {constraint}"
        super().__init__(message, **kwargs)

    def get_suggestions(self) -> List[str]:
        return [f"Ensure '{self.field}' meets the constraint: {self.constraint}"]


# Network Errors

class NetworkError(TagStreamError):
    """Network-related errors."""
    code = "NETWORK_ERROR"
    default_message = "Network error occurred"
    category = ErrorCategory.NETWORK
    is_retryable = True


class TransportError(NetworkError):
    """The event stream transport failed."""
    code = "TRANSPORT_ERROR"
    default_message = "Stream transport failed"

    def __init__(self, message: Optional[str] = None, status: Optional[int] = None, **kwargs):
        self.status = status
        super().__init__(message, **kwargs)
        if status is not None:
            self.context.metadata.setdefault("status", status)
            # Client errors will fail the same way again
            self.is_retryable = status >= 500

    def get_suggestions(self) -> List[str]:
        if self.status is not None and 400 <= self.status < 500:
            return ["Check stream.base_url and stream.query_param"]
        return ["Try the query again later"]


class ConnectionError(TransportError):
    """The stream endpoint could not be reached or the connection dropped."""
    code = "CONNECTION_ERROR"
    default_message = "Stream connection lost"

    def get_suggestions(self) -> List[str]:
        return [
            "Check that the stream URL is reachable from this machine",
            "Raise stream.connect_timeout for slow networks",
        ]


# Stream Errors

class StreamError(TagStreamError):
    """Errors raised while decoding the event stream."""
    code = "STREAM_ERROR"
    default_message = "Stream processing error"
    category = ErrorCategory.PROTOCOL


class PayloadError(StreamError):
    """An event payload could not be decoded."""
    code = "PAYLOAD_ERROR"
    default_message = "Invalid event payload"
    severity = ErrorSeverity.DEBUG


__all__ = [
    'TagStreamError',
    'ErrorContext',
    'ErrorSeverity',
    'ErrorCategory',
    'ConfigurationError',
    'ValidationError',
    'NetworkError',
    'TransportError',
    'ConnectionError',
    'StreamError',
    'PayloadError',
]
