"""
Error Handling for the pprof Capture Service
Author: Drmusab
Last Modified: 2026-10-19 09:12:40 UTC

This module provides the error hierarchy shared by the capture pipeline:
configuration problems, trace acquisition failures, trace decoding failures,
and cancellation. Every error carries a severity, a category and a context
so the REST layer can log and report it consistently.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for classification."""

    SYSTEM = "system"  # Unclassified failures
    CONFIGURATION = "configuration"  # Missing or invalid settings
    NETWORK = "network"  # Talking to the diagnostics agent
    PROCESSING = "processing"  # Decoding or converting a trace
    CANCELLATION = "cancellation"  # Caller went away


@dataclass
class ErrorContext:
    """Context information for errors."""

    error_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    component: Optional[str] = None
    operation: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Dict[str, Any] = field(default_factory=dict)


class BaseProfilerError(Exception):
    """Base exception class for all capture pipeline errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        category: ErrorCategory = ErrorCategory.SYSTEM,
        context: Optional[ErrorContext] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.severity = severity
        self.category = category
        self.context = context or ErrorContext()
        self.metadata = metadata or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary."""
        return {
            "error_id": self.context.error_id,
            "error_code": self.error_code,
            "message": self.message,
            "severity": self.severity.value,
            "category": self.category.value,
            "timestamp": self.timestamp.isoformat(),
            "context": {
                "component": self.context.component,
                "operation": self.context.operation,
                "metadata": self.context.metadata,
            },
            "metadata": self.metadata,
        }


class ConfigurationError(BaseProfilerError):
    """Configuration errors."""

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.CRITICAL,
            **kwargs,
        )
        self.config_key = config_key


class TraceAcquisitionError(BaseProfilerError):
    """The diagnostics agent could not deliver a trace."""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(message, category=ErrorCategory.NETWORK, **kwargs)
        self.url = url
        self.status_code = status_code


class TraceDecodingError(BaseProfilerError):
    """A downloaded trace could not be turned into a stack source."""

    def __init__(self, message: str, trace_path: Optional[str] = None, **kwargs):
        super().__init__(message, category=ErrorCategory.PROCESSING, **kwargs)
        self.trace_path = trace_path


class ConversionCancelledError(BaseProfilerError):
    """Capture or conversion was abandoned because cancellation was requested."""

    def __init__(self, message: str = "Profile capture was cancelled", stage: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.CANCELLATION,
            severity=ErrorSeverity.INFO,
            **kwargs,
        )
        self.stage = stage


def sanitize_error_for_user(error: Exception) -> str:
    """Return a message that is safe to put in an HTTP response body."""
    if isinstance(error, BaseProfilerError):
        return error.message
    return "Internal error while capturing profile"


__all__ = [
    "ErrorSeverity",
    "ErrorCategory",
    "ErrorContext",
    "BaseProfilerError",
    "ConfigurationError",
    "TraceAcquisitionError",
    "TraceDecodingError",
    "ConversionCancelledError",
    "sanitize_error_for_user",
]
