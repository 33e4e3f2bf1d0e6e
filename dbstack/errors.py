"""dbstack exception hierarchy.

Construction-time failures (``ValidationError``, ``TransformError``) are raised
straight out of component constructors. ``ResolutionError`` is carried by failed
deferred values and only surfaces when something reads them.
"""

from typing import Any, Dict, Optional


class DbstackError(Exception):
    """Base class for all dbstack errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize DbstackError.

        Args:
            message: Human-readable error message.
            details: Optional structured information about the failure.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(DbstackError):
    """Raised when component input validation fails."""


class TransformError(DbstackError):
    """Raised when a transform hook or a deferred ``map`` function fails."""

    def __init__(
        self,
        message: str,
        point: Optional[str] = None,
        original_error: Optional[BaseException] = None,
    ):
        """
        Initialize TransformError.

        Args:
            message: Error message.
            point: Extension point the failing hook was registered for, if any.
            original_error: The exception raised by the hook or function.
        """
        details = {}
        if point:
            details["point"] = point
        if original_error is not None:
            details["original_error"] = repr(original_error)
        super().__init__(message, details)
        self.point = point
        self.original_error = original_error


class ResolutionError(DbstackError):
    """Raised when a deferred value's upstream could not be resolved."""


class UnresolvedValueError(ResolutionError):
    """Raised when a still-pending deferred value is read synchronously."""


class ProvisionerException(DbstackError):
    """
    Base exception for provisioner errors.

    Attributes:
        message: Error message
        provider: Provider type where error occurred
        resource_id: Resource ID if applicable
        original_error: Original exception if wrapped
    """

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        resource_id: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message)
        self.provider = provider
        self.resource_id = resource_id
        self.original_error = original_error

    def __str__(self) -> str:
        parts = [self.message]
        if self.provider:
            parts.append(f"Provider: {self.provider}")
        if self.resource_id:
            parts.append(f"Resource: {self.resource_id}")
        if self.original_error:
            parts.append(f"Original error: {str(self.original_error)}")
        return " | ".join(parts)
