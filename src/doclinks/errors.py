"""Error types raised and reported by the document link engine.

Every error carries a machine-readable ``error_code`` so notices and log
records can be filtered without string matching.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar

__all__ = [
    "ErrorCode",
    "LinkError",
    "LinkRequestError",
    "CoordinateTranslationError",
    "MalformedTargetError",
    "UnresolvedTargetError",
]


class ErrorCode:
    """Constants for error codes attached to link errors."""

    CAPABILITY_ABSENT = "capability_absent"
    TRANSPORT_ERROR = "transport_error"
    STALE_TARGET = "stale_target"
    UNRESOLVED_TARGET = "unresolved_target"
    COORDINATE_TRANSLATION_FAILED = "coordinate_translation_failed"
    MALFORMED_TARGET = "malformed_target"


# -----------------------------------------------------------------------------
# Base Error Class
# -----------------------------------------------------------------------------


@dataclass
class LinkError(Exception):
    """Base exception class for all document link errors.

    Attributes:
        error_code: Machine-readable error identifier.
        message: Human-readable error description.
        details: Additional structured error information.
    """

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    severity: ClassVar[str] = "error"

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a dictionary for notices and structured logs."""
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = dict(self.details)
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


# -----------------------------------------------------------------------------
# Request Errors
# -----------------------------------------------------------------------------


@dataclass
class LinkRequestError(LinkError):
    """Raised when a link request to a language server fails."""

    error_code: str = field(default=ErrorCode.TRANSPORT_ERROR)
    message: str = field(default="Document link request failed")
    details: dict[str, Any] = field(default_factory=dict)

    method: str | None = field(default=None)
    server: str | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.method is not None:
            result["method"] = self.method
        if self.server is not None:
            result["server"] = self.server
        return result


# -----------------------------------------------------------------------------
# Per-link Errors
# -----------------------------------------------------------------------------


@dataclass
class CoordinateTranslationError(LinkError):
    """Raised when a line referenced by a link no longer exists in the document."""

    error_code: str = field(default=ErrorCode.COORDINATE_TRANSLATION_FAILED)
    message: str = field(default="Line is no longer present in the document")
    details: dict[str, Any] = field(default_factory=dict)

    line: int | None = field(default=None)

    severity: ClassVar[str] = "warning"

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.line is not None:
            result["line"] = self.line
        return result


@dataclass
class MalformedTargetError(LinkError):
    """Raised when a link target is neither a location nor a resource URI."""

    error_code: str = field(default=ErrorCode.MALFORMED_TARGET)
    message: str = field(default="Link target is not a valid URI")
    details: dict[str, Any] = field(default_factory=dict)

    target: str | None = field(default=None)

    severity: ClassVar[str] = "warning"

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.target is not None:
            result["target"] = self.target
        return result


@dataclass
class UnresolvedTargetError(LinkError):
    """Describes a link whose target the server never filled in."""

    error_code: str = field(default=ErrorCode.UNRESOLVED_TARGET)
    message: str = field(
        default="Link has no target and the language server does not support link resolution"
    )
    details: dict[str, Any] = field(default_factory=dict)

    severity: ClassVar[str] = "warning"
