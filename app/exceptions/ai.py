# ruff: noqa: D107
"""AI and upstream provider exceptions."""

from typing import Any

from .base import BaseAppException


class AIServiceError(BaseAppException):
    """Base exception for AI service errors."""

    def __init__(
        self,
        message: str = "AI service error occurred",
        error_code: str = "AI_SERVICE_ERROR",
        details: dict[str, Any] | None = None,
        status_code: int = 500,
    ):
        super().__init__(message, status_code=status_code, error_code=error_code, details=details)


class AIConfigurationError(AIServiceError):
    """Exception raised when an upstream provider is not configured."""

    def __init__(
        self,
        message: str = "AI service is not properly configured",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, "AI_CONFIGURATION_ERROR", details, status_code=503)


class UpstreamError(AIServiceError):
    """Exception raised when a model, search or extraction provider fails.

    Covers non-2xx responses, transport failures and payloads that cannot be
    interpreted at all.
    """

    def __init__(
        self,
        message: str = "Upstream provider request failed",
        provider: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = dict(details or {})
        if provider:
            details["provider"] = provider
        if status_code is not None:
            details["upstream_status"] = status_code
        self.provider = provider
        self.upstream_status = status_code
        super().__init__(message, "UPSTREAM_ERROR", details, status_code=502)


class MalformedFrameError(AIServiceError):
    """Exception raised when a single streaming frame is not valid JSON."""

    def __init__(
        self,
        message: str = "Malformed streaming frame",
        frame: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = dict(details or {})
        if frame is not None:
            details["frame"] = frame[:200]
        self.frame = frame
        super().__init__(message, "MALFORMED_FRAME", details, status_code=502)
