"""Error types shared by the aggregator, the relay and the report endpoints."""

from __future__ import annotations

from typing import Any, Optional


class AutomatorError(RuntimeError):
    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        detail: Optional[str] = None,
        payload: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail
        self.payload = payload


class ConfigurationError(AutomatorError):
    """Raised when a required credential or setting is missing."""


class AuthenticationError(AutomatorError):
    """Raised when the controller refuses the client-credentials exchange."""


class UpstreamError(AutomatorError):
    """Raised when a required controller or webhook call does not succeed."""


class ProfileNotFoundError(AutomatorError):
    """Raised when a client profile id is unknown."""


class ReportGenerationError(AutomatorError):
    """Raised when the language model fails or returns no text."""
