"""
Custom exceptions for the Agree contract auditor.

The deterministic core never raises for string input; these exceptions
describe failures at the edges (the AI collaborator, the cache store)
and are converted into explicit failure results before they reach
callers of the speculative layer.
"""

from __future__ import annotations

from typing import Optional


class AgreeAuditError(Exception):
    """
    Base exception for all auditor errors.

    Attributes:
        message: Human-readable error message.
        details: Optional additional context for debugging.
    """

    def __init__(self, message: str, details: Optional[dict] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class AnalyzerError(AgreeAuditError):
    """Raised when the AI analysis collaborator fails or answers malformed data."""

    def __init__(
        self,
        message: str = "AI analysis failed",
        analyzer: Optional[str] = None,
    ) -> None:
        details = {"analyzer": analyzer} if analyzer else {}
        super().__init__(message, details)


class AnalysisTimeoutError(AnalyzerError):
    """Raised when the AI analysis call exceeds its time limit."""

    def __init__(
        self,
        message: str = "AI analysis timed out",
        timeout: Optional[float] = None,
    ) -> None:
        super().__init__(message)
        if timeout is not None:
            self.details["timeout_seconds"] = timeout


class GenerationValidationError(AgreeAuditError):
    """Raised when generated output still contains prompt-template scaffolding."""

    def __init__(
        self,
        message: str = "Generated output contains template placeholders",
        field: Optional[str] = None,
        value: Optional[str] = None,
    ) -> None:
        details = {}
        if field:
            details["field"] = field
        if value:
            # Truncate for readability
            details["value"] = value[:60] + "..." if len(value) > 60 else value
        super().__init__(message, details)


class CacheCorruptionError(AgreeAuditError):
    """Raised when a stored cache entry cannot be decoded."""

    def __init__(
        self,
        message: str = "Cache entry is corrupt",
        key: Optional[str] = None,
    ) -> None:
        details = {"key": key} if key else {}
        super().__init__(message, details)
