"""
Error taxonomy for the log search translation layer.

Pre-flight errors (bad time input, missing parameters) are raised before any
backend call and subclass ``ValueError``. Backend errors describe a single
failed payload attempt; ``AllVariantsFailed`` aggregates them once every
fallback variant has been tried.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class LogSearchError(Exception):
    """Base class for every failure surfaced to tool callers."""

    kind = "LogSearchError"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def details(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the structured failure returned by tools."""
        payload: Dict[str, Any] = {"error": self.message, "error_type": self.kind}
        payload.update(self.details())
        return payload


class InvalidTimeRange(LogSearchError, ValueError):
    """Raised when a time expression is malformed or out of bounds."""

    kind = "InvalidTimeRange"

    MALFORMED = "malformed"
    NON_POSITIVE = "non_positive"
    NEGATIVE = "negative"
    TOO_LONG = "too_long"
    INVERTED = "inverted"
    MISSING_FROM = "missing_from"

    def __init__(self, message: str, raw: Any, rule: str) -> None:
        super().__init__(f"Invalid time range: {message}")
        self.raw = raw
        self.rule = rule

    def details(self) -> Dict[str, Any]:
        raw = self.raw if isinstance(self.raw, (str, int, float)) or self.raw is None else str(self.raw)
        return {"input": raw, "rule": self.rule}


class MissingValueField(LogSearchError, ValueError):
    """Raised when sum/avg/min/max is requested without a numeric value field."""

    kind = "MissingValueField"

    def __init__(self, metrics: List[str]) -> None:
        names = ", ".join(metrics)
        super().__init__(f"Metric(s) {names} require a value_field")
        self.metrics = list(metrics)

    def details(self) -> Dict[str, Any]:
        return {"metrics": self.metrics}


class MissingRequiredParameter(LogSearchError, ValueError):
    kind = "MissingRequiredParameter"

    def __init__(self, parameter: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"Missing required parameter '{parameter}'")
        self.parameter = parameter

    def details(self) -> Dict[str, Any]:
        return {"parameter": self.parameter}


class InvalidParameter(LogSearchError, ValueError):
    kind = "InvalidParameter"

    def __init__(self, parameter: str, message: str) -> None:
        super().__init__(message)
        self.parameter = parameter

    def details(self) -> Dict[str, Any]:
        return {"parameter": self.parameter}


class MessageNotFound(LogSearchError):
    kind = "MessageNotFound"

    def __init__(self, message_id: str) -> None:
        super().__init__(f"No message found with gl2_message_id '{message_id}' in the last 24 hours")
        self.message_id = message_id

    def details(self) -> Dict[str, Any]:
        return {"message_id": self.message_id}


class BackendError(LogSearchError):
    """Raised by the backend client when one payload attempt fails."""

    kind = "BackendError"

    def __init__(self, status: Optional[int], body: Any) -> None:
        if status is None:
            message = f"Backend request failed: {body}"
        else:
            message = f"Backend returned HTTP {status}: {_summarise_body(body)}"
        super().__init__(message)
        self.status = status
        self.body = body

    def details(self) -> Dict[str, Any]:
        return {"status": self.status}


class AllVariantsFailed(LogSearchError):
    """Raised when every payload variant of a fallback chain failed."""

    kind = "AllVariantsFailed"

    def __init__(self, attempts: List[Dict[str, str]]) -> None:
        labels = ", ".join(attempt["variant"] for attempt in attempts)
        super().__init__(f"Aggregation failed for all {len(attempts)} payload variant(s): {labels}")
        self.attempts = list(attempts)

    @property
    def labels(self) -> List[str]:
        return [attempt["variant"] for attempt in self.attempts]

    def details(self) -> Dict[str, Any]:
        return {"attempts": self.attempts}


class ConnectionNotSelected(LogSearchError):
    kind = "ConnectionNotSelected"

    def __init__(self) -> None:
        super().__init__("No active connection. Call use_connection first.")


class UnknownConnection(LogSearchError):
    kind = "UnknownConnection"

    def __init__(self, name: str, available: List[str], suggestion: Optional[str] = None) -> None:
        message = f"Unknown connection '{name}'"
        if suggestion:
            message += f". Did you mean '{suggestion}'?"
        super().__init__(message)
        self.name = name
        self.available = list(available)
        self.suggestion = suggestion

    def details(self) -> Dict[str, Any]:
        return {"available": self.available, "suggestion": self.suggestion}


class SavedSearchNotFound(LogSearchError):
    kind = "SavedSearchNotFound"

    def __init__(self, name: str, suggestion: Optional[str] = None) -> None:
        message = f"No saved search named '{name}'"
        if suggestion:
            message += f". Did you mean '{suggestion}'?"
        super().__init__(message)
        self.name = name
        self.suggestion = suggestion

    def details(self) -> Dict[str, Any]:
        return {"suggestion": self.suggestion}


def _summarise_body(body: Any, limit: int = 500) -> str:
    if isinstance(body, dict):
        for key in ("message", "error", "errors"):
            if body.get(key):
                return str(body[key])[:limit]
    text = str(body)
    return text[:limit]


__all__ = [
    "LogSearchError",
    "InvalidTimeRange",
    "MissingValueField",
    "MissingRequiredParameter",
    "InvalidParameter",
    "MessageNotFound",
    "BackendError",
    "AllVariantsFailed",
    "ConnectionNotSelected",
    "UnknownConnection",
    "SavedSearchNotFound",
]
