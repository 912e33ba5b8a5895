"""Structured exception hierarchy for the configuration console.

Provides specific exception types for the failure modes of a form
editing session, with rich context for debugging and for surfacing
per-field messages back to the user.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Tuple

__all__ = [
    "ConsoleError",
    "ConfigurationError",
    "MetadataUnavailable",
    "ValidationError",
    "StaleResponseDiscarded",
    "SessionClosedError",
]


class ConsoleError(Exception):
    """Base exception for all console errors.

    Provides structured error information for debugging.
    """

    def __init__(
        self,
        message: str,
        *,
        form: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        self.form = form
        self.details = details or {}
        self.suggestion = suggestion

        # Build full message
        parts = [message]

        if form:
            parts.insert(0, f"[{form}]")

        if details:
            detail_lines = [f"  {k}: {v}" for k, v in details.items()]
            parts.append("\nDetails:")
            parts.extend(detail_lines)

        if suggestion:
            parts.append(f"\nSuggestion: {suggestion}")

        super().__init__("\n".join(parts) if len(parts) > 1 else message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "form": self.form,
            "details": self.details,
            "suggestion": self.suggestion,
        }


class ConfigurationError(ConsoleError):
    """Error in console or form configuration.

    Raised for unknown forms or fields, and malformed catalogs.
    """

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        value: Any = None,
        **kwargs: Any,
    ) -> None:
        self.field = field
        self.value = value

        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)

        super().__init__(message, details=details, **kwargs)


class MetadataUnavailable(ConsoleError):
    """A metadata provider lookup failed.

    The dependent field is shown as unresolvable; independent fields stay
    editable. Re-selecting the ancestor field or refreshing retries.
    """

    def __init__(
        self,
        message: str,
        *,
        request: Optional[Tuple[Any, ...]] = None,
        cause: Optional[Exception] = None,
        **kwargs: Any,
    ) -> None:
        self.request = request
        self.cause = cause

        details = kwargs.pop("details", {})
        if request:
            details["request"] = "/".join(str(part) for part in request)
        if cause:
            details["cause"] = str(cause)
            details["cause_type"] = type(cause).__name__

        suggestion = kwargs.pop("suggestion", None)
        if not suggestion:
            suggestion = (
                "Check that the connection is reachable, then re-select the "
                "field above or refresh."
            )

        super().__init__(message, details=details, suggestion=suggestion, **kwargs)


class ValidationError(ConsoleError):
    """Per-field validation errors raised at submission time.

    Submission is blocked and nothing is persisted.
    """

    def __init__(
        self,
        message: str,
        *,
        field_errors: Optional[Mapping[str, List[str]]] = None,
        **kwargs: Any,
    ) -> None:
        self.field_errors: Dict[str, List[str]] = {
            name: list(messages) for name, messages in (field_errors or {}).items()
        }

        details = kwargs.pop("details", {})
        if self.field_errors:
            details["issue_count"] = sum(len(m) for m in self.field_errors.values())

        # Build message with issues
        if self.field_errors:
            issue_lines = "\n".join(
                f"  - {name}: {text}"
                for name, messages in self.field_errors.items()
                for text in messages
            )
            message = f"{message}\n\nIssues found:\n{issue_lines}"

        super().__init__(message, details=details, **kwargs)

    @property
    def fields(self) -> List[str]:
        """Names of the fields that failed validation."""
        return list(self.field_errors)


class StaleResponseDiscarded(ConsoleError):
    """A metadata response arrived after its inputs were superseded.

    Internal signal only; the session logs and drops the response.
    """

    def __init__(self, message: str, *, key: Optional[Tuple[Any, ...]] = None, **kwargs: Any) -> None:
        self.key = key
        details = kwargs.pop("details", {})
        if key:
            details["key"] = "/".join(str(part) for part in key)
        super().__init__(message, details=details, **kwargs)


class SessionClosedError(ConsoleError):
    """An edit or submit was attempted on a session that already ended."""
