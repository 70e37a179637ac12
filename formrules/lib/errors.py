"""Structured exception hierarchy for the rule engine.

Provides specific exception types for the failure modes of rule
definitions, with rich context for debugging and troubleshooting.

Only ``ConfigurationError`` (and its subclasses) and ``ValidationError``
ever reach callers. The evaluation-time errors are raised internally and
caught per condition or per rule so a single defective rule cannot abort
an evaluation pass.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from formrules.lib.validate import ValidationIssue

__all__ = [
    "RuleEngineError",
    "InvalidExpressionError",
    "DanglingFieldReferenceError",
    "TypeCoercionMismatch",
    "ConfigurationError",
    "ActionPayloadError",
    "ValidationError",
]


class RuleEngineError(Exception):
    """Base exception for all rule engine errors.

    Provides structured error information for debugging.
    """

    def __init__(
        self,
        message: str,
        *,
        rule_id: Optional[str] = None,
        field_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        self.reason = message
        self.rule_id = rule_id
        self.field_id = field_id
        self.details = details or {}
        self.suggestion = suggestion

        parts = [message]

        if rule_id or field_id:
            context = f"{rule_id or '?'}:{field_id or '?'}"
            parts.insert(0, f"[{context}]")

        if details:
            detail_lines = [f"  {k}: {v}" for k, v in details.items()]
            parts.append("\nDetails:")
            parts.extend(detail_lines)

        if suggestion:
            parts.append(f"\nSuggestion: {suggestion}")

        super().__init__("\n".join(parts) if len(parts) > 1 else message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": str(self.args[0]) if self.args else "",
            "rule_id": self.rule_id,
            "field_id": self.field_id,
            "details": self.details,
            "suggestion": self.suggestion,
        }


class InvalidExpressionError(RuleEngineError):
    """Malformed or out-of-range logic expression.

    Raised by the expression parser and evaluator. At evaluation time the
    owning rule is treated as not satisfied.
    """

    def __init__(
        self,
        message: str,
        *,
        expression: Optional[str] = None,
        position: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        self.expression = expression
        self.position = position

        details = kwargs.pop("details", {})
        if expression is not None:
            details["expression"] = expression
        if position is not None:
            details["position"] = position

        super().__init__(message, details=details, **kwargs)


class DanglingFieldReferenceError(RuleEngineError):
    """A rule references a field id missing from the catalog."""

    def __init__(
        self,
        field_id: str,
        *,
        role: str = "condition",
        **kwargs: Any,
    ) -> None:
        self.role = role

        details = kwargs.pop("details", {})
        details["role"] = role

        suggestion = kwargs.pop("suggestion", None)
        if not suggestion:
            suggestion = "The field may have been deleted after the rule was authored."

        super().__init__(
            f"Field '{field_id}' does not exist",
            field_id=field_id,
            details=details,
            suggestion=suggestion,
            **kwargs,
        )


class TypeCoercionMismatch(RuleEngineError):
    """A value could not be coerced to the kind an operator needs.

    Non-fatal: the affected condition evaluates to false.
    """

    def __init__(
        self,
        value: Any,
        expected: str,
        **kwargs: Any,
    ) -> None:
        self.value = value
        self.expected = expected

        details = kwargs.pop("details", {})
        details["value"] = repr(value)
        details["expected"] = expected

        super().__init__(
            f"Cannot coerce {type(value).__name__} to {expected}",
            details=details,
            **kwargs,
        )


class ConfigurationError(RuleEngineError):
    """Error in a form definition document.

    Raised when a definition cannot be loaded into engine objects.
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


class ActionPayloadError(ConfigurationError):
    """An action's ``actionValue`` does not match the action's payload shape."""

    def __init__(
        self,
        message: str,
        *,
        action: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        self.action = action

        details = kwargs.pop("details", {})
        if action:
            details["action"] = action

        super().__init__(message, details=details, **kwargs)


class ValidationError(RuleEngineError):
    """Validation errors in rule definitions.

    Raised by validate_and_raise() when issues prevent saving.
    """

    def __init__(
        self,
        message: str,
        *,
        issues: Optional[List["ValidationIssue"]] = None,
        **kwargs: Any,
    ) -> None:
        self.issues = issues or []

        details = kwargs.pop("details", {})
        if issues:
            details["issue_count"] = len(issues)

        if issues:
            issue_lines = "\n".join(f"  - {issue}" for issue in issues)
            message = f"{message}\n\nIssues found:\n{issue_lines}"

        super().__init__(message, details=details, **kwargs)
