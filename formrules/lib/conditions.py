"""Condition evaluation against a live value map.

Each condition compares one field's current value with either a literal or
another field's current value. Values are coerced according to the source
field's ``ValueKind`` before comparison, so numeric fields compare as
numbers, temporal fields as dates/times and everything else as strings.

The evaluator never raises: unknown fields, non-coercible operands and
nonsensical operator/type combinations all make the condition false.
"""

from __future__ import annotations

import json
import logging
import math
from datetime import date, datetime, time
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from formrules.lib.errors import DanglingFieldReferenceError, TypeCoercionMismatch
from formrules.lib.models import Condition, Field, FieldType, Operator, ValueKind

logger = logging.getLogger(__name__)

__all__ = [
    "ConditionEvaluator",
    "coerce_boolean",
    "coerce_number",
    "coerce_temporal",
    "evaluate_condition",
    "is_empty",
    "to_search_string",
]


# ============================================
# Coercion
# ============================================


def coerce_number(value: Any) -> float:
    """Coerce a value to float.

    Booleans, blank strings and None are not numbers. Currency objects
    contribute their ``amount``.

    Raises:
        TypeCoercionMismatch: If the value has no numeric reading
    """
    if isinstance(value, bool) or value is None:
        raise TypeCoercionMismatch(value, "number")
    if isinstance(value, (int, float)):
        result = float(value)
    elif isinstance(value, str) and value.strip():
        # float() also accepts digit separators ("1_000"), which are not numbers here
        if "_" in value:
            raise TypeCoercionMismatch(value, "number")
        try:
            result = float(value.strip())
        except ValueError:
            raise TypeCoercionMismatch(value, "number") from None
    elif isinstance(value, Mapping) and "amount" in value:
        return coerce_number(value["amount"])
    else:
        raise TypeCoercionMismatch(value, "number")

    if math.isnan(result):
        raise TypeCoercionMismatch(value, "number")
    return result


def coerce_temporal(value: Any, field_type: FieldType) -> Any:
    """Coerce an ISO-8601 string (or date/time object) for ordering.

    ``time`` fields yield ``datetime.time``; ``date`` and ``datetime`` fields
    yield ``datetime.datetime`` so the two can be compared with each other.

    Raises:
        TypeCoercionMismatch: If the value is not a parseable date/time
    """
    if field_type == FieldType.TIME:
        if isinstance(value, time):
            return value
        if isinstance(value, str) and value.strip():
            try:
                return time.fromisoformat(value.strip())
            except ValueError:
                pass
        raise TypeCoercionMismatch(value, "time")

    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            pass
    raise TypeCoercionMismatch(value, "datetime")


def coerce_boolean(value: Any) -> bool:
    """Coerce bools and the strings "true"/"false" (any case).

    Raises:
        TypeCoercionMismatch: For anything else
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise TypeCoercionMismatch(value, "boolean")


def _format_number(value: float) -> str:
    if value.is_integer():
        return str(int(value))
    return repr(value)


def to_search_string(value: Any) -> str:
    """Render a value as the plain string used by equality and substring tests.

    Structured values render like they read on screen: phone as
    ``"<countryCode> <number>"``, currency as ``"<amount> <currency>"``,
    address parts joined by spaces.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return _format_number(value)
    if isinstance(value, (list, tuple)):
        return " ".join(to_search_string(v) for v in value)
    if isinstance(value, Mapping):
        if "number" in value and "countryCode" in value:
            return f"{value['countryCode']} {value['number']}"
        if "amount" in value and "currency" in value:
            return f"{to_search_string(value['amount'])} {value['currency']}"
        if "street" in value or "city" in value:
            parts = [str(value.get(k) or "") for k in ("street", "city", "state", "postal", "country")]
            return " ".join(parts).strip()
        return json.dumps(value, sort_keys=True, default=str)
    return str(value)


def is_empty(value: Any) -> bool:
    """None, empty string, empty list or empty object; 0 and "0" are not empty."""
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


# ============================================
# Operators
# ============================================


def _values_equal(kind: ValueKind, field_type: FieldType, left: Any, right: Any) -> bool:
    """Structural equality on coerced values."""
    if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
        return [to_search_string(v) for v in left] == [to_search_string(v) for v in right]

    try:
        if kind == ValueKind.NUMBER:
            return coerce_number(left) == coerce_number(right)
        if kind == ValueKind.BOOLEAN:
            return coerce_boolean(left) == coerce_boolean(right)
        if kind == ValueKind.TEMPORAL:
            return coerce_temporal(left, field_type) == coerce_temporal(right, field_type)
    except TypeCoercionMismatch:
        pass  # fall through to string comparison
    return to_search_string(left) == to_search_string(right)


def _ordered(kind: ValueKind, field_type: FieldType, left: Any, right: Any) -> Tuple[Any, Any]:
    if kind == ValueKind.TEMPORAL:
        return coerce_temporal(left, field_type), coerce_temporal(right, field_type)
    return coerce_number(left), coerce_number(right)


def _compare(test: Callable[[Any, Any], bool]) -> Callable[..., bool]:
    def _op(kind: ValueKind, field_type: FieldType, left: Any, right: Any) -> bool:
        a, b = _ordered(kind, field_type, left, right)
        try:
            return test(a, b)
        except TypeError:
            # e.g. naive vs aware datetimes
            raise TypeCoercionMismatch(right, "comparable value") from None

    return _op


def _contains(kind: ValueKind, field_type: FieldType, left: Any, right: Any) -> bool:
    return to_search_string(right).lower() in to_search_string(left).lower()


def _starts_with(kind: ValueKind, field_type: FieldType, left: Any, right: Any) -> bool:
    return to_search_string(left).lower().startswith(to_search_string(right).lower())


def _ends_with(kind: ValueKind, field_type: FieldType, left: Any, right: Any) -> bool:
    return to_search_string(left).lower().endswith(to_search_string(right).lower())


def _member_of(kind: ValueKind, field_type: FieldType, left: Any, right: Any) -> bool:
    candidates = list(right) if isinstance(right, (list, tuple)) else [right]
    selected = list(left) if isinstance(left, (list, tuple)) else [left]
    return any(
        _values_equal(kind, field_type, item, candidate)
        for item in selected
        for candidate in candidates
    )


_OPERATORS: Dict[Operator, Callable[[ValueKind, FieldType, Any, Any], bool]] = {
    Operator.EQ: _values_equal,
    Operator.NE: lambda k, t, a, b: not _values_equal(k, t, a, b),
    Operator.LT: _compare(lambda a, b: a < b),
    Operator.GT: _compare(lambda a, b: a > b),
    Operator.LE: _compare(lambda a, b: a <= b),
    Operator.GE: _compare(lambda a, b: a >= b),
    Operator.CONTAINS: _contains,
    Operator.NOT_CONTAINS: lambda k, t, a, b: not _contains(k, t, a, b),
    Operator.STARTS_WITH: _starts_with,
    Operator.ENDS_WITH: _ends_with,
    Operator.IN: _member_of,
}


class ConditionEvaluator:
    """Evaluates typed conditions against a value map and field catalog."""

    def __init__(self, catalog: Mapping[str, Field]):
        self.catalog = catalog

    def _lookup(self, field_id: Optional[str], role: str) -> Field:
        source = self.catalog.get(field_id) if field_id else None
        if source is None:
            raise DanglingFieldReferenceError(str(field_id), role=role)
        return source

    def _resolve_operand(self, condition: Condition, values: Mapping[str, Any]) -> Any:
        if condition.compare_to_field:
            self._lookup(condition.compare_to_field, role="compare_to_field")
            return values.get(condition.compare_to_field)
        return condition.value

    def _evaluate(self, condition: Condition, values: Mapping[str, Any]) -> bool:
        source = self._lookup(condition.field_id, role="condition")
        current = values.get(condition.field_id)

        if condition.operator == Operator.IS_EMPTY:
            return is_empty(current)
        if condition.operator == Operator.IS_NOT_EMPTY:
            return not is_empty(current)

        operand = self._resolve_operand(condition, values)
        operation = _OPERATORS.get(condition.operator)
        if operation is None:
            return False
        return bool(operation(source.type.kind, source.type, current, operand))

    def evaluate(self, condition: Condition, values: Mapping[str, Any]) -> bool:
        """Evaluate one condition; False instead of raising on any defect."""
        try:
            return self._evaluate(condition, values)
        except DanglingFieldReferenceError as e:
            logger.debug(f"Condition {condition.id or condition.field_id} is false: {e.field_id} ({e.role}) not found")
            return False
        except TypeCoercionMismatch as e:
            logger.debug(
                f"Condition {condition.id or condition.field_id} is false: "
                f"{e.details.get('value')} is not a {e.expected}"
            )
            return False

    def evaluate_all(self, conditions: Tuple[Condition, ...], values: Mapping[str, Any]) -> List[bool]:
        """Evaluate each condition in order."""
        return [self.evaluate(c, values) for c in conditions]


def evaluate_condition(
    condition: Condition,
    values: Mapping[str, Any],
    catalog: Mapping[str, Field],
) -> bool:
    """Convenience function evaluating a single condition.

    Args:
        condition: Condition to evaluate
        values: Live value map (field id -> value)
        catalog: Field catalog (field id -> Field)

    Returns:
        True if the condition holds
    """
    return ConditionEvaluator(catalog).evaluate(condition, values)
