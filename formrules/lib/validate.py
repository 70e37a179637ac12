"""Pre-save validation of rule definitions.

Catches structural defects (missing fields, malformed expressions) before a
definition is saved, and flags combinations the runtime tolerates but which
are almost certainly authoring mistakes. The evaluation engines never call
this module; they degrade to "rule not satisfied" instead.

Example:
    >>> issues = validate_rules(definition)
    >>> print(format_validation_report(issues))
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, List, Mapping, Optional, Sequence

from formrules.lib.actions import FieldActionType, FormActionType
from formrules.lib.errors import ValidationError
from formrules.lib.expressions import effective_expression, validate as validate_expression
from formrules.lib.models import (
    Condition,
    Field,
    FieldRule,
    FieldType,
    FormDefinition,
    FormRule,
    Operator,
    ValueKind,
)

logger = logging.getLogger(__name__)

__all__ = [
    "ValidationIssue",
    "ValidationSeverity",
    "compatible_operators",
    "format_validation_report",
    "validate_and_raise",
    "validate_field_rule",
    "validate_form_rule",
    "validate_rules",
]


class ValidationSeverity(Enum):
    """Severity of validation issues."""

    ERROR = "error"  # Rule cannot be saved
    WARNING = "warning"  # Rule runs, but probably not as intended


@dataclass
class ValidationIssue:
    """A validation issue found in a rule definition."""

    severity: ValidationSeverity
    rule_id: str
    location: str
    message: str
    suggestion: Optional[str] = None

    def __str__(self) -> str:
        prefix = "ERROR" if self.severity == ValidationSeverity.ERROR else "WARNING"
        result = f"[{prefix}] {self.rule_id}.{self.location}: {self.message}"
        if self.suggestion:
            result += f"\n  Fix: {self.suggestion}"
        return result


# ============================================
# Operator compatibility
# ============================================

_EQUALITY = frozenset({Operator.EQ, Operator.NE})
_EMPTINESS = frozenset({Operator.IS_EMPTY, Operator.IS_NOT_EMPTY})
_ORDERING = _EQUALITY | _EMPTINESS | {Operator.LT, Operator.GT, Operator.LE, Operator.GE}
_TEXTUAL = _EQUALITY | _EMPTINESS | {
    Operator.CONTAINS,
    Operator.NOT_CONTAINS,
    Operator.STARTS_WITH,
    Operator.ENDS_WITH,
}

_ADVISED_OPERATORS: Dict[FieldType, FrozenSet[Operator]] = {
    FieldType.NUMBER: _ORDERING,
    FieldType.CURRENCY: _ORDERING,
    FieldType.RATING: _ORDERING,
    FieldType.SLIDER: _ORDERING,
    FieldType.DATE: _ORDERING,
    FieldType.TIME: _ORDERING,
    FieldType.DATETIME: _ORDERING,
    FieldType.CHECKBOX: _EQUALITY,
    FieldType.TOGGLE_SWITCH: _EQUALITY,
    FieldType.SELECT: _EQUALITY | _EMPTINESS | {Operator.IN},
    FieldType.RADIO: _EQUALITY | _EMPTINESS | {Operator.IN},
    FieldType.COUNTRY: _EQUALITY | _EMPTINESS | {Operator.IN},
    FieldType.TEXT: _TEXTUAL,
    FieldType.TEXTAREA: _TEXTUAL,
    FieldType.EMAIL: _TEXTUAL,
    FieldType.PASSWORD: _TEXTUAL,
    FieldType.PHONE: _TEXTUAL,
}

# Field types whose values cannot drive a condition
CONDITION_INCOMPATIBLE_TYPES = frozenset(
    {
        FieldType.CROSS_REFERENCE,
        FieldType.MATRIX_GRID,
        FieldType.RECORD_TABLE,
        FieldType.FILE,
        FieldType.IMAGE,
        FieldType.SIGNATURE,
        FieldType.BARCODE,
        FieldType.GEO_LOCATION,
        FieldType.HEADER,
        FieldType.DESCRIPTION,
        FieldType.SECTION_BREAK,
        FieldType.HORIZONTAL_LINE,
        FieldType.RICH_TEXT,
        FieldType.FULL_WIDTH_CONTAINER,
    }
)

_VALUE_MAP_FIELD_ACTIONS = (FieldActionType.SET_DEFAULT, FieldActionType.CLEAR_VALUE)


def compatible_operators(field_type: FieldType) -> FrozenSet[Operator]:
    """Operators the rule builder offers for a field type."""
    return _ADVISED_OPERATORS.get(field_type, _EQUALITY | _EMPTINESS)


# ============================================
# Rule checks
# ============================================


def _validate_conditions(
    rule_id: str,
    conditions: Sequence[Condition],
    catalog: Mapping[str, Field],
) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []

    for position, condition in enumerate(conditions, start=1):
        location = f"conditions[{position}]"
        source = catalog.get(condition.field_id)

        if source is None:
            issues.append(
                ValidationIssue(
                    severity=ValidationSeverity.ERROR,
                    rule_id=rule_id,
                    location=f"{location}.fieldId",
                    message=f"Condition field '{condition.field_id}' does not exist",
                    suggestion="Pick an existing field or remove the condition",
                )
            )
            continue

        if source.type in CONDITION_INCOMPATIBLE_TYPES or source.type.kind == ValueKind.LAYOUT:
            issues.append(
                ValidationIssue(
                    severity=ValidationSeverity.WARNING,
                    rule_id=rule_id,
                    location=f"{location}.fieldId",
                    message=f"Field '{source.id}' ({source.type.value}) cannot be used in conditions",
                    suggestion="Conditions on this field type always evaluate on an empty value",
                )
            )
        elif condition.operator not in compatible_operators(source.type):
            advised = sorted(op.value for op in compatible_operators(source.type))
            issues.append(
                ValidationIssue(
                    severity=ValidationSeverity.WARNING,
                    rule_id=rule_id,
                    location=f"{location}.operator",
                    message=f"Operator '{condition.operator.value}' is not advised for {source.type.value} fields",
                    suggestion=f"Use one of: {advised}",
                )
            )

        if condition.compare_to_field and not condition.operator.ignores_operand:
            other = catalog.get(condition.compare_to_field)
            if other is None:
                issues.append(
                    ValidationIssue(
                        severity=ValidationSeverity.ERROR,
                        rule_id=rule_id,
                        location=f"{location}.compareToField",
                        message=f"Compare-to field '{condition.compare_to_field}' does not exist",
                        suggestion="Pick an existing field or compare against a literal value",
                    )
                )
            elif other.type.kind != source.type.kind:
                issues.append(
                    ValidationIssue(
                        severity=ValidationSeverity.WARNING,
                        rule_id=rule_id,
                        location=f"{location}.compareToField",
                        message=(
                            f"Compares {source.type.value} field '{source.id}' "
                            f"with {other.type.value} field '{other.id}'"
                        ),
                        suggestion="Compare fields of the same type",
                    )
                )

    return issues


def _validate_expression(
    rule_id: str,
    expression: str,
    condition_count: int,
    joiner: str,
) -> List[ValidationIssue]:
    try:
        effective = effective_expression(expression, condition_count, joiner)
    except ValueError as e:
        return [
            ValidationIssue(
                severity=ValidationSeverity.ERROR,
                rule_id=rule_id,
                location="rootLogic",
                message=str(e),
                suggestion="Use AND or OR",
            )
        ]

    check = validate_expression(effective, condition_count)
    if check.valid:
        return []
    return [
        ValidationIssue(
            severity=ValidationSeverity.ERROR,
            rule_id=rule_id,
            location="logicExpression",
            message=check.error or "Invalid expression",
            suggestion=f"Reference conditions 1-{condition_count} joined by AND/OR/NOT",
        )
    ]


def _no_conditions(rule_id: str) -> ValidationIssue:
    return ValidationIssue(
        severity=ValidationSeverity.ERROR,
        rule_id=rule_id,
        location="conditions",
        message="Rule has no conditions",
        suggestion="Add at least one condition",
    )


def validate_field_rule(
    rule: FieldRule,
    catalog: Mapping[str, Field],
    default_joiner: str = "AND",
) -> List[ValidationIssue]:
    """Validate one field rule.

    Args:
        rule: Field rule to check
        catalog: Field catalog (field id -> Field)
        default_joiner: Joiner used when the rule has no logic expression

    Returns:
        List of ValidationIssue objects. Empty list means valid.
    """
    issues: List[ValidationIssue] = []

    if not rule.target_field_id:
        issues.append(
            ValidationIssue(
                severity=ValidationSeverity.ERROR,
                rule_id=rule.id,
                location="targetFieldId",
                message="Target field is required",
                suggestion="Choose the field this rule acts on",
            )
        )
    elif rule.target_field_id not in catalog:
        issues.append(
            ValidationIssue(
                severity=ValidationSeverity.ERROR,
                rule_id=rule.id,
                location="targetFieldId",
                message=f"Target field '{rule.target_field_id}' does not exist",
                suggestion="The field may have been deleted; retarget or delete the rule",
            )
        )

    if not rule.conditions:
        issues.append(_no_conditions(rule.id))
        return issues

    issues.extend(_validate_conditions(rule.id, rule.conditions, catalog))
    issues.extend(_validate_expression(rule.id, rule.logic_expression, len(rule.conditions), default_joiner))

    if rule.action.kind in _VALUE_MAP_FIELD_ACTIONS and any(
        c.field_id == rule.target_field_id for c in rule.conditions
    ):
        issues.append(
            ValidationIssue(
                severity=ValidationSeverity.WARNING,
                rule_id=rule.id,
                location="action",
                message=f"'{rule.action.kind.value}' writes to a field its own conditions read",
                suggestion="The rule will toggle on alternate evaluations; condition on another field",
            )
        )

    return issues


def validate_form_rule(
    rule: FormRule,
    catalog: Mapping[str, Field],
    default_joiner: str = "AND",
) -> List[ValidationIssue]:
    """Validate one form rule.

    Args:
        rule: Form rule to check
        catalog: Field catalog (field id -> Field)
        default_joiner: Joiner used when neither expression nor rootLogic is set

    Returns:
        List of ValidationIssue objects. Empty list means valid.
    """
    issues: List[ValidationIssue] = []

    if not rule.conditions:
        issues.append(_no_conditions(rule.id))
    else:
        joiner = (rule.root_logic or default_joiner).upper()
        issues.extend(_validate_conditions(rule.id, rule.conditions, catalog))
        issues.extend(_validate_expression(rule.id, rule.logic_expression, len(rule.conditions), joiner))

    written: List[str] = []
    if rule.action.kind == FormActionType.AUTO_FILL_FIELDS:
        written = [field_id for field_id, _ in rule.action.values]
    elif rule.action.kind == FormActionType.UPDATE_FIELD:
        written = [rule.action.field_id]

    for field_id in written:
        if field_id not in catalog:
            issues.append(
                ValidationIssue(
                    severity=ValidationSeverity.WARNING,
                    rule_id=rule.id,
                    location="actionValue",
                    message=f"'{rule.action.kind.value}' writes unknown field '{field_id}'",
                    suggestion="Remove the entry or point it at an existing field",
                )
            )

    return issues


def validate_rules(definition: FormDefinition, default_joiner: str = "AND") -> List[ValidationIssue]:
    """Validate every rule of a form definition.

    Args:
        definition: Loaded form definition
        default_joiner: Joiner used for rules without a logic expression

    Returns:
        List of ValidationIssue objects in rule order

    Example:
        >>> issues = validate_rules(definition)
        >>> if issues:
        ...     for issue in issues:
        ...         print(issue)
    """
    catalog = definition.catalog
    issues: List[ValidationIssue] = []

    for field_rule in definition.field_rules:
        issues.extend(validate_field_rule(field_rule, catalog, default_joiner))
    for form_rule in definition.form_rules:
        issues.extend(validate_form_rule(form_rule, catalog, default_joiner))

    counts = Counter(r.id for r in (*definition.field_rules, *definition.form_rules))
    for rule_id, count in counts.items():
        if count > 1:
            issues.append(
                ValidationIssue(
                    severity=ValidationSeverity.WARNING,
                    rule_id=rule_id,
                    location="id",
                    message=f"Rule id is used by {count} rules",
                    suggestion="Give each rule a unique id so fired actions can be traced",
                )
            )

    return issues


def validate_and_raise(
    definition: FormDefinition,
    strict: bool = False,
    default_joiner: str = "AND",
) -> None:
    """Validate a definition and raise if it cannot be saved.

    Args:
        definition: Loaded form definition
        strict: Treat warnings as errors
        default_joiner: Joiner used for rules without a logic expression

    Raises:
        ValidationError: If any errors (or, in strict mode, warnings) are found
    """
    all_issues = validate_rules(definition, default_joiner)

    errors = [i for i in all_issues if i.severity == ValidationSeverity.ERROR]
    warnings = [i for i in all_issues if i.severity == ValidationSeverity.WARNING]

    for warning in warnings:
        logger.warning(str(warning))

    blocking = all_issues if strict else errors
    if blocking:
        raise ValidationError("Rule validation failed", issues=blocking)


def format_validation_report(issues: List[ValidationIssue]) -> str:
    """Format validation issues as a readable report.

    Args:
        issues: List of validation issues

    Returns:
        Formatted string report
    """
    if not issues:
        return "All rules are valid."

    errors = [i for i in issues if i.severity == ValidationSeverity.ERROR]
    warnings = [i for i in issues if i.severity == ValidationSeverity.WARNING]

    lines = []

    if errors:
        lines.append(f"Found {len(errors)} error(s):")
        lines.append("-" * 40)
        for error in errors:
            lines.append(str(error))
            lines.append("")

    if warnings:
        lines.append(f"Found {len(warnings)} warning(s):")
        lines.append("-" * 40)
        for warning in warnings:
            lines.append(str(warning))
            lines.append("")

    return "\n".join(lines)
