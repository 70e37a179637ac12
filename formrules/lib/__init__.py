"""Rule engine library modules.

This package contains the data model, condition and expression evaluators,
the field and form rule engines, and definition loading/validation.
"""

from formrules.lib.actions import (
    FieldAction,
    FieldActionType,
    FormAction,
    FormActionType,
    parse_field_action,
    parse_form_action,
)
from formrules.lib.conditions import ConditionEvaluator, evaluate_condition, is_empty
from formrules.lib.config_loader import load_definition_from_dict, load_form_definition, load_values
from formrules.lib.errors import (
    ActionPayloadError,
    ConfigurationError,
    DanglingFieldReferenceError,
    InvalidExpressionError,
    RuleEngineError,
    TypeCoercionMismatch,
    ValidationError,
)
from formrules.lib.evaluation import FormEvaluation, evaluate_form
from formrules.lib.expressions import (
    ExpressionValidation,
    extract_condition_ids,
    generate_default_expression,
)
from formrules.lib.expressions import evaluate as evaluate_expression
from formrules.lib.expressions import validate as validate_expression
from formrules.lib.field_rules import FieldRuleEngine, FieldRuleResult, evaluate_field_rules
from formrules.lib.form_rules import (
    ActionDescriptor,
    FormOutcome,
    FormRuleEngine,
    collect_value_updates,
    evaluate_form_rules,
    summarize_actions,
)
from formrules.lib.models import (
    Condition,
    Field,
    FieldOption,
    FieldRule,
    FieldState,
    FieldType,
    FormDefinition,
    FormRule,
    Operator,
    ValueKind,
    build_catalog,
)
from formrules.lib.settings import EngineSettings
from formrules.lib.validate import (
    ValidationIssue,
    ValidationSeverity,
    format_validation_report,
    validate_and_raise,
    validate_rules,
)

__all__ = [
    # Models
    "Condition",
    "Field",
    "FieldOption",
    "FieldRule",
    "FieldState",
    "FieldType",
    "FormDefinition",
    "FormRule",
    "Operator",
    "ValueKind",
    "build_catalog",
    # Actions
    "FieldAction",
    "FieldActionType",
    "FormAction",
    "FormActionType",
    "parse_field_action",
    "parse_form_action",
    # Conditions and expressions
    "ConditionEvaluator",
    "ExpressionValidation",
    "evaluate_condition",
    "evaluate_expression",
    "extract_condition_ids",
    "generate_default_expression",
    "is_empty",
    "validate_expression",
    # Engines
    "ActionDescriptor",
    "FieldRuleEngine",
    "FieldRuleResult",
    "FormEvaluation",
    "FormOutcome",
    "FormRuleEngine",
    "collect_value_updates",
    "evaluate_field_rules",
    "evaluate_form",
    "evaluate_form_rules",
    "summarize_actions",
    # Loading, validation, settings
    "EngineSettings",
    "ValidationIssue",
    "ValidationSeverity",
    "format_validation_report",
    "load_definition_from_dict",
    "load_form_definition",
    "load_values",
    "validate_and_raise",
    "validate_rules",
    # Errors
    "ActionPayloadError",
    "ConfigurationError",
    "DanglingFieldReferenceError",
    "InvalidExpressionError",
    "RuleEngineError",
    "TypeCoercionMismatch",
    "ValidationError",
]
