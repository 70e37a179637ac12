"""Conditional rule evaluation for dynamic forms.

This package derives per-field render state (visibility, enablement,
labels, options, tooltips, errors) from a form's field rules, and describes
the side-effecting actions its form rules fire, for a given value map.

Usage:
    python -m formrules validate ./forms/contact.yaml
    python -m formrules evaluate ./forms/contact.yaml --values ./values.json
"""

from formrules.lib.config_loader import load_form_definition
from formrules.lib.evaluation import FormEvaluation, evaluate_form
from formrules.lib.field_rules import FieldRuleEngine
from formrules.lib.form_rules import ActionDescriptor, FormRuleEngine
from formrules.lib.models import Condition, Field, FieldRule, FieldState, FieldType, FormRule, Operator
from formrules.lib.validate import validate_rules

__all__ = [
    "ActionDescriptor",
    "Condition",
    "Field",
    "FieldRule",
    "FieldRuleEngine",
    "FieldState",
    "FieldType",
    "FormEvaluation",
    "FormRule",
    "FormRuleEngine",
    "Operator",
    "evaluate_form",
    "load_form_definition",
    "validate_rules",
]
