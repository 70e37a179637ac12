"""Field rule evaluation engine.

Derives every field's render state from its baseline plus the currently
satisfied field rules. The pass is a pure function of (fields, rules,
values) and is re-run from scratch on every value change:

1. Every field starts at its baseline.
2. Active rules run in declaration order. A satisfied rule applies its
   action to the target's state; an unsatisfied rule resets the aspect its
   action controls back to the baseline, discarding whatever earlier rules
   in the same pass did to it.
3. Later rules win over earlier ones for the same field and aspect.

Only one pass runs. Rules whose conditions depend on values written by
setDefault/clearValue see those writes on the next call.

Usage:
```python
from formrules.lib.field_rules import FieldRuleEngine

engine = FieldRuleEngine()
states = engine.evaluate(fields, field_rules, {"country": "US"})
if states["state"].is_visible:
    ...
```
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Mapping, Sequence, Tuple

from formrules.lib.actions import FieldAction, FieldActionType
from formrules.lib.conditions import ConditionEvaluator
from formrules.lib.errors import InvalidExpressionError
from formrules.lib.expressions import effective_expression, evaluate as evaluate_expression
from formrules.lib.models import Field, FieldRule, FieldState, FieldType, build_catalog

logger = logging.getLogger(__name__)

__all__ = [
    "FieldRuleEngine",
    "FieldRuleResult",
    "empty_value_for",
    "evaluate_field_rules",
]


# State attributes each action controls; reset to baseline when unmet
ACTION_ASPECTS: Dict[FieldActionType, Tuple[str, ...]] = {
    FieldActionType.SHOW: ("is_visible",),
    FieldActionType.HIDE: ("is_visible",),
    FieldActionType.ENABLE: ("is_enabled",),
    FieldActionType.DISABLE: ("is_enabled",),
    FieldActionType.REQUIRE: ("is_required",),
    FieldActionType.OPTIONAL: ("is_required",),
    FieldActionType.CHANGE_LABEL: ("label",),
    FieldActionType.CHANGE_OPTIONS: ("options",),
    FieldActionType.SHOW_TOOLTIP: ("tooltip",),
    FieldActionType.SHOW_ERROR: ("error_message",),
    FieldActionType.SET_DEFAULT: (),
    FieldActionType.CLEAR_VALUE: (),
}

_EMPTY_VALUES: Dict[FieldType, Callable[[], Any]] = {
    FieldType.TAGS: list,
    FieldType.MULTI_SELECT: list,
    FieldType.CHECKBOX: list,
    FieldType.CURRENCY: lambda: {"amount": 0, "currency": "USD"},
    FieldType.ADDRESS: lambda: {"street": "", "city": "", "state": "", "postal": "", "country": ""},
    FieldType.PHONE: lambda: {"number": "", "countryCode": "+1"},
    FieldType.FILE: lambda: None,
    FieldType.NUMBER: lambda: 0,
    FieldType.RATING: lambda: 0,
    FieldType.SLIDER: lambda: 0,
    FieldType.TOGGLE_SWITCH: lambda: False,
    FieldType.DATE: lambda: None,
    FieldType.TIME: lambda: None,
    FieldType.DATETIME: lambda: None,
}


def empty_value_for(field_type: FieldType) -> Any:
    """The value clearValue writes for a field of this type."""
    factory = _EMPTY_VALUES.get(field_type)
    return factory() if factory else ""


def _set(attr: str, value: Any) -> Callable[[FieldState, Any], None]:
    def _apply(state: FieldState, action: Any) -> None:
        setattr(state, attr, value)

    return _apply


_STATE_HANDLERS: Dict[FieldActionType, Callable[[FieldState, Any], None]] = {
    FieldActionType.SHOW: _set("is_visible", True),
    FieldActionType.HIDE: _set("is_visible", False),
    FieldActionType.ENABLE: _set("is_enabled", True),
    FieldActionType.DISABLE: _set("is_enabled", False),
    FieldActionType.REQUIRE: _set("is_required", True),
    FieldActionType.OPTIONAL: _set("is_required", False),
    FieldActionType.CHANGE_LABEL: lambda s, a: setattr(s, "label", a.label),
    FieldActionType.CHANGE_OPTIONS: lambda s, a: setattr(s, "options", list(a.options)),
    FieldActionType.SHOW_TOOLTIP: lambda s, a: setattr(s, "tooltip", a.text),
    FieldActionType.SHOW_ERROR: lambda s, a: setattr(s, "error_message", a.message),
}


@dataclass
class FieldRuleResult:
    """Output of one field rule pass.

    ``value_updates`` holds setDefault/clearValue writes for the caller to
    merge into the value map before the next pass.
    """

    states: Dict[str, FieldState]
    value_updates: Dict[str, Any] = field(default_factory=dict)
    satisfied_rule_ids: Tuple[str, ...] = ()


class FieldRuleEngine:
    """Applies field rules to derive per-field render state.

    The engine holds configuration only; every call starts from baselines.
    """

    def __init__(self, default_joiner: str = "AND"):
        """Initialize engine.

        Args:
            default_joiner: AND/OR used to join conditions of rules that
                have no explicit logic expression
        """
        self.default_joiner = default_joiner

    def is_satisfied(
        self,
        rule: FieldRule,
        evaluator: ConditionEvaluator,
        values: Mapping[str, Any],
    ) -> bool:
        """Evaluate a rule's conditions and combine them.

        Raises:
            InvalidExpressionError: If the rule's expression is malformed
        """
        results = evaluator.evaluate_all(rule.conditions, values)
        expression = effective_expression(rule.logic_expression, len(results), self.default_joiner)
        return evaluate_expression(expression, results)

    def run(
        self,
        fields: Iterable[Field],
        rules: Sequence[FieldRule],
        values: Mapping[str, Any],
    ) -> FieldRuleResult:
        """Run one full pass.

        Args:
            fields: Field catalog in declaration order
            rules: Field rules in declaration order
            values: Live value map (not modified)

        Returns:
            FieldRuleResult with a fresh state per field
        """
        catalog = build_catalog(fields)
        evaluator = ConditionEvaluator(catalog)
        states = {field_id: FieldState.from_field(f) for field_id, f in catalog.items()}
        updates: Dict[str, Any] = {}
        satisfied = []

        for rule in rules:
            if not rule.is_active:
                continue

            target = catalog.get(rule.target_field_id)
            if target is None:
                logger.debug(f"Field rule '{rule.id}' skipped: target '{rule.target_field_id}' not found")
                continue

            try:
                met = self.is_satisfied(rule, evaluator, values)
            except InvalidExpressionError as e:
                logger.warning(f"Field rule '{rule.id}' has an invalid expression, treating as unmet: {e.reason}")
                met = False
            except Exception as e:
                logger.warning(f"Error evaluating field rule '{rule.id}', treating as unmet: {e}")
                met = False

            if met:
                satisfied.append(rule.id)
                self._apply(rule.action, target, states[target.id], updates)
            else:
                self._reset(rule.action, target, states[target.id])

        logger.debug(f"Field rule pass: {len(satisfied)}/{len(rules)} rules satisfied")
        return FieldRuleResult(states=states, value_updates=updates, satisfied_rule_ids=tuple(satisfied))

    def evaluate(
        self,
        fields: Iterable[Field],
        rules: Sequence[FieldRule],
        values: Mapping[str, Any],
    ) -> Dict[str, FieldState]:
        """Derive the state map (field id -> FieldState) for the current values."""
        return self.run(fields, rules, values).states

    @staticmethod
    def _apply(action: FieldAction, target: Field, state: FieldState, updates: Dict[str, Any]) -> None:
        if action.kind == FieldActionType.SET_DEFAULT:
            updates[target.id] = copy.deepcopy(action.value)
        elif action.kind == FieldActionType.CLEAR_VALUE:
            updates[target.id] = empty_value_for(target.type)
        else:
            _STATE_HANDLERS[action.kind](state, action)

    @staticmethod
    def _reset(action: FieldAction, target: Field, state: FieldState) -> None:
        baseline = FieldState.from_field(target)
        for attr in ACTION_ASPECTS[action.kind]:
            setattr(state, attr, getattr(baseline, attr))


def evaluate_field_rules(
    fields: Iterable[Field],
    rules: Sequence[FieldRule],
    values: Mapping[str, Any],
    default_joiner: str = "AND",
) -> Dict[str, FieldState]:
    """Convenience function running one field rule pass.

    Args:
        fields: Field catalog
        rules: Field rules in declaration order
        values: Live value map
        default_joiner: Joiner for rules without a logic expression

    Returns:
        Map of field id to FieldState
    """
    return FieldRuleEngine(default_joiner=default_joiner).evaluate(fields, rules, values)
