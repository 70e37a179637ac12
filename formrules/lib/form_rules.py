"""Form rule evaluation engine.

Form rules share the condition and expression pipeline of field rules, but
their actions are side effects. The engine only describes what should
happen: each satisfied rule yields an ``ActionDescriptor`` carrying the
action and its payload resolved against the current values. Sending the
email or calling the webhook is left to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from formrules.lib.actions import FormAction, FormActionType, SendEmail
from formrules.lib.conditions import ConditionEvaluator
from formrules.lib.errors import InvalidExpressionError
from formrules.lib.expressions import effective_expression, evaluate as evaluate_expression
from formrules.lib.models import Field, FormRule, build_catalog

logger = logging.getLogger(__name__)

__all__ = [
    "ActionDescriptor",
    "FormOutcome",
    "FormRuleEngine",
    "collect_value_updates",
    "evaluate_form_rules",
    "summarize_actions",
]


@dataclass(frozen=True)
class ActionDescriptor:
    """A fired form action and its resolved payload."""

    rule_id: str
    action: FormAction
    rule_name: str = ""

    @property
    def kind(self) -> FormActionType:
        return self.action.kind

    @property
    def payload(self) -> Any:
        return self.action.to_value()

    def to_dict(self) -> Dict[str, Any]:
        """Render in the ``{action, actionValue, ruleId}`` shape the runtime consumes."""
        return {
            "action": self.kind.value,
            "actionValue": self.payload,
            "ruleId": self.rule_id,
        }


@dataclass
class FormOutcome:
    """Form-level state implied by a list of fired actions.

    ``None`` means no fired action expressed an opinion.
    """

    submit_allowed: Optional[bool] = None
    locked: Optional[bool] = None
    header: Optional[str] = None
    redirect_url: Optional[str] = None
    approval: Optional[str] = None
    messages: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "submitAllowed": self.submit_allowed,
            "locked": self.locked,
            "header": self.header,
            "redirectUrl": self.redirect_url,
            "approval": self.approval,
            "messages": list(self.messages),
        }


class FormRuleEngine:
    """Evaluates form rules and describes the actions that fire."""

    def __init__(self, default_joiner: str = "AND"):
        self.default_joiner = default_joiner

    def is_satisfied(
        self,
        rule: FormRule,
        evaluator: ConditionEvaluator,
        values: Mapping[str, Any],
    ) -> bool:
        """Evaluate a form rule.

        Rules without conditions never fire. ``root_logic`` picks the joiner
        when the rule has no logic expression.

        Raises:
            InvalidExpressionError: If the rule's expression is malformed
        """
        if not rule.conditions:
            return False
        results = evaluator.evaluate_all(rule.conditions, values)
        joiner = (rule.root_logic or self.default_joiner).upper()
        expression = effective_expression(rule.logic_expression, len(results), joiner)
        return evaluate_expression(expression, results)

    def evaluate(
        self,
        fields: Iterable[Field],
        rules: Sequence[FormRule],
        values: Mapping[str, Any],
    ) -> List[ActionDescriptor]:
        """Describe the actions of every satisfied active rule, in declaration order.

        Args:
            fields: Field catalog
            rules: Form rules in declaration order
            values: Live value map (not modified)

        Returns:
            List of ActionDescriptor
        """
        evaluator = ConditionEvaluator(build_catalog(fields))
        fired: List[ActionDescriptor] = []

        for rule in rules:
            if not rule.is_active:
                continue

            try:
                if not self.is_satisfied(rule, evaluator, values):
                    continue
                action = rule.action
                if isinstance(action, SendEmail):
                    action = action.resolve(values)
            except InvalidExpressionError as e:
                logger.warning(f"Form rule '{rule.id}' has an invalid expression, skipping: {e.reason}")
                continue
            except Exception as e:
                logger.warning(f"Error evaluating form rule '{rule.id}', skipping: {e}")
                continue

            fired.append(ActionDescriptor(rule_id=rule.id, action=action, rule_name=rule.name))

        logger.debug(f"Form rule pass: {len(fired)}/{len(rules)} actions fired")
        return fired


def collect_value_updates(descriptors: Iterable[ActionDescriptor]) -> Dict[str, Any]:
    """Merge autoFillFields/updateField payloads into one value map (later wins)."""
    updates: Dict[str, Any] = {}
    for descriptor in descriptors:
        if descriptor.kind == FormActionType.AUTO_FILL_FIELDS:
            updates.update(descriptor.action.values)
        elif descriptor.kind == FormActionType.UPDATE_FIELD:
            updates[descriptor.action.field_id] = descriptor.action.value
    return updates


_MESSAGE_ACTIONS = (
    FormActionType.NOTIFY,
    FormActionType.SHOW_MESSAGE,
    FormActionType.SHOW_SUCCESS_MODAL,
    FormActionType.PREVENT_SUBMIT,
)


def summarize_actions(descriptors: Iterable[ActionDescriptor]) -> FormOutcome:
    """Fold fired actions into a FormOutcome; later actions override earlier ones."""
    outcome = FormOutcome()
    for descriptor in descriptors:
        kind = descriptor.kind
        action = descriptor.action

        if kind == FormActionType.ALLOW_SUBMIT:
            outcome.submit_allowed = True
        elif kind == FormActionType.PREVENT_SUBMIT:
            outcome.submit_allowed = False
        elif kind == FormActionType.LOCK_FORM:
            outcome.locked = True
        elif kind == FormActionType.UNLOCK_FORM:
            outcome.locked = False
        elif kind == FormActionType.CHANGE_FORM_HEADER:
            outcome.header = action.header
        elif kind == FormActionType.REDIRECT:
            outcome.redirect_url = action.url
        elif kind == FormActionType.APPROVE:
            outcome.approval = "approved"
        elif kind == FormActionType.DISAPPROVE:
            outcome.approval = "disapproved"

        if kind in _MESSAGE_ACTIONS and action.message:
            outcome.messages.append(action.message)

    return outcome


def evaluate_form_rules(
    fields: Iterable[Field],
    rules: Sequence[FormRule],
    values: Mapping[str, Any],
    default_joiner: str = "AND",
) -> List[ActionDescriptor]:
    """Convenience function describing the actions fired by ``rules``."""
    return FormRuleEngine(default_joiner=default_joiner).evaluate(fields, rules, values)
