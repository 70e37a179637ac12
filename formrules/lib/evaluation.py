"""One-call evaluation of a whole form.

Runs the field rule and form rule engines once over the same value map and
bundles their outputs. Value writes from both engines are returned, never
applied: the caller merges them and re-evaluates if it wants rules to see
them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from formrules.lib.field_rules import FieldRuleEngine
from formrules.lib.form_rules import (
    ActionDescriptor,
    FormOutcome,
    FormRuleEngine,
    collect_value_updates,
    summarize_actions,
)
from formrules.lib.models import FieldState, FormDefinition
from formrules.lib.settings import EngineSettings

logger = logging.getLogger(__name__)

__all__ = ["FormEvaluation", "evaluate_form"]


@dataclass
class FormEvaluation:
    """Everything one evaluation pass derives for a form."""

    states: Dict[str, FieldState]
    actions: List[ActionDescriptor] = field(default_factory=list)
    value_updates: Dict[str, Any] = field(default_factory=dict)
    outcome: FormOutcome = field(default_factory=FormOutcome)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fieldStates": {field_id: state.to_dict() for field_id, state in self.states.items()},
            "actions": [a.to_dict() for a in self.actions],
            "valueUpdates": dict(self.value_updates),
            "outcome": self.outcome.to_dict(),
        }


def evaluate_form(
    definition: FormDefinition,
    values: Mapping[str, Any],
    settings: Optional[EngineSettings] = None,
) -> FormEvaluation:
    """Evaluate every rule of a form against the current values.

    Args:
        definition: Loaded form definition
        values: Live value map (not modified)
        settings: Engine settings; only ``default_joiner`` is used here

    Returns:
        FormEvaluation with field states, fired actions, pending value
        updates (form rule writes applied after field rule writes) and the
        form-level outcome
    """
    joiner = settings.default_joiner if settings else "AND"

    field_result = FieldRuleEngine(default_joiner=joiner).run(definition.fields, definition.field_rules, values)
    actions = FormRuleEngine(default_joiner=joiner).evaluate(definition.fields, definition.form_rules, values)

    value_updates = dict(field_result.value_updates)
    value_updates.update(collect_value_updates(actions))

    logger.debug(
        f"Evaluated form '{definition.id or definition.name or '?'}': "
        f"{len(field_result.satisfied_rule_ids)} field rules satisfied, {len(actions)} actions fired"
    )

    return FormEvaluation(
        states=field_result.states,
        actions=actions,
        value_updates=value_updates,
        outcome=summarize_actions(actions),
    )
