"""Form definition loader.

Reads a form's fields and rules from a JSON or YAML document in the
camelCase shape the form builder persists, validates the shape with
pydantic and converts it into engine objects.

Example YAML (contact.yaml):
    fields:
      - id: country
        type: select
        options: [US, CA]
      - id: state
        type: text
        isVisible: false
    fieldRules:
      - id: show-state
        targetFieldId: state
        conditions:
          - fieldId: country
            operator: "=="
            value: US
        action: show

Usage:
    from formrules.lib.config_loader import load_form_definition
    definition = load_form_definition("./forms/contact.yaml")
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from formrules.lib.actions import parse_field_action, parse_form_action
from formrules.lib.errors import ActionPayloadError, ConfigurationError
from formrules.lib.models import (
    Condition,
    Field,
    FieldOption,
    FieldRule,
    FieldType,
    FormDefinition,
    FormRule,
    Operator,
)

logger = logging.getLogger(__name__)

__all__ = [
    "FIELD_TYPE_ALIASES",
    "load_definition_from_dict",
    "load_document",
    "load_form_definition",
    "load_values",
]


# Type names used by older builder versions
FIELD_TYPE_ALIASES = {
    "toggle": FieldType.TOGGLE_SWITCH,
}


class _Document(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class OptionModel(_Document):
    value: Any
    label: Optional[str] = None


class FieldModel(_Document):
    id: str
    type: FieldType
    label: str = ""
    options: List[Union[OptionModel, str, int, float]] = []
    is_visible: bool = True
    is_enabled: bool = True
    is_required: bool = False
    tooltip: Optional[str] = None
    error_message: Optional[str] = None
    default_value: Any = None

    @field_validator("type", mode="before")
    @classmethod
    def resolve_type_alias(cls, v: Any) -> Any:
        """Accept legacy type names."""
        if isinstance(v, str) and v in FIELD_TYPE_ALIASES:
            return FIELD_TYPE_ALIASES[v]
        return v

    def to_field(self) -> Field:
        options = tuple(
            FieldOption(o.value, o.label if o.label is not None else str(o.value))
            if isinstance(o, OptionModel)
            else FieldOption(o, str(o))
            for o in self.options
        )
        return Field(
            id=self.id,
            type=self.type,
            label=self.label,
            options=options,
            is_visible=self.is_visible,
            is_enabled=self.is_enabled,
            is_required=self.is_required,
            tooltip=self.tooltip,
            error_message=self.error_message,
            default_value=self.default_value,
        )


class ConditionModel(_Document):
    id: Optional[str] = None
    field_id: str
    operator: Operator
    value: Any = None
    compare_to_field: Optional[str] = None

    def to_condition(self) -> Condition:
        return Condition(
            field_id=self.field_id,
            operator=self.operator,
            value=self.value,
            compare_to_field=self.compare_to_field or None,
            id=self.id,
        )


class _RuleModel(_Document):
    id: str
    name: str = ""
    conditions: List[ConditionModel] = []
    condition: Optional[ConditionModel] = None
    logic_expression: str = ""
    action: str
    action_value: Any = None
    is_active: bool = True

    @model_validator(mode="after")
    def merge_legacy_condition(self) -> "_RuleModel":
        """Rules saved before multi-condition support carry a single ``condition``."""
        if self.condition is not None and not self.conditions:
            self.conditions = [self.condition]
        return self

    def _conditions(self) -> tuple:
        return tuple(c.to_condition() for c in self.conditions)


class FieldRuleModel(_RuleModel):
    target_field_id: str = ""

    def to_rule(self) -> FieldRule:
        return FieldRule(
            id=self.id,
            name=self.name,
            target_field_id=self.target_field_id,
            conditions=self._conditions(),
            action=parse_field_action(self.action, self.action_value),
            logic_expression=self.logic_expression,
            is_active=self.is_active,
        )


class FormRuleModel(_RuleModel):
    root_logic: Optional[str] = None

    @field_validator("root_logic")
    @classmethod
    def validate_root_logic(cls, v: Optional[str]) -> Optional[str]:
        """rootLogic joins conditions with AND or OR."""
        if v is None or v == "":
            return None
        if v.upper() not in ("AND", "OR"):
            raise ValueError("rootLogic must be one of: ['AND', 'OR']")
        return v.upper()

    def to_rule(self) -> FormRule:
        return FormRule(
            id=self.id,
            name=self.name,
            conditions=self._conditions(),
            action=parse_form_action(self.action, self.action_value),
            logic_expression=self.logic_expression,
            root_logic=self.root_logic,
            is_active=self.is_active,
        )


class FormDefinitionModel(_Document):
    id: Optional[str] = None
    name: Optional[str] = None
    fields: List[FieldModel] = []
    # Rules are validated one at a time so a defective rule can be skipped
    field_rules: List[Dict[str, Any]] = []
    form_rules: List[Dict[str, Any]] = []


def _format_location(loc: tuple) -> str:
    return ".".join(str(part) for part in loc)


def _shape_error(
    e: PydanticValidationError,
    message: str,
    prefix: tuple = (),
    rule_id: Optional[str] = None,
) -> ConfigurationError:
    first = e.errors()[0]
    return ConfigurationError(
        f"{message}: {first['msg']} ({e.error_count()} error(s))",
        field=_format_location(prefix + tuple(first["loc"])),
        value=first.get("input"),
        rule_id=rule_id,
    )


def _convert_rules(
    documents: List[Dict[str, Any]],
    model_class: type,
    kind: str,
    section: str,
    strict: bool,
) -> tuple:
    """Convert rule documents, skipping (or, when strict, raising on) defective ones."""
    rules = []
    for index, document in enumerate(documents):
        rule_id = str(document.get("id", f"#{index}"))
        try:
            rules.append(model_class.model_validate(document).to_rule())
            continue
        except PydanticValidationError as e:
            error = _shape_error(e, f"Invalid {kind.lower()} rule '{rule_id}'", (section, index), rule_id)
            cause: Exception = e
        except ActionPayloadError as e:
            error = ActionPayloadError(
                f"{kind} rule '{rule_id}': {e.reason}",
                action=document.get("action"),
                rule_id=rule_id,
                value=document.get("actionValue"),
                suggestion=e.suggestion,
            )
            cause = e

        if strict:
            raise error from cause
        logger.warning(f"Skipping {kind.lower()} rule '{rule_id}': {error.reason}")
    return tuple(rules)


def load_definition_from_dict(config: Dict[str, Any], strict: bool = False) -> FormDefinition:
    """Build a FormDefinition from a parsed document.

    A rule that cannot be loaded (unknown operator, malformed action payload)
    is logged and left out so the remaining rules still apply.

    Args:
        config: Document in the builder's camelCase shape
        strict: Raise on the first defective rule instead of skipping it

    Returns:
        FormDefinition

    Raises:
        ConfigurationError: If the document does not match the expected shape,
            or a rule is defective and ``strict`` is set
        ActionPayloadError: If an action payload is malformed and ``strict``
            is set
    """
    if not isinstance(config, dict):
        raise ConfigurationError("Form definition must be an object", value=type(config).__name__)

    try:
        model = FormDefinitionModel.model_validate(config)
    except PydanticValidationError as e:
        raise _shape_error(e, "Invalid form definition") from e

    definition = FormDefinition(
        id=model.id,
        name=model.name,
        fields=tuple(f.to_field() for f in model.fields),
        field_rules=_convert_rules(model.field_rules, FieldRuleModel, "Field", "fieldRules", strict),
        form_rules=_convert_rules(model.form_rules, FormRuleModel, "Form", "formRules", strict),
    )

    logger.debug(
        f"Loaded form '{definition.id or definition.name or '?'}': {len(definition.fields)} fields, "
        f"{len(definition.field_rules)} field rules, {len(definition.form_rules)} form rules"
    )
    return definition


def load_document(path: Union[str, Path]) -> Any:
    """Read a JSON (``.json``) or YAML document.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ConfigurationError: If the file cannot be parsed or is empty
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        if path.suffix.lower() == ".json":
            try:
                document = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"Invalid JSON syntax: {e}", field=str(path)) from e
        else:
            try:
                document = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML syntax: {e}", field=str(path)) from e

    if document is None:
        raise ConfigurationError("Empty document", field=str(path))
    return document


def load_form_definition(path: Union[str, Path], strict: bool = False) -> FormDefinition:
    """Load a form definition from a JSON or YAML file.

    See load_definition_from_dict() for ``strict``.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ConfigurationError: If the definition is invalid
    """
    return load_definition_from_dict(load_document(path), strict=strict)


def load_values(path: Union[str, Path]) -> Dict[str, Any]:
    """Load a value map (field id -> value) from a JSON or YAML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ConfigurationError: If the document is not an object
    """
    document = load_document(path)
    if not isinstance(document, dict):
        raise ConfigurationError("Value map must be an object", field=str(path), value=type(document).__name__)
    return {str(k): v for k, v in document.items()}
