"""Typed rule actions.

Every action is a small frozen dataclass tagged with its action type, so
payloads are checked once when a definition is loaded instead of at every
call site. ``parse_field_action`` and ``parse_form_action`` build variants
from the authored ``action``/``actionValue`` pair.

Field actions mutate derived field state (or, for setDefault/clearValue, the
value map). Form actions are side effects that the engine only describes;
dispatching them is the caller's job.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, Mapping, Optional, Tuple, Union

from formrules.lib.errors import ActionPayloadError
from formrules.lib.models import FieldOption

__all__ = [
    "AllowSubmit",
    "Approve",
    "AssignForm",
    "AutoFillFields",
    "ChangeFormHeader",
    "ChangeLabel",
    "ChangeOptions",
    "ClearValue",
    "DisableField",
    "Disapprove",
    "EmailRecipient",
    "EnableField",
    "FieldAction",
    "FieldActionType",
    "FormAction",
    "FormActionType",
    "HideField",
    "LockForm",
    "MakeOptional",
    "Notify",
    "PreventSubmit",
    "Redirect",
    "RequireField",
    "SaveDraft",
    "SendEmail",
    "SetDefault",
    "ShowError",
    "ShowField",
    "ShowMessage",
    "ShowSuccessModal",
    "ShowTooltip",
    "StartWorkflow",
    "TemplateBinding",
    "TriggerWebhook",
    "UnlockForm",
    "UpdateField",
    "parse_field_action",
    "parse_form_action",
]


class FieldActionType(Enum):
    """Actions a field rule can apply to its target field."""

    SHOW = "show"
    HIDE = "hide"
    ENABLE = "enable"
    DISABLE = "disable"
    REQUIRE = "require"
    OPTIONAL = "optional"
    CHANGE_LABEL = "changeLabel"
    CHANGE_OPTIONS = "changeOptions"
    SET_DEFAULT = "setDefault"
    CLEAR_VALUE = "clearValue"
    SHOW_TOOLTIP = "showTooltip"
    SHOW_ERROR = "showError"


class FormActionType(Enum):
    """Side-effecting actions a form rule can fire."""

    APPROVE = "approve"
    DISAPPROVE = "disapprove"
    NOTIFY = "notify"
    SEND_EMAIL = "sendEmail"
    TRIGGER_WEBHOOK = "triggerWebhook"
    START_WORKFLOW = "startWorkflow"
    ASSIGN_FORM = "assignForm"
    REDIRECT = "redirect"
    LOCK_FORM = "lockForm"
    UNLOCK_FORM = "unlockForm"
    AUTO_FILL_FIELDS = "autoFillFields"
    CHANGE_FORM_HEADER = "changeFormHeader"
    SHOW_SUCCESS_MODAL = "showSuccessModal"
    ALLOW_SUBMIT = "allowSubmit"
    PREVENT_SUBMIT = "preventSubmit"
    SAVE_DRAFT = "saveDraft"
    SHOW_MESSAGE = "showMessage"
    UPDATE_FIELD = "updateField"


# Legacy action names still found in stored rules
FIELD_ACTION_ALIASES = {
    "setRequired": FieldActionType.REQUIRE,
    "setOptional": FieldActionType.OPTIONAL,
}

FORM_ACTION_ALIASES = {
    "reject": FormActionType.DISAPPROVE,
    "redirectTo": FormActionType.REDIRECT,
}


# ============================================
# Field action variants
# ============================================


@dataclass(frozen=True)
class ShowField:
    kind: ClassVar[FieldActionType] = FieldActionType.SHOW


@dataclass(frozen=True)
class HideField:
    kind: ClassVar[FieldActionType] = FieldActionType.HIDE


@dataclass(frozen=True)
class EnableField:
    kind: ClassVar[FieldActionType] = FieldActionType.ENABLE


@dataclass(frozen=True)
class DisableField:
    kind: ClassVar[FieldActionType] = FieldActionType.DISABLE


@dataclass(frozen=True)
class RequireField:
    kind: ClassVar[FieldActionType] = FieldActionType.REQUIRE


@dataclass(frozen=True)
class MakeOptional:
    kind: ClassVar[FieldActionType] = FieldActionType.OPTIONAL


@dataclass(frozen=True)
class ChangeLabel:
    label: str
    kind: ClassVar[FieldActionType] = FieldActionType.CHANGE_LABEL


@dataclass(frozen=True)
class ChangeOptions:
    options: Tuple[FieldOption, ...]
    kind: ClassVar[FieldActionType] = FieldActionType.CHANGE_OPTIONS


@dataclass(frozen=True)
class SetDefault:
    value: Any
    kind: ClassVar[FieldActionType] = FieldActionType.SET_DEFAULT


@dataclass(frozen=True)
class ClearValue:
    kind: ClassVar[FieldActionType] = FieldActionType.CLEAR_VALUE


@dataclass(frozen=True)
class ShowTooltip:
    text: str
    kind: ClassVar[FieldActionType] = FieldActionType.SHOW_TOOLTIP


@dataclass(frozen=True)
class ShowError:
    message: str
    kind: ClassVar[FieldActionType] = FieldActionType.SHOW_ERROR


FieldAction = Union[
    ShowField,
    HideField,
    EnableField,
    DisableField,
    RequireField,
    MakeOptional,
    ChangeLabel,
    ChangeOptions,
    SetDefault,
    ClearValue,
    ShowTooltip,
    ShowError,
]


# ============================================
# Form action variants
# ============================================


@dataclass(frozen=True)
class EmailRecipient:
    """Recipient of a sendEmail action.

    ``type`` is one of static, form_field, form_creator, custom. For
    form_field recipients ``value`` is a field id until resolved.
    """

    type: str
    value: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "value": self.value}


@dataclass(frozen=True)
class TemplateBinding:
    """Template variable for sendEmail; ``type`` is static or form_field."""

    key: str
    type: str
    value: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, "type": self.type, "value": self.value}


@dataclass(frozen=True)
class _MessageAction:
    message: Optional[str] = None

    def to_value(self) -> Any:
        return self.message


@dataclass(frozen=True)
class _FlagAction:
    def to_value(self) -> Any:
        return True


@dataclass(frozen=True)
class Approve(_MessageAction):
    kind: ClassVar[FormActionType] = FormActionType.APPROVE


@dataclass(frozen=True)
class Disapprove(_MessageAction):
    kind: ClassVar[FormActionType] = FormActionType.DISAPPROVE


@dataclass(frozen=True)
class Notify(_MessageAction):
    kind: ClassVar[FormActionType] = FormActionType.NOTIFY


@dataclass(frozen=True)
class ShowSuccessModal(_MessageAction):
    kind: ClassVar[FormActionType] = FormActionType.SHOW_SUCCESS_MODAL


@dataclass(frozen=True)
class ShowMessage(_MessageAction):
    kind: ClassVar[FormActionType] = FormActionType.SHOW_MESSAGE


@dataclass(frozen=True)
class PreventSubmit(_MessageAction):
    kind: ClassVar[FormActionType] = FormActionType.PREVENT_SUBMIT


@dataclass(frozen=True)
class AllowSubmit(_FlagAction):
    kind: ClassVar[FormActionType] = FormActionType.ALLOW_SUBMIT


@dataclass(frozen=True)
class LockForm(_FlagAction):
    kind: ClassVar[FormActionType] = FormActionType.LOCK_FORM


@dataclass(frozen=True)
class UnlockForm(_FlagAction):
    kind: ClassVar[FormActionType] = FormActionType.UNLOCK_FORM


@dataclass(frozen=True)
class SaveDraft(_FlagAction):
    kind: ClassVar[FormActionType] = FormActionType.SAVE_DRAFT


@dataclass(frozen=True)
class SendEmail:
    recipients: Tuple[EmailRecipient, ...]
    template_id: Optional[str] = None
    template_data: Tuple[TemplateBinding, ...] = ()
    kind: ClassVar[FormActionType] = FormActionType.SEND_EMAIL

    def resolve(self, values: Mapping[str, Any]) -> "SendEmail":
        """Replace form_field references with the fields' current values."""
        recipients = tuple(
            EmailRecipient("static", values.get(r.value)) if r.type == "form_field" else r
            for r in self.recipients
        )
        template_data = tuple(
            TemplateBinding(b.key, "static", values.get(b.value)) if b.type == "form_field" else b
            for b in self.template_data
        )
        return replace(self, recipients=recipients, template_data=template_data)

    def to_value(self) -> Any:
        return {
            "templateId": self.template_id,
            "recipients": [r.to_dict() for r in self.recipients],
            "templateData": [b.to_dict() for b in self.template_data],
        }


def _item_pairs(items: Any) -> Tuple[Tuple[str, Any], ...]:
    if isinstance(items, Mapping):
        return tuple(items.items())
    return tuple((key, value) for key, value in items)


@dataclass(frozen=True)
class TriggerWebhook:
    url: str
    method: str = "POST"
    headers: Tuple[Tuple[str, str], ...] = ()
    kind: ClassVar[FormActionType] = FormActionType.TRIGGER_WEBHOOK

    def __post_init__(self) -> None:
        object.__setattr__(self, "headers", _item_pairs(self.headers))

    def to_value(self) -> Any:
        return {"url": self.url, "method": self.method, "headers": dict(self.headers)}


@dataclass(frozen=True)
class StartWorkflow:
    workflow_id: str
    kind: ClassVar[FormActionType] = FormActionType.START_WORKFLOW

    def to_value(self) -> Any:
        return self.workflow_id


@dataclass(frozen=True)
class AssignForm:
    assignee: Any
    kind: ClassVar[FormActionType] = FormActionType.ASSIGN_FORM

    def to_value(self) -> Any:
        return self.assignee


@dataclass(frozen=True)
class Redirect:
    url: str
    kind: ClassVar[FormActionType] = FormActionType.REDIRECT

    def to_value(self) -> Any:
        return self.url


@dataclass(frozen=True)
class ChangeFormHeader:
    header: str
    kind: ClassVar[FormActionType] = FormActionType.CHANGE_FORM_HEADER

    def to_value(self) -> Any:
        return self.header


@dataclass(frozen=True)
class AutoFillFields:
    """Field id -> value writes, kept as ordered pairs; accepts a mapping."""

    values: Tuple[Tuple[str, Any], ...]
    kind: ClassVar[FormActionType] = FormActionType.AUTO_FILL_FIELDS

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", _item_pairs(self.values))

    def to_value(self) -> Any:
        return dict(self.values)


@dataclass(frozen=True)
class UpdateField:
    field_id: str
    value: Any
    kind: ClassVar[FormActionType] = FormActionType.UPDATE_FIELD

    def to_value(self) -> Any:
        return {"fieldId": self.field_id, "value": self.value}


FormAction = Union[
    Approve,
    Disapprove,
    Notify,
    SendEmail,
    TriggerWebhook,
    StartWorkflow,
    AssignForm,
    Redirect,
    LockForm,
    UnlockForm,
    AutoFillFields,
    ChangeFormHeader,
    ShowSuccessModal,
    AllowSubmit,
    PreventSubmit,
    SaveDraft,
    ShowMessage,
    UpdateField,
]


# ============================================
# Parsing
# ============================================


def _require_text(action: str, value: Any) -> str:
    if value is None or isinstance(value, (dict, list)) or str(value) == "":
        raise ActionPayloadError(f"'{action}' requires a text actionValue", action=action, value=value)
    return str(value)


def _require_value(action: str, value: Any) -> Any:
    if value is None or value == "" or value == [] or value == {}:
        raise ActionPayloadError(f"'{action}' requires an actionValue", action=action)
    return value


def _optional_text(action: str, value: Any) -> Optional[str]:
    return None if value is None or value == "" else str(value)


def _parse_options(action: str, value: Any) -> ChangeOptions:
    if not isinstance(value, list):
        raise ActionPayloadError(f"'{action}' requires a list actionValue", action=action, value=value)
    options = []
    for item in value:
        if isinstance(item, Mapping):
            if "value" not in item:
                raise ActionPayloadError("Option objects need a 'value'", action=action, value=item)
            options.append(FieldOption(item["value"], str(item.get("label", item["value"]))))
        else:
            options.append(FieldOption(item, str(item)))
    return ChangeOptions(tuple(options))


def _parse_json_object(action: str, value: Any) -> Dict[str, Any]:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            raise ActionPayloadError(f"'{action}' actionValue is not valid JSON", action=action, value=value) from None
    if not isinstance(value, Mapping):
        raise ActionPayloadError(f"'{action}' requires an object actionValue", action=action, value=value)
    return dict(value)


def _parse_send_email(action: str, value: Any) -> SendEmail:
    payload = _parse_json_object(action, value)
    recipients = []
    for item in payload.get("recipients") or []:
        if isinstance(item, str):
            recipients.append(EmailRecipient("static", item))
        elif isinstance(item, Mapping) and item.get("type") in ("static", "form_field", "form_creator", "custom"):
            recipients.append(EmailRecipient(item["type"], item.get("value")))
        else:
            raise ActionPayloadError("Invalid email recipient", action=action, value=item)
    bindings = []
    for item in payload.get("templateData") or []:
        if not isinstance(item, Mapping) or not item.get("key") or item.get("type") not in ("static", "form_field"):
            raise ActionPayloadError("Invalid template binding", action=action, value=item)
        bindings.append(TemplateBinding(item["key"], item["type"], item.get("value")))
    return SendEmail(
        recipients=tuple(recipients),
        template_id=payload.get("templateId"),
        template_data=tuple(bindings),
    )


def _parse_webhook(action: str, value: Any) -> TriggerWebhook:
    if isinstance(value, str) and not value.lstrip().startswith("{"):
        return TriggerWebhook(url=_require_text(action, value))
    payload = _parse_json_object(action, value)
    return TriggerWebhook(
        url=_require_text(action, payload.get("url")),
        method=str(payload.get("method") or "POST").upper(),
        headers={str(k): str(v) for k, v in (payload.get("headers") or {}).items()},
    )


def _parse_update_field(action: str, value: Any) -> UpdateField:
    payload = _parse_json_object(action, value)
    if not payload.get("fieldId"):
        raise ActionPayloadError(f"'{action}' requires a fieldId", action=action, value=value)
    return UpdateField(field_id=str(payload["fieldId"]), value=payload.get("value"))


_FIELD_PARSERS: Dict[FieldActionType, Callable[[str, Any], Any]] = {
    FieldActionType.SHOW: lambda a, v: ShowField(),
    FieldActionType.HIDE: lambda a, v: HideField(),
    FieldActionType.ENABLE: lambda a, v: EnableField(),
    FieldActionType.DISABLE: lambda a, v: DisableField(),
    FieldActionType.REQUIRE: lambda a, v: RequireField(),
    FieldActionType.OPTIONAL: lambda a, v: MakeOptional(),
    FieldActionType.CHANGE_LABEL: lambda a, v: ChangeLabel(_require_text(a, v)),
    FieldActionType.CHANGE_OPTIONS: _parse_options,
    FieldActionType.SET_DEFAULT: lambda a, v: SetDefault(v),
    FieldActionType.CLEAR_VALUE: lambda a, v: ClearValue(),
    FieldActionType.SHOW_TOOLTIP: lambda a, v: ShowTooltip(_require_text(a, v)),
    FieldActionType.SHOW_ERROR: lambda a, v: ShowError(_require_text(a, v)),
}

_FORM_PARSERS: Dict[FormActionType, Callable[[str, Any], Any]] = {
    FormActionType.APPROVE: lambda a, v: Approve(_optional_text(a, v)),
    FormActionType.DISAPPROVE: lambda a, v: Disapprove(_optional_text(a, v)),
    FormActionType.NOTIFY: lambda a, v: Notify(_optional_text(a, v)),
    FormActionType.SEND_EMAIL: _parse_send_email,
    FormActionType.TRIGGER_WEBHOOK: _parse_webhook,
    FormActionType.START_WORKFLOW: lambda a, v: StartWorkflow(_require_text(a, v)),
    FormActionType.ASSIGN_FORM: lambda a, v: AssignForm(_require_value(a, v)),
    FormActionType.REDIRECT: lambda a, v: Redirect(_require_text(a, v)),
    FormActionType.LOCK_FORM: lambda a, v: LockForm(),
    FormActionType.UNLOCK_FORM: lambda a, v: UnlockForm(),
    FormActionType.AUTO_FILL_FIELDS: lambda a, v: AutoFillFields(_parse_json_object(a, v)),
    FormActionType.CHANGE_FORM_HEADER: lambda a, v: ChangeFormHeader(_require_text(a, v)),
    FormActionType.SHOW_SUCCESS_MODAL: lambda a, v: ShowSuccessModal(_optional_text(a, v)),
    FormActionType.ALLOW_SUBMIT: lambda a, v: AllowSubmit(),
    FormActionType.PREVENT_SUBMIT: lambda a, v: PreventSubmit(_optional_text(a, v)),
    FormActionType.SAVE_DRAFT: lambda a, v: SaveDraft(),
    FormActionType.SHOW_MESSAGE: lambda a, v: ShowMessage(_optional_text(a, v)),
    FormActionType.UPDATE_FIELD: _parse_update_field,
}


def parse_field_action(action: str, action_value: Any = None) -> FieldAction:
    """Build a field action variant from its authored name and payload.

    Raises:
        ActionPayloadError: If the name is unknown or the payload malformed
    """
    try:
        kind = FIELD_ACTION_ALIASES.get(action) or FieldActionType(action)
    except ValueError:
        valid = [k.value for k in FieldActionType]
        raise ActionPayloadError(f"Unknown field action '{action}'. Valid: {valid}", action=action) from None
    return _FIELD_PARSERS[kind](action, action_value)


def parse_form_action(action: str, action_value: Any = None) -> FormAction:
    """Build a form action variant from its authored name and payload.

    Raises:
        ActionPayloadError: If the name is unknown or the payload malformed
    """
    try:
        kind = FORM_ACTION_ALIASES.get(action) or FormActionType(action)
    except ValueError:
        valid = [k.value for k in FormActionType]
        raise ActionPayloadError(f"Unknown form action '{action}'. Valid: {valid}", action=action) from None
    return _FORM_PARSERS[kind](action, action_value)
