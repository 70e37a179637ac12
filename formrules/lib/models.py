"""Form definition data model.

Fields carry their author-configured baseline state; rules bind a list of
conditions and a logic expression to a typed action. All of these are
read-only input to the engines. ``FieldState`` is the only mutable type and
is rebuilt from the baseline at the start of every evaluation pass.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from formrules.lib.actions import FieldAction, FormAction

__all__ = [
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
]


class ValueKind(Enum):
    """How values of a field type are coerced for comparison."""

    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    TEMPORAL = "temporal"
    CHOICE = "choice"
    MULTI_CHOICE = "multi_choice"
    STRUCTURED = "structured"
    LAYOUT = "layout"  # Carries no value (headers, separators, tables)


class FieldType(Enum):
    """Field types supported by the form builder."""

    TEXT = "text"
    TEXTAREA = "textarea"
    NUMBER = "number"
    EMAIL = "email"
    PASSWORD = "password"
    URL = "url"
    SELECT = "select"
    MULTI_SELECT = "multi-select"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    TOGGLE_SWITCH = "toggle-switch"
    DATE = "date"
    TIME = "time"
    DATETIME = "datetime"
    CURRENCY = "currency"
    COUNTRY = "country"
    PHONE = "phone"
    ADDRESS = "address"
    RATING = "rating"
    SLIDER = "slider"
    USER_PICKER = "user-picker"
    GROUP_PICKER = "group-picker"
    TAGS = "tags"
    COLOR = "color"
    FILE = "file"
    IMAGE = "image"
    SIGNATURE = "signature"
    BARCODE = "barcode"
    GEO_LOCATION = "geo-location"
    IP_ADDRESS = "ip-address"
    CALCULATED = "calculated"
    LOOKUP = "lookup"
    DYNAMIC_DROPDOWN = "dynamic-dropdown"
    HEADER = "header"
    DESCRIPTION = "description"
    SECTION_BREAK = "section-break"
    HORIZONTAL_LINE = "horizontal-line"
    RICH_TEXT = "rich-text"
    FULL_WIDTH_CONTAINER = "full-width-container"
    RECORD_TABLE = "record-table"
    MATRIX_GRID = "matrix-grid"
    CROSS_REFERENCE = "cross-reference"
    CHILD_CROSS_REFERENCE = "child-cross-reference"
    APPROVAL = "approval"
    QUERY_FIELD = "query-field"
    WORKFLOW_TRIGGER = "workflow-trigger"
    CONDITIONAL_SECTION = "conditional-section"
    SUBMISSION_ACCESS = "submission-access"

    @property
    def kind(self) -> ValueKind:
        return _VALUE_KINDS.get(self, ValueKind.TEXT)


_VALUE_KINDS: Dict[FieldType, ValueKind] = {
    FieldType.NUMBER: ValueKind.NUMBER,
    FieldType.CURRENCY: ValueKind.NUMBER,
    FieldType.RATING: ValueKind.NUMBER,
    FieldType.SLIDER: ValueKind.NUMBER,
    FieldType.CHECKBOX: ValueKind.BOOLEAN,
    FieldType.TOGGLE_SWITCH: ValueKind.BOOLEAN,
    FieldType.DATE: ValueKind.TEMPORAL,
    FieldType.TIME: ValueKind.TEMPORAL,
    FieldType.DATETIME: ValueKind.TEMPORAL,
    FieldType.SELECT: ValueKind.CHOICE,
    FieldType.RADIO: ValueKind.CHOICE,
    FieldType.COUNTRY: ValueKind.CHOICE,
    FieldType.USER_PICKER: ValueKind.CHOICE,
    FieldType.GROUP_PICKER: ValueKind.CHOICE,
    FieldType.DYNAMIC_DROPDOWN: ValueKind.CHOICE,
    FieldType.LOOKUP: ValueKind.CHOICE,
    FieldType.MULTI_SELECT: ValueKind.MULTI_CHOICE,
    FieldType.TAGS: ValueKind.MULTI_CHOICE,
    FieldType.PHONE: ValueKind.STRUCTURED,
    FieldType.ADDRESS: ValueKind.STRUCTURED,
    FieldType.GEO_LOCATION: ValueKind.STRUCTURED,
    FieldType.HEADER: ValueKind.LAYOUT,
    FieldType.DESCRIPTION: ValueKind.LAYOUT,
    FieldType.SECTION_BREAK: ValueKind.LAYOUT,
    FieldType.HORIZONTAL_LINE: ValueKind.LAYOUT,
    FieldType.RICH_TEXT: ValueKind.LAYOUT,
    FieldType.FULL_WIDTH_CONTAINER: ValueKind.LAYOUT,
    FieldType.RECORD_TABLE: ValueKind.LAYOUT,
    FieldType.MATRIX_GRID: ValueKind.LAYOUT,
}


class Operator(Enum):
    """Comparison operators available to conditions."""

    EQ = "=="
    NE = "!="
    LT = "<"
    GT = ">"
    LE = "<="
    GE = ">="
    CONTAINS = "contains"
    NOT_CONTAINS = "not contains"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"
    IN = "in"
    IS_EMPTY = "isEmpty"
    IS_NOT_EMPTY = "isNotEmpty"

    @property
    def ignores_operand(self) -> bool:
        """isEmpty/isNotEmpty look only at the field's own value."""
        return self in (Operator.IS_EMPTY, Operator.IS_NOT_EMPTY)


@dataclass(frozen=True)
class FieldOption:
    """One choice of a select/radio/checkbox field."""

    value: Any
    label: str

    def to_dict(self) -> Dict[str, Any]:
        return {"value": self.value, "label": self.label}


@dataclass(frozen=True)
class Field:
    """A form field and its author-configured baseline state."""

    id: str
    type: FieldType
    label: str = ""
    options: Tuple[FieldOption, ...] = ()
    is_visible: bool = True
    is_enabled: bool = True
    is_required: bool = False
    tooltip: Optional[str] = None
    error_message: Optional[str] = None
    default_value: Any = None


@dataclass
class FieldState:
    """Derived, per-pass render state of a field."""

    is_visible: bool
    is_enabled: bool
    is_required: bool
    label: str
    options: List[FieldOption] = field(default_factory=list)
    tooltip: Optional[str] = None
    error_message: Optional[str] = None

    @classmethod
    def from_field(cls, source: Field) -> "FieldState":
        """Create a fresh state equal to the field's baseline."""
        return cls(
            is_visible=source.is_visible,
            is_enabled=source.is_enabled,
            is_required=source.is_required,
            label=source.label,
            options=list(source.options),
            tooltip=source.tooltip,
            error_message=source.error_message,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isVisible": self.is_visible,
            "isEnabled": self.is_enabled,
            "isRequired": self.is_required,
            "label": self.label,
            "options": [o.to_dict() for o in self.options],
            "tooltip": self.tooltip,
            "errorMessage": self.error_message,
        }


@dataclass(frozen=True)
class Condition:
    """A single comparison between a field's value and a literal or another field.

    When ``compare_to_field`` is set it takes precedence over ``value``.
    """

    field_id: str
    operator: Operator
    value: Any = None
    compare_to_field: Optional[str] = None
    id: Optional[str] = None


@dataclass(frozen=True)
class FieldRule:
    """Binds conditions to a field-state action on ``target_field_id``."""

    id: str
    target_field_id: str
    conditions: Tuple[Condition, ...]
    action: "FieldAction"
    logic_expression: str = ""
    name: str = ""
    is_active: bool = True


@dataclass(frozen=True)
class FormRule:
    """Binds conditions to a form-level side-effecting action.

    ``root_logic`` joins the conditions when no logic expression is given.
    """

    id: str
    conditions: Tuple[Condition, ...]
    action: "FormAction"
    logic_expression: str = ""
    root_logic: Optional[str] = None
    name: str = ""
    is_active: bool = True


@dataclass(frozen=True)
class FormDefinition:
    """A loaded form: its field catalog and both rule lists."""

    fields: Tuple[Field, ...]
    field_rules: Tuple[FieldRule, ...] = ()
    form_rules: Tuple[FormRule, ...] = ()
    id: Optional[str] = None
    name: Optional[str] = None

    @property
    def catalog(self) -> Dict[str, Field]:
        return build_catalog(self.fields)


def build_catalog(fields: Iterable[Field]) -> Dict[str, Field]:
    """Index fields by id, preserving declaration order."""
    return {f.id: f for f in fields}
