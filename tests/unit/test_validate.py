"""Tests for formrules/lib/validate.py - pre-save rule checks."""

import pytest

from formrules.lib.actions import AutoFillFields, ChangeLabel, ClearValue, LockForm, ShowField, UpdateField
from formrules.lib.errors import ValidationError
from formrules.lib.models import Condition, Field, FieldRule, FieldType, FormDefinition, FormRule, Operator
from formrules.lib.validate import (
    ValidationSeverity,
    compatible_operators,
    format_validation_report,
    validate_and_raise,
    validate_field_rule,
    validate_form_rule,
    validate_rules,
)

FIELDS = (
    Field("country", FieldType.SELECT),
    Field("state", FieldType.TEXT),
    Field("age", FieldType.NUMBER),
    Field("limit", FieldType.NUMBER),
    Field("name", FieldType.TEXT),
    Field("agree", FieldType.CHECKBOX),
    Field("intro", FieldType.HEADER),
    Field("scan", FieldType.FILE),
)
CATALOG = {f.id: f for f in FIELDS}


def _field_rule(conditions, target="state", action=None, expression="", rule_id="r1"):
    return FieldRule(
        id=rule_id,
        target_field_id=target,
        conditions=tuple(conditions),
        action=action or ShowField(),
        logic_expression=expression,
    )


def _errors(issues):
    return [i for i in issues if i.severity == ValidationSeverity.ERROR]


def _warnings(issues):
    return [i for i in issues if i.severity == ValidationSeverity.WARNING]


class TestFieldRuleValidation:
    """Tests for validate_field_rule()."""

    def test_valid_rule(self):
        """Test a well-formed rule has no issues."""
        rule = _field_rule([Condition("country", Operator.EQ, "US")], expression="1")
        assert validate_field_rule(rule, CATALOG) == []

    def test_blank_expression_uses_default_join(self):
        """Test a blank expression is checked as the generated default."""
        rule = _field_rule([Condition("country", Operator.EQ, "US"), Condition("age", Operator.GT, 1)])
        assert validate_field_rule(rule, CATALOG) == []

    def test_missing_target(self):
        """Test missing and unknown targets are errors."""
        assert _errors(validate_field_rule(_field_rule([Condition("age", Operator.GT, 1)], target=""), CATALOG))
        issues = validate_field_rule(_field_rule([Condition("age", Operator.GT, 1)], target="gone"), CATALOG)
        assert issues[0].location == "targetFieldId"
        assert "gone" in issues[0].message

    def test_no_conditions(self):
        """Test a rule needs at least one condition."""
        issues = validate_field_rule(_field_rule([]), CATALOG)
        assert [i.location for i in _errors(issues)] == ["conditions"]

    def test_unknown_condition_field(self):
        """Test condition fields must exist."""
        issues = validate_field_rule(_field_rule([Condition("ghost", Operator.EQ, 1)]), CATALOG)
        assert _errors(issues)[0].location == "conditions[1].fieldId"

    def test_unknown_compare_field(self):
        """Test compare-to fields must exist."""
        rule = _field_rule([Condition("age", Operator.GT, compare_to_field="ghost")])
        assert _errors(validate_field_rule(rule, CATALOG))[0].location == "conditions[1].compareToField"

    def test_compare_field_kind_mismatch(self):
        """Test comparing fields of different kinds is a warning."""
        rule = _field_rule([Condition("age", Operator.GT, compare_to_field="name")])
        issues = validate_field_rule(rule, CATALOG)
        assert not _errors(issues)
        assert _warnings(issues)[0].location == "conditions[1].compareToField"

    def test_compare_same_kind(self):
        """Test comparing two number fields is fine."""
        rule = _field_rule([Condition("age", Operator.LT, compare_to_field="limit")])
        assert validate_field_rule(rule, CATALOG) == []

    @pytest.mark.parametrize(
        "expression,message",
        [
            ("1 AND 2", "Invalid condition reference(s): 2. Valid: 1-1"),
            ("1 1", "Missing operator between conditions"),
            ("(1", "Unbalanced parentheses"),
        ],
    )
    def test_invalid_expression(self, expression, message):
        """Test expression errors are reported with the parser's message."""
        rule = _field_rule([Condition("age", Operator.GT, 1)], expression=expression)
        issues = validate_field_rule(rule, CATALOG)
        assert issues[0].location == "logicExpression"
        assert issues[0].message == message

    @pytest.mark.parametrize(
        "field_id,operator",
        [
            ("age", Operator.CONTAINS),
            ("agree", Operator.GT),
            ("country", Operator.STARTS_WITH),
            ("name", Operator.LT),
        ],
    )
    def test_operator_not_advised(self, field_id, operator):
        """Test incompatible operators are warnings, not errors."""
        issues = validate_field_rule(_field_rule([Condition(field_id, operator, "x")]), CATALOG)
        assert not _errors(issues)
        assert _warnings(issues)[0].location == "conditions[1].operator"

    @pytest.mark.parametrize("field_id", ["intro", "scan"])
    def test_condition_incompatible_types(self, field_id):
        """Test layout and media fields are flagged as condition sources."""
        issues = validate_field_rule(_field_rule([Condition(field_id, Operator.IS_EMPTY)]), CATALOG)
        assert "cannot be used in conditions" in _warnings(issues)[0].message

    def test_value_action_on_own_condition_field(self):
        """Test a rule clearing the field it reads is flagged."""
        rule = _field_rule([Condition("name", Operator.EQ, "x")], target="name", action=ClearValue())
        issues = validate_field_rule(rule, CATALOG)
        assert _warnings(issues)[0].location == "action"

    def test_state_action_on_own_condition_field_is_fine(self):
        """Test only value-map actions trigger the self-reference warning."""
        rule = _field_rule([Condition("name", Operator.EQ, "x")], target="name", action=ChangeLabel("L"))
        assert validate_field_rule(rule, CATALOG) == []


class TestFormRuleValidation:
    """Tests for validate_form_rule()."""

    def test_valid_rule_with_root_logic(self):
        """Test rootLogic OR over two conditions."""
        rule = FormRule(
            id="f1",
            conditions=(Condition("age", Operator.GT, 1), Condition("country", Operator.IN, ["US"])),
            action=LockForm(),
            root_logic="OR",
        )
        assert validate_form_rule(rule, CATALOG) == []

    def test_no_conditions(self):
        """Test form rules also need a condition."""
        rule = FormRule(id="f1", conditions=(), action=LockForm())
        assert _errors(validate_form_rule(rule, CATALOG))[0].location == "conditions"

    def test_bad_root_logic(self):
        """Test an unknown joiner is an error."""
        rule = FormRule(id="f1", conditions=(Condition("age", Operator.GT, 1),), action=LockForm(), root_logic="XOR")
        assert _errors(validate_form_rule(rule, CATALOG))[0].location == "rootLogic"

    def test_value_payload_unknown_fields(self):
        """Test autoFill/updateField targets must exist."""
        condition = (Condition("age", Operator.GT, 1),)
        auto = FormRule(id="f1", conditions=condition, action=AutoFillFields({"state": "NY", "zip": "1"}))
        update = FormRule(id="f2", conditions=condition, action=UpdateField("ghost", 1))

        assert ["zip" in i.message for i in validate_form_rule(auto, CATALOG)] == [True]
        assert _warnings(validate_form_rule(update, CATALOG))[0].location == "actionValue"


class TestValidateRules:
    """Tests for whole-definition validation."""

    def _definition(self, *field_rules, form_rules=()):
        return FormDefinition(fields=FIELDS, field_rules=tuple(field_rules), form_rules=tuple(form_rules))

    def test_duplicate_rule_ids(self):
        """Test reused ids are warned about once."""
        rule = _field_rule([Condition("age", Operator.GT, 1)])
        form_rule = FormRule(id="r1", conditions=(Condition("age", Operator.GT, 1),), action=LockForm())
        issues = validate_rules(self._definition(rule, form_rules=[form_rule]))

        assert [(i.rule_id, i.location) for i in issues] == [("r1", "id")]

    def test_validate_and_raise_errors(self):
        """Test errors raise ValidationError with the issues attached."""
        definition = self._definition(_field_rule([], target="ghost"))
        with pytest.raises(ValidationError) as exc_info:
            validate_and_raise(definition)
        assert len(exc_info.value.issues) == 2
        assert "Rule validation failed" in str(exc_info.value)

    def test_validate_and_raise_warnings(self, caplog):
        """Test warnings only fail in strict mode."""
        definition = self._definition(_field_rule([Condition("age", Operator.CONTAINS, "1")]))

        validate_and_raise(definition)
        assert "not advised" in caplog.text

        with pytest.raises(ValidationError):
            validate_and_raise(definition, strict=True)

    def test_valid_definition_passes(self):
        """Test a clean definition does not raise."""
        validate_and_raise(self._definition(_field_rule([Condition("country", Operator.EQ, "US")])))


class TestReport:
    """Tests for format_validation_report() and issue formatting."""

    def test_empty_report(self):
        """Test the no-issue message."""
        assert format_validation_report([]) == "All rules are valid."

    def test_report_sections(self):
        """Test errors and warnings are grouped with fixes."""
        rule = _field_rule([Condition("ghost", Operator.EQ, 1), Condition("age", Operator.CONTAINS, 1)])
        report = format_validation_report(validate_field_rule(rule, CATALOG))

        assert "Found 1 error(s):" in report
        assert "Found 1 warning(s):" in report
        assert "[ERROR] r1.conditions[1].fieldId" in report
        assert "Fix:" in report

    def test_compatible_operators(self):
        """Test the advised operator sets."""
        assert Operator.IN in compatible_operators(FieldType.SELECT)
        assert compatible_operators(FieldType.CHECKBOX) == {Operator.EQ, Operator.NE}
        assert compatible_operators(FieldType.COLOR) == {
            Operator.EQ,
            Operator.NE,
            Operator.IS_EMPTY,
            Operator.IS_NOT_EMPTY,
        }
