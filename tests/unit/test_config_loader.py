"""Tests for formrules/lib/config_loader.py - loading definitions from JSON/YAML."""

import logging

import pytest

from formrules.lib.actions import ChangeLabel, FormActionType, SendEmail, ShowField
from formrules.lib.config_loader import (
    load_definition_from_dict,
    load_document,
    load_form_definition,
    load_values,
)
from formrules.lib.errors import ActionPayloadError, ConfigurationError
from formrules.lib.evaluation import evaluate_form
from formrules.lib.models import FieldOption, FieldType, Operator


class TestLoadDefinitionFromDict:
    """Tests for converting documents into engine objects."""

    def test_fields(self, expense_form):
        """Test camelCase baseline flags and option shorthand."""
        definition = load_definition_from_dict(expense_form)
        catalog = definition.catalog

        assert definition.id == "expense"
        assert list(catalog) == ["country", "state", "amount", "approverEmail", "notes", "submitBtn"]
        assert catalog["state"].is_visible is False
        assert catalog["country"].options == (FieldOption("US", "US"), FieldOption("CA", "CA"))
        assert catalog["submitBtn"].type == FieldType.TOGGLE_SWITCH
        assert catalog["submitBtn"].is_enabled is False

    def test_field_rules(self, expense_form):
        """Test conditions, actions and the legacy single condition key."""
        show_state, notes_label = load_definition_from_dict(expense_form).field_rules

        assert show_state.name == "Show state for US"
        assert show_state.target_field_id == "state"
        assert show_state.action == ShowField()
        assert show_state.conditions[0].operator == Operator.EQ
        assert show_state.conditions[0].id == "c1"

        assert len(notes_label.conditions) == 1
        assert notes_label.conditions[0].field_id == "amount"
        assert notes_label.action == ChangeLabel("Justification")
        assert notes_label.logic_expression == ""

    def test_form_rules(self, expense_form):
        """Test form actions are parsed into typed variants."""
        big_claim, block_zero = load_definition_from_dict(expense_form).form_rules

        assert isinstance(big_claim.action, SendEmail)
        assert big_claim.action.template_id == "approval-request"
        assert big_claim.logic_expression == "1 AND 2"
        assert block_zero.action.kind == FormActionType.PREVENT_SUBMIT
        assert block_zero.action.message == "Amount must be positive"

    def test_option_objects(self):
        """Test {value, label} options, with label defaulting to the value."""
        definition = load_definition_from_dict(
            {"fields": [{"id": "f", "type": "radio", "options": [{"value": "a", "label": "A"}, {"value": 2}]}]}
        )
        assert definition.fields[0].options == (FieldOption("a", "A"), FieldOption(2, "2"))

    def test_root_logic_normalised(self):
        """Test rootLogic is upper-cased and blank means unset."""
        document = {
            "fields": [{"id": "a", "type": "text"}],
            "formRules": [
                {"id": "r1", "conditions": [{"fieldId": "a", "operator": "isEmpty"}], "rootLogic": "or", "action": "lockForm"},
                {"id": "r2", "conditions": [], "rootLogic": "", "action": "unlockForm"},
            ],
        }
        r1, r2 = load_definition_from_dict(document).form_rules
        assert r1.root_logic == "OR"
        assert r2.root_logic is None

    def test_compare_to_field(self):
        """Test compareToField is carried onto the condition."""
        document = {
            "fields": [{"id": "a", "type": "number"}, {"id": "b", "type": "number"}],
            "fieldRules": [
                {
                    "id": "r1",
                    "targetFieldId": "a",
                    "conditions": [{"fieldId": "a", "operator": ">", "compareToField": "b"}],
                    "action": "hide",
                }
            ],
        }
        assert load_definition_from_dict(document).field_rules[0].conditions[0].compare_to_field == "b"

    def test_inactive_flag(self):
        """Test isActive is read."""
        document = {
            "fields": [{"id": "a", "type": "text"}],
            "fieldRules": [{"id": "r1", "targetFieldId": "a", "conditions": [], "action": "hide", "isActive": False}],
        }
        assert load_definition_from_dict(document).field_rules[0].is_active is False

    @pytest.mark.parametrize(
        "document,location",
        [
            ({"fields": [{"id": "a", "type": "hologram"}]}, "fields.0.type"),
            ({"fields": [{"type": "text"}]}, "fields.0.id"),
            ({"fieldRules": "none"}, "fieldRules"),
        ],
    )
    def test_document_shape_errors(self, document, location):
        """Test document-level failures are fatal even when not strict."""
        with pytest.raises(ConfigurationError) as exc_info:
            load_definition_from_dict(document)
        assert exc_info.value.field == location

    @pytest.mark.parametrize(
        "document,location",
        [
            (
                {
                    "fields": [{"id": "a", "type": "text"}],
                    "fieldRules": [
                        {"id": "r", "targetFieldId": "a", "conditions": [{"fieldId": "a", "operator": "~="}], "action": "hide"}
                    ],
                },
                "fieldRules.0.conditions.0.operator",
            ),
            (
                {"formRules": [{"id": "r", "conditions": [], "rootLogic": "XOR", "action": "lockForm"}]},
                "formRules.0.rootLogic",
            ),
        ],
    )
    def test_rule_shape_errors_strict(self, document, location):
        """Test strict loading surfaces rule failures with their location."""
        with pytest.raises(ConfigurationError) as exc_info:
            load_definition_from_dict(document, strict=True)
        assert exc_info.value.field == location

    def test_not_an_object(self):
        """Test non-object documents are rejected."""
        with pytest.raises(ConfigurationError):
            load_definition_from_dict(["fields"])

    def test_bad_action_payload_strict(self):
        """Test malformed action payloads name the rule in strict mode."""
        document = {
            "fields": [{"id": "a", "type": "select"}],
            "fieldRules": [
                {"id": "opts", "targetFieldId": "a", "conditions": [], "action": "changeOptions", "actionValue": "x"}
            ],
        }
        with pytest.raises(ActionPayloadError) as exc_info:
            load_definition_from_dict(document, strict=True)
        assert exc_info.value.rule_id == "opts"
        assert "opts" in str(exc_info.value)

    def test_unknown_action_strict(self):
        """Test unknown action names fail a strict load."""
        document = {"formRules": [{"id": "r", "conditions": [], "action": "teleport"}]}
        with pytest.raises(ActionPayloadError, match="teleport"):
            load_definition_from_dict(document, strict=True)


class TestDefectiveRules:
    """Tests for skipping rules that cannot be loaded."""

    @pytest.fixture
    def document(self):
        return {
            "fields": [{"id": "country", "type": "select"}, {"id": "state", "type": "text", "isVisible": False}],
            "fieldRules": [
                {
                    "id": "show-state",
                    "targetFieldId": "state",
                    "conditions": [{"fieldId": "country", "operator": "==", "value": "US"}],
                    "action": "show",
                }
            ],
        }

    @pytest.mark.parametrize(
        "bad_rule",
        [
            {
                "id": "bad",
                "targetFieldId": "state",
                "conditions": [{"fieldId": "country", "operator": "equals", "value": "US"}],
                "action": "hide",
            },
            {
                "id": "bad",
                "targetFieldId": "state",
                "conditions": [{"fieldId": "country", "operator": "isEmpty"}],
                "action": "changeLabel",
                "actionValue": "",
            },
        ],
    )
    def test_good_rule_still_applies(self, document, bad_rule, caplog):
        """Test a defective rule is logged and skipped while the others load."""
        document["fieldRules"].append(bad_rule)

        with caplog.at_level(logging.WARNING, logger="formrules.lib.config_loader"):
            definition = load_definition_from_dict(document)

        assert [r.id for r in definition.field_rules] == ["show-state"]
        assert "Skipping field rule 'bad'" in caplog.text
        assert evaluate_form(definition, {"country": "US"}).states["state"].is_visible is True

    def test_defective_form_rule_skipped(self, caplog):
        """Test form rules are skipped the same way."""
        document = {
            "formRules": [
                {"id": "ok", "conditions": [], "action": "lockForm"},
                {"id": "bad", "conditions": [], "action": "teleport"},
            ]
        }
        with caplog.at_level(logging.WARNING, logger="formrules.lib.config_loader"):
            definition = load_definition_from_dict(document)

        assert [r.id for r in definition.form_rules] == ["ok"]
        assert "teleport" in caplog.text


class TestLoadFiles:
    """Tests for file loading."""

    def test_yaml(self, expense_form, write_document):
        """Test loading a YAML definition."""
        definition = load_form_definition(write_document(expense_form, "form.yaml"))
        assert len(definition.field_rules) == 2

    def test_json(self, expense_form, write_document):
        """Test loading a JSON definition."""
        definition = load_form_definition(write_document(expense_form, "form.json"))
        assert len(definition.form_rules) == 2

    def test_missing_file(self, tmp_path):
        """Test a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_form_definition(tmp_path / "nope.yaml")

    def test_empty_file(self, tmp_path):
        """Test an empty document is rejected."""
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Empty document"):
            load_document(path)

    def test_invalid_yaml(self, tmp_path):
        """Test YAML syntax errors are wrapped."""
        path = tmp_path / "bad.yaml"
        path.write_text("fields: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Invalid YAML syntax"):
            load_document(path)

    def test_invalid_json(self, tmp_path):
        """Test JSON syntax errors are wrapped."""
        path = tmp_path / "bad.json"
        path.write_text("{", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Invalid JSON syntax"):
            load_document(path)

    def test_load_values(self, write_document):
        """Test value maps load from JSON."""
        path = write_document({"country": "US", "amount": 10}, "values.json")
        assert load_values(path) == {"country": "US", "amount": 10}

    def test_load_values_requires_object(self, write_document):
        """Test a list is not a value map."""
        with pytest.raises(ConfigurationError, match="Value map must be an object"):
            load_values(write_document([1, 2], "values.yaml"))
