"""Pytest configuration and fixtures."""

import json
import logging
from pathlib import Path

import pytest
import yaml


@pytest.fixture
def expense_form():
    """A small expense form in the builder's persisted camelCase shape."""
    return {
        "id": "expense",
        "name": "Expense claim",
        "fields": [
            {"id": "country", "type": "select", "label": "Country", "options": ["US", "CA"]},
            {"id": "state", "type": "text", "label": "State", "isVisible": False},
            {"id": "amount", "type": "number", "label": "Amount"},
            {"id": "approverEmail", "type": "email", "label": "Approver email"},
            {"id": "notes", "type": "textarea", "label": "Notes"},
            {"id": "submitBtn", "type": "toggle", "label": "Submit", "isEnabled": False},
        ],
        "fieldRules": [
            {
                "id": "show-state",
                "name": "Show state for US",
                "targetFieldId": "state",
                "conditions": [{"id": "c1", "fieldId": "country", "operator": "==", "value": "US"}],
                "logicExpression": "1",
                "action": "show",
                "isActive": True,
            },
            {
                "id": "notes-label",
                "targetFieldId": "notes",
                "condition": {"fieldId": "amount", "operator": ">", "value": 1000},
                "action": "changeLabel",
                "actionValue": "Justification",
            },
        ],
        "formRules": [
            {
                "id": "big-claim",
                "name": "Email approver on large claims",
                "conditions": [
                    {"fieldId": "amount", "operator": ">", "value": 1000},
                    {"fieldId": "approverEmail", "operator": "isNotEmpty"},
                ],
                "logicExpression": "1 AND 2",
                "action": "sendEmail",
                "actionValue": {
                    "templateId": "approval-request",
                    "recipients": [{"type": "form_field", "value": "approverEmail"}],
                    "templateData": [{"key": "amount", "type": "form_field", "value": "amount"}],
                },
            },
            {
                "id": "block-zero",
                "conditions": [{"fieldId": "amount", "operator": "<=", "value": 0}],
                "action": "preventSubmit",
                "actionValue": "Amount must be positive",
            },
        ],
    }


@pytest.fixture
def write_document(tmp_path: Path):
    """Factory writing a document as JSON or YAML and returning its path."""

    def _write(document, name: str = "form.yaml") -> Path:
        path = tmp_path / name
        if path.suffix == ".json":
            path.write_text(json.dumps(document), encoding="utf-8")
        else:
            path.write_text(yaml.safe_dump(document, sort_keys=False), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def restore_root_logger():
    """Undo setup_logging() changes to the root logger."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield root
    for handler in root.handlers[:]:
        if handler not in handlers:
            handler.close()
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
