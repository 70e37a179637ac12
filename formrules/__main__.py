"""CLI entry point for checking and evaluating form rules.

Usage:
    python -m formrules validate ./forms/contact.yaml
    python -m formrules validate ./forms/contact.yaml --strict
    python -m formrules evaluate ./forms/contact.yaml --values ./values.json
    python -m formrules evaluate ./forms/contact.yaml --values ./values.json --json
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from formrules.lib.config_loader import load_form_definition, load_values
from formrules.lib.errors import RuleEngineError
from formrules.lib.evaluation import FormEvaluation, evaluate_form
from formrules.lib.logging import setup_logging
from formrules.lib.settings import EngineSettings, get_settings
from formrules.lib.validate import ValidationSeverity, format_validation_report, validate_rules

logger = logging.getLogger(__name__)


def validate_command(form_path: str, settings: EngineSettings, strict: bool = False) -> None:
    """Print the validation report for a form; exit 1 if it cannot be saved."""
    definition = load_form_definition(form_path, strict=True)
    issues = validate_rules(definition, default_joiner=settings.default_joiner)

    print(format_validation_report(issues))

    errors = [i for i in issues if i.severity == ValidationSeverity.ERROR]
    if errors or (strict and issues):
        sys.exit(1)


def evaluate_command(form_path: str, values_path: str, settings: EngineSettings, as_json: bool = False) -> None:
    """Evaluate a form against a value map and print the result."""
    definition = load_form_definition(form_path)
    values = load_values(values_path)
    result = evaluate_form(definition, values, settings)

    if as_json:
        print(json.dumps(result.to_dict(), indent=2, default=str))
    else:
        print_evaluation(result)


def print_evaluation(result: FormEvaluation) -> None:
    """Print an evaluation result in a readable format."""
    print()
    print("=" * 60)
    print("Field states")
    print("=" * 60)
    for field_id, state in result.states.items():
        flags = [
            "visible" if state.is_visible else "hidden",
            "enabled" if state.is_enabled else "disabled",
        ]
        if state.is_required:
            flags.append("required")
        print(f"  {field_id}: {', '.join(flags)}  label={state.label!r}")
        if state.tooltip:
            print(f"    tooltip: {state.tooltip}")
        if state.error_message:
            print(f"    error: {state.error_message}")

    print()
    print(f"Actions fired: {len(result.actions)}")
    for descriptor in result.actions:
        print(f"  [{descriptor.rule_id}] {descriptor.kind.value}: {json.dumps(descriptor.payload, default=str)}")

    if result.value_updates:
        print()
        print("Value updates:")
        for field_id, value in result.value_updates.items():
            print(f"  {field_id} = {json.dumps(value, default=str)}")

    outcome = result.outcome
    if outcome.submit_allowed is not None:
        print(f"\nSubmit allowed: {outcome.submit_allowed}")
    if outcome.approval:
        print(f"Approval: {outcome.approval}")
    if outcome.redirect_url:
        print(f"Redirect: {outcome.redirect_url}")
    print("=" * 60)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="formrules",
        description="Validate and evaluate form field/form rules",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Check a definition before saving it
    python -m formrules validate ./forms/contact.yaml

    # Fail on warnings too
    python -m formrules validate ./forms/contact.yaml --strict

    # Show field states and fired actions for a set of values
    python -m formrules evaluate ./forms/contact.yaml --values ./values.json
        """,
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Output logs in JSON format (for log aggregation systems)",
    )
    parser.add_argument(
        "--log-file",
        help="Write logs to a file in addition to stderr",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    validate_parser = subparsers.add_parser("validate", help="Validate a form definition")
    validate_parser.add_argument("form", help="Form definition file (JSON or YAML)")
    validate_parser.add_argument(
        "--strict",
        action="store_true",
        help="Treat warnings as errors",
    )

    evaluate_parser = subparsers.add_parser("evaluate", help="Evaluate a form against a value map")
    evaluate_parser.add_argument("form", help="Form definition file (JSON or YAML)")
    evaluate_parser.add_argument("--values", required=True, help="Value map file (JSON or YAML)")
    evaluate_parser.add_argument(
        "--json",
        action="store_true",
        dest="as_json",
        help="Print the result as JSON",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the CLI."""
    args = build_parser().parse_args(argv)

    try:
        settings = get_settings(log_file=args.log_file)
    except PydanticValidationError as e:
        print(f"\nError: Invalid FORMRULES_ settings: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(
        verbose=args.verbose,
        json_format=args.json_logs or settings.json_logs,
        log_file=settings.log_file,
        level=settings.log_level,
    )

    try:
        if args.command == "validate":
            validate_command(args.form, settings, strict=args.strict or settings.strict_validation)
        else:
            evaluate_command(args.form, args.values, settings, as_json=args.as_json)

    except (RuleEngineError, FileNotFoundError) as e:
        logger.debug("Command failed", exc_info=True)
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
