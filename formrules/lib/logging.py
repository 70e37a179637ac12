"""Logging utilities for the rule engine.

Provides a structured JSON logging option for hosts that ship engine logs to
an aggregator.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

__all__ = [
    "JSONFormatter",
    "setup_logging",
]

_RESERVED_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """Formatter that outputs log records as JSON.

    Example output:
        {"timestamp": "2025-01-15T10:30:00.123Z", "level": "WARNING",
         "logger": "formrules.lib.field_rules",
         "message": "Field rule 'r1' has an invalid expression, treating as unmet: ..."}
    """

    def __init__(
        self,
        include_fields: Optional[list[str]] = None,
        exclude_fields: Optional[list[str]] = None,
    ):
        """Initialize JSON formatter.

        Args:
            include_fields: Extra fields to include (from record.__dict__)
            exclude_fields: Fields to exclude from output
        """
        super().__init__()
        self.include_fields = include_fields or []
        self.exclude_fields = exclude_fields or []

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as JSON."""
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.pathname:
            log_data["source"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for field in self.include_fields:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        # Attributes passed via extra=, e.g. extra={"rule_id": ...}
        extra_attrs = {
            k: v
            for k, v in record.__dict__.items()
            if k not in _RESERVED_ATTRS and k not in self.exclude_fields and k not in self.include_fields
        }
        if extra_attrs:
            log_data["extra"] = extra_attrs

        return json.dumps(log_data, default=str)


def setup_logging(
    verbose: bool = False,
    json_format: bool = False,
    log_file: Optional[str] = None,
    level: Optional[str] = None,
) -> None:
    """Configure logging for CLI or host-process use.

    Logs go to stderr so command output on stdout stays machine-readable.

    Args:
        verbose: Enable debug-level logging (overrides ``level``)
        json_format: Use JSON output format (for log aggregation)
        log_file: Optional file path to write logs to
        level: Level name used when not verbose (default INFO)
    """
    if verbose:
        resolved = logging.DEBUG
    else:
        resolved = logging.getLevelName((level or "INFO").upper())
        if not isinstance(resolved, int):
            resolved = logging.INFO

    if json_format:
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    root_logger = logging.getLogger()
    root_logger.setLevel(resolved)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(resolved)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(resolved)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
