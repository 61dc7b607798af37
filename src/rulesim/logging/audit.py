"""Structured logging and simulation trail helpers.

This module provides:
- structlog configuration for JSON (or console) logging to stderr
- Secret redaction for tokens that show up in fixture content or headers
- Structured log events for condition evaluation and simulation outcomes
"""

from __future__ import annotations

import logging
import re
import sys
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import Callable

    from structlog.typing import EventDict, WrappedLogger

# Patterns for secret redaction
SECRET_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    # GitHub tokens (ghp_, gho_, ghu_, ghs_, ghr_ prefixes)
    (re.compile(r"(gh[pousr]_[A-Za-z0-9_]{36,})"), "[REDACTED_GITHUB_TOKEN]"),
    (re.compile(r"(token[=:]\s*['\"]?)([A-Za-z0-9_-]{20,})"), r"\1[REDACTED]"),
    (re.compile(r"(Bearer\s+)([A-Za-z0-9._-]+)", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"(authorization[=:]\s*['\"]?)([^\s'\"]+)", re.IGNORECASE), r"\1[REDACTED]"),
]

# Fact values can be whole file contents; log a preview only
MAX_VALUE_PREVIEW = 200


def redact_secrets(value: Any) -> Any:
    """Redact sensitive values from a string, dict, or list.

    Args:
        value: Value to redact. Can be str, dict, list, or other.

    Returns:
        Value with sensitive data redacted
    """
    if isinstance(value, str):
        result = value
        for pattern, replacement in SECRET_PATTERNS:
            result = pattern.sub(replacement, result)
        return result

    if isinstance(value, dict):
        return {k: redact_secrets(v) for k, v in value.items()}

    if isinstance(value, list):
        return [redact_secrets(item) for item in value]

    return value


def _redact_processor(
    _logger: WrappedLogger,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """structlog processor that redacts secrets from log events."""
    return redact_secrets(event_dict)


def configure_logging(
    verbose: bool = False,
    json_output: bool = True,
) -> None:
    """Configure structured logging for the application.

    Sets up structlog with JSON formatting to stderr, including:
    - Timestamp in ISO format
    - Log level
    - Secret redaction
    - Exception formatting

    Args:
        verbose: If True, enable DEBUG level. Otherwise INFO.
        json_output: If True, output JSON. Otherwise use console format.
    """
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=level,
        force=True,
    )

    processors: list[Callable[..., Any]] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _redact_processor,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a configured structlog logger.

    Args:
        name: Optional logger name (typically __name__)

    Returns:
        Bound structlog logger
    """
    return structlog.get_logger(name)


def preview_value(value: Any) -> str:
    """Return a short repr of a fact value suitable for a log line."""
    text = repr(value)
    if len(text) > MAX_VALUE_PREVIEW:
        return text[:MAX_VALUE_PREVIEW] + "..."
    return text


def log_condition_evaluated(
    path: list[str],
    fact_name: str,
    operator: str,
    result: bool,
    fact_value: Any = None,
    error: str | None = None,
) -> None:
    """Log a single leaf condition evaluation.

    Args:
        path: Structural path of the condition in the rule
        fact_name: Fact the condition reads
        operator: Operator applied
        result: Boolean outcome
        fact_value: Fact value after path extraction (previewed)
        error: Error recorded on the condition, if any
    """
    log = get_logger("rulesim.conditions")
    log.debug(
        "condition_evaluated",
        path=".".join(path),
        fact=fact_name,
        operator=operator,
        result=result,
        fact_value=preview_value(fact_value),
        error=error,
    )


def log_simulation_complete(
    rule_name: str,
    target: str,
    final_result: str,
    conditions_evaluated: int,
    duration_ms: float,
    error: str | None = None,
) -> None:
    """Log the outcome of one simulation run.

    Args:
        rule_name: Rule that was simulated
        target: File name, or GLOBAL for project-wide runs
        final_result: triggered, not-triggered or error
        conditions_evaluated: Number of leaf results produced
        duration_ms: Total run time in milliseconds
        error: Run-level error message, if any
    """
    log = get_logger("rulesim.simulation")
    log_func = log.warning if final_result == "error" else log.info
    log_func(
        "simulation_complete",
        rule=rule_name,
        target=target,
        final_result=final_result,
        conditions_evaluated=conditions_evaluated,
        duration_ms=round(duration_ms, 2),
        error=error,
    )
