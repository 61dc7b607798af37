"""Logging module for rulesim.

This module provides structured logging with:
- structlog configuration for consistent log formatting
- Secret redaction for tokens in fixture content and headers
- Structured log events for condition evaluation and simulation
  outcomes

Usage:
    from rulesim.logging import configure_logging, log_simulation_complete

    configure_logging(verbose=True)
    log_simulation_complete(rule_name, target, final_result, count, duration_ms)
"""

from rulesim.logging.audit import (
    configure_logging,
    get_logger,
    log_condition_evaluated,
    log_simulation_complete,
    preview_value,
    redact_secrets,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "log_condition_evaluated",
    "log_simulation_complete",
    "preview_value",
    "redact_secrets",
]
