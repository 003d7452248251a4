"""Logging setup and structured logging helpers."""

from .logging_config import (
    PartyMixLogger,
    setup_logging,
    get_logger,
    set_request_context,
    clear_request_context,
    log_performance,
    log_service_fetch,
    log_error,
)

__all__ = [
    "PartyMixLogger",
    "setup_logging",
    "get_logger",
    "set_request_context",
    "clear_request_context",
    "log_performance",
    "log_service_fetch",
    "log_error",
]
