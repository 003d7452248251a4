"""
PartyMix Logging Configuration

structlog renders every event; the stdlib logging tree routes them. Files
get JSON lines, the console gets key/value text, and each profile
generation carries its request id and user id through contextvars.
"""

import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog
from structlog.contextvars import bind_contextvars, unbind_contextvars

# Chatty third-party loggers held at WARNING or above
QUIET_LOGGERS = ("aiohttp", "aiohttp.access", "aiohttp.client", "asyncio")

# Context keys owned by one profile generation
REQUEST_CONTEXT_KEYS = ("request_id", "user_id", "started_at")

# Default levels per PartyMix component; overridable in PartyMixLogger
DEFAULT_COMPONENT_LEVELS = {
    "partymix.api": "INFO",
    "partymix.services.components": "INFO",
}

MAIN_LOG_FILE = "partymix.log"
ERROR_LOG_FILE = "errors.log"


def shared_processors() -> List[Any]:
    """Processors applied to every event before rendering."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


class PartyMixLogger:
    """
    Owns the handler setup for one process.

    File logging is opt-in through ``log_dir``; without it only the console
    handler is installed.
    """

    def __init__(
        self,
        log_dir: Optional[str] = None,
        log_level: str = "INFO",
        enable_console: bool = True,
        component_levels: Optional[Dict[str, str]] = None,
        max_file_size: int = 5 * 1024 * 1024,
        backup_count: int = 3
    ):
        """
        Args:
            log_dir: Directory for JSON log files
            log_level: Root level name
            enable_console: Install the stdout handler
            component_levels: Logger name to level name, merged over the defaults
            max_file_size: Bytes per file before rotation
            backup_count: Rotated files kept per log
        """
        self.level = logging.getLevelName(log_level.upper())
        self.log_dir = Path(log_dir) if log_dir else None
        self.enable_console = enable_console
        self.component_levels = {**DEFAULT_COMPONENT_LEVELS, **(component_levels or {})}
        self.max_file_size = max_file_size
        self.backup_count = backup_count

        self.handlers: List[logging.Handler] = []
        self.configure()

    def configure(self) -> None:
        structlog.configure(
            processors=shared_processors() + [
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

        if self.log_dir:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            self.handlers.append(self._file_handler(MAIN_LOG_FILE, self.level))
            self.handlers.append(self._file_handler(ERROR_LOG_FILE, logging.ERROR))
        if self.enable_console:
            self.handlers.append(self._console_handler())

        root = logging.getLogger()
        root.handlers.clear()
        for handler in self.handlers:
            root.addHandler(handler)
        root.setLevel(self.level)

        for name, level in self.component_levels.items():
            logging.getLogger(name).setLevel(level.upper())
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(max(logging.WARNING, self.level))

    @staticmethod
    def _formatter(renderer: Any) -> structlog.stdlib.ProcessorFormatter:
        return structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
            foreign_pre_chain=shared_processors(),
        )

    def _file_handler(self, filename: str, level: int) -> logging.Handler:
        handler = logging.handlers.RotatingFileHandler(
            self.log_dir / filename,
            maxBytes=self.max_file_size,
            backupCount=self.backup_count,
            encoding="utf-8"
        )
        handler.setLevel(level)
        handler.setFormatter(self._formatter(structlog.processors.JSONRenderer()))
        return handler

    def _console_handler(self) -> logging.Handler:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(self.level)
        handler.setFormatter(self._formatter(structlog.dev.ConsoleRenderer(colors=False)))
        return handler


_active_setup: Optional[PartyMixLogger] = None


def setup_logging(
    log_dir: Optional[str] = None,
    log_level: str = "INFO",
    enable_console: bool = True,
    **kwargs
) -> PartyMixLogger:
    """
    Configure process-wide logging. Calling it again replaces the handlers.

    Returns:
        The active PartyMixLogger
    """
    global _active_setup
    _active_setup = PartyMixLogger(
        log_dir=log_dir,
        log_level=log_level,
        enable_console=enable_console,
        **kwargs
    )
    return _active_setup


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def set_request_context(request_id: str, user_id: Optional[str] = None):
    """Bind per-generation context to every log line on the current task."""
    bind_contextvars(
        request_id=request_id,
        user_id=user_id,
        started_at=datetime.now(timezone.utc).isoformat()
    )


def clear_request_context():
    """Unbind the keys set by set_request_context, leaving caller context intact."""
    unbind_contextvars(*REQUEST_CONTEXT_KEYS)


def log_performance(operation: str, duration: float, **kwargs):
    structlog.get_logger("partymix.performance").info(
        "operation_timed",
        operation=operation,
        duration_ms=round(duration * 1000, 1),
        **kwargs
    )


def log_service_fetch(service: str, outcome: str, duration: float, **kwargs):
    """One line per upstream service fetch: ok, empty, timeout or failed."""
    level = "info" if outcome in ("ok", "empty") else "warning"
    getattr(structlog.get_logger("partymix.fetch"), level)(
        "service_fetch",
        source_service=service,
        outcome=outcome,
        duration_ms=round(duration * 1000, 1),
        **kwargs
    )


def log_error(error: Exception, context: Dict[str, Any], **kwargs):
    structlog.get_logger("partymix.errors").error(
        "error_occurred",
        error_type=type(error).__name__,
        error_message=str(error),
        context=context,
        **kwargs
    )
