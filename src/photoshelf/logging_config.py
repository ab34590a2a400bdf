"""
Structured logging for photoshelf.

Modules log through ``get_logger(__name__)`` with snake_case event names and
keyword context. Only the process entry point (the ``photoshelf`` tasks)
calls ``configure_structured_logging``; library code never configures
logging itself.

Audit, metric and error events go to dedicated logger names so they can be
routed separately:

- ``photoshelf.user_actions``: uploads, deletions, purges
- ``photoshelf.performance``: durations of ingestion and generation runs
- ``photoshelf.errors``: server-side failures with exception info
"""

import logging
import os
import sys
from typing import Any

import structlog

USER_ACTION_LOGGER = "photoshelf.user_actions"
PERFORMANCE_LOGGER = "photoshelf.performance"
ERROR_LOGGER = "photoshelf.errors"

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def get_log_level() -> int:
    """Level named by ``LOG_LEVEL``; unknown names fall back to INFO."""
    return LOG_LEVELS.get(os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)


def is_development_environment() -> bool:
    return os.getenv("ENVIRONMENT", "development").lower() in ("development", "dev", "local")


def configure_structured_logging(level: int | None = None, json_output: bool | None = None) -> None:
    """
    Route structlog through the standard library root logger on stderr.

    stdout stays free for task output such as JSON reports.

    Args:
        level: Log level, defaults to ``LOG_LEVEL``
        json_output: Emit JSON lines instead of the console renderer;
            defaults to JSON outside development
    """
    if level is None:
        level = get_log_level()
    if json_output is None:
        json_output = not is_development_environment()

    logging.basicConfig(level=level, format="%(message)s", stream=sys.stderr)
    logging.getLogger().setLevel(level)

    renderer: Any
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    get_logger("photoshelf.logging").debug(
        "logging_configured", log_level=logging.getLevelName(level), json_output=json_output
    )


def bind_log_context(**context: Any) -> None:
    """Replace the context merged into every following log line (task name, user)."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**context)


def get_logger(name: str) -> Any:
    return structlog.get_logger(name)


def log_performance(operation: str, duration: float, **context: Any) -> None:
    get_logger(PERFORMANCE_LOGGER).info("performance_metric", operation=operation, duration_seconds=duration, **context)


def log_user_action(user_id: str | None, action: str, **context: Any) -> None:
    """
    Record an audit event.

    Args:
        user_id: Identity supplied by the authenticated request context, or
            None for maintenance jobs
        action: snake_case action name, e.g. ``photo_uploaded``
    """
    get_logger(USER_ACTION_LOGGER).info("user_action", user_id=user_id, action=action, **context)


def log_error(error: Exception, context: dict[str, Any] | None = None) -> None:
    """Log a failure with its type, message and traceback."""
    error_context = {"error_type": type(error).__name__, "error_message": str(error), **(context or {})}
    get_logger(ERROR_LOGGER).error("error_occurred", **error_context, exc_info=error)
