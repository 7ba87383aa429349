"""structlog setup shared by the API server and the terminal CLI.

The server logs JSON lines to stdout. The operator CLI keeps stdout for
its own messages and sends human-readable log lines to stderr.
"""

import contextvars
import logging
import logging.config
import sys

import structlog

from caixapilot.core.settings import LOG_LEVEL

request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "request_id", default="no-request-id"
)

_configured = False


def get_request_id() -> str:
    return request_id_var.get()


def set_request_id(request_id: str) -> None:
    request_id_var.set(request_id)


def bind_terminal_context(company_id: str, terminal_id: str) -> None:
    """Attach company/terminal to every log line emitted from this context."""
    structlog.contextvars.bind_contextvars(company_id=company_id, terminal_id=terminal_id)


def _renderer(console: bool):
    if console:
        return structlog.dev.ConsoleRenderer(colors=False)
    return structlog.processors.JSONRenderer()


def configure_logging(console: bool = False, level: str | None = None) -> None:
    """Configure structlog and route stdlib loggers (uvicorn, sqlalchemy) through it.

    Args:
        console: Human-readable lines on stderr (operator CLI) instead of JSON on stdout
        level: Minimum level name; defaults to CAIXA_LOG_LEVEL
    """
    global _configured

    if _configured:
        return

    level_name = (level or LOG_LEVEL).upper()
    # None lets PrintLogger pick up sys.stdout when each logger is created
    stream = sys.stderr if console else None

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            _renderer(console),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelNamesMapping().get(level_name, logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structlog": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "processor": _renderer(console),
                },
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "structlog",
                    "stream": "ext://sys.stderr" if console else "ext://sys.stdout",
                },
            },
            "root": {"handlers": ["default"], "level": level_name},
        }
    )
    _configured = True


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structlog logger with the current request ID bound."""
    return structlog.get_logger(name).bind(request_id=get_request_id())
