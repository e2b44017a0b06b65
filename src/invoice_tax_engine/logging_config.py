"""structlog setup for the engine.

Log lines always go to stderr, so the CLI keeps stdout for its own
output. The console format is plain text for terminals and test
output; the JSON format adds the engine name and environment to every
line for log collectors.
"""

import logging
import sys
from decimal import Decimal
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from invoice_tax_engine.config import Settings, get_settings

QUIET_LOGGERS = ("httpx", "httpcore", "asyncio")


def _decimals_as_text(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Log amounts and rates in their exact decimal notation."""
    for key, value in event_dict.items():
        if isinstance(value, Decimal):
            event_dict[key] = str(value)
    return event_dict


def _engine_fields(settings: Settings) -> Processor:
    def add(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("app", settings.app_name)
        event_dict.setdefault("environment", settings.environment.value)
        return event_dict

    return add


def _processors(settings: Settings) -> list[Processor]:
    shared: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        _decimals_as_text,
    ]
    if settings.log_format == "json":
        return [
            *shared,
            _engine_fields(settings),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    return [
        *shared,
        structlog.dev.ConsoleRenderer(
            colors=False,
            exception_formatter=structlog.dev.plain_traceback,
        ),
    ]


def configure_logging(settings: Settings | None = None) -> None:
    """Route structlog through the stdlib root logger on stderr.

    Call once at startup, before the first log line. With log_file set,
    the same rendered lines are appended to that file too.
    """
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level.value)

    structlog.configure(
        processors=_processors(settings),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)

    if settings.log_file:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(settings.log_file, encoding="utf-8")
        handler.setLevel(level)
        logging.getLogger().addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.stdlib.get_logger(name)


class LogContext:
    """Adds key/values to every log line written inside the with block.

        with LogContext(period="2024-03"):
            builder.build(period, invoices, expenses, profile)
    """

    def __init__(self, **values: Any) -> None:
        self._values = values

    def __enter__(self) -> "LogContext":
        structlog.contextvars.bind_contextvars(**self._values)
        return self

    def __exit__(self, *exc_info: Any) -> None:
        structlog.contextvars.unbind_contextvars(*self._values)
