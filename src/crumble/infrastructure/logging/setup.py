"""structlog over stdlib logging, emitted off the event loop.

Every record (structlog or foreign) goes through one ``QueueHandler`` on
the root logger; a ``QueueListener`` thread formats it with structlog's
``ProcessorFormatter`` and writes to stderr.  stdout is reserved for
command output.
"""

from __future__ import annotations

import atexit
import copy
import logging
import queue
import sys
from datetime import datetime, timezone
from logging.handlers import QueueHandler, QueueListener
from typing import Any, Optional

import structlog

from crumble.infrastructure.config.schema import AppConfig

log = structlog.get_logger(__name__)

# Chatty third-party loggers that should not drown out aggregation events.
_NOISY_LOGGERS: tuple[str, ...] = ("httpx", "httpcore", "rebulk", "guessit")

_listener: Optional[QueueListener] = None


def _stamp_foreign_record(
    _: Any, __: Any, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Use ``LogRecord.created`` for stdlib records, not the format time."""
    record = event_dict.get("_record")
    if isinstance(record, logging.LogRecord):
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        event_dict["timestamp"] = created.isoformat().replace("+00:00", "Z")
    return event_dict


def _renderer(config: AppConfig) -> structlog.typing.Processor:
    if config.log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


class _EventDictQueueHandler(QueueHandler):
    """Enqueue a copy of the record, leaving structlog's dict ``msg`` intact.

    The stock ``prepare`` stringifies ``msg``, which ``ProcessorFormatter``
    can no longer render.
    """

    def prepare(self, record: logging.LogRecord) -> logging.LogRecord:
        return copy.copy(record)


def _stderr_handler(config: AppConfig) -> logging.Handler:
    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=[
                structlog.contextvars.merge_contextvars,
                _stamp_foreign_record,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
            ],
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(config),
            ],
        )
    )
    return handler


def _stop_listener() -> None:
    global _listener
    if _listener is None:
        return
    try:
        _listener.stop()
    finally:
        _listener = None


atexit.register(_stop_listener)


def configure_logging(config: AppConfig) -> None:
    """Configure structlog and the root logger. Safe to call repeatedly."""
    global _listener

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _stop_listener()
    records: queue.Queue[logging.LogRecord] = queue.Queue()

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_EventDictQueueHandler(records))
    root.setLevel(config.log_level)

    noisy_level = max(logging.WARNING, logging.getLevelName(config.log_level))
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)

    _listener = QueueListener(
        records, _stderr_handler(config), respect_handler_level=True
    )
    _listener.start()

    log.info(
        "logging_configured", log_format=config.log_format, log_level=config.log_level
    )
