"""structlog on top of stdlib logging, emitted from a background thread.

structlog events and foreign stdlib records (uvicorn, httpx) are rendered
by one ``ProcessorFormatter``: console output in dev/test, JSON in prod.
The root logger only enqueues; a ``QueueListener`` writes records below
ERROR to stdout and the rest to stderr.
"""

from __future__ import annotations

import atexit
import copy
import logging
import queue
import sys
from datetime import datetime, timezone
from logging.handlers import QueueHandler, QueueListener
from typing import Any

import structlog

from streamhop.infrastructure.config.schema import AppConfig

log = structlog.get_logger(__name__)

EventDict = dict[str, Any]

MAX_VALUE_LENGTH = 200

_CHATTY_LOGGERS = ("httpx", "httpcore")
_UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")

_listener: QueueListener | None = None


def _drop_color_message(_logger: Any, _method: Any, event_dict: EventDict) -> EventDict:
    event_dict.pop("color_message", None)
    return event_dict


def _truncate_long_values(
    _logger: Any, _method: Any, event_dict: EventDict
) -> EventDict:
    """Clip long strings such as raw obfuscated payloads; tracebacks stay whole."""
    for key, value in event_dict.items():
        if key != "exception" and isinstance(value, str):
            overflow = len(value) - MAX_VALUE_LENGTH
            if overflow > 0:
                event_dict[key] = f"{value[:MAX_VALUE_LENGTH]}...(+{overflow})"
    return event_dict


def _stamp_foreign_record(
    _logger: Any, _method: Any, event_dict: EventDict
) -> EventDict:
    # the listener formats later; use the record's own creation time
    record = event_dict.get("_record")
    if isinstance(record, logging.LogRecord):
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        event_dict["timestamp"] = created.isoformat().replace("+00:00", "Z")
    return event_dict


def _common_chain() -> list[structlog.typing.Processor]:
    return [
        _drop_color_message,
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
    ]


def build_processor_formatter(config: AppConfig) -> structlog.stdlib.ProcessorFormatter:
    renderer: structlog.typing.Processor
    if config.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[*_common_chain(), _stamp_foreign_record],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _truncate_long_values,
            renderer,
        ],
    )


def uvicorn_log_config(config: AppConfig) -> dict[str, Any]:
    """``log_config`` for ``uvicorn.run``: uvicorn loggers feed the root queue."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "loggers": {
            name: {"handlers": [], "level": config.log_level, "propagate": True}
            for name in _UVICORN_LOGGERS
        },
    }


class _LevelBand(logging.Filter):
    """Accept records with ``low <= levelno < high``."""

    def __init__(self, low: int, high: int) -> None:
        super().__init__()
        self.low = low
        self.high = high

    def filter(self, record: logging.LogRecord) -> bool:
        return self.low <= record.levelno < self.high


class _EventDictQueueHandler(QueueHandler):
    def prepare(self, record: logging.LogRecord) -> logging.LogRecord:
        # the base class renders record.msg to a string, losing the event dict
        return copy.copy(record)


def _stream_handler(
    stream: Any, band: _LevelBand, formatter: logging.Formatter
) -> logging.Handler:
    handler = logging.StreamHandler(stream=stream)
    handler.setFormatter(formatter)
    handler.addFilter(band)
    return handler


def _stop_listener() -> None:
    global _listener
    listener, _listener = _listener, None
    if listener is not None:
        listener.stop()


atexit.register(_stop_listener)


def _route_through_queue(config: AppConfig) -> None:
    global _listener
    _stop_listener()

    formatter = build_processor_formatter(config)
    outputs = (
        _stream_handler(
            sys.stdout, _LevelBand(logging.NOTSET, logging.ERROR), formatter
        ),
        _stream_handler(
            sys.stderr, _LevelBand(logging.ERROR, logging.CRITICAL + 1), formatter
        ),
    )

    records: queue.Queue[logging.LogRecord] = queue.Queue()
    root = logging.getLogger()
    root.handlers[:] = [_EventDictQueueHandler(records)]
    root.setLevel(config.log_level)

    # loggers created before us lose their own handlers and propagate to root
    for existing in list(logging.root.manager.loggerDict.values()):
        if isinstance(existing, logging.Logger):
            existing.handlers.clear()
            existing.propagate = True
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, root.level))

    _listener = QueueListener(records, *outputs, respect_handler_level=True)
    _listener.start()


def configure_logging(config: AppConfig) -> None:
    structlog.configure(
        processors=[
            *_common_chain(),
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    _route_through_queue(config)
    log.info(
        "logging_configured", log_format=config.log_format, log_level=config.log_level
    )
