from __future__ import annotations

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from tempfile import gettempdir
from typing import Any, Iterator

from pythonjsonlogger import jsonlogger

from .settings import settings

LOGGER_NAME = "saferoute"
EVENTS_FILE_NAME = "saferoute-events.jsonl"

# Standard LogRecord attributes; everything else on a record is an event field.
_RECORD_ATTRS = (
    "args",
    "asctime",
    "created",
    "exc_info",
    "exc_text",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "message",
    "module",
    "msecs",
    "msg",
    "name",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "stack_info",
    "taskName",
    "thread",
    "threadName",
)

_request_context: ContextVar[dict[str, Any]] = ContextVar("saferoute_request_context", default={})


@contextmanager
def request_context(**fields: Any) -> Iterator[None]:
    """Attach `fields` (request_id, endpoint, ...) to every event logged inside the block.

    Blocks nest; inner values win, and everything bound inside is dropped on exit.
    """
    token = _request_context.set({**_request_context.get(), **fields})
    try:
        yield
    finally:
        _request_context.reset(token)


def bind_request_context(**fields: Any) -> None:
    """Add fields to the active context once they are known, e.g. `route_source`."""
    _request_context.set({**_request_context.get(), **fields})


def current_request_context() -> dict[str, Any]:
    return dict(_request_context.get())


class RequestContextFilter(logging.Filter):
    """Copy the active request context onto each record; explicit event fields win."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _request_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class EventJsonFormatter(jsonlogger.JsonFormatter):
    """One JSON object per line: `ts`, `level`, `event`, then the event's own fields."""

    def __init__(self) -> None:
        super().__init__(reserved_attrs=_RECORD_ATTRS, timestamp=False)

    def add_fields(self, log_record: dict[str, Any], record: logging.LogRecord, message_dict: dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        message = log_record.pop("message", None)
        log_record["ts"] = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec="milliseconds")
        log_record["level"] = record.levelname
        log_record.setdefault("event", message)


def _parse_level(name: str) -> int:
    level = logging.getLevelName(str(name).strip().upper())
    return level if isinstance(level, int) else logging.INFO


def _resolve_log_dir(configured_out_dir: str) -> Path | None:
    """First writable of `<OUT_DIR>/logs` and a per-user temp directory."""
    for log_dir in (Path(configured_out_dir) / "logs", Path(gettempdir()) / "saferoute" / "logs"):
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            marker = log_dir / ".writable"
            marker.touch(exist_ok=True)
            marker.unlink(missing_ok=True)
        except OSError:
            continue
        return log_dir
    return None


def get_logger() -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    if getattr(logger, "_saferoute_configured", False):
        return logger

    logger.setLevel(_parse_level(settings.log_level))
    logger.propagate = False
    logger.addFilter(RequestContextFilter())

    formatter = EventJsonFormatter()
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    log_dir = _resolve_log_dir(settings.out_dir)
    if log_dir is not None:
        try:
            handlers.append(logging.FileHandler(log_dir / EVENTS_FILE_NAME, encoding="utf-8"))
        except OSError:
            pass  # stderr only
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger._saferoute_configured = True  # type: ignore[attr-defined]
    return logger


LOGGER: logging.Logger | None = None


def log_event(event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """Emit one structured event; request context fields are merged in by the logger's filter."""
    global LOGGER
    if LOGGER is None:
        LOGGER = get_logger()
    LOGGER.log(level, event, extra={"event": event, **fields})
