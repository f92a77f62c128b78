# SPDX-License-Identifier: MIT
# Copyright (c) 2026 wot.id Contributors

"""Logging for the wot.id service.

Every record carries the request it belongs to and, once known, the DID
being verified. Both live in a per-task context that the HTTP middleware
and the orchestrator fill in::

    with request_context(header_value) as request_id:
        with log_context(did=did):
            logger.info("Signature check failed")

Output is JSON lines (one object per record) or a plain text line for
terminals. Opaque tokens go through :func:`truncate` before they are logged.
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .config import CoreSettings

CONTEXT_FIELDS = ("request_id", "did")

_log_context: ContextVar[dict[str, str]] = ContextVar("wotid_log_context", default={})


def current_log_context() -> dict[str, str]:
    return dict(_log_context.get())


def get_request_id() -> str | None:
    """The id of the request being handled, if any."""
    return _log_context.get().get("request_id")


@contextmanager
def log_context(**fields: str | None) -> Generator[dict[str, str], None, None]:
    """Add fields to the log context for the duration of the block.

    ``None`` values are skipped, so callers can pass optional fields as-is.
    """
    merged = {**_log_context.get(), **{k: v for k, v in fields.items() if v is not None}}
    token = _log_context.set(merged)
    try:
        yield merged
    finally:
        _log_context.reset(token)


@contextmanager
def request_context(request_id: str | None = None) -> Generator[str, None, None]:
    """Start a fresh log context for one request, generating an id if needed."""
    request_id = request_id or str(uuid.uuid4())
    token = _log_context.set({"request_id": request_id})
    try:
        yield request_id
    finally:
        _log_context.reset(token)


def truncate(value: str | None, limit: int = 24) -> str:
    """Shorten an opaque token (JWS, nonce) for log output."""
    if value is None:
        return "<none>"
    if len(value) <= limit:
        return value
    return f"{value[:limit]}...({len(value)} chars)"


class LogContextFilter(logging.Filter):
    """Copy the current log context onto each record.

    Fields already set on the record (``extra=``) win over the context.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        context = _log_context.get()
        for name in CONTEXT_FIELDS:
            if not hasattr(record, name):
                setattr(record, name, context.get(name))
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        context = _log_context.get()
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None) or context.get(name)
            if value:
                entry[name] = value

        if record.levelno >= logging.WARNING:
            entry["where"] = f"{record.module}:{record.lineno}"
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Single-line text for terminals: time, level, logger, request, message."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)-7s %(name)s [%(request_id)s] %(message)s",
            datefmt="%H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        record = logging.makeLogRecord(record.__dict__)
        request_id = getattr(record, "request_id", None) or get_request_id()
        record.request_id = request_id[:8] if request_id else "-"
        did = getattr(record, "did", None)
        text = super().format(record)
        return f"{text} did={did}" if did else text


def configure_logging(settings: CoreSettings | None = None, *, json_format: bool | None = None) -> None:
    """Install the wot.id handlers on the root logger.

    Level, format and the optional log file come from settings. An empty
    format picks text on a terminal and JSON otherwise.
    The log file is always JSON.
    """
    from .config import get_config

    settings = settings or get_config()

    if json_format is None:
        log_format = settings.log_format.lower()
        json_format = log_format == "json" or (log_format != "text" and not sys.stderr.isatty())

    root = logging.getLogger()
    root.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    handlers[0].setFormatter(JSONFormatter() if json_format else TextFormatter())
    if settings.log_file:
        file_handler = logging.FileHandler(settings.log_file)
        file_handler.setFormatter(JSONFormatter())
        handlers.append(file_handler)

    context_filter = LogContextFilter()
    for handler in handlers:
        handler.addFilter(context_filter)
        root.addHandler(handler)

    for noisy in ("aiohttp", "asyncio", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
