# selenium_module/utils/logger.py
from __future__ import annotations

"""Logging
----------
Root logging is configured once from settings: a RichHandler on stderr and,
with LOG_TO_FILE, a rotating JSON file.

Context reaches every record through a handler filter rather than through
adapters, so lines logged deep inside the poller or a driver factory still
carry the flow and step they ran under:

  * `bind(run_id=...)` sets process-wide context (shared by worker threads).
  * `log_scope(flow=..., step=...)` sets context for the current thread only,
    so flows running in parallel never see each other's scope.

`attach_file_logger(path, **match)` writes only the records whose context
matches, which keeps each flow's run.log clean when flows run in parallel.
"""

import json
import logging
import os
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Iterator, Mapping, Optional

from rich.console import Console
from rich.logging import RichHandler

from selenium_module.utils.config import get_settings, LogLevel


__all__ = [
    "get_logger",
    "set_log_level",
    "bind",
    "unbind",
    "log_scope",
    "current_context",
    "attach_file_logger",
    "detach_file_logger",
]

_ROOT_NAME = "selenium_module"

_config_lock = threading.Lock()
_configured = False
_bound: Dict[str, Any] = {}
_scope: ContextVar[Mapping[str, Any]] = ContextVar("selenium_module_log_scope", default={})


def current_context() -> Dict[str, Any]:
    ctx = dict(_bound)
    ctx.update(_scope.get())
    return ctx


class _ContextFilter(logging.Filter):
    """Stamps `record.ctx`; with `match`, drops records from other scopes."""

    def __init__(self, match: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__()
        self.match = dict(match or {})

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "ctx"):
            record.ctx = current_context()
        return all(record.ctx.get(k) == v for k, v in self.match.items())


class JsonFormatter(logging.Formatter):
    """One JSON object per line: ts, level, logger, msg, context, thread, exc_info."""

    default_time_format = "%Y-%m-%dT%H:%M:%S"

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).strftime(self.default_time_format),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        payload.update(getattr(record, "ctx", {}))
        payload["thread"] = record.threadName
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class _ConsoleFormatter(logging.Formatter):
    """Prefixes the message with `flow#step` when a scope is active."""

    def format(self, record: logging.LogRecord) -> str:
        msg = super().format(record)
        ctx = getattr(record, "ctx", {})
        if "flow" not in ctx:
            return msg
        where = ctx["flow"] if "step" not in ctx else f"{ctx['flow']}#{ctx['step']}"
        return f"{where} | {msg}"


_LEVEL_MAP = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.CRITICAL: logging.CRITICAL,
}


def _ensure_configured() -> None:
    global _configured
    if _configured:
        return

    with _config_lock:
        if _configured:
            return

        settings = get_settings()
        level = _LEVEL_MAP.get(settings.LOG_LEVEL, logging.INFO)

        root = logging.getLogger()
        root.setLevel(level)
        for h in list(root.handlers):
            root.removeHandler(h)

        console = Console(stderr=True, color_system="auto" if settings.COLORIZED_OUTPUT else None)
        # messages carry URLs and selectors with brackets, so no rich markup
        rich_handler = RichHandler(console=console, show_path=False, rich_tracebacks=True, markup=False)
        rich_handler.setFormatter(_ConsoleFormatter("%(message)s"))
        rich_handler.addFilter(_ContextFilter())
        rich_handler.setLevel(level)
        root.addHandler(rich_handler)

        if settings.LOG_TO_FILE:
            root.addHandler(_json_file_handler(settings.LOG_FILE, level, backups=5))

        # selenium logs every remote command at DEBUG
        for n in ("selenium", "urllib3"):
            logging.getLogger(n).setLevel(max(level, logging.WARNING))

        _configured = True


def _json_file_handler(path: os.PathLike | str, level: int, backups: int,
                       match: Optional[Mapping[str, Any]] = None) -> logging.Handler:
    p = os.fspath(path)
    os.makedirs(os.path.dirname(p) or ".", exist_ok=True)
    fh = RotatingFileHandler(filename=p, maxBytes=5 * 1024 * 1024, backupCount=backups, encoding="utf-8", delay=True)
    fh.setLevel(level)
    fh.setFormatter(JsonFormatter())
    fh.addFilter(_ContextFilter(match))
    return fh


def get_logger(name: Optional[str] = None) -> logging.Logger:
    _ensure_configured()
    return logging.getLogger(name or _ROOT_NAME)


def set_log_level(level: LogLevel | str) -> None:
    """Adjust the log level at runtime."""
    _ensure_configured()
    lvl = level if isinstance(level, str) else level.value
    py_level = getattr(logging, lvl.upper(), logging.INFO)
    logging.getLogger().setLevel(py_level)
    for h in logging.getLogger().handlers:
        h.setLevel(py_level)


def bind(**kwargs: Any) -> None:
    _bound.update(kwargs)


def unbind(*keys: str) -> None:
    for k in keys:
        _bound.pop(k, None)


@contextmanager
def log_scope(**kwargs: Any) -> Iterator[None]:
    """
    Add context to every record logged in this thread until the block exits.
    Scopes nest; inner keys override outer ones.

        with log_scope(flow="search"):
            with log_scope(step=3, action="click"):
                log.info("clicking")   # flow=search step=3 action=click
    """
    token = _scope.set({**_scope.get(), **kwargs})
    try:
        yield
    finally:
        _scope.reset(token)


def attach_file_logger(path: os.PathLike | str, level: Optional[int] = None, **match: Any) -> logging.Handler:
    """
    Attach a JSON file handler (e.g. run.log under a run directory).
    Keyword arguments restrict it to records whose context has those values.
    Returns the handler for detach_file_logger.
    """
    _ensure_configured()
    root = logging.getLogger()
    fh = _json_file_handler(path, level if level is not None else root.level, backups=3, match=match)
    root.addHandler(fh)
    return fh


def detach_file_logger(handler: logging.Handler) -> None:
    logging.getLogger().removeHandler(handler)
    handler.close()
