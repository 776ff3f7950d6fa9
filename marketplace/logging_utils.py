"""Logging setup: console formatting plus an optional database log sink."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from .config import settings
from .database import AsyncSessionLocal
from .models.system_log import SystemLog

SERVICE_NAME = "marketplace"

_LOG_RECORD_RESERVED_KEYS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "message",
    "asctime",
}


def record_extra(record: logging.LogRecord) -> Dict[str, Any]:
    """Return the JSON-safe `extra=` fields attached to a record."""
    sanitized: Dict[str, Any] = {}
    for key, value in record.__dict__.items():
        if key in _LOG_RECORD_RESERVED_KEYS or key.startswith("_"):
            continue
        try:
            json.dumps(value)
            sanitized[key] = value
        except (TypeError, ValueError):
            sanitized[key] = repr(value)
    return sanitized


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(record_extra(record))
        if record.exc_info:
            payload["traceback"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class _ConsoleHandler(logging.StreamHandler):
    """Stream handler owned by configure_logging, replaced on reconfiguration."""


def configure_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    """Install a single stream handler on the root logger."""
    level_name = (level or settings.log_level).upper()
    handler = _ConsoleHandler(sys.stdout)
    if (fmt or settings.log_format).lower() == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if isinstance(existing, _ConsoleHandler):
            root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level_name, logging.INFO))


class _CentralLogHandler(logging.Handler):
    """Logging handler that forwards records into an async queue."""

    def __init__(self, manager: "CentralizedLogManager") -> None:
        super().__init__(manager.level)
        self.manager = manager

    def emit(self, record: logging.LogRecord) -> None:  # noqa: D401 - standard emit signature
        if record.levelno < self.manager.level:
            return
        payload = self.manager.serialize_record(record)
        try:
            self.manager.queue.put_nowait(payload)
        except asyncio.QueueFull:
            self.manager.report_queue_full()


class CentralizedLogManager:
    """Background task that persists log records as SystemLog rows."""

    def __init__(
        self,
        service_name: str,
        level: int,
        queue_size: int,
        session_factory: async_sessionmaker = AsyncSessionLocal,
    ) -> None:
        self.service_name = service_name
        self.level = level
        self.queue: asyncio.Queue[Optional[Dict[str, Any]]] = asyncio.Queue(maxsize=queue_size)
        self._session_factory = session_factory
        self._task: Optional[asyncio.Task[None]] = None
        self._queue_warning_emitted = False

    def create_handler(self) -> logging.Handler:
        return _CentralLogHandler(self)

    async def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._worker(), name=f"log-writer-{self.service_name}")

    async def stop(self) -> None:
        """Stop the background consumer, flushing any pending records."""
        if self._task is None:
            return
        await self.queue.put(None)
        await self._task
        self._task = None
        self._queue_warning_emitted = False

    async def _worker(self) -> None:
        while True:
            item = await self.queue.get()
            if item is None:
                self.queue.task_done()
                break
            try:
                async with self._session_factory() as session:
                    session.add(SystemLog(**item))
                    await session.commit()
            except Exception:
                # Logging from here would re-enter this handler
                traceback.print_exc()
            finally:
                self.queue.task_done()

    def serialize_record(self, record: logging.LogRecord) -> Dict[str, Any]:
        """Convert a log record into SystemLog column values."""
        payload: Dict[str, Any] = {
            "service": self.service_name,
            "level": record.levelname,
            "logger_name": record.name,
            "message": record.getMessage(),
            "created_at": datetime.fromtimestamp(record.created, tz=timezone.utc),
        }

        if record.exc_info:
            payload["traceback"] = "".join(traceback.format_exception(*record.exc_info))
        elif record.exc_text:
            payload["traceback"] = record.exc_text

        extra = record_extra(record)
        if extra:
            payload["extra"] = extra
        return payload

    def report_queue_full(self) -> None:
        """Emit a single warning to stderr if the queue overflows."""
        if self._queue_warning_emitted:
            return
        self._queue_warning_emitted = True
        print(
            f"Centralized logging queue for service '{self.service_name}' is full; dropping log entries.",
            file=sys.stderr,
        )


_manager_instance: Optional[CentralizedLogManager] = None


async def enable_centralized_logging(
    service_name: str = SERVICE_NAME,
    session_factory: async_sessionmaker = AsyncSessionLocal,
    force: bool = False,
) -> Optional[CentralizedLogManager]:
    """Forward records at or above CENTRALIZED_LOG_LEVEL into the system_logs table."""
    global _manager_instance

    if not (force or settings.centralized_logging_enabled):
        return None

    if _manager_instance is not None:
        return _manager_instance

    level = getattr(logging, settings.centralized_log_level.upper(), logging.WARNING)
    queue_size = max(1, settings.centralized_log_queue_size)

    manager = CentralizedLogManager(
        service_name=service_name,
        level=level,
        queue_size=queue_size,
        session_factory=session_factory,
    )
    handler = manager.create_handler()
    handler.setLevel(level)

    root_logger = logging.getLogger()
    root_logger.setLevel(min(root_logger.level or level, level))
    root_logger.addHandler(handler)

    _manager_instance = manager
    await manager.start()
    return manager


async def disable_centralized_logging() -> None:
    """Tear down the centralized logging manager if it exists."""
    global _manager_instance

    if _manager_instance is None:
        return
    await _manager_instance.stop()
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if isinstance(handler, _CentralLogHandler) and handler.manager is _manager_instance:
            root_logger.removeHandler(handler)
    _manager_instance = None
