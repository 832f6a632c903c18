"""Structured logging setup for the legajos toolkit."""

import logging
import sys
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional

import structlog

from ..constants import get_current_timestamp
from .config import Settings

LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


@dataclass
class LogEntry:
    level: str
    event: str
    timestamp: datetime
    logger: Optional[str] = None
    fields: Dict[str, Any] = field(default_factory=dict)


class LogBuffer:
    """
    structlog processor that keeps the most recent log entries in memory.

    Lets the UI layer show a recent activity log without reading files.
    Entries are copied out of the event dict; the event continues down
    the processor chain untouched.
    """

    def __init__(self, max_entries: int = 1000):
        self._entries: Deque[LogEntry] = deque(maxlen=max_entries)
        self.total_logs = 0
        self.logs_by_level: Dict[str, int] = {level: 0 for level in LOG_LEVELS}

    def __call__(
        self, logger: Any, method_name: str, event_dict: Dict[str, Any]
    ) -> Dict[str, Any]:
        level = event_dict.get("level", method_name)
        if level == "warn":
            level = "warning"
        fields = {
            k: v
            for k, v in event_dict.items()
            if k not in ("event", "level", "timestamp", "logger")
        }
        self._entries.append(
            LogEntry(
                level=level,
                event=str(event_dict.get("event", "")),
                timestamp=get_current_timestamp(),
                logger=event_dict.get("logger"),
                fields=fields,
            )
        )
        self.total_logs += 1
        self.logs_by_level[level] = self.logs_by_level.get(level, 0) + 1
        return event_dict

    def get_logs(self, level: Optional[str] = None) -> List[LogEntry]:
        if level is None:
            return list(self._entries)
        return [entry for entry in self._entries if entry.level == level]

    def clear(self) -> None:
        self._entries.clear()
        self.total_logs = 0
        self.logs_by_level = {level: 0 for level in LOG_LEVELS}


def _is_test_environment() -> bool:
    """Detect if running under pytest."""
    return "pytest" in sys.modules


def configure_logging(
    settings: Settings, log_buffer: Optional[LogBuffer] = None
) -> LogBuffer:
    """
    Configure structlog over the standard library.

    Console rendering in development, JSON elsewhere. Under pytest the
    root logger is silenced but the buffer still records entries.

    Returns:
        The LogBuffer attached to the processor chain
    """
    buffer = log_buffer or LogBuffer(max_entries=settings.LOG_BUFFER_SIZE)

    processors: List[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        buffer,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if _is_test_environment():
        level = logging.CRITICAL + 1
        processors.append(structlog.processors.KeyValueRenderer())
    else:
        level = getattr(logging, settings.LOG_LEVEL, logging.INFO)
        if settings.is_development or settings.DEBUG:
            processors.append(structlog.dev.ConsoleRenderer())
        else:
            processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    logging.basicConfig(format="%(message)s", level=level, force=True)

    return buffer
