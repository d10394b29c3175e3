"""
Logging handler feeding Python log records into the error collector.

Add it to the project's ``LOGGING`` configuration::

    LOGGING = {
        "version": 1,
        "handlers": {
            "collectlogs": {"class": "collectlogs.handler.CollectLogsHandler"},
        },
        "root": {"handlers": ["collectlogs"], "level": "WARNING"},
    }

Warnings emitted through ``logging.captureWarnings(True)`` are collected
as ``Warning`` or ``Deprecation`` errors located at the warning site.
"""

from __future__ import annotations

import logging
import re
import threading
from typing import Iterable, Optional

from django.http import HttpRequest

from .types import ErrorEvent, Section

WARNINGS_LOGGER = "py.warnings"
LOG_MESSAGE_LABEL = "Log message"

_WARNING_PATTERN = re.compile(
    r"^(?P<file>.+?):(?P<line>\d+): (?P<category>\w+): (?P<message>.*)$"
)


def is_deprecation_category(category: str) -> bool:
    return category.endswith("DeprecationWarning") or category.startswith("RemovedIn")


def error_type_for_level(levelno: int) -> str:
    if levelno >= logging.CRITICAL:
        return "Fatal error"
    if levelno >= logging.ERROR:
        return "Error"
    if levelno >= logging.WARNING:
        return "Warning"
    return "Notice"


class CollectLogsHandler(logging.Handler):
    """
    Convert ``LogRecord`` objects into ``ErrorEvent`` objects and collect them.

    Records from the ``collectlogs`` loggers and from ``ignored_loggers``
    are dropped, and records emitted while a record is being collected on
    the same thread are ignored.
    """

    def __init__(
        self,
        level: Optional[int] = None,
        collector=None,
        ignored_loggers: Optional[Iterable[str]] = None,
    ):
        if level is None or ignored_loggers is None:
            from .config import get_collectlogs_settings

            settings = get_collectlogs_settings()
            if level is None:
                level = settings.capture_level
            if ignored_loggers is None:
                ignored_loggers = settings.ignored_loggers
        super().__init__(level)
        self._collector = collector
        self.ignored_loggers = ("collectlogs",) + tuple(ignored_loggers)
        self._local = threading.local()

    @property
    def collector(self):
        if self._collector is None:
            from .collector import get_collector

            return get_collector()
        return self._collector

    def emit(self, record: logging.LogRecord) -> None:
        if record.levelno < self.level:
            return
        if getattr(self._local, "active", False) or self.is_ignored(record.name):
            return
        self._local.active = True
        try:
            request = getattr(record, "request", None)
            if not isinstance(request, HttpRequest):
                request = None
            self.collector.collect(self.build_event(record), request)
        except Exception:
            self.handleError(record)
        finally:
            self._local.active = False

    def is_ignored(self, logger_name: str) -> bool:
        return any(
            logger_name == name or logger_name.startswith(name + ".")
            for name in self.ignored_loggers
        )

    def build_event(self, record: logging.LogRecord) -> ErrorEvent:
        message = record.getMessage()
        extra = [Section.coerce(item) for item in getattr(record, "collectlogs_sections", None) or []]

        if record.name == WARNINGS_LOGGER:
            event = self._warning_event(record, message, extra)
            if event is not None:
                return event

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, tb = record.exc_info
            real_file, real_line = "", 0
            if tb is not None:
                while tb.tb_next is not None:
                    tb = tb.tb_next
                real_file, real_line = tb.tb_frame.f_code.co_filename, tb.tb_lineno
            if message:
                extra.append(Section(LOG_MESSAGE_LABEL, message))
            return ErrorEvent(
                type="Exception",
                message=f"{exc_type.__qualname__}: {exc_value}",
                file=record.pathname,
                line=record.lineno,
                extra=extra,
                real_file=real_file,
                real_line=real_line,
                exc_info=record.exc_info,
            )

        return ErrorEvent(
            type=error_type_for_level(record.levelno),
            message=message,
            file=record.pathname,
            line=record.lineno,
            extra=extra,
        )

    def _warning_event(self, record, message: str, extra) -> Optional[ErrorEvent]:
        match = _WARNING_PATTERN.match(message.split("\n", 1)[0])
        if match is None:
            return None
        category = match.group("category")
        return ErrorEvent(
            type="Deprecation" if is_deprecation_category(category) else "Warning",
            message=match.group("message"),
            file=record.pathname,
            line=record.lineno,
            extra=extra,
            real_file=match.group("file"),
            real_line=int(match.group("line")),
        )


__all__ = ["CollectLogsHandler", "error_type_for_level"]
