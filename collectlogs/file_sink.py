"""
Append-only text log of every collected occurrence.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Iterable, Optional

from .types import Section
from .utils import local_now

logger = logging.getLogger(__name__)

_INDENT = "\n    "


class FileLogSink:
    """
    Format occurrences as log lines and append them to a daily file.

    New errors get one indented detail block per diagnostic section;
    repeats are written as a single line.
    """

    def __init__(
        self,
        log_dir: Optional[str],
        file_pattern: str = "collect_%Y%m%d.log",
        *,
        enabled: bool = True,
        new_only: bool = False,
        min_severity: int = 1,
    ):
        self.log_dir = log_dir
        self.file_pattern = file_pattern
        self.enabled = enabled and bool(log_dir)
        self.new_only = new_only
        self.min_severity = min_severity

    @classmethod
    def from_settings(cls, settings) -> "FileLogSink":
        return cls(
            settings.log_dir,
            settings.log_file_pattern,
            enabled=settings.log_to_file,
            new_only=settings.log_to_file_new_only,
            min_severity=settings.log_to_file_min_severity,
        )

    def accepts(self, is_new: bool, severity: int) -> bool:
        if not self.enabled:
            return False
        if self.new_only and not is_new:
            return False
        return severity >= self.min_severity

    def path_for(self, now: datetime) -> str:
        return os.path.join(self.log_dir, now.strftime(self.file_pattern))

    def format(
        self,
        is_new: bool,
        uid: str,
        error_type: str,
        message: str,
        file: str,
        line: int,
        has_real_location: bool,
        real_file: str,
        real_line: int,
        sections: Iterable[Section] = (),
        now: Optional[datetime] = None,
    ) -> str:
        now = now or local_now()
        marker = "NEW" if is_new else "OLD"
        stamp = f"{now:%H:%M:%S}.{now.microsecond // 10000:02d}"
        text = f"[{stamp}] [{marker}] [{uid}] [{(error_type or '').upper()}] {message}"
        if line:
            text += f" in file {file} at line {line}"
        elif has_real_location:
            text += f" [{real_file}:{real_line}]"

        if is_new:
            for section in sections:
                text += f"{_INDENT}{section.label}:"
                body = _INDENT + section.content.replace("\n", _INDENT)
                text += body.rstrip() + "\n"
        return text.rstrip() + "\n"

    def append(
        self,
        is_new: bool,
        uid: str,
        error_type: str,
        message: str,
        file: str,
        line: int,
        has_real_location: bool,
        real_file: str,
        real_line: int,
        sections: Iterable[Section] = (),
        now: Optional[datetime] = None,
    ) -> str:
        """Format the occurrence and append it; returns the written path."""
        now = now or local_now()
        text = self.format(
            is_new,
            uid,
            error_type,
            message,
            file,
            line,
            has_real_location,
            real_file,
            real_line,
            sections,
            now=now,
        )
        path = self.path_for(now)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "a", encoding="utf-8") as handle:
            handle.write(text)
        return path


__all__ = ["FileLogSink"]
