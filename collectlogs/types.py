"""
Type definitions for error collection.
"""

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Optional


SEVERITY_FATAL = 4
SEVERITY_WARNING = 3
SEVERITY_DEPRECATION = 2
SEVERITY_NOTICE = 1

# Unknown types fall back to DEFAULT_SEVERITY.
SEVERITIES = MappingProxyType(
    {
        "Fatal error": SEVERITY_FATAL,
        "Exception": SEVERITY_FATAL,
        "Error": SEVERITY_FATAL,
        "Warning": SEVERITY_WARNING,
        "Deprecation": SEVERITY_DEPRECATION,
        "Notice": SEVERITY_NOTICE,
        "Unknown error": SEVERITY_NOTICE,
    }
)
DEFAULT_SEVERITY = SEVERITY_NOTICE


def severity_for(error_type: str) -> int:
    """Return the severity level for an error type label."""
    return SEVERITIES.get(error_type, DEFAULT_SEVERITY)


@dataclass(frozen=True)
class Section:
    """A labelled block of diagnostic text attached to an error class."""
    label: str
    content: str

    @classmethod
    def coerce(cls, value: Any) -> "Section":
        if isinstance(value, Section):
            return value
        if isinstance(value, dict):
            return cls(
                label=str(value.get("label") or ""),
                content=str(value.get("content") or ""),
            )
        label, content = value
        return cls(label=str(label), content=str(content))


@dataclass
class ErrorEvent:
    """A single error occurrence as handed to the collector."""
    type: str
    message: str
    file: str = "unknown"
    line: int = 0
    extra: list[Section] = field(default_factory=list)
    real_file: str = ""
    real_line: int = 0
    exc_info: Optional[tuple] = None

    def __post_init__(self):
        self.type = self.type or "Unknown error"
        self.file = self.file or "unknown"
        self.line = int(self.line or 0)
        self.real_file = self.real_file or ""
        self.real_line = int(self.real_line or 0)
        self.extra = [Section.coerce(item) for item in (self.extra or [])]

    @property
    def has_real_location(self) -> bool:
        return bool(self.real_file and self.real_line)


@dataclass(frozen=True)
class ErrorClassRecord:
    """Read-only view of a persisted error class."""
    id: int
    uid: str
    type: str
    severity: int
    reported_file: str
    reported_line: int
    real_file: str
    real_line: int
    generic_message: str
    sample_message: str
    created_at: datetime

    @property
    def has_real_location(self) -> bool:
        return bool(self.real_file and self.real_line)


@dataclass(frozen=True)
class CollectResult:
    """Outcome of collecting one event."""
    uid: str
    error_class_id: Optional[int]
    is_new: bool
    sections: tuple[Section, ...] = ()
