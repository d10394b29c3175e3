"""
Display helpers shared by the context capturer and the file sink.
"""

import os
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from django.conf import settings
from django.utils import timezone

_SCALARS = (bool, int, float, Decimal)
_INLINE_SEQUENCE_ITEMS = 5


def display_argument(value: Any, max_length: int = 80) -> str:
    """
    Render a value as a short, single-line string safe to show in logs.

    Examples:
        >>> display_argument("abc")
        "'abc'"
        >>> display_argument({"a": 1})
        'dict(1)'
        >>> display_argument(["a", "b"])
        "['a', 'b']"
    """
    if value is None or isinstance(value, _SCALARS):
        return str(value)
    if isinstance(value, str):
        if len(value) > max_length:
            value = value[:max_length] + "..."
        return repr(value)
    if isinstance(value, (bytes, bytearray)):
        return f"{type(value).__name__}({len(value)})"
    if isinstance(value, Mapping):
        return f"{type(value).__name__}({len(value)})"
    if isinstance(value, (list, tuple, set, frozenset)):
        items = list(value)
        if len(items) <= _INLINE_SEQUENCE_ITEMS and all(
            item is None or isinstance(item, _SCALARS + (str,)) for item in items
        ):
            rendered = ", ".join(display_argument(item, max_length) for item in items)
            return first_line(f"[{rendered}]")
        return f"{type(value).__name__}({len(items)})"
    return f"<{type(value).__qualname__}>"


def first_line(text: str) -> str:
    return text.split("\n", 1)[0].rstrip("\r")


def relative_file(path: str, root: Optional[str]) -> str:
    """Strip ``root`` from ``path`` when the file lives under it."""
    if not path or not root:
        return path
    root = os.path.normpath(root)
    normalized = os.path.normpath(path)
    if normalized.startswith(root + os.sep):
        return normalized[len(root) + 1:]
    return path


def local_now() -> datetime:
    """Current time in the project time zone; naive when ``USE_TZ`` is off."""
    now = timezone.now()
    return timezone.localtime(now) if timezone.is_aware(now) else now


def local_today() -> date:
    return local_now().date()


def to_database_datetime(value: datetime) -> datetime:
    """Make ``value`` aware or naive to match the ``USE_TZ`` setting."""
    if settings.USE_TZ:
        return timezone.make_aware(value) if timezone.is_naive(value) else value
    return timezone.make_naive(value) if timezone.is_aware(value) else value


__all__ = [
    "display_argument",
    "first_line",
    "local_now",
    "local_today",
    "relative_file",
    "to_database_datetime",
]
