"""
Diagnostic context captured when an error class is seen for the first time.

This module provides:
- RequestContext, a read-only snapshot of the triggering HTTP request
- frame predicates used to skip the logging infrastructure on the stack
- ContextCapturer, which assembles the ordered diagnostic sections
"""

from __future__ import annotations

import inspect
import logging
import sys
import traceback
from dataclasses import dataclass, field
from types import FrameType, TracebackType
from typing import Any, Callable, Iterable, Iterator, Mapping, Optional, Sequence

from django.http import HttpRequest

from .types import Section
from .utils import display_argument, first_line, relative_file

logger = logging.getLogger(__name__)

FramePredicate = Callable[[FrameType], bool]

STACKTRACE_LABEL = "Stacktrace"
HTTP_REQUEST_LABEL = "HTTP Request"
REFERRER_LABEL = "Referrer"
GET_LABEL = "GET parameters"
POST_LABEL = "POST parameters"
COOKIE_LABEL = "Cookie"


@dataclass(frozen=True)
class RequestContext:
    """Snapshot of the request that triggered an error."""
    method: str
    uri: str
    referrer: Optional[str] = None
    get: dict[str, Any] = field(default_factory=dict)
    post: dict[str, Any] = field(default_factory=dict)
    cookies: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_request(cls, request: HttpRequest) -> "RequestContext":
        try:
            post = _flatten_query_dict(request.POST)
        except Exception as exc:
            logger.debug("Request body not readable for error context: %s", exc)
            post = {}
        return cls(
            method=request.method or "GET",
            uri=request.get_full_path(),
            referrer=request.META.get("HTTP_REFERER") or None,
            get=_flatten_query_dict(request.GET),
            post=post,
            cookies=dict(request.COOKIES),
        )

    @classmethod
    def from_process(cls, argv: Optional[Sequence[str]] = None) -> "RequestContext":
        """Context for errors raised outside of a request (commands, workers)."""
        command = " ".join(argv if argv is not None else sys.argv)
        return cls(method="CLI", uri=command)


def _flatten_query_dict(query_dict) -> dict[str, Any]:
    flattened: dict[str, Any] = {}
    for key in query_dict.keys():
        values = query_dict.getlist(key)
        flattened[key] = values[0] if len(values) == 1 else values
    return flattened


def module_prefix_predicate(prefixes: Iterable[str]) -> FramePredicate:
    """Match frames whose module is one of ``prefixes`` or a submodule of one."""
    prefixes = tuple(prefix for prefix in prefixes if prefix)

    def _matches(frame: FrameType) -> bool:
        module = frame.f_globals.get("__name__", "") or ""
        return any(
            module == prefix or module.startswith(prefix + ".") for prefix in prefixes
        )

    return _matches


class StackRenderer:
    """Render frames as ``#<n> <file>(<line>): <module>.<function>(<args>)`` lines."""

    def __init__(self, project_root: Optional[str] = None, argument_max_length: int = 80):
        self.project_root = project_root
        self.argument_max_length = argument_max_length

    def render(self, frames: Sequence[tuple[FrameType, int]]) -> str:
        if not frames:
            return ""
        width = len(str(len(frames))) + 1
        lines = []
        for number, (frame, lineno) in enumerate(frames):
            padding = " " * (width - len(str(number)))
            lines.append(
                f"#{number}{padding}{self._location(frame, lineno)}: "
                f"{self._call(frame)}({self._arguments(frame)})"
            )
        return "\n".join(lines) + "\n"

    def _location(self, frame: FrameType, lineno: int) -> str:
        filename = frame.f_code.co_filename
        if not filename or filename.startswith("<") or not lineno:
            return "builtin"
        return f"{relative_file(filename, self.project_root)}({lineno})"

    def _call(self, frame: FrameType) -> str:
        code = frame.f_code
        qualifier = frame.f_globals.get("__name__") or ""
        name = getattr(code, "co_qualname", code.co_name)
        return f"{qualifier}.{name}" if qualifier else name

    def _arguments(self, frame: FrameType) -> str:
        try:
            arg_info = inspect.getargvalues(frame)
        except (TypeError, ValueError):
            return ""
        names = list(arg_info.args)
        if names and names[0] in ("self", "cls"):
            names = names[1:]
        values = [arg_info.locals.get(name) for name in names]
        if arg_info.varargs:
            values.extend(arg_info.locals.get(arg_info.varargs) or ())
        return ", ".join(self._display(value) for value in values)

    def _display(self, value: Any) -> str:
        try:
            return first_line(display_argument(value, self.argument_max_length))
        except Exception:
            return f"<{type(value).__name__}>"


def walk_stack(frame: Optional[FrameType] = None) -> Iterator[tuple[FrameType, int]]:
    """Yield ``(frame, lineno)`` pairs from ``frame`` outward."""
    if frame is None:
        frame = sys._getframe(1)
    yield from traceback.walk_stack(frame)


def walk_traceback(tb: Optional[TracebackType]) -> list[tuple[FrameType, int]]:
    """Return traceback frames innermost first."""
    frames = [(frame, lineno) for frame, lineno in traceback.walk_tb(tb)]
    frames.reverse()
    return frames


def has_stacktrace(sections: Iterable[Section]) -> bool:
    return any(section.label.lower() == STACKTRACE_LABEL.lower() for section in sections)


class ContextCapturer:
    """
    Build the one-time diagnostic bundle for a newly discovered error.

    Sections are produced in a fixed order: caller supplied sections,
    Stacktrace, HTTP Request, Referrer, GET parameters, POST parameters,
    Cookie. Referrer and the GET/POST sections are omitted when empty.
    """

    def __init__(
        self,
        frame_predicates: Optional[Sequence[FramePredicate]] = None,
        *,
        project_root: Optional[str] = None,
        argument_max_length: int = 80,
        redact_fields: Iterable[str] = (),
        redaction_mask: str = "***REDACTED***",
    ):
        self.frame_predicates = list(frame_predicates or [])
        self.renderer = StackRenderer(project_root, argument_max_length)
        self.argument_max_length = argument_max_length
        self.redact_fields = {str(name).lower() for name in redact_fields}
        self.redaction_mask = redaction_mask

    def capture(
        self,
        request_context: Optional[RequestContext] = None,
        extra: Iterable[Section] = (),
        *,
        exc_info: Optional[tuple] = None,
        frame: Optional[FrameType] = None,
    ) -> list[Section]:
        sections = [Section.coerce(item) for item in extra]
        if not has_stacktrace(sections):
            sections.append(Section(STACKTRACE_LABEL, self.stacktrace(exc_info, frame)))

        context = request_context or RequestContext.from_process()
        sections.append(Section(HTTP_REQUEST_LABEL, f"{context.method} {context.uri}\n"))
        if context.referrer:
            sections.append(Section(REFERRER_LABEL, context.referrer))
        if context.get:
            sections.append(Section(GET_LABEL, self.render_parameters(context.get)))
        if context.post:
            sections.append(Section(POST_LABEL, self.render_parameters(context.post)))
        sections.append(Section(COOKIE_LABEL, self.render_parameters(context.cookies)))
        return sections

    def stacktrace(
        self, exc_info: Optional[tuple] = None, frame: Optional[FrameType] = None
    ) -> str:
        if exc_info and exc_info[2] is not None:
            return self.renderer.render(walk_traceback(exc_info[2]))
        if frame is None:
            frame = sys._getframe(1)
        return self.renderer.render(self.error_site_frames(walk_stack(frame)))

    def error_site_frames(
        self, frames: Iterable[tuple[FrameType, int]]
    ) -> list[tuple[FrameType, int]]:
        """Drop leading frames matched by any predicate."""
        kept: list[tuple[FrameType, int]] = []
        found = False
        for frame, lineno in frames:
            if not found and self._is_infrastructure(frame):
                continue
            found = True
            kept.append((frame, lineno))
        return kept

    def render_parameters(self, parameters: Mapping[str, Any]) -> str:
        lines = []
        for name, value in parameters.items():
            if str(name).lower() in self.redact_fields:
                rendered = self.redaction_mask
            else:
                rendered = first_line(display_argument(value, self.argument_max_length))
            lines.append(f"  [{name}]: {rendered}\n")
        return "".join(lines)

    def _is_infrastructure(self, frame: FrameType) -> bool:
        return any(predicate(frame) for predicate in self.frame_predicates)


__all__ = [
    "ContextCapturer",
    "RequestContext",
    "StackRenderer",
    "module_prefix_predicate",
    "walk_stack",
    "walk_traceback",
]
