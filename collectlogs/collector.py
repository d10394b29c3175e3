"""
Ingestion pipeline: normalise, fingerprint, store, and log one error event.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Iterable, Optional, Union

from django.http import HttpRequest

from .config import CollectLogsSettings, get_collectlogs_settings
from .context import ContextCapturer, RequestContext, module_prefix_predicate
from .file_sink import FileLogSink
from .fingerprint import fingerprint
from .middleware import get_current_request
from .normalizer import MessageNormalizer, load_rules_from_database
from .store import DjangoErrorStore, ErrorStore
from .types import CollectResult, ErrorEvent, Section, severity_for

logger = logging.getLogger(__name__)

RequestLike = Union[HttpRequest, RequestContext, None]


class ErrorCollector:
    """
    Record error occurrences in the error catalogue.

    ``collect`` never raises: persistence and file sink failures are
    reported to the ``collectlogs`` logger (and Sentry when enabled) and
    the host keeps running.
    """

    def __init__(
        self,
        store: ErrorStore,
        normalizer: MessageNormalizer,
        capturer: ContextCapturer,
        file_sink: Optional[FileLogSink] = None,
        *,
        enabled: bool = True,
        report_failures_to_sentry: bool = False,
    ):
        self.store = store
        self.normalizer = normalizer
        self.capturer = capturer
        self.file_sink = file_sink
        self.enabled = enabled
        self._sentry = None
        if report_failures_to_sentry:
            try:
                import sentry_sdk  # type: ignore

                self._sentry = sentry_sdk
            except ImportError as exc:
                logger.warning("Sentry SDK unavailable: %s", exc)

    @classmethod
    def from_settings(cls, settings: Optional[CollectLogsSettings] = None) -> "ErrorCollector":
        settings = settings or get_collectlogs_settings()
        static_rules = list(settings.message_rules)

        def _load_rules():
            return static_rules + load_rules_from_database(settings.database)

        capturer = ContextCapturer(
            [module_prefix_predicate(settings.skip_frame_modules)],
            project_root=settings.project_root,
            argument_max_length=settings.argument_max_length,
            redact_fields=settings.redact_fields,
            redaction_mask=settings.redaction_mask,
        )
        return cls(
            DjangoErrorStore(settings.database),
            MessageNormalizer(_load_rules),
            capturer,
            FileLogSink.from_settings(settings),
            enabled=settings.enabled,
            report_failures_to_sentry=settings.report_failures_to_sentry,
        )

    def collect(self, event: ErrorEvent, request: RequestLike = None) -> Optional[CollectResult]:
        if not self.enabled:
            return None

        severity = severity_for(event.type)
        result: Optional[CollectResult] = None
        try:
            result = self._store_event(event, request)
        except Exception as exc:
            self._report_failure("failed to log error", exc)

        if self.file_sink is not None:
            is_new = result.is_new if result else False
            if self.file_sink.accepts(is_new, severity):
                try:
                    self.file_sink.append(
                        is_new,
                        result.uid if result else self._uid_for(event),
                        event.type,
                        event.message,
                        event.file,
                        event.line,
                        event.has_real_location,
                        event.real_file,
                        event.real_line,
                        result.sections if result else (),
                    )
                except Exception as exc:
                    self._report_failure("failed to write log file", exc)
        return result

    def _store_event(self, event: ErrorEvent, request: RequestLike) -> CollectResult:
        generic_message = self.normalizer.normalize(event.message)
        uid = fingerprint(
            event.type,
            event.file,
            event.line,
            event.real_file,
            event.real_line,
            generic_message,
        )

        error_class_id = self.store.find_by_uid(uid)
        if error_class_id is not None:
            self.store.record_occurrence(error_class_id)
            return CollectResult(uid=uid, error_class_id=error_class_id, is_new=False)

        sections = self.capturer.capture(
            _resolve_request_context(request), event.extra, exc_info=event.exc_info
        )
        error_class_id, created = self.store.create_error_class(
            uid,
            event.type,
            severity_for(event.type),
            event.file,
            event.line,
            event.real_file,
            event.real_line,
            generic_message,
            event.message,
            sections,
        )
        return CollectResult(
            uid=uid,
            error_class_id=error_class_id,
            is_new=created,
            sections=tuple(sections) if created else (),
        )

    def _uid_for(self, event: ErrorEvent) -> str:
        return fingerprint(
            event.type,
            event.file,
            event.line,
            event.real_file,
            event.real_line,
            self.normalizer.normalize(event.message),
        )

    def _report_failure(self, what: str, exc: BaseException) -> None:
        logger.warning("collectlogs: %s: %s", what, exc)
        if self._sentry is not None:
            try:
                self._sentry.capture_exception(exc)
            except Exception as sentry_exc:
                logger.debug("Sentry capture failed: %s", sentry_exc)


def _resolve_request_context(request: RequestLike) -> Optional[RequestContext]:
    if isinstance(request, RequestContext):
        return request
    if request is None:
        request = get_current_request()
    if request is None:
        return None
    return RequestContext.from_request(request)


_collector: Optional[ErrorCollector] = None
_collector_lock = threading.Lock()


def get_collector() -> ErrorCollector:
    """Return the process-wide collector, building it from settings on first use."""
    global _collector
    if _collector is None:
        with _collector_lock:
            if _collector is None:
                _collector = ErrorCollector.from_settings()
    return _collector


def reset_collector() -> None:
    global _collector
    with _collector_lock:
        _collector = None


def invalidate_message_rules() -> None:
    collector = _collector
    if collector is not None:
        collector.normalizer.invalidate()


def collect_error(
    error_type: str,
    message: str,
    file: Optional[str] = None,
    line: Optional[int] = None,
    *,
    extra: Optional[Iterable[Any]] = None,
    real_file: str = "",
    real_line: int = 0,
    exc_info: Optional[tuple] = None,
    request: RequestLike = None,
) -> Optional[CollectResult]:
    """Collect one error event through the process-wide collector."""
    event = ErrorEvent(
        type=error_type,
        message=message,
        file=file or "unknown",
        line=line or 0,
        extra=[Section.coerce(item) for item in (extra or [])],
        real_file=real_file,
        real_line=real_line,
        exc_info=exc_info,
    )
    return get_collector().collect(event, request)


__all__ = [
    "ErrorCollector",
    "collect_error",
    "get_collector",
    "invalidate_message_rules",
    "reset_collector",
]
