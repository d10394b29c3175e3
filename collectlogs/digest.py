"""
Digest of newly seen errors.

``DigestReporter`` renders the error classes created since a watermark as
plain text and HTML. ``run_digest_job`` is the periodic job around it: it
owns the watermark and hands the rendered digest to a sink (email by
default).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone as dt_timezone
from typing import Callable, Optional, Sequence

import bleach
from django.conf import settings as django_settings
from django.core.mail import send_mail
from django.utils import timezone
from django.utils.html import escape, format_html
from django.utils.module_loading import import_string
from django.utils.safestring import mark_safe

from .config import CollectLogsSettings, get_collectlogs_settings
from .exceptions import DigestDeliveryError
from .models import DigestWatermark
from .store import DjangoErrorStore, ErrorStore
from .types import ErrorClassRecord, Section
from .utils import to_database_datetime

logger = logging.getLogger(__name__)

DigestSink = Callable[[str, str, str, Sequence[str]], None]

EPOCH = datetime(1970, 1, 1, tzinfo=dt_timezone.utc)
_TEXT_INDENT = "\n    "


@dataclass(frozen=True)
class Digest:
    text: str
    html: str
    count: int

    @property
    def is_empty(self) -> bool:
        return self.count == 0


@dataclass(frozen=True)
class DigestRunResult:
    status: str
    since: Optional[datetime] = None
    digest: Optional[Digest] = None
    recipients: tuple[str, ...] = ()

    @property
    def count(self) -> int:
        return self.digest.count if self.digest else 0


class DigestReporter:
    """Render error classes created since a point in time."""

    def __init__(self, store: ErrorStore):
        self.store = store

    def build_digest(self, since: datetime) -> Digest:
        text_blocks: list[str] = []
        html_blocks: list[str] = []
        records = self.store.list_created_since(since)
        for record in records:
            seen = self.store.total_occurrences(record.id)
            sections = self.store.sections_for(record.id)
            text_blocks.append(self.render_text(record, seen, sections))
            html_blocks.append(self.render_html(record, seen, sections))
        return Digest(text="".join(text_blocks), html="".join(html_blocks), count=len(records))

    def render_text(
        self, record: ErrorClassRecord, seen: int, sections: Sequence[Section]
    ) -> str:
        text = f"  - [{record.type}] {record.sample_message}"
        text += f"{_TEXT_INDENT}in {_location_text(record)}"
        text += f"{_TEXT_INDENT}Seen {seen} times since {_format_date(record.created_at)}"
        for section in sections:
            text += f"{_TEXT_INDENT}{section.label}"
            text += _TEXT_INDENT + section.content.strip().replace("\n", _TEXT_INDENT)
        return text + "\n"

    def render_html(
        self, record: ErrorClassRecord, seen: int, sections: Sequence[Section]
    ) -> str:
        if record.has_real_location:
            location = format_html(
                "<div>in file <code>{}:{}</code> <span>(via <code>{}</code>)</span></div>",
                record.real_file,
                record.real_line,
                _reported_location(record),
            )
        else:
            location = format_html(
                "<div>in file <code>{}</code></div>", _reported_location(record)
            )
        parts = [
            format_html("<h3>[{}] {}</h3>", record.type, record.sample_message),
            location,
            format_html(
                "<div>Seen <b>{}</b> times since {}</div>",
                seen,
                _format_date(record.created_at),
            ),
        ]
        for section in sections:
            body = mark_safe(bleach.linkify(escape(section.content)))
            parts.append(
                format_html(
                    "<div><h5>{}</h5><code><pre>{}</pre></code></div>", section.label, body
                )
            )
        return "<div>" + "".join(parts) + "</div>"


def _reported_location(record: ErrorClassRecord) -> str:
    if record.reported_line:
        return f"{record.reported_file}:{record.reported_line}"
    return record.reported_file


def _location_text(record: ErrorClassRecord) -> str:
    if record.has_real_location:
        return f"{record.real_file}:{record.real_line} (via {_reported_location(record)})"
    return _reported_location(record)


def _format_date(value: datetime) -> str:
    if timezone.is_aware(value):
        value = timezone.localtime(value)
    return value.strftime("%Y-%m-%d %H:%M:%S")


# --------------------------------------------------------------------------- #
# Watermark
# --------------------------------------------------------------------------- #
def get_watermark(key: str = "default", using: str = "default") -> Optional[datetime]:
    return (
        DigestWatermark.objects.using(using)
        .filter(key=key)
        .values_list("last_run_at", flat=True)
        .first()
    )


def set_watermark(at: datetime, key: str = "default", using: str = "default") -> None:
    DigestWatermark.objects.using(using).update_or_create(
        key=key, defaults={"last_run_at": at}
    )


# --------------------------------------------------------------------------- #
# Sinks
# --------------------------------------------------------------------------- #
def send_digest_email(
    subject: str,
    text: str,
    html: str,
    recipients: Sequence[str],
    from_email: Optional[str] = None,
) -> None:
    """Send the digest separately to each recipient."""
    from_email = from_email or django_settings.DEFAULT_FROM_EMAIL
    for recipient in recipients:
        send_mail(
            subject=subject,
            message=text,
            from_email=from_email,
            recipient_list=[recipient],
            html_message=html,
            fail_silently=False,
        )


def resolve_digest_sink(settings: CollectLogsSettings) -> DigestSink:
    if settings.digest_sink:
        return import_string(settings.digest_sink)

    def _email_sink(subject, text, html, recipients):
        send_digest_email(subject, text, html, recipients, settings.from_email)

    return _email_sink


# --------------------------------------------------------------------------- #
# Job
# --------------------------------------------------------------------------- #
def run_digest_job(
    *,
    settings: Optional[CollectLogsSettings] = None,
    store: Optional[ErrorStore] = None,
    sink: Optional[DigestSink] = None,
    since: Optional[datetime] = None,
    now: Optional[datetime] = None,
    persist_after_send: bool = False,
    dry_run: bool = False,
) -> DigestRunResult:
    """
    Send a digest of the error classes created since the last run.

    The watermark is advanced to ``now`` before the digest is built, so a
    failed send loses that window's digest instead of repeating it. With
    ``persist_after_send`` the watermark only moves once the sink returns.
    ``dry_run`` builds the digest without sending or moving the watermark.

    Raises:
        DigestDeliveryError: the sink failed.
    """
    settings = settings or get_collectlogs_settings()
    if not settings.send_new_errors_email and not dry_run:
        return DigestRunResult(status="disabled")
    recipients = tuple(settings.email_addresses)
    if not recipients and not dry_run:
        return DigestRunResult(status="no_recipients")

    store = store or DjangoErrorStore(settings.database)
    now = to_database_datetime(now or timezone.now())
    if since is None:
        since = get_watermark(settings.watermark_key, settings.database) or EPOCH
    since = to_database_datetime(since)

    advance_now = not dry_run and not persist_after_send
    if advance_now:
        set_watermark(now, settings.watermark_key, settings.database)

    logger.info("Retrieving new errors since %s", since.isoformat())
    digest = DigestReporter(store).build_digest(since)

    if dry_run:
        return DigestRunResult(status="dry_run", since=since, digest=digest, recipients=recipients)

    if digest.is_empty:
        if persist_after_send:
            set_watermark(now, settings.watermark_key, settings.database)
        return DigestRunResult(status="empty", since=since, digest=digest, recipients=recipients)

    sink = sink or resolve_digest_sink(settings)
    try:
        sink(settings.email_subject, digest.text, digest.html, recipients)
    except Exception as exc:
        logger.error("Failed to send error digest: %s", exc)
        raise DigestDeliveryError(
            f"Failed to send error digest: {exc}", recipients=recipients
        ) from exc

    if persist_after_send:
        set_watermark(now, settings.watermark_key, settings.database)
    logger.info("Sent digest of %s new errors to %s recipients", digest.count, len(recipients))
    return DigestRunResult(status="sent", since=since, digest=digest, recipients=recipients)


__all__ = [
    "Digest",
    "DigestReporter",
    "DigestRunResult",
    "get_watermark",
    "run_digest_job",
    "send_digest_email",
    "set_watermark",
]
