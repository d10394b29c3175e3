"""Configuration helpers for the error collector."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from django.conf import settings as django_settings
from django.core.exceptions import ValidationError
from django.core.validators import validate_email

from .defaults import LIBRARY_DEFAULTS, merge_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CollectLogsSettings:
    enabled: bool = True
    database: str = "default"
    message_rules: list[tuple[str, str]] = field(default_factory=list)
    skip_frame_modules: list[str] = field(default_factory=list)
    project_root: Optional[str] = None
    redact_fields: list[str] = field(default_factory=list)
    redaction_mask: str = "***REDACTED***"
    argument_max_length: int = 80
    log_to_file: bool = False
    log_to_file_new_only: bool = False
    log_to_file_min_severity: int = 1
    log_dir: Optional[str] = None
    log_file_pattern: str = "collect_%Y%m%d.log"
    send_new_errors_email: bool = False
    email_addresses: list[str] = field(default_factory=list)
    email_subject: str = "New errors detected"
    from_email: Optional[str] = None
    digest_sink: Optional[str] = None
    watermark_key: str = "default"
    capture_level: int = logging.WARNING
    ignored_loggers: list[str] = field(default_factory=list)
    report_failures_to_sentry: bool = False


def get_collectlogs_settings() -> CollectLogsSettings:
    defaults = LIBRARY_DEFAULTS.get("collectlogs", {})
    merged = dict(defaults)

    external = getattr(django_settings, "COLLECTLOGS", None)
    if isinstance(external, dict):
        merged = merge_settings(merged, external)

    return _build_settings(merged)


def _build_settings(config: dict[str, Any]) -> CollectLogsSettings:
    project_root = _coerce_optional_str(config.get("project_root"))
    if project_root is None:
        base_dir = getattr(django_settings, "BASE_DIR", None)
        project_root = str(base_dir) if base_dir else None

    log_dir = _coerce_optional_str(config.get("log_dir"))
    if log_dir is None and project_root:
        log_dir = str(Path(project_root) / "log")

    return CollectLogsSettings(
        enabled=bool(config.get("enabled", True)),
        database=str(config.get("database") or "default"),
        message_rules=_normalize_rules(config.get("message_rules")),
        skip_frame_modules=_normalize_list(config.get("skip_frame_modules")),
        project_root=project_root,
        redact_fields=[name.lower() for name in _normalize_list(config.get("redact_fields"))],
        redaction_mask=str(config.get("redaction_mask", "***REDACTED***")),
        argument_max_length=int(config.get("argument_max_length", 80) or 80),
        log_to_file=bool(config.get("log_to_file", False)),
        log_to_file_new_only=bool(config.get("log_to_file_new_only", False)),
        log_to_file_min_severity=int(config.get("log_to_file_min_severity", 1) or 1),
        log_dir=log_dir,
        log_file_pattern=str(
            config.get("log_file_pattern") or "collect_%Y%m%d.log"
        ),
        send_new_errors_email=bool(config.get("send_new_errors_email", False)),
        email_addresses=extract_valid_emails(config.get("email_addresses")),
        email_subject=str(config.get("email_subject") or "New errors detected"),
        from_email=_coerce_optional_str(config.get("from_email")),
        digest_sink=_coerce_optional_str(config.get("digest_sink")),
        watermark_key=str(config.get("watermark_key") or "default"),
        capture_level=_normalize_level(config.get("capture_level")),
        ignored_loggers=_normalize_list(config.get("ignored_loggers")),
        report_failures_to_sentry=bool(
            config.get("report_failures_to_sentry", False)
        ),
    )


def extract_valid_emails(value: Any) -> list[str]:
    """Split a newline separated string (or list) and keep valid addresses."""
    if not value:
        return []
    if isinstance(value, str):
        candidates = value.splitlines()
    elif isinstance(value, (list, tuple, set)):
        candidates = list(value)
    else:
        return []

    emails: list[str] = []
    for candidate in candidates:
        address = str(candidate or "").strip()
        if not address:
            continue
        try:
            validate_email(address)
        except ValidationError:
            logger.warning("Ignoring invalid digest email address: %s", address)
            continue
        emails.append(address)
    return emails


def _normalize_rules(value: Any) -> list[tuple[str, str]]:
    if not value:
        return []
    rules: list[tuple[str, str]] = []
    for item in value:
        if isinstance(item, dict):
            pattern, replacement = item.get("pattern"), item.get("replacement", "")
        elif isinstance(item, (list, tuple)) and len(item) == 2:
            pattern, replacement = item
        else:
            logger.warning("Ignoring malformed message rule: %r", item)
            continue
        if not pattern:
            continue
        rules.append((str(pattern), str(replacement or "")))
    return rules


def _normalize_list(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, (list, tuple, set)):
        items = value
    else:
        items = [value]
    normalized: list[str] = []
    for item in items:
        if item is None:
            continue
        text = str(item).strip()
        if text:
            normalized.append(text)
    return normalized


def _normalize_level(value: Any) -> int:
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value:
        level = logging.getLevelName(value.upper())
        if isinstance(level, int):
            return level
    return logging.WARNING


def _coerce_optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
