"""
Default configuration for the collectlogs app.

Every setting the collector consumes is declared here. Projects override
any subset through the ``COLLECTLOGS`` dictionary in their Django settings;
``collectlogs.config.get_collectlogs_settings`` merges both.
"""

from __future__ import annotations

from typing import Any

LIBRARY_VERSION = "1.0.0"
LIBRARY_NAME = "django-collectlogs"


# --------------------------------------------------------------------------- #
# Library-wide defaults
# --------------------------------------------------------------------------- #
LIBRARY_DEFAULTS: dict[str, Any] = {
    "collectlogs": {
        "enabled": True,
        # Database alias used for every read and write of the error catalogue.
        "database": "default",
        # Normalisation rules applied before the persisted MessageRule rows.
        "message_rules": [
            [r" at 0x[0-9a-fA-F]+>", " at 0x?>"],
        ],
        # Frames from these modules are skipped when locating the error site.
        "skip_frame_modules": [
            "logging",
            "collectlogs",
            "django.utils.log",
            "warnings",
        ],
        "project_root": None,
        "redact_fields": [
            "password",
            "token",
            "secret",
            "authorization",
            "sessionid",
            "csrftoken",
            "csrfmiddlewaretoken",
        ],
        "redaction_mask": "***REDACTED***",
        "argument_max_length": 80,
        # File sink
        "log_to_file": False,
        "log_to_file_new_only": False,
        "log_to_file_min_severity": 1,
        "log_dir": None,
        "log_file_pattern": "collect_%Y%m%d.log",
        # Digest
        "send_new_errors_email": False,
        "email_addresses": [],
        "email_subject": "New errors detected",
        "from_email": None,
        "digest_sink": None,
        "watermark_key": "default",
        # Handler
        "capture_level": "WARNING",
        "ignored_loggers": ["django.db.backends"],
        "report_failures_to_sentry": False,
    },
}


# --------------------------------------------------------------------------- #
# Helper functions
# --------------------------------------------------------------------------- #
def merge_settings(*settings_dicts: dict[str, Any]) -> dict[str, Any]:
    """
    Merge multiple settings dictionaries with deep merging for nested dicts.
    Later dictionaries override earlier ones.
    """
    result: dict[str, Any] = {}
    for settings_dict in settings_dicts:
        for key, value in settings_dict.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = merge_settings(result[key], value)
            else:
                result[key] = value
    return result


__all__ = [
    "LIBRARY_DEFAULTS",
    "LIBRARY_NAME",
    "LIBRARY_VERSION",
    "merge_settings",
]
