"""
Unit tests for COLLECTLOGS settings resolution.
"""

import logging
import os

import pytest
from django.conf import settings as django_settings
from django.test import override_settings

from collectlogs.config import extract_valid_emails, get_collectlogs_settings
from collectlogs import defaults
from collectlogs.defaults import merge_settings

pytestmark = pytest.mark.unit


def test_defaults():
    with override_settings(COLLECTLOGS={}):
        settings = get_collectlogs_settings()

    assert settings.enabled is True
    assert settings.database == "default"
    assert settings.message_rules == [(r" at 0x[0-9a-fA-F]+>", " at 0x?>")]
    assert "collectlogs" in settings.skip_frame_modules
    assert "password" in settings.redact_fields
    assert settings.capture_level == logging.WARNING
    assert settings.ignored_loggers == ["django.db.backends"]
    assert settings.project_root == str(django_settings.BASE_DIR)
    assert settings.log_dir == os.path.join(str(django_settings.BASE_DIR), "log")
    assert settings.send_new_errors_email is False
    assert settings.email_addresses == []


def test_overrides_are_normalised():
    with override_settings(
        COLLECTLOGS={
            "message_rules": [
                {"pattern": r"\d+", "replacement": "N"},
                ["id=\\w+", "id=?"],
                "not a rule",
            ],
            "capture_level": "error",
            "redact_fields": ["API_KEY"],
            "log_dir": "/var/log/shop",
            "log_to_file": True,
            "email_addresses": "ops@example.com\nnot-an-email\n  dev@example.com  \n",
            "send_new_errors_email": True,
        }
    ):
        settings = get_collectlogs_settings()

    assert settings.message_rules == [(r"\d+", "N"), ("id=\\w+", "id=?")]
    assert settings.capture_level == logging.ERROR
    assert settings.redact_fields == ["api_key"]
    assert settings.log_dir == "/var/log/shop"
    assert settings.log_to_file is True
    assert settings.email_addresses == ["ops@example.com", "dev@example.com"]


def test_settings_are_frozen():
    settings = get_collectlogs_settings()
    with pytest.raises(Exception):
        settings.enabled = False


def test_extract_valid_emails(caplog):
    with caplog.at_level(logging.WARNING, logger="collectlogs"):
        emails = extract_valid_emails(["a@example.com", "bad", "", None])
    assert emails == ["a@example.com"]
    assert "bad" in caplog.text
    assert extract_valid_emails(None) == []
    assert extract_valid_emails(42) == []


def test_merge_settings_is_deep():
    merged = merge_settings({"a": {"x": 1, "y": 2}, "b": 1}, {"a": {"y": 3}, "c": 4})
    assert merged == {"a": {"x": 1, "y": 3}, "b": 1, "c": 4}


def test_defaults_module_exports():
    assert sorted(defaults.__all__) == [
        "LIBRARY_DEFAULTS",
        "LIBRARY_NAME",
        "LIBRARY_VERSION",
        "merge_settings",
    ]
    assert all(hasattr(defaults, name) for name in defaults.__all__)
