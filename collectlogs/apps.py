"""
Django app configuration for django-collectlogs.
"""

import logging

from django.apps import AppConfig

logger = logging.getLogger(__name__)


class CollectLogsConfig(AppConfig):
    """Django app configuration for the error collector."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "collectlogs"
    verbose_name = "Collect Logs"
    label = "collectlogs"

    def ready(self):
        """Connect signal receivers and check the digest configuration."""
        from . import signals  # noqa: F401
        from .config import get_collectlogs_settings

        settings = get_collectlogs_settings()
        if settings.send_new_errors_email and not settings.email_addresses:
            logger.warning(
                "COLLECTLOGS send_new_errors_email is enabled but no valid email_addresses are set"
            )
        logger.debug("django-collectlogs initialized")
