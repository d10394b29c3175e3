"""
Management command sending the digest of newly seen errors.

Schedule it periodically (cron, celery beat, systemd timer)::

    python manage.py collectlogs_digest
"""

import logging
from typing import Any

from django.core.management.base import BaseCommand, CommandError
from django.utils.dateparse import parse_datetime

from collectlogs.digest import run_digest_job
from collectlogs.exceptions import DigestDeliveryError
from collectlogs.utils import to_database_datetime

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """
    Build and send the new-errors digest.
    """

    help = "Send a digest of the error classes created since the last run."

    def add_arguments(self, parser):
        parser.add_argument(
            "--since",
            type=str,
            help="ISO timestamp to report from instead of the stored watermark",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Print the digest without sending it or moving the watermark",
        )
        parser.add_argument(
            "--persist-after-send",
            action="store_true",
            help="Only move the watermark once the digest has been sent",
        )

    def handle(self, *args, **options):
        since = self._parse_since(options.get("since"))
        dry_run = options["dry_run"]

        try:
            result = run_digest_job(
                since=since,
                dry_run=dry_run,
                persist_after_send=options["persist_after_send"],
            )
        except DigestDeliveryError as e:
            raise CommandError(str(e)) from e

        if result.status == "disabled":
            self.stdout.write(self.style.WARNING("Digest emails are disabled (send_new_errors_email)."))
        elif result.status == "no_recipients":
            self.stdout.write(self.style.WARNING("No valid email_addresses configured."))
        elif result.status == "empty":
            self.stdout.write("No new errors.")
        elif result.status == "dry_run":
            self.stdout.write(f"{result.count} new error(s) since {result.since.isoformat()}")
            if result.digest.text:
                self.stdout.write(result.digest.text)
        else:
            self.stdout.write(
                self.style.SUCCESS(
                    f"Sent digest of {result.count} new error(s) to {len(result.recipients)} recipient(s)"
                )
            )

    def _parse_since(self, value: Any):
        if not value:
            return None
        parsed = parse_datetime(value)
        if parsed is None:
            raise CommandError(f"Invalid --since timestamp: {value}")
        return to_database_datetime(parsed)
