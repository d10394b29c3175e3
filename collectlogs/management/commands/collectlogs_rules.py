"""
Management command for message normalisation rules.
"""

import logging
from typing import Any

from django.core.management.base import BaseCommand, CommandError
from django.db.models import Max

from collectlogs.config import get_collectlogs_settings
from collectlogs.exceptions import InvalidRuleError
from collectlogs.models import MessageRule
from collectlogs.normalizer import MessageNormalizer, compile_rule, load_rules_from_database

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """
    List, add, remove and try out message normalisation rules.
    """

    help = "Manage message normalisation rules: list, add, remove, test."

    def add_arguments(self, parser):
        subparsers = parser.add_subparsers(dest="action", required=True)

        subparsers.add_parser("list", help="List configured and stored rules")

        add_parser = subparsers.add_parser("add", help="Store a new rule")
        add_parser.add_argument("pattern", help="Regular expression to match")
        add_parser.add_argument("replacement", help="Replacement template")
        add_parser.add_argument(
            "--position",
            type=int,
            help="Ordering position (defaults to after the last stored rule)",
        )
        add_parser.add_argument("--description", default="", help="Free text note")

        remove_parser = subparsers.add_parser("remove", help="Delete a stored rule")
        remove_parser.add_argument("rule_id", type=int, help="Id of the rule to delete")

        test_parser = subparsers.add_parser("test", help="Normalise a sample message")
        test_parser.add_argument("message", help="Raw error message")

    def handle(self, *args, **options):
        action = options["action"]

        if action == "list":
            self._handle_list(options)
        elif action == "add":
            self._handle_add(options)
        elif action == "remove":
            self._handle_remove(options)
        elif action == "test":
            self._handle_test(options)

    def _handle_list(self, options: dict[str, Any]):
        settings = get_collectlogs_settings()
        self.stdout.write("Configured rules (COLLECTLOGS['message_rules']):")
        for pattern, replacement in settings.message_rules:
            self.stdout.write(f"  {pattern!r} -> {replacement!r}")

        self.stdout.write("Stored rules:")
        for rule in MessageRule.objects.using(settings.database).order_by("position", "id"):
            state = "" if rule.enabled else " (disabled)"
            self.stdout.write(
                f"  #{rule.pk} [{rule.position}] {rule.pattern!r} -> {rule.replacement!r}{state}"
            )

    def _handle_add(self, options: dict[str, Any]):
        pattern = options["pattern"]
        replacement = options["replacement"]
        try:
            compile_rule(pattern, replacement)
        except InvalidRuleError as e:
            raise CommandError(str(e)) from e

        database = get_collectlogs_settings().database
        position = options.get("position")
        if position is None:
            last = MessageRule.objects.using(database).aggregate(last=Max("position"))["last"]
            position = 0 if last is None else last + 1

        rule = MessageRule.objects.using(database).create(
            pattern=pattern,
            replacement=replacement,
            position=position,
            description=options.get("description") or "",
        )
        self.stdout.write(self.style.SUCCESS(f"Added rule #{rule.pk} at position {position}"))

    def _handle_remove(self, options: dict[str, Any]):
        database = get_collectlogs_settings().database
        rule = MessageRule.objects.using(database).filter(pk=options["rule_id"]).first()
        if rule is None:
            raise CommandError(f"No rule with id {options['rule_id']}")
        rule.delete()
        self.stdout.write(self.style.SUCCESS(f"Removed rule #{options['rule_id']}"))

    def _handle_test(self, options: dict[str, Any]):
        settings = get_collectlogs_settings()
        rules = list(settings.message_rules) + load_rules_from_database(settings.database)
        normalizer = MessageNormalizer.from_rules(rules)
        self.stdout.write(normalizer.normalize(options["message"]))
