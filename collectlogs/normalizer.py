"""
Message normalisation.

Raw error messages carry variable data (ids, paths, timestamps, object
addresses). ``MessageNormalizer`` rewrites them into a generic form by
applying an ordered list of regular expression substitutions, so that
recurring errors with different payloads share one fingerprint.
"""

from __future__ import annotations

import logging
import re
import threading
from typing import Callable, Iterable, Optional

from .exceptions import InvalidRuleError

logger = logging.getLogger(__name__)

RuleLoader = Callable[[], Iterable[tuple[str, str]]]


def compile_rule(pattern: str, replacement: str) -> re.Pattern:
    """Compile a rule and check its replacement template, raising ``InvalidRuleError``."""
    try:
        compiled = re.compile(pattern)
    except re.error as exc:
        raise InvalidRuleError(pattern, str(exc)) from exc
    try:
        # The template is parsed before matching, so bad group references fail here.
        compiled.sub(replacement, "")
    except (re.error, IndexError) as exc:
        raise InvalidRuleError(pattern, str(exc)) from exc
    return compiled


def load_rules_from_database(using: Optional[str] = None) -> list[tuple[str, str]]:
    from .models import MessageRule

    queryset = MessageRule.objects.filter(enabled=True).order_by("position", "id")
    if using:
        queryset = queryset.using(using)
    return list(queryset.values_list("pattern", "replacement"))


class MessageNormalizer:
    """
    Apply ordered pattern substitutions to error messages.

    The rule set is loaded lazily on the first ``normalize`` call and kept
    until ``invalidate`` is called. Rules that fail to compile or to apply
    are skipped; ``normalize`` itself never raises.
    """

    def __init__(self, loader: RuleLoader):
        self._loader = loader
        self._rules: Optional[list[tuple[re.Pattern, str]]] = None
        self._lock = threading.Lock()

    @classmethod
    def from_rules(cls, rules: Iterable[tuple[str, str]]) -> "MessageNormalizer":
        rules = list(rules)
        return cls(lambda: rules)

    @property
    def rules(self) -> list[tuple[re.Pattern, str]]:
        rules = self._rules
        if rules is None:
            with self._lock:
                if self._rules is None:
                    self._rules = self._load()
                rules = self._rules
        return rules

    def invalidate(self) -> None:
        """Drop the cached rule set; the next call reloads it."""
        with self._lock:
            self._rules = None

    def normalize(self, message: str) -> str:
        result = "" if message is None else str(message)
        try:
            rules = self.rules
        except Exception as exc:
            logger.warning("Could not load message rules: %s", exc)
            return result
        for pattern, replacement in rules:
            try:
                result = pattern.sub(replacement, result)
            except (re.error, IndexError) as exc:
                logger.debug("Skipping message rule %r: %s", pattern.pattern, exc)
        return result

    def _load(self) -> list[tuple[re.Pattern, str]]:
        compiled: list[tuple[re.Pattern, str]] = []
        for pattern, replacement in self._loader():
            try:
                compiled.append((compile_rule(pattern, replacement), replacement))
            except InvalidRuleError as exc:
                logger.debug("%s", exc)
        return compiled


__all__ = ["MessageNormalizer", "compile_rule", "load_rules_from_database"]
