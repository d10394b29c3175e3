"""
Unit tests for message normalisation rules.
"""

import pytest

from collectlogs.exceptions import InvalidRuleError
from collectlogs.normalizer import MessageNormalizer, compile_rule

pytestmark = pytest.mark.unit


def test_rules_apply_in_order_to_accumulated_result():
    normalizer = MessageNormalizer.from_rules(
        [
            (r"\d+", "N"),
            (r"id N", "id ?"),
        ]
    )
    assert normalizer.normalize("order id 42 failed after 3 tries") == (
        "order id ? failed after N tries"
    )


def test_rule_order_changes_result():
    assert MessageNormalizer.from_rules([("b", "c"), ("c", "d")]).normalize("abc") == "add"
    assert MessageNormalizer.from_rules([("c", "d"), ("b", "c")]).normalize("abc") == "acd"


def test_malformed_pattern_is_skipped():
    normalizer = MessageNormalizer.from_rules(
        [
            (r"(unclosed", "x"),
            (r"\d+", "N"),
        ]
    )
    assert normalizer.normalize("value 12") == "value N"


def test_bad_group_reference_is_skipped():
    normalizer = MessageNormalizer.from_rules([(r"abc", r"\9"), (r"b", "B")])
    assert normalizer.normalize("abc") == "aBc"


def test_default_object_address_rule():
    normalizer = MessageNormalizer.from_rules([(r" at 0x[0-9a-fA-F]+>", " at 0x?>")])
    assert normalizer.normalize("<Foo object at 0x7f3a2c>") == "<Foo object at 0x?>"


def test_rules_are_loaded_once_until_invalidated():
    calls = []
    rules = [(r"\d+", "N")]

    def loader():
        calls.append(1)
        return list(rules)

    normalizer = MessageNormalizer(loader)
    assert normalizer.normalize("a1") == "aN"
    rules.append((r"a", "A"))
    assert normalizer.normalize("a1") == "aN"
    assert len(calls) == 1

    normalizer.invalidate()
    assert normalizer.normalize("a1") == "AN"
    assert len(calls) == 2


def test_loader_failure_returns_raw_message():
    def loader():
        raise RuntimeError("database down")

    normalizer = MessageNormalizer(loader)
    assert normalizer.normalize("raw 1") == "raw 1"


def test_none_message_becomes_empty_string():
    assert MessageNormalizer.from_rules([]).normalize(None) == ""


def test_compile_rule_rejects_invalid_patterns():
    with pytest.raises(InvalidRuleError) as excinfo:
        compile_rule("(", "x")
    assert excinfo.value.pattern == "("

    with pytest.raises(InvalidRuleError):
        compile_rule("a", r"\2")

    assert compile_rule(r"(\d+)", r"<\1>").sub(r"<\1>", "a1") == "a<1>"
