from __future__ import annotations

import pytest

from ruleindex.core.errors import InvalidKeyError
from ruleindex.domain.keys import ActiveRuleKey, RuleKey, coerce_active_rule_key, coerce_rule_key


def test_rule_key_parse_and_format() -> None:
    key = RuleKey.parse("javascript:S001")
    assert key == RuleKey.of("javascript", "S001")
    assert str(key) == "javascript:S001"


def test_rule_key_keeps_separator_in_rule_part() -> None:
    # Only the repository is split off; rule identifiers may contain the separator.
    key = RuleKey.parse("common:xpath:custom")
    assert key.repository == "common"
    assert key.rule == "xpath:custom"


@pytest.mark.parametrize("value", ["", "javascript", ":S001", "javascript:"])
def test_rule_key_rejects_malformed(value: str) -> None:
    with pytest.raises(InvalidKeyError):
        RuleKey.parse(value)


def test_active_rule_key_is_derived_from_profile_and_rule() -> None:
    key = ActiveRuleKey.of("myprofile", RuleKey.of("javascript", "S001"))
    assert str(key) == "myprofile:javascript:S001"
    assert ActiveRuleKey.parse("myprofile:javascript:S001") == key
    # Same inputs always produce an equal, hashable key.
    assert {key, ActiveRuleKey.of("myprofile", RuleKey.parse("javascript:S001"))} == {key}


@pytest.mark.parametrize("value", ["myprofile", "myprofile:javascript", ":javascript:S001"])
def test_active_rule_key_rejects_malformed(value: str) -> None:
    with pytest.raises(InvalidKeyError):
        ActiveRuleKey.parse(value)


def test_active_rule_key_rejects_profile_with_separator() -> None:
    with pytest.raises(InvalidKeyError):
        ActiveRuleKey.of("my:profile", RuleKey.of("javascript", "S001"))


def test_coerce_accepts_strings_and_keys() -> None:
    rule_key = RuleKey.of("javascript", "S001")
    assert coerce_rule_key("javascript:S001") == rule_key
    assert coerce_rule_key(rule_key) is rule_key
    assert coerce_active_rule_key("p1:javascript:S001") == ActiveRuleKey.of("p1", rule_key)
