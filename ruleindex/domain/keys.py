from __future__ import annotations

from dataclasses import dataclass

from ruleindex.core.errors import InvalidKeyError


SEPARATOR = ":"


@dataclass(frozen=True, order=True)
class RuleKey:
    """Identifies a rule as ``repository:rule``.

    The repository part never contains the separator; the rule part may, so
    parsing splits on the first separator only.
    """

    repository: str
    rule: str

    def __post_init__(self) -> None:
        if not self.repository or not self.rule:
            raise InvalidKeyError(f"rule key parts must be non-empty: {self.repository!r}, {self.rule!r}")
        if SEPARATOR in self.repository:
            raise InvalidKeyError(f"repository must not contain '{SEPARATOR}': {self.repository!r}")

    @classmethod
    def of(cls, repository: str, rule: str) -> RuleKey:
        return cls(repository=repository, rule=rule)

    @classmethod
    def parse(cls, value: str) -> RuleKey:
        repository, sep, rule = (value or "").partition(SEPARATOR)
        if not sep:
            raise InvalidKeyError(f"rule key must look like 'repository{SEPARATOR}rule': {value!r}")
        return cls(repository=repository, rule=rule)

    def __str__(self) -> str:
        return f"{self.repository}{SEPARATOR}{self.rule}"


@dataclass(frozen=True, order=True)
class ActiveRuleKey:
    """Composite identifier of one activation: ``profile:repository:rule``."""

    profile_key: str
    rule_key: RuleKey

    def __post_init__(self) -> None:
        if not self.profile_key:
            raise InvalidKeyError("profile key must be non-empty")
        if SEPARATOR in self.profile_key:
            raise InvalidKeyError(f"profile key must not contain '{SEPARATOR}': {self.profile_key!r}")
        if not isinstance(self.rule_key, RuleKey):
            raise InvalidKeyError(f"rule key must be a RuleKey, got {type(self.rule_key).__name__}")

    @classmethod
    def of(cls, profile_key: str, rule_key: RuleKey) -> ActiveRuleKey:
        return cls(profile_key=profile_key, rule_key=rule_key)

    @classmethod
    def parse(cls, value: str) -> ActiveRuleKey:
        profile_key, sep, rest = (value or "").partition(SEPARATOR)
        if not sep:
            raise InvalidKeyError(f"active rule key must look like 'profile{SEPARATOR}repository{SEPARATOR}rule': {value!r}")
        return cls(profile_key=profile_key, rule_key=RuleKey.parse(rest))

    def __str__(self) -> str:
        return f"{self.profile_key}{SEPARATOR}{self.rule_key}"


def coerce_rule_key(value: RuleKey | str) -> RuleKey:
    # Query callers may hand over the string form from an API or CLI.
    if isinstance(value, RuleKey):
        return value
    return RuleKey.parse(value)


def coerce_active_rule_key(value: ActiveRuleKey | str) -> ActiveRuleKey:
    if isinstance(value, ActiveRuleKey):
        return value
    return ActiveRuleKey.parse(value)
