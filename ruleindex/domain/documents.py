from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ruleindex.domain.enums import Inheritance, Severity
from ruleindex.domain.keys import ActiveRuleKey, RuleKey


@dataclass(frozen=True)
class ActiveRuleDocument:
    """Denormalized index form of one activation.

    ``params`` maps parameter name to string value. Documents compare by value,
    so a document read back from the index equals the one that was written.
    They are unhashable because ``params`` is a dict; queries return lists
    holding at most one document per key.
    """

    key: ActiveRuleKey
    rule_key: RuleKey
    profile_key: str
    severity: Severity
    inheritance: Inheritance = Inheritance.NONE
    parent_key: ActiveRuleKey | None = None
    params: dict[str, str] = field(default_factory=dict)

    def to_source(self) -> dict[str, Any]:
        # Source field names follow the stored document layout, not Python naming.
        return {
            "key": str(self.key),
            "ruleKey": str(self.rule_key),
            "profileKey": self.profile_key,
            "severity": self.severity.value,
            "inheritance": self.inheritance.value,
            "parentKey": str(self.parent_key) if self.parent_key is not None else None,
            "params": dict(self.params),
        }

    @classmethod
    def from_source(cls, source: dict[str, Any]) -> ActiveRuleDocument:
        parent = source.get("parentKey")
        return cls(
            key=ActiveRuleKey.parse(source["key"]),
            rule_key=RuleKey.parse(source["ruleKey"]),
            profile_key=source["profileKey"],
            severity=Severity.parse(source["severity"]),
            inheritance=Inheritance.parse(source.get("inheritance")),
            parent_key=ActiveRuleKey.parse(parent) if parent else None,
            params={str(name): str(value) for name, value in (source.get("params") or {}).items()},
        )
