from __future__ import annotations

from ruleindex.domain.documents import ActiveRuleDocument
from ruleindex.domain.keys import ActiveRuleKey, RuleKey, coerce_active_rule_key, coerce_rule_key
from ruleindex.index.store import DocumentIndex


RULE_KEY_FIELD = "ruleKey"
PROFILE_KEY_FIELD = "profileKey"


class ActiveRuleQuery:
    """Read path: exact lookups against the last refreshed snapshot. Never mutates the index."""

    def __init__(self, store: DocumentIndex) -> None:
        self._store = store

    def get_by_key(self, key: ActiveRuleKey | str) -> ActiveRuleDocument | None:
        # Absence is a normal outcome (rule never activated in that profile).
        source = self._store.get(str(coerce_active_rule_key(key)))
        if source is None:
            return None
        return ActiveRuleDocument.from_source(source)

    def find_by_rule(self, rule_key: RuleKey | str) -> list[ActiveRuleDocument]:
        """Every visible activation of ``rule_key``, one per key, ordered by key."""
        rule_key = coerce_rule_key(rule_key)
        return [ActiveRuleDocument.from_source(source) for source in self._store.term(RULE_KEY_FIELD, str(rule_key))]

    def find_by_profile(self, profile_key: str) -> list[ActiveRuleDocument]:
        return [ActiveRuleDocument.from_source(source) for source in self._store.term(PROFILE_KEY_FIELD, profile_key)]

    def count(self) -> int:
        return self._store.count()
