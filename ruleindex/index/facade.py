from __future__ import annotations

from ruleindex.core.config import Settings, get_settings
from ruleindex.domain.documents import ActiveRuleDocument
from ruleindex.domain.keys import ActiveRuleKey, RuleKey
from ruleindex.index.query import PROFILE_KEY_FIELD, RULE_KEY_FIELD, ActiveRuleQuery
from ruleindex.index.refresh import VisibilityController
from ruleindex.index.store import DocumentIndex
from ruleindex.index.writer import ActiveRuleIndexWriter


class ActiveRuleIndex:
    """Active rule index: write path, refresh barrier and read path over one store.

    Reads only see writes covered by a completed refresh. Callers needing
    read-after-write must ``await refresh()`` between the two; otherwise
    visibility follows the periodic refresher, if started.
    """

    def __init__(
        self,
        store: DocumentIndex,
        *,
        writer: ActiveRuleIndexWriter | None = None,
        visibility: VisibilityController | None = None,
        query: ActiveRuleQuery | None = None,
        refresh_interval_s: float = 0.0,
    ) -> None:
        self.store = store
        self.writer = writer or ActiveRuleIndexWriter(store)
        self.visibility = visibility or VisibilityController(store)
        self.query = query or ActiveRuleQuery(store)
        self.refresh_interval_s = refresh_interval_s

    async def upsert(self, document: ActiveRuleDocument) -> None:
        await self.writer.upsert(document)

    async def remove(self, key: ActiveRuleKey) -> None:
        await self.writer.remove(key)

    async def refresh(self, timeout_s: float | None = None) -> int:
        return await self.visibility.refresh(timeout_s)

    def get_by_key(self, key: ActiveRuleKey | str) -> ActiveRuleDocument | None:
        return self.query.get_by_key(key)

    def find_by_rule(self, rule_key: RuleKey | str) -> list[ActiveRuleDocument]:
        return self.query.find_by_rule(rule_key)

    def find_by_profile(self, profile_key: str) -> list[ActiveRuleDocument]:
        return self.query.find_by_profile(profile_key)

    def start(self) -> None:
        # Must run inside the event loop; a zero interval leaves visibility to explicit refreshes.
        self.store.start_periodic_refresh(self.refresh_interval_s)

    def reset(self) -> None:
        # Test isolation: drop every document without rebuilding collaborators.
        self.store.reset()

    async def close(self) -> None:
        await self.store.close()


def build_active_rule_index(settings: Settings | None = None) -> ActiveRuleIndex:
    settings = settings or get_settings()
    store = DocumentIndex(settings.index_name, keyword_fields=(RULE_KEY_FIELD, PROFILE_KEY_FIELD))
    return ActiveRuleIndex(
        store,
        writer=ActiveRuleIndexWriter(store, parent_chain_max_depth=settings.index_parent_chain_max_depth),
        visibility=VisibilityController(store, default_timeout_s=settings.index_refresh_timeout_s),
        query=ActiveRuleQuery(store),
        refresh_interval_s=settings.index_refresh_interval_s,
    )
