from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from ruleindex.core.config import Settings, get_settings
from ruleindex.domain.keys import ActiveRuleKey, RuleKey
from ruleindex.domain.models import ActiveRule, ActiveRuleParam
from ruleindex.index.facade import ActiveRuleIndex
from ruleindex.index.projector import project_active_rule
from ruleindex.persistence.repos import active_rules as active_rules_repo
from ruleindex.services.telemetry import increment_counter


logger = logging.getLogger(__name__)


_CHANGES_KEY = "ruleindex.active_rule_changes"
_TRACKED_KEY = "ruleindex.tracked"


class DeletePolicy(str, Enum):
    # IGNORE leaves the stale document in place; SYNC removes it right after commit.
    IGNORE = "ignore"
    SYNC = "sync"

    @classmethod
    def parse(cls, value: str | DeletePolicy) -> DeletePolicy:
        if isinstance(value, DeletePolicy):
            return value
        try:
            return cls(value.lower())
        except ValueError as exc:
            raise ValueError(f"unknown delete policy: {value!r}") from exc


@dataclass
class _PendingChanges:
    upserted_ids: set[int] = field(default_factory=set)
    deleted_keys: set[ActiveRuleKey] = field(default_factory=set)

    def clear(self) -> None:
        self.upserted_ids.clear()
        self.deleted_keys.clear()


@dataclass(frozen=True)
class SyncResult:
    indexed: list[ActiveRuleKey]
    removed: list[ActiveRuleKey]
    skipped_deletes: list[ActiveRuleKey]


def _changes(session: Session) -> _PendingChanges:
    return session.info.setdefault(_CHANGES_KEY, _PendingChanges())


def _before_flush(session: Session, _flush_context, _instances) -> None:
    # Keys of deleted rows must be captured while the row and its relations still load.
    changes = _changes(session)
    for obj in session.deleted:
        if isinstance(obj, ActiveRule):
            changes.deleted_keys.add(obj.key)
        elif isinstance(obj, ActiveRuleParam) and obj.active_rule_id is not None:
            changes.upserted_ids.add(obj.active_rule_id)


def _after_flush(session: Session, _flush_context) -> None:
    # Generated ids exist only after the INSERTs ran.
    changes = _changes(session)
    for obj in list(session.new) + list(session.dirty):
        if isinstance(obj, ActiveRule) and obj.id is not None:
            changes.upserted_ids.add(obj.id)
        elif isinstance(obj, ActiveRuleParam) and obj.active_rule_id is not None:
            changes.upserted_ids.add(obj.active_rule_id)


def _after_rollback(session: Session) -> None:
    # Rolled back rows never reach the index.
    _changes(session).clear()


class ActiveRuleSynchronizer:
    """Keeps the active rule index in step with committed relational rows.

    Sessions must be registered with ``track`` before their first write;
    ``commit`` then commits the session and projects every activation touched
    by the transaction. Only rows re-read after a successful commit are
    indexed, so rolled back changes never reach the index.
    """

    def __init__(self, index: ActiveRuleIndex, *, delete_policy: DeletePolicy | str = DeletePolicy.IGNORE) -> None:
        self._index = index
        self._delete_policy = DeletePolicy.parse(delete_policy)

    @classmethod
    def from_settings(cls, index: ActiveRuleIndex, settings: Settings | None = None) -> ActiveRuleSynchronizer:
        settings = settings or get_settings()
        return cls(index, delete_policy=settings.sync_delete_policy)

    @property
    def delete_policy(self) -> DeletePolicy:
        return self._delete_policy

    def track(self, session: AsyncSession) -> AsyncSession:
        sync_session = session.sync_session
        if sync_session.info.get(_TRACKED_KEY):
            return session
        event.listen(sync_session, "before_flush", _before_flush)
        event.listen(sync_session, "after_flush", _after_flush)
        event.listen(sync_session, "after_rollback", _after_rollback)
        sync_session.info[_TRACKED_KEY] = True
        return session

    async def commit(self, session: AsyncSession) -> SyncResult:
        self.track(session)
        await session.commit()
        changes = _changes(session.sync_session)
        upserted_ids = set(changes.upserted_ids)
        deleted_keys = set(changes.deleted_keys)

        # The change set is only drained once indexing succeeds; a failed batch is retried on the next commit.
        rows = await active_rules_repo.load_for_indexing(session, upserted_ids)
        indexed = await self._index_rows(session, rows)
        changes.upserted_ids.difference_update(upserted_ids)
        # A row updated and then deleted in the same transaction is a delete.
        live_keys = set(indexed)
        removed, skipped = await self._propagate_deletes(sorted(deleted_keys - live_keys))
        changes.deleted_keys.difference_update(deleted_keys)
        return SyncResult(indexed=indexed, removed=removed, skipped_deletes=skipped)

    async def index_rule(self, session: AsyncSession, rule_key: RuleKey) -> list[ActiveRuleKey]:
        rows = await active_rules_repo.list_for_indexing(session, rule_key)
        return await self._index_rows(session, rows)

    async def index_key(self, session: AsyncSession, key: ActiveRuleKey) -> bool:
        row = await active_rules_repo.get_for_indexing(session, key)
        if row is None:
            return False
        await self._index_rows(session, [row])
        return True

    async def reindex_all(self, session: AsyncSession) -> list[ActiveRuleKey]:
        rows = await active_rules_repo.list_for_indexing(session)
        indexed = await self._index_rows(session, rows)
        logger.info("active_rule_reindex_completed count=%s", len(indexed))
        return indexed

    async def _index_rows(self, session: AsyncSession, rows: list[ActiveRule]) -> list[ActiveRuleKey]:
        parent_keys = await active_rules_repo.parent_keys_for(session, rows)
        # Project everything first so an unparseable row fails before any write.
        documents = [project_active_rule(row, parent_key=parent_keys.get(row.parent_id)) for row in rows]
        await self._index.writer.upsert_all(documents)
        if documents:
            increment_counter("active_rule_sync.indexed", len(documents))
        return [document.key for document in documents]

    async def _propagate_deletes(
        self, keys: list[ActiveRuleKey]
    ) -> tuple[list[ActiveRuleKey], list[ActiveRuleKey]]:
        if not keys:
            return [], []
        if self._delete_policy is DeletePolicy.IGNORE:
            increment_counter("active_rule_sync.deletes_ignored", len(keys))
            for key in keys:
                logger.warning("active_rule_delete_not_propagated key=%s", key)
            return [], keys
        for key in keys:
            await self._index.remove(key)
        return keys, []
