from __future__ import annotations

from typing import Iterable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ruleindex.core.errors import DatabaseError
from ruleindex.domain.keys import ActiveRuleKey, RuleKey
from ruleindex.domain.models import ActiveRule, ActiveRuleParam, QualityProfile, Rule


def _indexing_query():
    # Eager-load everything projection touches; async sessions cannot lazy load.
    # populate_existing re-reads rows so stale identity-map state never reaches the index.
    # Parents are resolved by parent_keys_for, never loaded as entities here: a parent that
    # is also in the result would be repopulated and lose its loaded params.
    return (
        select(ActiveRule)
        .options(selectinload(ActiveRule.params))
        .execution_options(populate_existing=True)
    )


async def insert_active_rule(session: AsyncSession, active_rule: ActiveRule) -> ActiveRule:
    session.add(active_rule)
    await session.flush()
    return active_rule


async def add_param(session: AsyncSession, active_rule: ActiveRule, param: ActiveRuleParam) -> ActiveRuleParam:
    param.active_rule = active_rule
    session.add(param)
    await session.flush()
    return param


async def find_by_rule(session: AsyncSession, rule: Rule) -> list[ActiveRule]:
    result = await session.execute(select(ActiveRule).where(ActiveRule.rule_id == rule.id).order_by(ActiveRule.id))
    return list(result.scalars().all())


async def find_params_by_active_rule(session: AsyncSession, active_rule: ActiveRule) -> list[ActiveRuleParam]:
    result = await session.execute(
        select(ActiveRuleParam)
        .where(ActiveRuleParam.active_rule_id == active_rule.id)
        .order_by(ActiveRuleParam.id)
    )
    return list(result.scalars().all())


async def load_for_indexing(session: AsyncSession, active_rule_ids: Iterable[int]) -> list[ActiveRule]:
    ids = sorted(set(active_rule_ids))
    if not ids:
        return []
    try:
        result = await session.execute(_indexing_query().where(ActiveRule.id.in_(ids)).order_by(ActiveRule.id))
        return list(result.scalars().unique().all())
    except SQLAlchemyError as exc:
        raise DatabaseError("failed to load active rules for indexing") from exc


async def get_for_indexing(session: AsyncSession, key: ActiveRuleKey) -> ActiveRule | None:
    stmt = (
        _indexing_query()
        .join(ActiveRule.profile)
        .join(ActiveRule.rule)
        .where(
            QualityProfile.kee == key.profile_key,
            Rule.repository_key == key.rule_key.repository,
            Rule.rule_key == key.rule_key.rule,
        )
    )
    try:
        result = await session.execute(stmt)
        return result.scalars().unique().one_or_none()
    except SQLAlchemyError as exc:
        raise DatabaseError(f"failed to load active rule {key}") from exc


async def list_for_indexing(session: AsyncSession, rule_key: RuleKey | None = None) -> list[ActiveRule]:
    # Backfill path; optionally scoped to a single rule.
    stmt = _indexing_query()
    if rule_key is not None:
        stmt = stmt.join(ActiveRule.rule).where(
            Rule.repository_key == rule_key.repository,
            Rule.rule_key == rule_key.rule,
        )
    try:
        result = await session.execute(stmt.order_by(ActiveRule.id))
        return list(result.scalars().unique().all())
    except SQLAlchemyError as exc:
        raise DatabaseError("failed to list active rules for indexing") from exc


async def parent_keys_for(session: AsyncSession, active_rules: Iterable[ActiveRule]) -> dict[int, ActiveRuleKey]:
    """Map each referenced parent id to its composite key.

    Selects plain columns so no parent entity enters the identity map.
    """
    parent_ids = sorted({row.parent_id for row in active_rules if row.parent_id is not None})
    if not parent_ids:
        return {}
    stmt = (
        select(ActiveRule.id, QualityProfile.kee, Rule.repository_key, Rule.rule_key)
        .join(QualityProfile, QualityProfile.id == ActiveRule.profile_id)
        .join(Rule, Rule.id == ActiveRule.rule_id)
        .where(ActiveRule.id.in_(parent_ids))
    )
    try:
        result = await session.execute(stmt)
    except SQLAlchemyError as exc:
        raise DatabaseError("failed to resolve parent active rules") from exc
    return {
        parent_id: ActiveRuleKey.of(profile_kee, RuleKey.of(repository_key, rule_key))
        for parent_id, profile_kee, repository_key, rule_key in result.all()
    }
