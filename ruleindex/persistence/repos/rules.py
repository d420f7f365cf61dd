from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ruleindex.domain.keys import RuleKey
from ruleindex.domain.models import Rule, RuleParam


async def insert_rule(
    session: AsyncSession,
    rule_key: RuleKey,
    *,
    name: str | None = None,
    severity: str = "INFO",
    language: str | None = None,
    description: str | None = None,
) -> Rule:
    rule = Rule(
        repository_key=rule_key.repository,
        rule_key=rule_key.rule,
        name=name or f"Rule {rule_key.rule}",
        description=description,
        severity=severity,
        language=language,
    )
    session.add(rule)
    await session.flush()
    return rule


async def add_rule_param(
    session: AsyncSession,
    rule: Rule,
    *,
    name: str,
    param_type: str = "STRING",
    default_value: str | None = None,
) -> RuleParam:
    param = RuleParam(rule_id=rule.id, name=name, param_type=param_type, default_value=default_value)
    session.add(param)
    # Active rule params copy the generated id, so flush before returning.
    await session.flush()
    return param


async def get_rule(session: AsyncSession, rule_key: RuleKey) -> Rule | None:
    result = await session.execute(
        select(Rule).where(Rule.repository_key == rule_key.repository, Rule.rule_key == rule_key.rule)
    )
    return result.scalar_one_or_none()
