from __future__ import annotations

from typing import Iterable

from sqlalchemy import inspect

from ruleindex.domain.documents import ActiveRuleDocument
from ruleindex.domain.enums import Inheritance, Severity
from ruleindex.domain.keys import ActiveRuleKey
from ruleindex.domain.models import ActiveRule, ActiveRuleParam


def project_params(params: Iterable[ActiveRuleParam]) -> dict[str, str]:
    # Fold in supplied order so a repeated name keeps its last value.
    merged: dict[str, str] = {}
    for param in params:
        merged[param.name] = param.value if param.value is not None else ""
    return merged


def _present_parent_key(active_rule: ActiveRule) -> ActiveRuleKey | None:
    # Reads the instance dict directly; touching an unloaded relationship would lazy load.
    parent = inspect(active_rule).dict.get("parent")
    return parent.key if parent is not None else None


def project_active_rule(
    active_rule: ActiveRule,
    params: Iterable[ActiveRuleParam] | None = None,
    *,
    parent_key: ActiveRuleKey | None = None,
) -> ActiveRuleDocument:
    """Build the index document for a committed activation.

    ``active_rule`` must have ``profile`` and ``rule`` loaded. When ``params``
    is omitted the row's own ``params`` collection is used. Rows read from
    the database pass ``parent_key`` resolved from ``parent_id``; otherwise
    only a parent already attached to the instance is projected.
    """
    key = active_rule.key
    return ActiveRuleDocument(
        key=key,
        rule_key=key.rule_key,
        profile_key=key.profile_key,
        severity=Severity.parse(active_rule.severity),
        inheritance=Inheritance.parse(active_rule.inheritance),
        parent_key=parent_key if parent_key is not None else _present_parent_key(active_rule),
        params=project_params(active_rule.params if params is None else params),
    )
