from __future__ import annotations

import pytest

from ruleindex.domain.keys import ActiveRuleKey, RuleKey
from ruleindex.domain.models import ActiveRule
from ruleindex.persistence.repos import active_rules as active_rules_repo
from ruleindex.persistence.repos.profiles import get_profile, insert_profile
from ruleindex.persistence.repos.rules import get_rule, insert_rule


S001 = RuleKey.of("javascript", "S001")


@pytest.mark.asyncio
async def test_lookup_by_external_keys(db_session) -> None:
    await insert_profile(db_session, kee="myprofile", name="myprofile", language="java")
    await insert_rule(db_session, S001, language="js")
    await db_session.commit()

    profile = await get_profile(db_session, "myprofile")
    rule = await get_rule(db_session, S001)
    assert profile is not None and profile.language == "java"
    assert rule is not None and rule.key == S001
    assert rule.name == "Rule S001"
    assert await get_profile(db_session, "missing") is None
    assert await get_rule(db_session, RuleKey.of("javascript", "S999")) is None


@pytest.mark.asyncio
async def test_get_for_indexing_resolves_composite_key(db_session) -> None:
    profile = await insert_profile(db_session, kee="myprofile", name="myprofile", language="java")
    rule = await insert_rule(db_session, S001)
    await active_rules_repo.insert_active_rule(
        db_session, ActiveRule.create_for(profile, rule, severity="MAJOR", inheritance=None)
    )
    await db_session.commit()

    key = ActiveRuleKey.of("myprofile", S001)
    row = await active_rules_repo.get_for_indexing(db_session, key)
    assert row is not None
    assert row.key == key
    assert row.params == []
    assert await active_rules_repo.get_for_indexing(db_session, ActiveRuleKey.of("other", S001)) is None
    assert await active_rules_repo.load_for_indexing(db_session, []) == []
