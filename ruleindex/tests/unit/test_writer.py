from __future__ import annotations

import dataclasses

import pytest

from ruleindex.core.errors import WriteRejectedError
from ruleindex.domain.documents import ActiveRuleDocument
from ruleindex.domain.enums import Inheritance, Severity
from ruleindex.domain.keys import ActiveRuleKey, RuleKey
from ruleindex.index.query import ActiveRuleQuery
from ruleindex.index.store import DocumentIndex
from ruleindex.index.writer import ActiveRuleIndexWriter
from ruleindex.services.telemetry import counters_snapshot


RULE = RuleKey.of("javascript", "S001")


def _doc(profile: str, *, parent: str | None = None, inheritance: Inheritance = Inheritance.NONE) -> ActiveRuleDocument:
    return ActiveRuleDocument(
        key=ActiveRuleKey.of(profile, RULE),
        rule_key=RULE,
        profile_key=profile,
        severity=Severity.MAJOR,
        inheritance=inheritance,
        parent_key=ActiveRuleKey.of(parent, RULE) if parent else None,
    )


@pytest.fixture
def store() -> DocumentIndex:
    return DocumentIndex("activerules", keyword_fields=("ruleKey", "profileKey"))


@pytest.fixture
def writer(store: DocumentIndex) -> ActiveRuleIndexWriter:
    return ActiveRuleIndexWriter(store, parent_chain_max_depth=4)


@pytest.mark.asyncio
async def test_upsert_is_idempotent(store: DocumentIndex, writer: ActiveRuleIndexWriter) -> None:
    document = _doc("p1")
    await writer.upsert(document)
    await store.refresh()
    await writer.upsert(document)
    await store.refresh()

    query = ActiveRuleQuery(store)
    assert query.find_by_rule(RULE) == [document]
    assert counters_snapshot()["active_rule_index.upserts"] == 2


@pytest.mark.asyncio
async def test_rejects_key_not_derived_from_profile_and_rule(writer: ActiveRuleIndexWriter) -> None:
    document = dataclasses.replace(_doc("p1"), profile_key="p2")
    with pytest.raises(WriteRejectedError):
        await writer.upsert(document)
    assert counters_snapshot()["active_rule_index.write_rejected"] == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "changes",
    [
        {"severity": "BLOCKER"},
        {"inheritance": "INHERIT"},
        {"params": {"max": 10}},
        {"params": [("max", "10")]},
    ],
)
async def test_rejects_values_outside_document_types(
    store: DocumentIndex, writer: ActiveRuleIndexWriter, changes: dict
) -> None:
    document = dataclasses.replace(_doc("p1"), **changes)
    with pytest.raises(WriteRejectedError):
        await writer.upsert(document)
    assert store.pending_count == 0
    assert counters_snapshot()["active_rule_index.write_rejected"] == 1


@pytest.mark.asyncio
async def test_rejects_self_parent(writer: ActiveRuleIndexWriter) -> None:
    with pytest.raises(WriteRejectedError):
        await writer.upsert(_doc("p1", parent="p1", inheritance=Inheritance.INHERIT))


@pytest.mark.asyncio
async def test_rejects_parent_when_inheritance_is_none(writer: ActiveRuleIndexWriter) -> None:
    with pytest.raises(WriteRejectedError):
        await writer.upsert(_doc("p1", parent="p0"))


@pytest.mark.asyncio
async def test_rejects_parent_of_another_rule(writer: ActiveRuleIndexWriter) -> None:
    document = dataclasses.replace(
        _doc("p1", inheritance=Inheritance.INHERIT),
        parent_key=ActiveRuleKey.of("p0", RuleKey.of("javascript", "S002")),
    )
    with pytest.raises(WriteRejectedError):
        await writer.upsert(document)


@pytest.mark.asyncio
async def test_rejects_inheritance_cycle_including_pending_writes(writer: ActiveRuleIndexWriter) -> None:
    # p2 -> p1 is only pending, the cycle must still be caught.
    await writer.upsert(_doc("p1", parent="p0", inheritance=Inheritance.INHERIT))
    await writer.upsert(_doc("p2", parent="p1", inheritance=Inheritance.INHERIT))
    with pytest.raises(WriteRejectedError):
        await writer.upsert(_doc("p0", parent="p2", inheritance=Inheritance.OVERRIDES))


@pytest.mark.asyncio
async def test_accepts_chain_without_cycle(store: DocumentIndex, writer: ActiveRuleIndexWriter) -> None:
    await writer.upsert(_doc("p0"))
    await writer.upsert(_doc("p1", parent="p0", inheritance=Inheritance.INHERIT))
    await writer.upsert(_doc("p2", parent="p1", inheritance=Inheritance.OVERRIDES))
    await store.refresh()
    assert len(ActiveRuleQuery(store).find_by_rule(RULE)) == 3


@pytest.mark.asyncio
async def test_closed_store_rejects_write_loudly(store: DocumentIndex, writer: ActiveRuleIndexWriter) -> None:
    await store.close()
    with pytest.raises(WriteRejectedError):
        await writer.upsert(_doc("p1"))
    with pytest.raises(WriteRejectedError):
        await writer.remove(ActiveRuleKey.of("p1", RULE))
