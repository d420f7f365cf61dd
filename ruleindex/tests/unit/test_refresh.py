from __future__ import annotations

import asyncio

import pytest

from ruleindex.core.errors import VisibilityTimeoutError
from ruleindex.index.refresh import VisibilityController
from ruleindex.index.store import DocumentIndex
from ruleindex.services.telemetry import counters_snapshot, operation_latency_stats


@pytest.mark.asyncio
async def test_refresh_publishes_accepted_writes() -> None:
    store = DocumentIndex("test", keyword_fields=("ruleKey",))
    controller = VisibilityController(store)
    store.put("a", {"ruleKey": "js:S001"})
    generation = await controller.refresh()
    assert generation == store.generation
    assert store.get("a") is not None
    assert "refresh" in operation_latency_stats(60, index="test")


@pytest.mark.asyncio
async def test_refresh_past_deadline_raises_visibility_timeout(monkeypatch) -> None:
    store = DocumentIndex("test")
    controller = VisibilityController(store, default_timeout_s=0.01)

    async def stalled_refresh() -> int:
        await asyncio.sleep(1)
        return 0

    monkeypatch.setattr(store, "refresh", stalled_refresh)
    with pytest.raises(VisibilityTimeoutError):
        await controller.refresh()
    assert counters_snapshot()["active_rule_index.refresh_timeouts"] == 1


@pytest.mark.asyncio
async def test_explicit_timeout_overrides_default(monkeypatch) -> None:
    store = DocumentIndex("test")
    controller = VisibilityController(store, default_timeout_s=None)

    async def stalled_refresh() -> int:
        await asyncio.sleep(1)
        return 0

    monkeypatch.setattr(store, "refresh", stalled_refresh)
    with pytest.raises(VisibilityTimeoutError):
        await controller.refresh(timeout_s=0.01)
