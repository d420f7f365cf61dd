from __future__ import annotations

import asyncio
import logging
import time

from ruleindex.core.errors import VisibilityTimeoutError
from ruleindex.index.store import DocumentIndex
from ruleindex.services.telemetry import increment_counter, record_operation


logger = logging.getLogger(__name__)


class VisibilityController:
    """Refresh barrier between accepted writes and visible reads."""

    def __init__(self, store: DocumentIndex, *, default_timeout_s: float | None = 30.0) -> None:
        self._store = store
        self._default_timeout_s = default_timeout_s

    async def refresh(self, timeout_s: float | None = None) -> int:
        # Writes accepted before this call are visible once it returns.
        deadline = timeout_s if timeout_s is not None else self._default_timeout_s
        started = time.perf_counter()
        success = False
        try:
            generation = await asyncio.wait_for(self._store.refresh(), timeout=deadline)
            success = True
            return generation
        except asyncio.TimeoutError as exc:
            increment_counter("active_rule_index.refresh_timeouts")
            logger.warning("index_refresh_timeout index=%s timeout_s=%s", self._store.name, deadline)
            raise VisibilityTimeoutError(
                f"refresh of index {self._store.name!r} not confirmed within {deadline}s"
            ) from exc
        finally:
            record_operation(
                index=self._store.name,
                operation="refresh",
                latency_ms=(time.perf_counter() - started) * 1000.0,
                success=success,
            )
