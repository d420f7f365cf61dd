from __future__ import annotations

import logging
import time

from ruleindex.core.errors import IndexUnavailableError, InvalidKeyError, WriteRejectedError
from ruleindex.domain.documents import ActiveRuleDocument
from ruleindex.domain.enums import Inheritance, Severity
from ruleindex.domain.keys import ActiveRuleKey
from ruleindex.index.store import DocumentIndex
from ruleindex.services.telemetry import increment_counter, record_operation


logger = logging.getLogger(__name__)


class ActiveRuleIndexWriter:
    """Write path of the active rule index.

    Accepted writes are visible only after the next refresh. Rejections are
    raised as ``WriteRejectedError`` and are never retried here.
    """

    def __init__(self, store: DocumentIndex, *, parent_chain_max_depth: int = 32) -> None:
        self._store = store
        self._parent_chain_max_depth = parent_chain_max_depth

    async def upsert(self, document: ActiveRuleDocument) -> None:
        started = time.perf_counter()
        success = False
        try:
            self._validate(document)
            self._store.put(str(document.key), document.to_source())
            success = True
        except IndexUnavailableError as exc:
            increment_counter("active_rule_index.write_rejected")
            logger.warning("active_rule_write_rejected key=%s reason=unavailable", document.key)
            raise WriteRejectedError(f"index unavailable; {document.key} was not written") from exc
        except WriteRejectedError:
            increment_counter("active_rule_index.write_rejected")
            logger.warning("active_rule_write_rejected key=%s reason=invalid", document.key)
            raise
        finally:
            record_operation(
                index=self._store.name,
                operation="upsert",
                latency_ms=(time.perf_counter() - started) * 1000.0,
                success=success,
            )
        increment_counter("active_rule_index.upserts")
        logger.debug("active_rule_indexed key=%s severity=%s", document.key, document.severity.value)

    async def upsert_all(self, documents: list[ActiveRuleDocument]) -> int:
        # Stops at the first rejection; earlier documents stay accepted.
        for document in documents:
            await self.upsert(document)
        return len(documents)

    async def remove(self, key: ActiveRuleKey) -> None:
        """Remove an activation's document; only used by the synchronous delete policy."""
        try:
            self._store.delete(str(key))
        except IndexUnavailableError as exc:
            increment_counter("active_rule_index.write_rejected")
            raise WriteRejectedError(f"index unavailable; {key} was not removed") from exc
        increment_counter("active_rule_index.removals")
        logger.info("active_rule_removed key=%s", key)

    def _validate(self, document: ActiveRuleDocument) -> None:
        if not isinstance(document.key, ActiveRuleKey):
            raise WriteRejectedError(f"malformed key: {document.key!r}")
        if not isinstance(document.severity, Severity):
            raise WriteRejectedError(f"{document.key} has unknown severity {document.severity!r}")
        if not isinstance(document.inheritance, Inheritance):
            raise WriteRejectedError(f"{document.key} has unknown inheritance {document.inheritance!r}")
        if not isinstance(document.params, dict) or not all(
            isinstance(name, str) and isinstance(value, str) for name, value in document.params.items()
        ):
            raise WriteRejectedError(f"{document.key} params must map strings to strings")
        try:
            expected = ActiveRuleKey.of(document.profile_key, document.rule_key)
        except InvalidKeyError as exc:
            raise WriteRejectedError(f"malformed key components for {document.key}") from exc
        if document.key != expected:
            raise WriteRejectedError(
                f"key {document.key} does not match profile {document.profile_key!r} and rule {document.rule_key}"
            )
        parent = document.parent_key
        if parent is None:
            return
        if document.inheritance is Inheritance.NONE:
            raise WriteRejectedError(f"{document.key} has a parent but inheritance NONE")
        if parent == document.key:
            raise WriteRejectedError(f"{document.key} cannot be its own parent")
        if parent.rule_key != document.rule_key:
            raise WriteRejectedError(f"parent {parent} activates a different rule than {document.key}")
        self._check_no_cycle(document.key, parent)

    def _check_no_cycle(self, key: ActiveRuleKey, parent: ActiveRuleKey) -> None:
        # Walk the chain through accepted documents, pending ones included.
        seen = {key}
        current: ActiveRuleKey | None = parent
        for _ in range(self._parent_chain_max_depth):
            if current is None:
                return
            if current in seen:
                raise WriteRejectedError(f"parent chain of {key} forms a cycle through {current}")
            seen.add(current)
            try:
                source = self._store.peek(str(current))
            except IndexUnavailableError as exc:
                raise WriteRejectedError(f"index unavailable; {key} was not written") from exc
            if source is None or not source.get("parentKey"):
                return
            try:
                current = ActiveRuleKey.parse(source["parentKey"])
            except InvalidKeyError as exc:
                raise WriteRejectedError(f"stored parent of {current} is malformed") from exc
        raise WriteRejectedError(f"parent chain of {key} exceeds {self._parent_chain_max_depth} levels")
