from __future__ import annotations

import asyncio
import copy
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from ruleindex.core.errors import IndexUnavailableError


logger = logging.getLogger(__name__)


# Pending tombstone marker; a refresh removes the document instead of replacing it.
_DELETED = object()


@dataclass(frozen=True)
class _Snapshot:
    # Published, read-only view of the index. Replaced wholesale on refresh.
    docs: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    terms: Mapping[str, Mapping[str, frozenset[str]]] = field(default_factory=dict)
    generation: int = 0


class DocumentIndex:
    """In-process document index with near-real-time visibility.

    Writes land in a pending buffer keyed by document id, so a later write to
    the same id fully replaces an earlier one. Readers only ever see the last
    published snapshot; ``refresh`` folds the pending buffer into a new
    snapshot and swaps it in. Keyword fields get an exact-match term index.
    """

    def __init__(self, name: str, *, keyword_fields: Iterable[str] = ()) -> None:
        self.name = name
        self._keyword_fields = tuple(keyword_fields)
        self._pending: dict[str, Any] = {}
        self._snapshot = _Snapshot(terms={field_name: {} for field_name in self._keyword_fields})
        self._seq = 0
        self._refresh_lock = asyncio.Lock()
        self._closed = False
        self._refresher: asyncio.Task[None] | None = None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def generation(self) -> int:
        return self._snapshot.generation

    def _ensure_open(self) -> None:
        if self._closed:
            raise IndexUnavailableError(f"index {self.name!r} is closed")

    def put(self, doc_id: str, source: Mapping[str, Any]) -> int:
        """Accept a document for ``doc_id``; returns the write sequence number."""
        self._ensure_open()
        # Deep copy so later caller mutations never leak into the index.
        self._pending[doc_id] = copy.deepcopy(dict(source))
        self._seq += 1
        return self._seq

    def delete(self, doc_id: str) -> int:
        self._ensure_open()
        self._pending[doc_id] = _DELETED
        self._seq += 1
        return self._seq

    def peek(self, doc_id: str) -> Mapping[str, Any] | None:
        # Latest accepted state including pending writes; used for write-side validation only.
        self._ensure_open()
        if doc_id in self._pending:
            pending = self._pending[doc_id]
            return None if pending is _DELETED else pending
        return self._snapshot.docs.get(doc_id)

    def get(self, doc_id: str) -> Mapping[str, Any] | None:
        self._ensure_open()
        source = self._snapshot.docs.get(doc_id)
        return copy.deepcopy(dict(source)) if source is not None else None

    def term(self, field_name: str, value: str) -> list[Mapping[str, Any]]:
        """Exact-match lookup on a keyword field against the published snapshot."""
        self._ensure_open()
        snapshot = self._snapshot
        if field_name not in snapshot.terms:
            raise ValueError(f"field {field_name!r} is not a keyword field of index {self.name!r}")
        doc_ids = snapshot.terms[field_name].get(value, frozenset())
        return [copy.deepcopy(dict(snapshot.docs[doc_id])) for doc_id in sorted(doc_ids)]

    def count(self) -> int:
        self._ensure_open()
        return len(self._snapshot.docs)

    async def refresh(self) -> int:
        """Publish every write accepted before the call; returns the snapshot generation."""
        self._ensure_open()
        async with self._refresh_lock:
            # _apply never awaits, so the buffer is folded and cleared in one step; a failed apply keeps it.
            batch = self._pending
            if batch:
                self._snapshot = self._apply(self._snapshot, batch)
                self._pending = {}
            return self._snapshot.generation

    def _apply(self, snapshot: _Snapshot, batch: dict[str, Any]) -> _Snapshot:
        docs = dict(snapshot.docs)
        terms = {name: {value: set(ids) for value, ids in values.items()} for name, values in snapshot.terms.items()}
        for doc_id, source in batch.items():
            previous = docs.pop(doc_id, None)
            if previous is not None:
                for name in self._keyword_fields:
                    self._unindex_term(terms[name], previous.get(name), doc_id)
            if source is _DELETED:
                continue
            docs[doc_id] = MappingProxyType(source)
            for name in self._keyword_fields:
                value = source.get(name)
                if value is not None:
                    terms[name].setdefault(str(value), set()).add(doc_id)
        frozen_terms = {
            name: {value: frozenset(ids) for value, ids in values.items()} for name, values in terms.items()
        }
        return _Snapshot(docs=docs, terms=frozen_terms, generation=snapshot.generation + 1)

    @staticmethod
    def _unindex_term(values: dict[str, set[str]], value: Any, doc_id: str) -> None:
        if value is None:
            return
        ids = values.get(str(value))
        if ids is None:
            return
        ids.discard(doc_id)
        if not ids:
            del values[str(value)]

    def reset(self) -> None:
        """Drop all documents, pending and published."""
        self._pending = {}
        self._snapshot = _Snapshot(
            terms={field_name: {} for field_name in self._keyword_fields},
            generation=self._snapshot.generation + 1,
        )

    async def _refresh_loop(self, interval_s: float) -> None:
        while not self._closed:
            await asyncio.sleep(interval_s)
            if not self._pending or self._closed:
                continue
            try:
                await self.refresh()
            except IndexUnavailableError:
                return
            except Exception:  # noqa: BLE001 - one failed refresh must not stop later ones
                logger.exception("index_periodic_refresh_failed index=%s", self.name)

    def start_periodic_refresh(self, interval_s: float) -> None:
        # Gives writes eventual visibility without an explicit refresh call.
        self._ensure_open()
        if interval_s <= 0 or self._refresher is not None:
            return
        self._refresher = asyncio.get_running_loop().create_task(self._refresh_loop(interval_s))
        logger.info("index_periodic_refresh_started index=%s interval_s=%s", self.name, interval_s)

    async def close(self) -> None:
        self._closed = True
        task, self._refresher = self._refresher, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info("index_closed index=%s pending_dropped=%s", self.name, len(self._pending))
