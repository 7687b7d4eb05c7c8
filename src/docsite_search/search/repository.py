"""Owned, swappable index holder.

An ``IndexRepository`` keeps exactly one ``(SearchIndex, QueryEngine)``
snapshot. Rebuilds and reloads stage a complete new index first and only
then swap the reference under a lock, so a failed rebuild leaves the
previous index serving and in-flight queries stay bound to the snapshot
they started with. Several repositories (say staging and production docs)
can live side by side in one process.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
import logging
from pathlib import Path
import threading
from typing import Any

from docsite_search.config import SearchSettings
from docsite_search.domain.model import Document
from docsite_search.domain.search import SearchResponse
from docsite_search.errors import SearchIndexError
from docsite_search.observability.context import trace_scope
from docsite_search.observability.metrics import INDEX_DOC_COUNT, INDEX_TERM_COUNT
from docsite_search.search.engine import QueryEngine
from docsite_search.search.index import SearchIndex
from docsite_search.search.indexer import IndexBuilder
from docsite_search.search.serialization import index_fingerprint, load_index, save_index


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexSnapshot:
    """An index paired with the engine that queries it."""

    index: SearchIndex
    engine: QueryEngine
    generation: int


class IndexRepository:
    """Serve queries from the current index; replace it atomically."""

    def __init__(
        self,
        settings: SearchSettings | None = None,
        *,
        name: str = "default",
        index: SearchIndex | None = None,
    ) -> None:
        self.settings = settings or SearchSettings()
        self.name = name
        self._swap_lock = threading.Lock()
        initial = index if index is not None else SearchIndex.empty(IndexBuilder(self.settings).analyzer_spec)
        self._snapshot = self._make_snapshot(initial, generation=0)

    @property
    def snapshot(self) -> IndexSnapshot:
        return self._snapshot

    @property
    def index(self) -> SearchIndex:
        return self._snapshot.index

    @property
    def generation(self) -> int:
        return self._snapshot.generation

    def search(self, query_text: str, top_k: int | None = None, **options: Any) -> SearchResponse:
        snapshot = self._snapshot
        return snapshot.engine.search(query_text, top_k, **options)

    async def search_async(self, query_text: str, top_k: int | None = None, **options: Any) -> SearchResponse:
        """Run ``search`` on a worker thread so event loops stay responsive."""
        return await asyncio.to_thread(self.search, query_text, top_k, **options)

    def rebuild(self, documents: Iterable[Document | Mapping[str, Any]]) -> IndexSnapshot:
        """Build a new index from ``documents`` and swap it in.

        Raises:
            CorpusError: the corpus is invalid; the current index keeps serving.
        """

        with trace_scope(index=self.name):
            try:
                staged = IndexBuilder(self.settings).build(documents)
            except SearchIndexError:
                logger.warning("Rebuild of index %r failed; keeping generation %d", self.name, self.generation)
                raise
            return self.swap(staged)

    def load(self, path: str | Path) -> IndexSnapshot:
        """Load a persisted index and swap it in.

        Raises:
            IndexFormatError: the file is unreadable or corrupt; the current
                index keeps serving.
        """

        with trace_scope(index=self.name):
            try:
                staged = load_index(path)
            except SearchIndexError:
                logger.warning(
                    "Reload of index %r from %s failed; keeping generation %d", self.name, path, self.generation
                )
                raise
            return self.swap(staged)

    def save(self, path: str | Path) -> Path:
        return save_index(path, self._snapshot.index)

    def swap(self, index: SearchIndex) -> IndexSnapshot:
        """Atomically replace the served index."""

        with self._swap_lock:
            snapshot = self._make_snapshot(index, generation=self._snapshot.generation + 1)
            self._snapshot = snapshot
        INDEX_DOC_COUNT.labels(index=self.name).set(index.doc_count)
        INDEX_TERM_COUNT.labels(index=self.name).set(index.term_count)
        with trace_scope(index=self.name):
            logger.info(
                "Index %r now at generation %d (%d documents, fingerprint %s)",
                self.name,
                snapshot.generation,
                index.doc_count,
                index_fingerprint(index)[:12],
            )
        return snapshot

    def _make_snapshot(self, index: SearchIndex, *, generation: int) -> IndexSnapshot:
        return IndexSnapshot(
            index=index,
            engine=QueryEngine(index, self.settings, name=self.name),
            generation=generation,
        )
