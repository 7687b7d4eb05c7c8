"""Corpus indexing.

``IndexBuilder`` turns an ordered batch of corpus records into an immutable
``SearchIndex``. Work is split into contiguous shards that are tokenized
independently into ``PartialIndex`` objects (optionally on a thread pool)
and then merged. Merging only concatenates posting lists and sorts them by
doc id, so the result does not depend on merge order.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
import logging
import time
from typing import Any

from docsite_search.config import SearchSettings
from docsite_search.domain.model import Document, coerce_document
from docsite_search.errors import CorpusError
from docsite_search.observability.metrics import INDEX_BUILD_LATENCY
from docsite_search.observability.tracing import create_span
from docsite_search.search.analyzers import Analyzer
from docsite_search.search.index import AnalyzerSpec, SearchIndex
from docsite_search.search.models import INDEXED_FIELDS, TEXT_FIELD, TITLE_FIELD, DocumentMetadata, Posting


logger = logging.getLogger(__name__)


@dataclass
class PartialIndex:
    """Term -> postings accumulated for one shard of the corpus."""

    postings: dict[str, dict[str, list[Posting]]] = field(
        default_factory=lambda: {field_name: defaultdict(list) for field_name in INDEXED_FIELDS}
    )
    lengths: dict[int, int] = field(default_factory=dict)

    def add(self, doc_id: int, document: Document, analyzer: Analyzer) -> None:
        length = 0
        for field_name, value in ((TITLE_FIELD, document.title), (TEXT_FIELD, document.text)):
            positions: dict[str, list[int]] = defaultdict(list)
            for term, position in analyzer.terms(value):
                positions[term].append(position)
                length += 1
            field_postings = self.postings[field_name]
            for term, term_positions in positions.items():
                field_postings[term].append(Posting(doc_id=doc_id, positions=tuple(term_positions)))
        self.lengths[doc_id] = length

    def merge(self, other: PartialIndex) -> PartialIndex:
        """Return a new partial holding both shards' postings."""
        merged = PartialIndex()
        for source in (self, other):
            for field_name, terms in source.postings.items():
                target = merged.postings[field_name]
                for term, postings in terms.items():
                    target[term].extend(postings)
            merged.lengths.update(source.lengths)
        return merged

    def freeze(self) -> dict[str, dict[str, tuple[Posting, ...]]]:
        frozen: dict[str, dict[str, tuple[Posting, ...]]] = {}
        for field_name, terms in self.postings.items():
            frozen[field_name] = {
                term: tuple(sorted(postings, key=lambda posting: posting.doc_id))
                for term, postings in sorted(terms.items())
            }
        return frozen


@dataclass(frozen=True)
class IndexBuildResult:
    """Outcome of an indexing run."""

    index: SearchIndex
    documents_indexed: int
    terms_indexed: int
    duration_s: float


class IndexBuilder:
    """Build a ``SearchIndex`` from an ordered batch of corpus records."""

    def __init__(self, settings: SearchSettings | None = None, *, workers: int | None = None) -> None:
        self.settings = settings or SearchSettings()
        self.workers = max(1, workers if workers is not None else self.settings.build_workers)
        self.analyzer_spec = AnalyzerSpec(
            name=self.settings.analyzer,
            min_token_length=self.settings.min_token_length,
            stopwords=tuple(sorted(set(self.settings.stopword_list))),
        )

    def build(self, documents: Iterable[Document | Mapping[str, Any]]) -> SearchIndex:
        return self.build_with_report(documents).index

    def build_with_report(self, documents: Iterable[Document | Mapping[str, Any]]) -> IndexBuildResult:
        """Validate, tokenize and merge the corpus.

        Raises:
            CorpusError: malformed records or duplicated locations. Nothing is
                returned in that case, so callers never see a partial index.
        """

        start = time.perf_counter()
        with create_span("index.build", attributes={"index.workers": self.workers}) as span:
            corpus = [coerce_document(record, position) for position, record in enumerate(documents)]
            _check_unique_locations(corpus)

            analyzer = self.analyzer_spec.build()
            partial = self._accumulate(corpus, analyzer)
            parents = _resolve_parents(corpus)

            metadata = tuple(
                DocumentMetadata(
                    doc_id=doc_id,
                    location=document.location,
                    page=document.page,
                    title=document.title,
                    category=document.category,
                    text=document.text,
                    length=partial.lengths.get(doc_id, 0),
                    parent_id=parents.get(doc_id),
                )
                for doc_id, document in enumerate(corpus)
            )
            index = SearchIndex(postings=partial.freeze(), documents=metadata, analyzer_spec=self.analyzer_spec)
            span.set_attribute("index.documents", index.doc_count)
            span.set_attribute("index.terms", index.term_count)

        duration = time.perf_counter() - start
        INDEX_BUILD_LATENCY.labels(mode="parallel" if self.workers > 1 else "serial").observe(duration)
        logger.info(
            "Built search index: %d documents, %d terms in %.3fs (workers=%d)",
            index.doc_count,
            index.term_count,
            duration,
            self.workers,
        )
        return IndexBuildResult(
            index=index,
            documents_indexed=index.doc_count,
            terms_indexed=index.term_count,
            duration_s=duration,
        )

    def _accumulate(self, corpus: Sequence[Document], analyzer: Analyzer) -> PartialIndex:
        shards = _shard_ranges(len(corpus), self.workers)
        if len(shards) <= 1:
            return _index_shard(corpus, 0, len(corpus), analyzer)

        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="index-shard") as executor:
            futures = [executor.submit(_index_shard, corpus, lo, hi, analyzer) for lo, hi in shards]
            partials = [future.result() for future in futures]

        merged = PartialIndex()
        for partial in partials:
            merged = merged.merge(partial)
        logger.debug("Merged %d index shards", len(partials))
        return merged


def _index_shard(corpus: Sequence[Document], lo: int, hi: int, analyzer: Analyzer) -> PartialIndex:
    partial = PartialIndex()
    for doc_id in range(lo, hi):
        partial.add(doc_id, corpus[doc_id], analyzer)
    return partial


def _shard_ranges(total: int, workers: int) -> list[tuple[int, int]]:
    if total == 0:
        return []
    shard_count = min(workers, total)
    size, remainder = divmod(total, shard_count)
    ranges: list[tuple[int, int]] = []
    lo = 0
    for shard in range(shard_count):
        hi = lo + size + (1 if shard < remainder else 0)
        ranges.append((lo, hi))
        lo = hi
    return ranges


def _check_unique_locations(corpus: Sequence[Document]) -> None:
    seen: dict[str, list[int]] = defaultdict(list)
    for position, document in enumerate(corpus):
        seen[document.location].append(position)
    duplicates = {location: positions for location, positions in seen.items() if len(positions) > 1}
    if not duplicates:
        return
    preview = ", ".join(f"{location!r} at records {positions}" for location, positions in list(duplicates.items())[:5])
    more = f" (+{len(duplicates) - 5} more)" if len(duplicates) > 5 else ""
    msg = f"Duplicate document locations: {preview}{more}"
    raise CorpusError(msg, duplicates=duplicates)


def _resolve_parents(corpus: Sequence[Document]) -> dict[int, int]:
    """Map each anchored entry to the latest preceding page record of the same page."""

    latest_page: dict[str, int] = {}
    parents: dict[int, int] = {}
    for doc_id, document in enumerate(corpus):
        if document.is_page:
            latest_page[document.page] = doc_id
            continue
        parent = latest_page.get(document.page)
        if parent is not None:
            parents[doc_id] = parent
    return parents


def build_index(
    documents: Iterable[Document | Mapping[str, Any]],
    settings: SearchSettings | None = None,
) -> SearchIndex:
    """Convenience wrapper around ``IndexBuilder(settings).build``."""

    return IndexBuilder(settings).build(documents)
