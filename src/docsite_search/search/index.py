"""Immutable query-time index.

A ``SearchIndex`` is produced once per corpus version by the builder (or by
the deserializer) and never mutated afterwards, so any number of threads can
query it without locking.
"""

from __future__ import annotations

from bisect import bisect_left
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from functools import cached_property
from operator import attrgetter
from types import MappingProxyType

from docsite_search.search.analyzers import Analyzer, get_analyzer
from docsite_search.search.models import INDEXED_FIELDS, TEXT_FIELD, TITLE_FIELD, DocumentMetadata, Posting
from docsite_search.search.stats import CorpusStats


_DOC_ID = attrgetter("doc_id")


@dataclass(frozen=True)
class AnalyzerSpec:
    """Analyzer settings recorded with the index so queries tokenize like documents."""

    name: str = "default"
    min_token_length: int = 2
    stopwords: tuple[str, ...] = ()

    def build(self) -> Analyzer:
        return get_analyzer(self.name, min_token_length=self.min_token_length, stopwords=self.stopwords)


@dataclass(frozen=True, eq=False)
class SearchIndex:
    """Inverted index plus per-document metadata.

    ``postings`` maps field name -> term -> postings sorted by doc id.
    ``documents`` is indexed by doc id (input order).
    """

    postings: Mapping[str, Mapping[str, tuple[Posting, ...]]]
    documents: tuple[DocumentMetadata, ...]
    analyzer_spec: AnalyzerSpec = field(default_factory=AnalyzerSpec)
    _document_frequency: Mapping[str, int] = field(init=False, repr=False)
    _locations: Mapping[str, int] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        frozen_postings = {
            field_name: MappingProxyType(dict(self.postings.get(field_name, {}))) for field_name in INDEXED_FIELDS
        }
        object.__setattr__(self, "postings", MappingProxyType(frozen_postings))
        object.__setattr__(self, "documents", tuple(self.documents))

        doc_sets: dict[str, set[int]] = {}
        for field_postings in frozen_postings.values():
            for term, postings in field_postings.items():
                doc_sets.setdefault(term, set()).update(posting.doc_id for posting in postings)
        object.__setattr__(
            self, "_document_frequency", MappingProxyType({term: len(ids) for term, ids in doc_sets.items()})
        )
        object.__setattr__(
            self, "_locations", MappingProxyType({doc.location: doc.doc_id for doc in self.documents})
        )

    @classmethod
    def empty(cls, analyzer_spec: AnalyzerSpec | None = None) -> SearchIndex:
        return cls(postings={}, documents=(), analyzer_spec=analyzer_spec or AnalyzerSpec())

    @property
    def doc_count(self) -> int:
        return len(self.documents)

    @cached_property
    def stats(self) -> CorpusStats:
        return CorpusStats.from_lengths(doc.length for doc in self.documents)

    @cached_property
    def analyzer(self) -> Analyzer:
        return self.analyzer_spec.build()

    @property
    def vocabulary(self) -> list[str]:
        return sorted(self._document_frequency)

    @property
    def term_count(self) -> int:
        return len(self._document_frequency)

    def document(self, doc_id: int) -> DocumentMetadata:
        return self.documents[doc_id]

    def by_location(self, location: str) -> DocumentMetadata | None:
        doc_id = self._locations.get(location)
        return None if doc_id is None else self.documents[doc_id]

    def document_frequency(self, term: str) -> int:
        return self._document_frequency.get(term, 0)

    def get_postings(self, field_name: str, term: str) -> tuple[Posting, ...]:
        """Return postings for a specific term in a field."""
        field_postings = self.postings.get(field_name, {})
        return field_postings.get(term, ())

    def candidate_ids(self, term: str) -> Iterator[int]:
        """Yield every doc id containing ``term`` in any field (may repeat across fields)."""
        for field_name in INDEXED_FIELDS:
            for posting in self.get_postings(field_name, term):
                yield posting.doc_id

    def find_posting(self, field_name: str, term: str, doc_id: int) -> Posting | None:
        postings = self.get_postings(field_name, term)
        idx = bisect_left(postings, doc_id, key=_DOC_ID)
        if idx < len(postings) and postings[idx].doc_id == doc_id:
            return postings[idx]
        return None

    def term_frequencies(self, term: str, doc_id: int) -> tuple[int, int]:
        """Return ``(title_tf, text_tf)`` for ``term`` in ``doc_id``."""
        title = self.find_posting(TITLE_FIELD, term, doc_id)
        text = self.find_posting(TEXT_FIELD, term, doc_id)
        return (title.frequency if title else 0, text.frequency if text else 0)
