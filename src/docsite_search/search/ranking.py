"""TF-IDF ranking with field weights, length normalization and coordination.

For each distinct query term present in a document::

    contribution = (title_weight * tf_title + tf_text) * idf / norm

with ``idf = log(1 + N / df)`` and ``norm = 1 - b + b * dl / avgdl``. The
sum over terms is multiplied by the document's category weight; anchored
entries may additionally inherit a share of their parent page's score.

Ordering is tiered: documents matching more distinct query terms always rank
above documents matching fewer, then by score, then by corpus order. The
reported score is scaled by the fraction of query terms matched.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
import threading

from docsite_search.config import SearchSettings
from docsite_search.errors import SearchCancelledError
from docsite_search.search.index import SearchIndex
from docsite_search.search.stats import calculate_idf, length_normalization, weighted_term_frequency


@dataclass(frozen=True)
class RankedDocument:
    """Represents a scored document produced by the ranker."""

    doc_id: int
    score: float
    matched_terms: tuple[str, ...]

    @property
    def coordination(self) -> int:
        return len(self.matched_terms)


def unique_terms(terms: Iterable[str]) -> tuple[str, ...]:
    """Drop empty and repeated terms, keeping first-seen order."""
    seen: set[str] = set()
    ordered: list[str] = []
    for term in terms:
        if term and term not in seen:
            seen.add(term)
            ordered.append(term)
    return tuple(ordered)


class Ranker:
    """Score candidate documents of one ``SearchIndex`` against query terms."""

    def __init__(
        self,
        index: SearchIndex,
        *,
        title_weight: float = 3.0,
        length_b: float = 0.75,
        parent_weight: float = 0.0,
        category_weights: Mapping[str, float] | None = None,
    ) -> None:
        self.index = index
        self.title_weight = title_weight
        self.length_b = length_b
        self.parent_weight = parent_weight
        self.category_weights = dict(category_weights or {})

    @classmethod
    def from_settings(cls, index: SearchIndex, settings: SearchSettings) -> Ranker:
        return cls(
            index,
            title_weight=settings.title_weight,
            length_b=settings.length_b,
            parent_weight=settings.parent_weight,
            category_weights=settings.category_weights,
        )

    def idf(self, term: str) -> float:
        return calculate_idf(self.index.document_frequency(term), self.index.doc_count)

    def score(self, query_terms: Sequence[str], doc_id: int) -> float:
        """Return the relevance of ``doc_id``; 0.0 when no query term matches."""

        terms = unique_terms(query_terms)
        if not terms:
            return 0.0
        idfs = {term: self.idf(term) for term in terms}
        return self._final_score(terms, idfs, doc_id)[0]

    def rank(
        self,
        query_terms: Sequence[str],
        *,
        cancel: threading.Event | None = None,
    ) -> list[RankedDocument]:
        """Score every candidate (OR semantics) and return them in ranked order."""

        terms = unique_terms(query_terms)
        if not terms:
            return []

        idfs = {term: self.idf(term) for term in terms}
        candidates = sorted({doc_id for term in terms for doc_id in self.index.candidate_ids(term)})

        ranked: list[RankedDocument] = []
        for doc_id in candidates:
            if cancel is not None and cancel.is_set():
                raise SearchCancelledError(f"Search cancelled after scoring {len(ranked)} candidates")
            score, matched = self._final_score(terms, idfs, doc_id)
            if matched:
                ranked.append(RankedDocument(doc_id=doc_id, score=score, matched_terms=matched))

        ranked.sort(key=lambda entry: (-entry.coordination, -entry.score, entry.doc_id))
        return ranked

    def _final_score(
        self,
        terms: tuple[str, ...],
        idfs: Mapping[str, float],
        doc_id: int,
    ) -> tuple[float, tuple[str, ...]]:
        raw, matched = self._base_score(terms, idfs, doc_id)
        if not matched:
            return 0.0, ()

        document = self.index.document(doc_id)
        if self.parent_weight > 0 and document.parent_id is not None:
            parent_raw, _ = self._base_score(terms, idfs, document.parent_id)
            raw += self.parent_weight * parent_raw

        return raw * len(matched) / len(terms), matched

    def _base_score(
        self,
        terms: tuple[str, ...],
        idfs: Mapping[str, float],
        doc_id: int,
    ) -> tuple[float, tuple[str, ...]]:
        document = self.index.document(doc_id)
        norm = length_normalization(document.length, self.index.stats.average_length, b=self.length_b)

        total = 0.0
        matched: list[str] = []
        for term in terms:
            title_tf, text_tf = self.index.term_frequencies(term, doc_id)
            if not title_tf and not text_tf:
                continue
            matched.append(term)
            weighted = weighted_term_frequency(title_tf, text_tf, title_weight=self.title_weight)
            total += weighted * idfs[term] / norm

        total *= self.category_weights.get(document.category, 1.0)
        return total, tuple(matched)
