"""Statistical helpers for TF-IDF style scoring.

The functions here stay independent of the index layout so the ranking
formula can be unit tested in isolation.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
import math


@dataclass(frozen=True)
class CorpusStats:
    """Aggregated length statistics across all documents."""

    document_count: int
    total_terms: int

    @property
    def average_length(self) -> float:
        if self.document_count == 0:
            return 0.0
        return self.total_terms / self.document_count

    @classmethod
    def from_lengths(cls, lengths: Iterable[int]) -> CorpusStats:
        count = 0
        total = 0
        for length in lengths:
            count += 1
            total += max(length, 0)
        return cls(document_count=count, total_terms=total)


def calculate_idf(doc_freq: int, total_docs: int) -> float:
    """Return ``log(1 + N / df)``.

    Always positive for a term that occurs somewhere, so common terms in a
    small corpus still contribute a little rather than going negative.
    """

    if total_docs <= 0 or doc_freq <= 0:
        return 0.0
    return math.log(1.0 + total_docs / doc_freq)


def length_normalization(doc_length: int, avg_doc_length: float, *, b: float = 0.75) -> float:
    """Return the BM25-style length divisor ``1 - b + b * dl / avgdl``.

    Empty documents and empty corpora normalize to 1 so they are neither
    rewarded nor penalized.
    """

    if doc_length <= 0 or avg_doc_length <= 0:
        return 1.0
    return 1.0 - b + b * (doc_length / avg_doc_length)


def weighted_term_frequency(title_tf: int, text_tf: int, *, title_weight: float) -> float:
    """Combine per-field frequencies, counting title matches ``title_weight`` times."""

    return title_weight * title_tf + text_tf
