"""Exception taxonomy for the search index.

Library code raises these and lets callers decide; the CLI and the index
repository are the only places that log them.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence


class SearchIndexError(Exception):
    """Base class for all errors raised by docsite_search."""


class CorpusError(SearchIndexError, ValueError):
    """Raised when the corpus cannot be indexed (duplicates, malformed records)."""

    def __init__(
        self,
        message: str,
        *,
        duplicates: Mapping[str, Sequence[int]] | None = None,
        record_index: int | None = None,
    ) -> None:
        super().__init__(message)
        self.duplicates = {key: tuple(value) for key, value in (duplicates or {}).items()}
        self.record_index = record_index


class QueryError(SearchIndexError, ValueError):
    """Raised for malformed query input such as a non-integer ``top_k``."""


class IndexFormatError(SearchIndexError, ValueError):
    """Raised when a serialized index is corrupt or has an unsupported version."""


class SearchCancelledError(SearchIndexError):
    """Raised when a search is cancelled cooperatively mid-scoring."""
