"""Domain layer: corpus records and search result value objects."""

from docsite_search.domain.model import PAGE_CATEGORY, SECTION_CATEGORY, Document, coerce_document
from docsite_search.domain.search import SearchResponse, SearchResult, SearchStats


__all__ = [
    "PAGE_CATEGORY",
    "SECTION_CATEGORY",
    "Document",
    "SearchResponse",
    "SearchResult",
    "SearchStats",
    "coerce_document",
]
