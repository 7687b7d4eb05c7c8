"""Full-text search index for generated documentation sites."""

from docsite_search.config import SearchSettings
from docsite_search.corpus import load_documenter_index
from docsite_search.domain.model import Document
from docsite_search.domain.search import SearchResponse, SearchResult
from docsite_search.errors import CorpusError, IndexFormatError, QueryError, SearchCancelledError, SearchIndexError
from docsite_search.search.analyzers import tokenize
from docsite_search.search.engine import QueryEngine
from docsite_search.search.index import SearchIndex
from docsite_search.search.indexer import IndexBuilder, build_index
from docsite_search.search.repository import IndexRepository
from docsite_search.search.serialization import deserialize, load_index, save_index, serialize


__all__ = [
    "CorpusError",
    "Document",
    "IndexBuilder",
    "IndexFormatError",
    "IndexRepository",
    "QueryEngine",
    "QueryError",
    "SearchCancelledError",
    "SearchIndex",
    "SearchIndexError",
    "SearchResponse",
    "SearchResult",
    "SearchSettings",
    "build_index",
    "deserialize",
    "load_documenter_index",
    "load_index",
    "save_index",
    "serialize",
    "tokenize",
]
