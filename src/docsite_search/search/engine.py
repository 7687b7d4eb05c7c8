"""Query engine: tokenize, retrieve, rank, group and snippet.

Multi-term queries use OR semantics so partial matches still surface; the
ranker's tiered coordination keeps documents matching more of the query on
top. An empty query, or one whose terms are all unknown, yields an empty
response rather than an error.
"""

from __future__ import annotations

import logging
import threading
import time

from opentelemetry.trace import SpanKind

from docsite_search.config import SearchSettings
from docsite_search.domain.search import SearchResponse, SearchResult, SearchStats
from docsite_search.errors import QueryError
from docsite_search.observability.context import trace_scope
from docsite_search.observability.metrics import QUERY_COUNT, SEARCH_LATENCY, track_latency
from docsite_search.observability.tracing import create_span
from docsite_search.search.index import SearchIndex
from docsite_search.search.ranking import RankedDocument, Ranker, unique_terms
from docsite_search.search.snippet import build_snippet


logger = logging.getLogger(__name__)


class QueryEngine:
    """Answer free-text queries against one immutable ``SearchIndex``."""

    def __init__(self, index: SearchIndex, settings: SearchSettings | None = None, *, name: str = "default") -> None:
        self.index = index
        self.settings = settings or SearchSettings()
        self.name = name
        self.ranker = Ranker.from_settings(index, self.settings)

    def tokenize_query(self, query_text: str) -> tuple[str, ...]:
        """Return the distinct query terms in first-seen order."""
        return unique_terms(term for term, _position in self.index.analyzer.terms(query_text))

    def search(
        self,
        query_text: str,
        top_k: int | None = None,
        *,
        group_by_page: bool | None = None,
        include_stats: bool = False,
        cancel: threading.Event | None = None,
    ) -> SearchResponse:
        """Return up to ``top_k`` ranked results for ``query_text``.

        Raises:
            QueryError: ``query_text`` is not a string, ``top_k`` is not an
                integer, or ``top_k`` is negative while
                ``reject_negative_top_k`` is enabled.
            SearchCancelledError: ``cancel`` was set during scoring.
        """

        limit = self._resolve_top_k(top_k)
        if not isinstance(query_text, str):
            raise QueryError(f"query must be a string, got {type(query_text).__name__}")
        grouped = self.settings.group_by_page if group_by_page is None else group_by_page

        start = time.perf_counter()
        with (
            trace_scope(index=self.name),
            create_span(
                "search.query",
                kind=SpanKind.INTERNAL,
                attributes={"search.query": query_text[:100], "search.top_k": limit, "search.index": self.name},
            ) as span,
            track_latency(SEARCH_LATENCY, index=self.name),
        ):
            terms = self.tokenize_query(query_text) if limit > 0 else ()
            if not terms:
                QUERY_COUNT.labels(index=self.name, outcome="empty").inc()
                span.set_attribute("search.result_count", 0)
                return self._response([], terms, 0, start, include_stats)

            ranked = self.ranker.rank(terms, cancel=cancel)
            if grouped:
                ranked = self._collapse_pages(ranked)
            selected = ranked[:limit]

            term_set = frozenset(terms)
            results = [self._to_result(entry, term_set) for entry in selected]

            QUERY_COUNT.labels(index=self.name, outcome="hit" if results else "miss").inc()
            span.set_attribute("search.result_count", len(results))
            logger.debug("Query %r matched %d candidates, returning %d", query_text[:100], len(ranked), len(results))
            return self._response(results, terms, len(ranked), start, include_stats)

    def _resolve_top_k(self, top_k: object) -> int:
        if top_k is None:
            return self.settings.top_k_default
        if isinstance(top_k, bool) or not isinstance(top_k, int):
            raise QueryError(f"top_k must be an integer, got {type(top_k).__name__}")
        if top_k < 0 and self.settings.reject_negative_top_k:
            raise QueryError(f"top_k must be >= 0, got {top_k}")
        return max(top_k, 0)

    def _collapse_pages(self, ranked: list[RankedDocument]) -> list[RankedDocument]:
        """Keep the best-ranked entry per page, preserving ranked order."""
        seen_pages: set[str] = set()
        collapsed: list[RankedDocument] = []
        for entry in ranked:
            page = self.index.document(entry.doc_id).page
            if page in seen_pages:
                continue
            seen_pages.add(page)
            collapsed.append(entry)
        return collapsed

    def _to_result(self, entry: RankedDocument, terms: frozenset[str]) -> SearchResult:
        document = self.index.document(entry.doc_id)
        snippet_source = document.text or document.title
        snippet = build_snippet(
            snippet_source,
            terms,
            self.index.analyzer,
            window=self.settings.snippet_window,
            style=self.settings.highlight_style,
        )
        return SearchResult(
            location=document.location,
            page=document.page,
            title=document.title,
            category=document.category,
            score=entry.score,
            snippet=snippet,
            matched_terms=entry.matched_terms,
        )

    @staticmethod
    def _response(
        results: list[SearchResult],
        terms: tuple[str, ...],
        candidates: int,
        start: float,
        include_stats: bool,
    ) -> SearchResponse:
        stats = None
        if include_stats:
            stats = SearchStats(
                query_terms=terms,
                candidates=candidates,
                returned=len(results),
                search_time=time.perf_counter() - start,
            )
        return SearchResponse(results=results, stats=stats)
