"""Domain models for search results.

Value objects are immutable (frozen=True) and can be shared across threads.
"""

from pydantic import BaseModel, ConfigDict, Field


class SearchResult(BaseModel):
    """A single ranked hit, ready for navigation."""

    model_config = ConfigDict(frozen=True)

    location: str
    page: str
    title: str
    category: str
    score: float
    snippet: str
    matched_terms: tuple[str, ...] = Field(default_factory=tuple)


class SearchStats(BaseModel):
    """Debug information for a search operation."""

    model_config = ConfigDict(frozen=True)

    query_terms: tuple[str, ...]
    candidates: int
    returned: int
    search_time: float


class SearchResponse(BaseModel):
    """A complete search response."""

    model_config = ConfigDict(frozen=True)

    results: list[SearchResult]
    stats: SearchStats | None = None

    def __len__(self) -> int:
        return len(self.results)

    @property
    def locations(self) -> list[str]:
        return [result.location for result in self.results]
