"""Centralized configuration for docsite-search using Pydantic Settings."""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SearchSettings(BaseSettings):
    """Strictly typed search configuration.

    Values come from keyword arguments first, then ``DOCSITE_SEARCH_*``
    environment variables, then an optional ``.env`` file. Everything is
    validated at construction so a bad value fails at startup rather than in
    the middle of a query.
    """

    model_config = SettingsConfigDict(
        env_prefix="DOCSITE_SEARCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
        frozen=True,
    )

    # Tokenizer
    analyzer: Literal["default", "stem", "keyword"] = Field(
        default="default",
        description="Analyzer profile used for both documents and queries (keyword keeps each field whole)",
    )
    min_token_length: int = Field(default=2, ge=1, description="Tokens shorter than this are discarded")
    stopwords: str = Field(
        default="", description="Comma-separated terms removed at analysis time (empty: identifiers are meaningful)"
    )

    # Ranking
    title_weight: float = Field(default=3.0, ge=0.0, description="Multiplier applied to title term matches")
    length_b: float = Field(
        default=0.75, ge=0.0, le=1.0, description="Strength of document length normalization (0 disables)"
    )
    parent_weight: float = Field(
        default=0.0, ge=0.0, description="Share of the parent page score added to matching anchored entries"
    )
    category_weights: dict[str, float] = Field(
        default_factory=dict, description="Per-category score multipliers (missing categories weigh 1.0)"
    )

    # Query engine
    group_by_page: bool = Field(default=False, description="Keep only the best-ranked result per page")
    snippet_window: int = Field(default=160, ge=16, description="Maximum snippet length in characters")
    highlight_style: Literal["plain", "html"] = Field(
        default="plain", description="plain wraps matches in [[...]], html uses <mark>"
    )
    top_k_default: int = Field(default=10, ge=1, description="Result count when the caller passes none")
    reject_negative_top_k: bool = Field(
        default=False, description="Raise QueryError for negative top_k instead of returning no results"
    )

    # Indexing
    build_workers: int = Field(default=1, ge=1, description="Threads used to tokenize corpus shards")

    # Logging
    log_level: str = Field(default="info", description="Logging level")
    log_json: bool = Field(default=False, description="Emit structured JSON logs")
    trace_spans: bool = Field(default=False, description="Print OpenTelemetry spans to stderr from the CLI")

    @property
    def stopword_list(self) -> list[str]:
        return [word.strip().lower() for word in self.stopwords.split(",") if word.strip()]

    @field_validator("category_weights")
    @classmethod
    def _check_category_weights(cls, value: dict[str, float]) -> dict[str, float]:
        normalized: dict[str, float] = {}
        for category, weight in value.items():
            if weight < 0:
                raise ValueError(f"category weight for {category!r} must be >= 0")
            normalized[category.strip().lower()] = float(weight)
        return normalized
