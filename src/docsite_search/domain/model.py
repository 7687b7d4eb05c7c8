"""Corpus records consumed by the indexer.

A record describes one indexable fragment of a generated documentation site:
either the prose body of a page or an anchored entry (section heading,
docstring) that lives inside a page.
"""

from __future__ import annotations

from collections.abc import Mapping
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from docsite_search.errors import CorpusError


PAGE_CATEGORY = "page"
SECTION_CATEGORY = "section"

_CATEGORY_PATTERN = re.compile(r"^[a-z][a-z0-9_-]*$")


class Document(BaseModel):
    """Value object for a single corpus record.

    ``category`` is ``page`` for prose bodies; every other category (``section``,
    ``function``, ``type``...) is an anchored entry owned by the nearest
    preceding page record of the same page.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", str_strip_whitespace=False)

    location: str
    page: str
    title: str
    category: str
    text: str = ""

    @field_validator("category")
    @classmethod
    def _validate_category(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not _CATEGORY_PATTERN.match(normalized):
            raise ValueError(f"invalid category {value!r}")
        return normalized

    @property
    def is_page(self) -> bool:
        return self.category == PAGE_CATEGORY


def coerce_document(record: Document | Mapping[str, Any], record_index: int) -> Document:
    """Return ``record`` as a Document, raising CorpusError for malformed input."""

    if isinstance(record, Document):
        return record
    if not isinstance(record, Mapping):
        msg = f"Record {record_index} is not a mapping: {type(record).__name__}"
        raise CorpusError(msg, record_index=record_index)
    try:
        return Document.model_validate(dict(record), strict=True)
    except ValidationError as exc:
        problems = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors())
        msg = f"Record {record_index} is malformed: {problems}"
        raise CorpusError(msg, record_index=record_index) from exc
