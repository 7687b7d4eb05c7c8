"""Search data models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


TITLE_FIELD = "title"
TEXT_FIELD = "text"
INDEXED_FIELDS: tuple[str, ...] = (TITLE_FIELD, TEXT_FIELD)


@dataclass(frozen=True, slots=True)
class Posting:
    """A posting represents the occurrences of one term in one document field.

    Frequency is derived from the number of positions.
    """

    doc_id: int
    positions: tuple[int, ...]

    @property
    def frequency(self) -> int:
        return len(self.positions)

    def to_list(self) -> list[Any]:
        """Compact ``[doc_id, [positions...]]`` form used by the serializer."""
        return [self.doc_id, list(self.positions)]


@dataclass(frozen=True, slots=True)
class DocumentMetadata:
    """Stored fields for an indexed document.

    ``parent_id`` is the doc id of the page record that owns an anchored
    entry, or ``None`` for page records and orphaned entries.
    """

    doc_id: int
    location: str
    page: str
    title: str
    category: str
    text: str
    length: int
    parent_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.doc_id,
            "location": self.location,
            "page": self.page,
            "title": self.title,
            "category": self.category,
            "text": self.text,
            "length": self.length,
            "parent": self.parent_id,
        }
