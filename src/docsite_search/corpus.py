"""Corpus loading for Documenter-style ``search_index.js`` artifacts.

Documenter writes ``var documenterSearchIndex = {"docs": [...]}``: a flat list
of ``{location, page, title, text, category}`` records. Page prose is split
into many ``page`` records that all share the page's location; with
``merge_page_blocks`` those blocks are joined into the first record for the
location so the corpus satisfies the unique-location rule.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
import logging
from pathlib import Path
from typing import Any

import orjson

from docsite_search.domain.model import Document, coerce_document
from docsite_search.errors import CorpusError


logger = logging.getLogger(__name__)

_BLOCK_SEPARATOR = "\n"


def parse_documenter_payload(raw: str | bytes) -> list[dict[str, Any]]:
    """Extract the record list from a ``search_index.js`` body or bare JSON."""

    text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
    start = text.find("{")
    list_start = text.find("[")
    if list_start != -1 and (start == -1 or list_start < start):
        start = list_start
    end = max(text.rfind("}"), text.rfind("]"))
    if start == -1 or end < start:
        raise CorpusError("Search index payload contains no JSON object")

    try:
        payload = orjson.loads(text[start : end + 1])
    except orjson.JSONDecodeError as exc:
        raise CorpusError(f"Search index payload is not valid JSON: {exc}") from exc

    records = payload.get("docs") if isinstance(payload, Mapping) else payload
    if not isinstance(records, list):
        raise CorpusError("Search index payload has no 'docs' list")
    return records


def merge_page_blocks(documents: Sequence[Document]) -> list[Document]:
    """Join ``page`` records sharing a location into the first such record.

    Anchored entries (sections, docstrings) are never merged; a duplicate
    among them still reaches the builder and is reported there.
    """

    merged: list[Document] = []
    first_page_at: dict[str, int] = {}
    blocks: dict[int, list[str]] = {}
    for document in documents:
        if not document.is_page:
            merged.append(document)
            continue
        slot = first_page_at.get(document.location)
        if slot is None or merged[slot].page != document.page:
            first_page_at[document.location] = len(merged)
            blocks[len(merged)] = [document.text] if document.text else []
            merged.append(document)
            continue
        if document.text:
            blocks[slot].append(document.text)

    for slot, texts in blocks.items():
        joined = _BLOCK_SEPARATOR.join(texts)
        if joined != merged[slot].text:
            merged[slot] = merged[slot].model_copy(update={"text": joined})

    folded = len(documents) - len(merged)
    if folded:
        logger.info("Merged %d page blocks into %d page records", folded, len(blocks))
    return merged


def load_documents(records: Sequence[Mapping[str, Any] | Document], *, merge_blocks: bool = True) -> list[Document]:
    documents = [coerce_document(record, position) for position, record in enumerate(records)]
    return merge_page_blocks(documents) if merge_blocks else documents


def load_documenter_index(source: str | Path, *, merge_blocks: bool = True) -> list[Document]:
    """Load corpus records from a ``search_index.js``/JSON file path or its contents.

    Raises:
        CorpusError: unreadable payload or malformed records.
    """

    if isinstance(source, Path) or (isinstance(source, str) and "{" not in source and "[" not in source):
        path = Path(source)
        try:
            raw: str | bytes = path.read_bytes()
        except OSError as exc:
            raise CorpusError(f"Cannot read corpus file {path}: {exc}") from exc
        logger.debug("Loading corpus from %s", path)
    else:
        raw = source
    return load_documents(parse_documenter_payload(raw), merge_blocks=merge_blocks)
