"""Versioned, deterministic index persistence.

The blob is an orjson document with sorted keys::

    {"checksum": <sha256 of the canonical "index" body>,
     "format": "docsite-search-index",
     "index": {"analyzer": {...}, "documents": [...], "postings": {...}},
     "version": 1}

Nothing time- or randomness-dependent goes in, so the same corpus always
serializes to the same bytes. ``deserialize`` either returns a fully
validated ``SearchIndex`` or raises ``IndexFormatError``.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Any

import orjson
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from docsite_search.errors import IndexFormatError
from docsite_search.search.index import AnalyzerSpec, SearchIndex
from docsite_search.search.models import INDEXED_FIELDS, DocumentMetadata, Posting


logger = logging.getLogger(__name__)

FORMAT_TAG = "docsite-search-index"
FORMAT_VERSION = 1
SUPPORTED_VERSIONS = frozenset({FORMAT_VERSION})

_DUMP_OPTIONS = orjson.OPT_SORT_KEYS


class _AnalyzerPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    min_token_length: int = Field(ge=1)
    stopwords: list[str]


class _DocumentPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: int = Field(ge=0)
    location: str
    page: str
    title: str
    category: str
    text: str
    length: int = Field(ge=0)
    parent: int | None = None


class _IndexPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    analyzer: _AnalyzerPayload
    documents: list[_DocumentPayload]
    postings: dict[str, dict[str, list[tuple[int, list[int]]]]]


class _Envelope(BaseModel):
    model_config = ConfigDict(extra="forbid")

    format: str
    version: int
    checksum: str
    index: dict[str, Any]


def _body(index: SearchIndex) -> dict[str, Any]:
    spec = index.analyzer_spec
    return {
        "analyzer": {
            "name": spec.name,
            "min_token_length": spec.min_token_length,
            "stopwords": list(spec.stopwords),
        },
        "documents": [document.to_dict() for document in index.documents],
        "postings": {
            field_name: {term: [posting.to_list() for posting in postings] for term, postings in terms.items()}
            for field_name, terms in index.postings.items()
        },
    }


def _checksum(body_bytes: bytes) -> str:
    return hashlib.sha256(body_bytes).hexdigest()


def index_fingerprint(index: SearchIndex) -> str:
    """Return the content checksum that ``serialize`` would embed."""
    return _checksum(orjson.dumps(_body(index), option=_DUMP_OPTIONS))


def serialize(index: SearchIndex) -> bytes:
    """Encode ``index`` as a versioned, byte-stable blob."""

    body = _body(index)
    envelope = {
        "format": FORMAT_TAG,
        "version": FORMAT_VERSION,
        "checksum": _checksum(orjson.dumps(body, option=_DUMP_OPTIONS)),
        "index": body,
    }
    return orjson.dumps(envelope, option=_DUMP_OPTIONS)


def deserialize(blob: bytes | bytearray | memoryview | str) -> SearchIndex:
    """Decode a blob produced by ``serialize``.

    Raises:
        IndexFormatError: undecodable data, wrong format tag, unsupported
            version, checksum mismatch or inconsistent contents.
    """

    try:
        raw = orjson.loads(blob)
    except orjson.JSONDecodeError as exc:
        raise IndexFormatError(f"Index blob is not valid JSON: {exc}") from exc

    try:
        envelope = _Envelope.model_validate(raw)
    except ValidationError as exc:
        raise IndexFormatError(f"Index envelope is malformed: {exc.error_count()} problem(s)") from exc

    if envelope.format != FORMAT_TAG:
        raise IndexFormatError(f"Unexpected index format {envelope.format!r}; expected {FORMAT_TAG!r}")
    if envelope.version not in SUPPORTED_VERSIONS:
        raise IndexFormatError(
            f"Unsupported index version {envelope.version}; supported: {sorted(SUPPORTED_VERSIONS)}"
        )

    actual = _checksum(orjson.dumps(envelope.index, option=_DUMP_OPTIONS))
    if actual != envelope.checksum:
        raise IndexFormatError("Index checksum mismatch; the blob is corrupt or was edited")

    try:
        payload = _IndexPayload.model_validate(envelope.index)
    except ValidationError as exc:
        raise IndexFormatError(f"Index body is malformed: {exc.error_count()} problem(s)") from exc

    return _to_index(payload)


def _to_index(payload: _IndexPayload) -> SearchIndex:
    documents = [
        DocumentMetadata(
            doc_id=entry.id,
            location=entry.location,
            page=entry.page,
            title=entry.title,
            category=entry.category,
            text=entry.text,
            length=entry.length,
            parent_id=entry.parent,
        )
        for entry in payload.documents
    ]
    doc_count = len(documents)

    seen_locations: set[str] = set()
    for position, document in enumerate(documents):
        if document.doc_id != position:
            raise IndexFormatError(f"Document ids are not dense: found {document.doc_id} at position {position}")
        if document.location in seen_locations:
            raise IndexFormatError(f"Duplicate location {document.location!r} in serialized index")
        seen_locations.add(document.location)
        if document.parent_id is not None and not 0 <= document.parent_id < doc_count:
            raise IndexFormatError(f"Document {position} references missing parent {document.parent_id}")

    unknown_fields = set(payload.postings) - set(INDEXED_FIELDS)
    if unknown_fields:
        raise IndexFormatError(f"Unknown posting fields: {sorted(unknown_fields)}")

    lengths = [0] * doc_count
    postings: dict[str, dict[str, tuple[Posting, ...]]] = {}
    for field_name, terms in payload.postings.items():
        field_postings: dict[str, tuple[Posting, ...]] = {}
        for term, entries in terms.items():
            previous = -1
            decoded: list[Posting] = []
            for doc_id, positions in entries:
                if not previous < doc_id < doc_count:
                    raise IndexFormatError(f"Postings for {field_name}:{term!r} are unsorted or out of range")
                if not positions:
                    raise IndexFormatError(f"Empty posting for {field_name}:{term!r} in document {doc_id}")
                previous = doc_id
                lengths[doc_id] += len(positions)
                decoded.append(Posting(doc_id=doc_id, positions=tuple(positions)))
            field_postings[term] = tuple(decoded)
        postings[field_name] = field_postings

    for document in documents:
        if lengths[document.doc_id] != document.length:
            raise IndexFormatError(
                f"Document {document.doc_id} length {document.length} disagrees with postings ({lengths[document.doc_id]})"
            )

    spec = AnalyzerSpec(
        name=payload.analyzer.name,
        min_token_length=payload.analyzer.min_token_length,
        stopwords=tuple(payload.analyzer.stopwords),
    )
    try:
        spec.build()
    except ValueError as exc:
        raise IndexFormatError(f"Index references an unknown analyzer: {exc}") from exc

    return SearchIndex(postings=postings, documents=tuple(documents), analyzer_spec=spec)


def save_index(path: str | Path, index: SearchIndex) -> Path:
    """Write the serialized index atomically (temp file + rename)."""

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = target.with_name(target.name + ".tmp")
    tmp_path.write_bytes(serialize(index))
    tmp_path.replace(target)
    logger.info("Saved search index (%d documents) to %s", index.doc_count, target)
    return target


def load_index(path: str | Path) -> SearchIndex:
    """Read and deserialize an index written by ``save_index``."""

    source = Path(path)
    try:
        blob = source.read_bytes()
    except FileNotFoundError as exc:
        raise IndexFormatError(f"Index file not found: {source}") from exc
    index = deserialize(blob)
    logger.info("Loaded search index (%d documents) from %s", index.doc_count, source)
    return index
