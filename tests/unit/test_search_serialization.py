"""Unit tests for index persistence."""

from __future__ import annotations

import hashlib

import orjson
import pytest

from docsite_search.errors import IndexFormatError
from docsite_search.search.engine import QueryEngine
from docsite_search.search.indexer import build_index
from docsite_search.search.serialization import (
    FORMAT_TAG,
    FORMAT_VERSION,
    deserialize,
    index_fingerprint,
    load_index,
    save_index,
    serialize,
)


def _decode(blob: bytes) -> dict:
    return orjson.loads(blob)


def _resign(envelope: dict) -> bytes:
    """Re-encode an edited envelope with a matching checksum."""
    body = orjson.dumps(envelope["index"], option=orjson.OPT_SORT_KEYS)
    envelope["checksum"] = hashlib.sha256(body).hexdigest()
    return orjson.dumps(envelope, option=orjson.OPT_SORT_KEYS)


@pytest.fixture
def docs_index(docs_corpus, settings):
    return build_index(docs_corpus, settings)


class TestRoundTrip:
    def test_loaded_index_answers_queries_identically(self, docs_index, settings):
        restored = deserialize(serialize(docs_index))
        for query in ("dust law", "CCM89", "reddening maps", "usage", "nothing here"):
            before = QueryEngine(docs_index, settings).search(query)
            after = QueryEngine(restored, settings).search(query)
            assert after.results == before.results

    def test_round_trip_is_byte_stable(self, docs_index):
        blob = serialize(docs_index)
        assert serialize(deserialize(blob)) == blob

    def test_same_corpus_serializes_to_same_bytes(self, docs_corpus, settings):
        assert serialize(build_index(docs_corpus, settings)) == serialize(build_index(docs_corpus, settings))

    def test_metadata_and_analyzer_survive(self, docs_index):
        restored = deserialize(serialize(docs_index))
        assert restored.documents == docs_index.documents
        assert restored.analyzer_spec == docs_index.analyzer_spec
        assert restored.vocabulary == docs_index.vocabulary

    def test_empty_index_round_trips(self, settings):
        empty = build_index([], settings)
        restored = deserialize(serialize(empty))
        assert restored.doc_count == 0
        assert QueryEngine(restored, settings).search("dust").results == []

    def test_accepts_text_input(self, dust_law_index):
        restored = deserialize(serialize(dust_law_index).decode("utf-8"))
        assert restored.doc_count == 2

    def test_envelope_layout(self, dust_law_index):
        envelope = _decode(serialize(dust_law_index))
        assert envelope["format"] == FORMAT_TAG
        assert envelope["version"] == FORMAT_VERSION
        assert envelope["checksum"] == index_fingerprint(dust_law_index)
        assert set(envelope["index"]) == {"analyzer", "documents", "postings"}


class TestCorruption:
    @pytest.mark.parametrize("blob", [b"", b"not json", b"{\"format\": ", b"[]", b"42"])
    def test_undecodable_blobs(self, blob):
        with pytest.raises(IndexFormatError):
            deserialize(blob)

    def test_truncated_blob(self, dust_law_index):
        blob = serialize(dust_law_index)
        with pytest.raises(IndexFormatError):
            deserialize(blob[: len(blob) // 2])

    def test_wrong_format_tag(self, dust_law_index):
        envelope = _decode(serialize(dust_law_index))
        envelope["format"] = "something-else"
        with pytest.raises(IndexFormatError, match="format"):
            deserialize(orjson.dumps(envelope))

    def test_unsupported_version(self, dust_law_index):
        envelope = _decode(serialize(dust_law_index))
        envelope["version"] = FORMAT_VERSION + 1
        with pytest.raises(IndexFormatError, match="version"):
            deserialize(orjson.dumps(envelope))

    def test_edited_body_fails_checksum(self, dust_law_index):
        envelope = _decode(serialize(dust_law_index))
        envelope["index"]["documents"][0]["title"] = "Tampered"
        with pytest.raises(IndexFormatError, match="checksum"):
            deserialize(orjson.dumps(envelope))

    def test_missing_section(self, dust_law_index):
        envelope = _decode(serialize(dust_law_index))
        del envelope["index"]["postings"]
        with pytest.raises(IndexFormatError):
            deserialize(_resign(envelope))

    def test_length_disagreeing_with_postings(self, dust_law_index):
        envelope = _decode(serialize(dust_law_index))
        envelope["index"]["documents"][0]["length"] = 99
        with pytest.raises(IndexFormatError, match="length"):
            deserialize(_resign(envelope))

    def test_posting_out_of_range(self, dust_law_index):
        envelope = _decode(serialize(dust_law_index))
        envelope["index"]["postings"]["text"]["dust"][1][0] = 7
        with pytest.raises(IndexFormatError, match="out of range"):
            deserialize(_resign(envelope))

    def test_unsorted_postings(self, dust_law_index):
        envelope = _decode(serialize(dust_law_index))
        envelope["index"]["postings"]["text"]["dust"].reverse()
        with pytest.raises(IndexFormatError, match="unsorted"):
            deserialize(_resign(envelope))

    def test_duplicate_locations(self, dust_law_index):
        envelope = _decode(serialize(dust_law_index))
        envelope["index"]["documents"][1]["location"] = envelope["index"]["documents"][0]["location"]
        with pytest.raises(IndexFormatError, match="Duplicate location"):
            deserialize(_resign(envelope))

    def test_dangling_parent(self, dust_law_index):
        envelope = _decode(serialize(dust_law_index))
        envelope["index"]["documents"][1]["parent"] = 5
        with pytest.raises(IndexFormatError, match="parent"):
            deserialize(_resign(envelope))

    def test_unknown_analyzer(self, dust_law_index):
        envelope = _decode(serialize(dust_law_index))
        envelope["index"]["analyzer"]["name"] = "klingon"
        with pytest.raises(IndexFormatError, match="analyzer"):
            deserialize(_resign(envelope))

    def test_unknown_field(self, dust_law_index):
        envelope = _decode(serialize(dust_law_index))
        envelope["index"]["postings"]["body"] = {}
        with pytest.raises(IndexFormatError, match="Unknown posting fields"):
            deserialize(_resign(envelope))


class TestFiles:
    def test_save_and_load(self, tmp_path, docs_index):
        path = save_index(tmp_path / "nested" / "site.index", docs_index)
        assert path.exists()
        assert not path.with_name("site.index.tmp").exists()
        assert serialize(load_index(path)) == serialize(docs_index)

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(IndexFormatError, match="not found"):
            load_index(tmp_path / "missing.index")

    def test_load_corrupt_file(self, tmp_path):
        path = tmp_path / "corrupt.index"
        path.write_bytes(b"\x00\x01garbage")
        with pytest.raises(IndexFormatError):
            load_index(path)

    def test_fingerprint_changes_with_content(self, dust_law_index, docs_index):
        assert index_fingerprint(dust_law_index) != index_fingerprint(docs_index)
