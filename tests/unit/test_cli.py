"""Unit tests for the command line interface."""

from __future__ import annotations

import io
import logging

import orjson
import pytest

from docsite_search.cli import build_argument_parser, main
from docsite_search.observability import tracing as tracing_module
from docsite_search.observability.tracing import set_tracer


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def built_index(tmp_path, documenter_fixture_path):
    output = tmp_path / "site.index"
    assert main(["build", str(documenter_fixture_path), "-o", str(output)], out=io.StringIO()) == 0
    return output


def _run(argv: list[str]) -> tuple[int, str]:
    out = io.StringIO()
    code = main(argv, out=out)
    return code, out.getvalue()


def test_parser_requires_a_command():
    with pytest.raises(SystemExit):
        build_argument_parser().parse_args([])


class TestBuild:
    def test_build_writes_index(self, tmp_path, documenter_fixture_path):
        output = tmp_path / "out" / "site.index"
        code, text = _run(["build", str(documenter_fixture_path), "-o", str(output), "--workers", "2"])
        assert code == 0
        assert text.startswith("Indexed 7 documents (")
        assert str(output) in text
        assert output.exists()

    def test_strict_locations_reports_duplicates(self, tmp_path, documenter_fixture_path, capsys):
        output = tmp_path / "site.index"
        code, _ = _run(["build", str(documenter_fixture_path), "-o", str(output), "--strict-locations"])
        assert code == 2
        assert "Duplicate document locations" in capsys.readouterr().err
        assert not output.exists()

    def test_missing_corpus(self, tmp_path, capsys):
        code, _ = _run(["build", str(tmp_path / "nope.js"), "-o", str(tmp_path / "site.index")])
        assert code == 2
        assert "error: Cannot read corpus file" in capsys.readouterr().err


class TestQuery:
    def test_plain_output(self, built_index):
        code, text = _run(["query", str(built_index), "CCM89", "-k", "2"])
        assert code == 0
        lines = text.splitlines()
        assert lines[0].startswith(" 1. DustExtinction.CCM89 [type] color_laws/#DustExtinction.CCM89 (")
        assert "[[CCM89]]" in lines[1]
        assert sum(1 for line in lines if line[:3].strip().endswith(".")) == 2

    def test_json_output(self, built_index):
        code, text = _run(["query", str(built_index), "dust map", "--json"])
        assert code == 0
        results = orjson.loads(text)
        assert {result["location"] for result in results[:2]} == {
            "dust_maps/#DustExtinction.SFD98Map",
            "dust_maps/#DustExtinction.ebv_galactic",
        }
        assert results[0]["matched_terms"] == ["dust", "map"]
        assert set(results[0]) == {"location", "page", "title", "category", "score", "snippet", "matched_terms"}

    def test_group_by_page(self, built_index):
        code, text = _run(["query", str(built_index), "dust", "--json", "--group-by-page"])
        assert code == 0
        pages = [result["page"] for result in orjson.loads(text)]
        assert len(pages) == len(set(pages))

    def test_no_results(self, built_index):
        assert _run(["query", str(built_index), "quasar"]) == (0, "No results.\n")

    def test_corrupt_index(self, tmp_path, capsys):
        path = tmp_path / "corrupt.index"
        path.write_bytes(b"garbage")
        code, text = _run(["query", str(path), "dust"])
        assert code == 2
        assert text == ""
        assert "error:" in capsys.readouterr().err


def test_inspect(built_index):
    code, text = _run(["inspect", str(built_index)])
    assert code == 0
    assert "documents:   7" in text
    assert "analyzer:    default (min length 2)" in text
    assert "  function   1" in text
    assert "  page       2" in text
    assert "  section    2" in text
    assert "  type       2" in text


class TestTrace:
    @pytest.fixture(autouse=True)
    def isolated_tracer(self, monkeypatch):
        monkeypatch.setattr(tracing_module.trace, "set_tracer_provider", lambda _provider: None)
        yield
        set_tracer(None)

    def test_build_and_query_print_spans(self, tmp_path, documenter_fixture_path, capsys):
        output = tmp_path / "site.index"
        assert _run(["--trace", "build", str(documenter_fixture_path), "-o", str(output)])[0] == 0
        assert '"name": "index.build"' in capsys.readouterr().err

        code, text = _run(["--trace", "query", str(output), "CCM89"])
        assert code == 0
        assert "[[CCM89]]" in text
        err = capsys.readouterr().err
        assert '"name": "search.query"' in err
        assert '"search.index": "site"' in err

    def test_spans_are_not_printed_by_default(self, built_index, capsys):
        capsys.readouterr()
        assert _run(["query", str(built_index), "CCM89"])[0] == 0
        assert '"name": "search.query"' not in capsys.readouterr().err
