"""Command line interface for building and querying search indexes."""

from __future__ import annotations

import argparse
from collections.abc import Sequence
import logging
from pathlib import Path
import sys
from typing import TextIO

import orjson
from opentelemetry.sdk.trace.export import ConsoleSpanExporter

from docsite_search.config import SearchSettings
from docsite_search.corpus import load_documenter_index
from docsite_search.errors import SearchIndexError
from docsite_search.observability.logging import configure_logging
from docsite_search.observability.tracing import init_tracing
from docsite_search.search.engine import QueryEngine
from docsite_search.search.indexer import IndexBuilder
from docsite_search.search.serialization import index_fingerprint, load_index, save_index


logger = logging.getLogger(__name__)


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docsite-search",
        description="Build and query full-text indexes for generated documentation sites.",
    )
    parser.add_argument("--log-level", default=None, help="Override DOCSITE_SEARCH_LOG_LEVEL")
    parser.add_argument("--log-json", action="store_true", help="Emit structured JSON logs")
    parser.add_argument("--trace", action="store_true", help="Print OpenTelemetry spans to stderr")
    subparsers = parser.add_subparsers(dest="command", required=True)

    build = subparsers.add_parser("build", help="Index a search_index.js / JSON corpus")
    build.add_argument("source", type=Path, help="Corpus file (Documenter search_index.js or JSON)")
    build.add_argument("-o", "--output", type=Path, required=True, help="Where to write the index")
    build.add_argument("--workers", type=int, default=None, help="Tokenizer threads (default: settings)")
    build.add_argument(
        "--strict-locations",
        action="store_true",
        help="Do not merge page blocks that share a location; report them as duplicates",
    )

    query = subparsers.add_parser("query", help="Run a query against a saved index")
    query.add_argument("index", type=Path, help="Index file written by 'build'")
    query.add_argument("text", help="Free-text query")
    query.add_argument("-k", "--top-k", type=int, default=None, help="Maximum results")
    query.add_argument("--group-by-page", action="store_true", help="Keep only the best hit per page")
    query.add_argument("--json", action="store_true", help="Print results as JSON")

    inspect = subparsers.add_parser("inspect", help="Summarize a saved index")
    inspect.add_argument("index", type=Path, help="Index file written by 'build'")
    return parser


def _run_build(args: argparse.Namespace, settings: SearchSettings, out: TextIO) -> int:
    documents = load_documenter_index(args.source, merge_blocks=not args.strict_locations)
    result = IndexBuilder(settings, workers=args.workers).build_with_report(documents)
    path = save_index(args.output, result.index)
    out.write(
        f"Indexed {result.documents_indexed} documents ({result.terms_indexed} terms) "
        f"in {result.duration_s:.3f}s -> {path}\n"
    )
    return 0


def _run_query(args: argparse.Namespace, settings: SearchSettings, out: TextIO) -> int:
    index = load_index(args.index)
    engine = QueryEngine(index, settings, name=args.index.stem)
    response = engine.search(args.text, args.top_k, group_by_page=args.group_by_page or None)
    if args.json:
        payload = [result.model_dump() for result in response.results]
        out.write(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode("utf-8") + "\n")
        return 0
    if not response.results:
        out.write("No results.\n")
        return 0
    for rank, result in enumerate(response.results, start=1):
        out.write(f"{rank:>2}. {result.title} [{result.category}] {result.location} ({result.score:.4f})\n")
        if result.snippet:
            out.write(f"    {result.snippet}\n")
    return 0


def _run_inspect(args: argparse.Namespace, settings: SearchSettings, out: TextIO) -> int:
    index = load_index(args.index)
    categories: dict[str, int] = {}
    for document in index.documents:
        categories[document.category] = categories.get(document.category, 0) + 1
    out.write(f"documents:   {index.doc_count}\n")
    out.write(f"terms:       {index.term_count}\n")
    out.write(f"avg length:  {index.stats.average_length:.2f}\n")
    out.write(f"analyzer:    {index.analyzer_spec.name} (min length {index.analyzer_spec.min_token_length})\n")
    out.write(f"fingerprint: {index_fingerprint(index)}\n")
    for category, count in sorted(categories.items()):
        out.write(f"  {category:<10} {count}\n")
    return 0


_COMMANDS = {
    "build": _run_build,
    "query": _run_query,
    "inspect": _run_inspect,
}


def main(argv: Sequence[str] | None = None, *, out: TextIO | None = None) -> int:
    parser = build_argument_parser()
    args = parser.parse_args(argv)
    settings = SearchSettings()
    configure_logging(args.log_level or settings.log_level, json_output=args.log_json or settings.log_json)
    if args.trace or settings.trace_spans:
        init_tracing(span_exporter=ConsoleSpanExporter(out=sys.stderr))

    try:
        return _COMMANDS[args.command](args, settings, out or sys.stdout)
    except SearchIndexError as exc:
        logger.error("%s failed: %s", args.command, exc)
        sys.stderr.write(f"error: {exc}\n")
        return 2


if __name__ == "__main__":
    sys.exit(main())
