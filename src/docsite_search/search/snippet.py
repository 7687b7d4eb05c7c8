"""Snippet extraction and highlighting.

Snippets are cut from the document text, with HTML tags blanked out, around the first token that
matches a query term, snapped to word boundaries, and every matching token
inside the window is highlighted. Matching uses the index analyzer rather
than substring search, so ``law`` does not light up inside ``lawful``.

Styles:
- ``plain`` wraps matches in ``[[...]]``
- ``html`` escapes the text and wraps matches in ``<mark>...</mark>``
"""

from __future__ import annotations

from collections.abc import Collection
import html
import re

from docsite_search.search.analyzers import Analyzer, Token


ELLIPSIS = "..."
WHITESPACE_PATTERN = re.compile(r"\s+")
TAG_PATTERN = re.compile(r"<[^<>\n]{1,200}>")


def blank_tags(text: str) -> str:
    """Replace HTML tags with spaces so offsets into ``text`` stay valid."""
    if "<" not in text:
        return text
    return TAG_PATTERN.sub(lambda match: " " * len(match.group(0)), text)


def find_window_start(text: str, start: int, anchor: int) -> int:
    """Move ``start`` forward to the next word boundary without passing ``anchor``."""
    if start <= 0:
        return 0
    if text[start - 1].isspace():
        return start
    match = WHITESPACE_PATTERN.search(text, start, anchor)
    return match.end() if match else start


def find_window_end(text: str, end: int, anchor_end: int) -> int:
    """Move ``end`` back to the previous word boundary without cutting the anchor."""
    if end >= len(text):
        return len(text)
    if text[end].isspace():
        return end
    boundary = end
    for match in WHITESPACE_PATTERN.finditer(text, anchor_end, end):
        boundary = match.start()
    return boundary if boundary >= anchor_end and boundary != end else end


def compute_window(text: str, anchor: Token | None, window: int) -> tuple[int, int]:
    """Return ``(start, end)`` of a window of at most ``window`` characters.

    A matched token longer than ``window`` is returned whole.
    """

    if len(text) <= window:
        return 0, len(text)
    if anchor is None:
        return 0, find_window_end(text, window, 0)

    match_length = anchor.end_char - anchor.start_char
    if match_length >= window:
        return anchor.start_char, anchor.end_char
    start = max(0, anchor.start_char - max(0, window - match_length) // 2)
    end = min(len(text), start + window)
    start = max(0, end - window)
    return find_window_start(text, start, anchor.start_char), find_window_end(text, end, anchor.end_char)


def _mark(fragment: str, style: str) -> str:
    if style == "html":
        return f"<mark>{html.escape(fragment)}</mark>"
    return f"[[{fragment}]]"


def _plain(fragment: str, style: str) -> str:
    fragment = html.unescape(fragment)
    return html.escape(fragment) if style == "html" else fragment


def build_snippet(
    text: str,
    terms: Collection[str],
    analyzer: Analyzer,
    *,
    window: int = 160,
    style: str = "plain",
) -> str:
    """Build a highlighted snippet of ``text`` around the first matched term.

    Returns an empty string for empty text. When no term matches, the head
    of the text is returned without highlights.
    """

    if not text:
        return ""

    source = blank_tags(text)
    tokens = [token for token in analyzer.tokenize(text) if token.text in terms]
    anchor = tokens[0] if tokens else None
    start, end = compute_window(source, anchor, window)

    pieces: list[str] = []
    cursor = start
    for token in tokens:
        if token.start_char < start:
            continue
        if token.end_char > end:
            break
        pieces.append(_plain(source[cursor : token.start_char], style))
        pieces.append(_mark(source[token.start_char : token.end_char], style))
        cursor = token.end_char
    pieces.append(_plain(source[cursor:end], style))

    body = WHITESPACE_PATTERN.sub(" ", "".join(pieces)).strip()
    prefix = ELLIPSIS if start > 0 else ""
    suffix = ELLIPSIS if end < len(text) else ""
    return f"{prefix}{body}{suffix}"
