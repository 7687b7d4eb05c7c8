"""Analyzer utilities for the search index.

Analyzers follow Whoosh's composable tokenizer/filter design: a tokenizer
yields raw ``Token`` objects and filters transform the stream lazily. The
same analyzer instance is used for indexing and for query parsing so both
sides always agree on term forms.

Tokens are maximal runs of Unicode alphanumerics. Hyphens, apostrophes, dots
and underscores all split, while letter/digit mixes such as ``CCM89`` stay a
single term.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass, replace
import re
from typing import Protocol


@dataclass(frozen=True, slots=True)
class Token:
    """Represents a token emitted by analyzers.

    ``start_char``/``end_char`` always refer to the original, unfiltered
    input so snippets can be cut from the raw text.
    """

    text: str
    position: int
    start_char: int
    end_char: int


class Tokenizer(Protocol):
    """Protocol implemented by tokenizers."""

    def __call__(self, text: str) -> Iterator[Token]:  # pragma: no cover - interface definition
        ...


class TokenFilter(Protocol):
    """Protocol implemented by token filters."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:  # pragma: no cover - interface definition
        ...


_MARKUP_PATTERN = re.compile(r"<[^<>\n]{1,200}>|&(?:[a-zA-Z]{2,8}|#[0-9]{1,6}|#x[0-9a-fA-F]{1,6});")


def blank_markup(text: str) -> str:
    """Replace HTML tags and entities with spaces, keeping character offsets stable."""

    if "<" not in text and "&" not in text:
        return text
    return _MARKUP_PATTERN.sub(lambda match: " " * len(match.group(0)), text)


class RegexTokenizer:
    """Regex-based tokenizer yielding maximal alphanumeric runs."""

    def __init__(self, pattern: str = r"[^\W_]+", *, strip_markup: bool = True) -> None:
        self.pattern = re.compile(pattern, re.UNICODE)
        self.strip_markup = strip_markup

    def __call__(self, text: str) -> Iterator[Token]:
        source = blank_markup(text) if self.strip_markup else text
        for position, match in enumerate(self.pattern.finditer(source)):
            yield Token(
                text=match.group(0),
                position=position,
                start_char=match.start(),
                end_char=match.end(),
            )


class LowercaseFilter:
    """Filter that lowercases token text."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            lowered = token.text.lower()
            yield token if lowered == token.text else replace(token, text=lowered)


class MinLengthFilter:
    """Drops tokens shorter than ``min_length`` characters."""

    def __init__(self, min_length: int = 2) -> None:
        if min_length < 1:
            raise ValueError("min_length must be >= 1")
        self.min_length = min_length

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if len(token.text) >= self.min_length:
                yield token


class StopFilter:
    """Removes stopwords from the stream. The default vocabulary is empty."""

    def __init__(self, stopwords: Iterable[str] | None = None) -> None:
        self.stopwords = frozenset(word.lower() for word in (stopwords or ()))

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        if not self.stopwords:
            yield from tokens
            return
        for token in tokens:
            if token.text not in self.stopwords:
                yield token


_SUFFIX_RULES: tuple[tuple[str, str], ...] = (
    ("ization", "ize"),
    ("ational", "ate"),
    ("fulness", "ful"),
    ("ousness", "ous"),
    ("iveness", "ive"),
    ("tional", "tion"),
    ("ation", "ate"),
    ("ied", "y"),
    ("ies", "y"),
    ("ness", ""),
    ("ment", ""),
)

_SIMPLE_SUFFIXES: tuple[str, ...] = ("ingly", "edly", "ing", "ed", "es", "s")


class SuffixStemFilter:
    """Applies a minimal English suffix-stripping routine.

    Tokens containing digits are left alone so identifiers like ``f99`` or
    ``ccm89`` never collapse.
    """

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            stemmed = stem(token.text)
            yield token if stemmed == token.text else replace(token, text=stemmed)


def stem(word: str) -> str:
    if not word.isalpha():
        return word
    for suffix, replacement in _SUFFIX_RULES:
        if word.endswith(suffix) and len(word) - len(suffix) >= 2:
            return word[: -len(suffix)] + replacement
    for suffix in _SIMPLE_SUFFIXES:
        if word.endswith(suffix) and len(word) - len(suffix) >= 3:
            return word[: -len(suffix)]
    return word


class AnalyzerPipeline:
    """Composable analyzer pipeline (tokenizer + filters).

    ``tokenize`` is a lazy generator; positions are renumbered after
    filtering so they stay dense.
    """

    def __init__(self, tokenizer: Tokenizer, filters: Sequence[TokenFilter] | None = None) -> None:
        self.tokenizer = tokenizer
        self.filters = list(filters or [])

    def tokenize(self, text: str) -> Iterator[Token]:
        stream: Iterable[Token] = self.tokenizer(text)
        for token_filter in self.filters:
            stream = token_filter(stream)
        for position, token in enumerate(stream):
            yield token if token.position == position else replace(token, position=position)

    def __call__(self, text: str) -> list[Token]:
        return list(self.tokenize(text))

    def terms(self, text: str) -> Iterator[tuple[str, int]]:
        """Yield ``(term, position)`` pairs."""
        for token in self.tokenize(text):
            yield token.text, token.position


class StandardAnalyzer(AnalyzerPipeline):
    """Default analyzer: markup stripping, alphanumeric runs, lowercase, length and stop filters."""

    def __init__(
        self,
        *,
        min_token_length: int = 2,
        stopwords: Iterable[str] | None = None,
        apply_stemming: bool = False,
    ) -> None:
        filters: list[TokenFilter] = [
            LowercaseFilter(),
            MinLengthFilter(min_token_length),
            StopFilter(stopwords),
        ]
        if apply_stemming:
            filters.append(SuffixStemFilter())
        super().__init__(RegexTokenizer(), filters)
        self.min_token_length = min_token_length
        self.stopwords = tuple(sorted({word.lower() for word in (stopwords or ())}))
        self.apply_stemming = apply_stemming


class KeywordAnalyzer(AnalyzerPipeline):
    """Analyzer that treats the entire (lowercased, trimmed) input as a single token."""

    def __init__(self) -> None:
        super().__init__(self._whole_input)

    @staticmethod
    def _whole_input(text: str) -> Iterator[Token]:
        stripped = text.strip()
        if not stripped:
            return
        start = text.index(stripped)
        yield Token(text=stripped.lower(), position=0, start_char=start, end_char=start + len(stripped))


Analyzer = AnalyzerPipeline

_ANALYZER_FACTORIES: dict[str, Callable[..., Analyzer]] = {
    "default": lambda **options: StandardAnalyzer(**options),
    "stem": lambda **options: StandardAnalyzer(apply_stemming=True, **options),
    "keyword": lambda **_options: KeywordAnalyzer(),
}


def get_analyzer(
    name: str | None = None,
    *,
    min_token_length: int = 2,
    stopwords: Iterable[str] | None = None,
) -> Analyzer:
    """Return analyzer by name, defaulting to the standard analyzer."""

    normalized = (name or "default").lower()
    if normalized not in _ANALYZER_FACTORIES:
        msg = f"Unknown analyzer '{name}'. Available: {sorted(_ANALYZER_FACTORIES)}"
        raise ValueError(msg)
    return _ANALYZER_FACTORIES[normalized](min_token_length=min_token_length, stopwords=stopwords)


def tokenize(text: str, *, min_token_length: int = 2, stopwords: Iterable[str] | None = None) -> Iterator[Token]:
    """Tokenize ``text`` with the default analyzer."""

    return StandardAnalyzer(min_token_length=min_token_length, stopwords=stopwords).tokenize(text)
