"""Quote- and bracket-aware character scanning for loosely structured DDL.

Every text helper in the parser package is built on :func:`scan`, a small
state machine that walks a string once and reports, for each character,
whether it sits inside a quoted segment and how deeply it is nested in
parentheses or square brackets.  Quoted segments use single quotes, double
quotes, or backticks; inside a segment a backslash escapes the next
character and a doubled quote character stands for a literal quote.

Keeping this logic in one place means clause extraction, column-list
splitting, and comment detection all agree on what "outside quotes" and
"top level" mean.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

QUOTE_CHARS = frozenset("'\"`")
_OPENERS = frozenset("([")
_CLOSERS = frozenset(")]")


@dataclass(frozen=True)
class ScanPosition:
    """State of the scanner at a single character."""

    index: int
    char: str
    depth: int
    quoted: bool


def scan(text: str) -> Iterator[ScanPosition]:
    """Yield a :class:`ScanPosition` for every character of *text*.

    ``depth`` is the bracket depth *before* an opening bracket is applied and
    *after* a closing bracket is applied, so a bracket pair is reported at the
    depth of its enclosing expression.  Quote characters themselves and
    everything between them are reported with ``quoted=True``.
    """
    depth = 0
    quote: str | None = None
    i = 0
    length = len(text)
    while i < length:
        ch = text[i]
        if quote is not None:
            yield ScanPosition(i, ch, depth, True)
            if ch == "\\" and i + 1 < length:
                i += 1
                yield ScanPosition(i, text[i], depth, True)
            elif ch == quote:
                if i + 1 < length and text[i + 1] == quote:
                    i += 1
                    yield ScanPosition(i, text[i], depth, True)
                else:
                    quote = None
            i += 1
            continue

        if ch in QUOTE_CHARS:
            quote = ch
            yield ScanPosition(i, ch, depth, True)
        elif ch in _OPENERS:
            yield ScanPosition(i, ch, depth, False)
            depth += 1
        elif ch in _CLOSERS:
            depth = max(depth - 1, 0)
            yield ScanPosition(i, ch, depth, False)
        else:
            yield ScanPosition(i, ch, depth, False)
        i += 1


def split_top_level(text: str, separator: str = ",") -> list[str]:
    """Split *text* on *separator* characters that are unquoted and at depth 0.

    Parts are stripped and empty parts are dropped.
    """
    parts: list[str] = []
    start = 0
    for pos in scan(text):
        if pos.char == separator and not pos.quoted and pos.depth == 0:
            parts.append(text[start : pos.index])
            start = pos.index + 1
    parts.append(text[start:])
    return [p.strip() for p in parts if p.strip()]


def matching_bracket(text: str, open_index: int) -> int:
    """Return the index of the bracket closing the one at *open_index*, or -1."""
    if open_index < 0 or open_index >= len(text) or text[open_index] not in _OPENERS:
        return -1
    target_depth: int | None = None
    for pos in scan(text):
        if pos.index < open_index:
            continue
        if pos.index == open_index:
            target_depth = pos.depth
            continue
        if not pos.quoted and pos.char in _CLOSERS and pos.depth == target_depth:
            return pos.index
    return -1


def first_unquoted(text: str, char: str, *, depth: int | None = 0) -> int:
    """Return the index of the first unquoted *char* (at *depth*, if given), or -1."""
    for pos in scan(text):
        if pos.char == char and not pos.quoted and (depth is None or pos.depth == depth):
            return pos.index
    return -1


def _is_word_char(ch: str) -> bool:
    return ch.isalnum() or ch == "_"


def _keyword_at(text: str, index: int, keyword: str) -> int:
    """Return the end index of *keyword* matched at *index*, or -1.

    Multi-word keywords (``ORDER BY``) match any run of whitespace between
    their words.  The match must be delimited by non-word characters.
    """
    if index > 0 and _is_word_char(text[index - 1]):
        return -1
    pos = index
    words = keyword.split()
    for n, word in enumerate(words):
        if n > 0:
            gap = pos
            while gap < len(text) and text[gap].isspace():
                gap += 1
            if gap == pos:
                return -1
            pos = gap
        if text[pos : pos + len(word)].upper() != word.upper():
            return -1
        pos += len(word)
    if pos < len(text) and _is_word_char(text[pos]):
        return -1
    return pos


@dataclass(frozen=True)
class KeywordMatch:
    """A keyword located outside quotes."""

    keyword: str
    start: int
    end: int


def find_keywords(
    text: str,
    keywords: Iterable[str],
    *,
    depth: int | None = 0,
    start: int = 0,
) -> list[KeywordMatch]:
    """Return every unquoted occurrence of *keywords* in *text*, in order.

    When several keywords match at the same position the longest wins, so
    ``PRIMARY KEY`` is preferred over a bare ``PRIMARY``.  Matching is
    case-insensitive.
    """
    ordered = sorted(set(keywords), key=len, reverse=True)
    matches: list[KeywordMatch] = []
    skip_until = -1
    for pos in scan(text):
        if pos.index < start or pos.index < skip_until or pos.quoted:
            continue
        if depth is not None and pos.depth != depth:
            continue
        for keyword in ordered:
            end = _keyword_at(text, pos.index, keyword)
            if end >= 0:
                matches.append(KeywordMatch(keyword, pos.index, end))
                skip_until = end
                break
    return matches


def find_keyword(
    text: str,
    keywords: Iterable[str],
    *,
    depth: int | None = 0,
    start: int = 0,
) -> KeywordMatch | None:
    """Return the first unquoted occurrence of any of *keywords*, or ``None``."""
    found = find_keywords(text, keywords, depth=depth, start=start)
    return found[0] if found else None


_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "0": "\0"}


def read_quoted(text: str, index: int) -> tuple[str, int] | None:
    """Read the quoted literal starting at *index*.

    Returns the unescaped content and the index just past the closing quote,
    or ``None`` when *index* is not a quote character or the literal is not
    terminated.
    """
    if index >= len(text) or text[index] not in QUOTE_CHARS:
        return None
    quote = text[index]
    out: list[str] = []
    i = index + 1
    while i < len(text):
        ch = text[i]
        if ch == "\\" and i + 1 < len(text):
            nxt = text[i + 1]
            out.append(_ESCAPES.get(nxt, nxt))
            i += 2
            continue
        if ch == quote:
            if i + 1 < len(text) and text[i + 1] == quote:
                out.append(quote)
                i += 2
                continue
            return "".join(out), i + 1
        out.append(ch)
        i += 1
    return None


def read_identifier(text: str, index: int = 0) -> tuple[str, int] | None:
    """Read a backtick/double-quoted or bare identifier starting at *index*.

    Leading whitespace is skipped.  Returns the identifier and the index just
    past it, or ``None`` if nothing identifier-like is present.
    """
    i = index
    while i < len(text) and text[i].isspace():
        i += 1
    if i >= len(text):
        return None
    if text[i] in "`\"":
        return read_quoted(text, i)
    start = i
    while i < len(text) and not text[i].isspace() and text[i] not in "(),;":
        i += 1
    if i == start:
        return None
    return text[start:i], i


def strip_wrapping_parens(text: str) -> str:
    """Remove one pair of parentheses wrapping the whole of *text*."""
    stripped = text.strip()
    if stripped.startswith("(") and matching_bracket(stripped, 0) == len(stripped) - 1:
        return stripped[1:-1].strip()
    return stripped


def quote_literal(value: str) -> str:
    """Render *value* as a single-quoted SQL string literal."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def quote_identifier(name: str) -> str:
    """Render *name* as a backtick-quoted identifier."""
    return "`" + name.replace("`", "``") + "`"
