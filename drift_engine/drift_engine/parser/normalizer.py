"""Canonicalisation of SQL types, default expressions, and comments.

Every function here is pure and total: it accepts arbitrary text, never
raises, and is idempotent (``f(f(x)) == f(x)``).  The diff engine compares
local and remote values only after passing both through the same
normaliser, so formatting noise (whitespace, quoting, inline clauses that
the warehouse echoes back) never shows up as drift.

Clause boundaries are located with :mod:`drift_engine.parser.scanner`, so a
keyword such as ``COMMENT`` that appears inside a string literal or a nested
type argument is never mistaken for the start of a clause.
"""

from __future__ import annotations

import re

from drift_engine.parser.scanner import find_keyword, read_quoted, scan, strip_wrapping_parens

# Column-definition clauses that may follow the type in a column listing or
# a CREATE statement.  The type ends at the first of these.
TYPE_SUFFIX_KEYWORDS: tuple[str, ...] = (
    "DEFAULT",
    "MATERIALIZED",
    "ALIAS",
    "EPHEMERAL",
    "COMMENT",
    "CODEC",
    "TTL",
    "SETTINGS",
)

_WHITESPACE_RE = re.compile(r"\s+")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")
_COMMA_SPACING_RE = re.compile(r"\s*,\s*")
_TO_INTERVAL_RE = re.compile(
    r"tointerval(second|minute|hour|day|week|month|quarter|year)\((\d+)\)",
)


def collapse_whitespace(text: str) -> str:
    """Trim *text* and collapse internal whitespace runs to single spaces."""
    return _WHITESPACE_RE.sub(" ", text).strip()


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------


def normalize_type(raw: str | None) -> str:
    """Strip inline column clauses from *raw* and return the bare type.

    ``Nullable(String) DEFAULT 'x' COMMENT 'note'`` becomes
    ``Nullable(String)``.  Only clause keywords that are unquoted and at the
    top bracket level count, so ``Enum8('DEFAULT' = 1)`` is left intact.
    """
    if not raw:
        return ""
    match = find_keyword(raw, TYPE_SUFFIX_KEYWORDS)
    if match is not None:
        raw = raw[: match.start]
    return raw.strip()


def canonicalize_type(type_text: str | None) -> str:
    """Lower-case *type_text* and drop all whitespace outside quoted segments."""
    if not type_text:
        return ""
    kept = [pos.char for pos in scan(type_text) if pos.quoted or not pos.char.isspace()]
    return "".join(kept).lower()


def comparable_type(raw: str | None) -> str:
    """Return the form used for strict type equality: canonical bare type."""
    return canonicalize_type(normalize_type(raw))


_WRAPPER_RE = re.compile(r"^(?:nullable|lowcardinality)\((.*)\)$")


def type_shape(raw: str | None) -> str:
    """Classify a type as ``array``, ``map``, or ``scalar``.

    ``Nullable(...)`` and ``LowCardinality(...)`` wrappers are ignored.
    """
    canon = comparable_type(raw)
    while True:
        wrapped = _WRAPPER_RE.match(canon)
        if wrapped is None:
            break
        canon = wrapped.group(1)
    if canon.startswith("array("):
        return "array"
    if canon.startswith("map("):
        return "map"
    return "scalar"


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


def _is_balanced_call(text: str) -> bool:
    if "(" not in text or ")" not in text:
        return False
    depth = 0
    for pos in scan(text):
        if pos.quoted:
            continue
        if pos.char == "(":
            depth += 1
        elif pos.char == ")":
            depth -= 1
            if depth < 0:
                return False
    return depth == 0


def normalize_default(raw: str | None) -> str | None:
    """Canonicalise a default expression for comparison.

    Whitespace is collapsed.  Function-call expressions (balanced
    parentheses) are returned as-is; otherwise wrapping single or double
    quotes are peeled off so that ``'abc'`` and ``abc`` compare equal.
    ``None`` stays ``None``.
    """
    if raw is None:
        return None
    normalized = collapse_whitespace(raw)
    if _is_balanced_call(normalized):
        return normalized
    while len(normalized) >= 2 and normalized[0] == normalized[-1] and normalized[0] in "'\"":
        inner = normalized[1:-1]
        if normalized[0] in inner:
            break
        normalized = collapse_whitespace(inner)
        if _is_balanced_call(normalized):
            break
    return normalized


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


def extract_comment(raw_type: str | None) -> str | None:
    """Return the argument of an inline ``COMMENT`` clause in *raw_type*.

    Quoted arguments are unescaped; a bare argument runs up to the next
    whitespace, comma, or closing parenthesis.  Returns ``None`` when no
    unquoted top-level ``COMMENT`` keyword exists.
    """
    if not raw_type:
        return None
    match = find_keyword(raw_type, ("COMMENT",))
    if match is None:
        return None
    i = match.end
    while i < len(raw_type) and raw_type[i].isspace():
        i += 1
    quoted = read_quoted(raw_type, i)
    if quoted is not None:
        return quoted[0]
    bare = re.match(r"[^\s,)]+", raw_type[i:])
    return bare.group(0) if bare else None


def clean_comment(comment: str | None) -> str | None:
    """Undo JSON-style escaping of a comment and peel wrapping double quotes."""
    if comment is None:
        return None
    cleaned = comment.strip()
    while '\\"' in cleaned:
        cleaned = cleaned.replace('\\"', '"')
    while len(cleaned) >= 2 and cleaned.startswith('"') and cleaned.endswith('"'):
        cleaned = cleaned[1:-1].strip()
    return cleaned


def normalize_comment(raw: str | None) -> str | None:
    """Canonicalise a comment: unescape, peel wrapping quotes, collapse whitespace.

    Empty comments normalise to ``None`` so that "no comment" and
    ``COMMENT ''`` compare equal.
    """
    cleaned = clean_comment(raw)
    if not cleaned:
        return None
    collapsed = collapse_whitespace(cleaned)
    return clean_comment(collapsed) or None


# ---------------------------------------------------------------------------
# Names and table clauses
# ---------------------------------------------------------------------------


def canonical_name(name: str) -> str:
    """Lower-case *name* and drop non-alphanumerics, for fuzzy matching only."""
    return _NON_ALNUM_RE.sub("", name.lower())


def names_equivalent(first: str, second: str) -> bool:
    """Return True if two names share a canonical form."""
    return canonical_name(first) == canonical_name(second)


def normalize_clause(value: str | None) -> str | None:
    """Canonicalise an ORDER BY / PARTITION BY / PRIMARY KEY expression.

    Backticks and one pair of wrapping parentheses are removed, whitespace
    is collapsed, and comma spacing is made uniform.
    """
    if value is None:
        return None
    text = collapse_whitespace(value.replace("`", ""))
    text = strip_wrapping_parens(text)
    text = _COMMA_SPACING_RE.sub(", ", text)
    return text or None


def normalize_ttl(value: str | None) -> str | None:
    """Canonicalise a TTL expression.

    The warehouse echoes ``INTERVAL 30 DAY`` back as ``toIntervalDay(30)``;
    both collapse to ``interval30day``.
    """
    text = normalize_clause(value)
    if text is None:
        return None
    compact = _WHITESPACE_RE.sub("", text.lower())
    return _TO_INTERVAL_RE.sub(lambda m: f"interval{m.group(2)}{m.group(1)}", compact)


def engine_name(engine: str | None) -> str:
    """Return the lower-cased engine family name without arguments."""
    if not engine:
        return "mergetree"
    return engine.split("(", 1)[0].strip().lower()


def engine_arguments(engine: str | None) -> str:
    """Return the canonical engine argument list (may be empty)."""
    if not engine or "(" not in engine:
        return ""
    args = engine.split("(", 1)[1]
    if args.endswith(")"):
        args = args[:-1]
    return canonicalize_type(args.replace("`", ""))


def canonical_index_expression(expression: str | None) -> str:
    """Canonicalise an index expression: no backticks, no whitespace, lower case."""
    return _WHITESPACE_RE.sub("", (expression or "").replace("`", "")).lower()


def canonical_projection_query(query: str | None) -> str:
    """Canonicalise a projection query: no backticks, no whitespace, lower case."""
    return _WHITESPACE_RE.sub("", (query or "").replace("`", "")).lower()


_OPEN_PAREN_SPACE_RE = re.compile(r"\(\s+")
_CLOSE_PAREN_SPACE_RE = re.compile(r"\s+\)")


def normalize_view_query(query: str | None) -> str:
    """Canonicalise a materialized view query for comparison.

    Whitespace is collapsed, spacing inside parentheses and around commas is
    made uniform, trailing semicolons are dropped, and the result is
    upper-cased.  Backticks are removed because the server echoes
    identifiers quoted.
    """
    text = collapse_whitespace((query or "").replace("`", "")).rstrip("; ")
    text = _COMMA_SPACING_RE.sub(", ", text)
    text = _OPEN_PAREN_SPACE_RE.sub("(", text)
    text = _CLOSE_PAREN_SPACE_RE.sub(")", text)
    return text.strip().upper()
