"""Structured extraction of ``SHOW CREATE TABLE`` output.

Entry points:

* :func:`parse_create_options` pulls the table-level clauses (engine,
  ``ON CLUSTER``, ``ORDER BY``, ``PARTITION BY``, ``PRIMARY KEY``, ``TTL``,
  indices, projections, comment).
* :func:`parse_columns_from_create` splits the column list into per-column
  definitions with their type, default, and comment separated out.
* :func:`extract_view_query` returns the ``AS`` query of a materialized
  view.

Both work on top of the quote/bracket scanner, so commas inside nested
types, defaults containing function calls, and escaped quotes inside
comments are handled uniformly.  Both raise
:class:`~drift_engine.errors.CreateStatementParseError` when the statement
has no balanced column list; the description builder turns that into a
warning.
"""

from __future__ import annotations

import logging
import re

from drift_engine.errors import CreateStatementParseError
from drift_engine.models.remote import ParsedColumn, ParsedCreateOptions, ParsedIndex, ParsedProjection
from drift_engine.parser.normalizer import TYPE_SUFFIX_KEYWORDS, normalize_type
from drift_engine.parser.scanner import (
    find_keyword,
    find_keywords,
    first_unquoted,
    matching_bracket,
    read_identifier,
    read_quoted,
    split_top_level,
    strip_wrapping_parens,
)

logger = logging.getLogger(__name__)

# Table-level clauses that may follow the column list, in any order.
TABLE_CLAUSE_KEYWORDS: tuple[str, ...] = (
    "ENGINE",
    "ORDER BY",
    "PARTITION BY",
    "PRIMARY KEY",
    "SAMPLE BY",
    "TTL",
    "SETTINGS",
    "COMMENT",
)

_CLUSTER_RE = re.compile(r"\bON\s+CLUSTER\s+(?:`([^`]+)`|'([^']+)'|([^\s(]+))", re.IGNORECASE)
_GRANULARITY_RE = re.compile(r"^\s*(\d+)")
_COLUMN_LIST_SKIP = ("CONSTRAINT",)


def _split_create(statement: str) -> tuple[str, str, str]:
    """Return ``(head, column_list_body, tail)`` for a CREATE statement."""
    open_index = first_unquoted(statement, "(")
    if open_index < 0:
        raise CreateStatementParseError("CREATE statement has no column list")
    close_index = matching_bracket(statement, open_index)
    if close_index < 0:
        raise CreateStatementParseError("CREATE statement column list is not balanced")
    return statement[:open_index], statement[open_index + 1 : close_index], statement[close_index + 1 :]


def _parse_index(part: str) -> ParsedIndex | None:
    ident = read_identifier(part, len("INDEX"))
    if ident is None:
        return None
    name, pos = ident
    type_kw = find_keyword(part, ("TYPE",), start=pos)
    if type_kw is None:
        return None
    expression = part[pos : type_kw.start].strip()
    granularity_kw = find_keyword(part, ("GRANULARITY",), start=type_kw.end)
    if granularity_kw is None:
        index_type = part[type_kw.end :].strip()
        granularity = None
    else:
        index_type = part[type_kw.end : granularity_kw.start].strip()
        found = _GRANULARITY_RE.match(part[granularity_kw.end :])
        granularity = int(found.group(1)) if found else None
    return ParsedIndex(name=name, expression=expression, type=index_type, granularity=granularity)


def _parse_projection(part: str) -> ParsedProjection | None:
    ident = read_identifier(part, len("PROJECTION"))
    if ident is None:
        return None
    name, pos = ident
    open_index = part.find("(", pos)
    if open_index < 0:
        return None
    close_index = matching_bracket(part, open_index)
    if close_index < 0:
        return None
    return ParsedProjection(name=name, query=part[open_index + 1 : close_index].strip())


def _is_column_list_entry(part: str, keyword: str) -> bool:
    """Return True if *part* starts with the bare *keyword*.

    An ``INDEX`` entry must also carry a ``TYPE`` clause so that a bare
    column literally named ``index`` is still treated as a column.
    """
    match = find_keyword(part, (keyword,))
    if match is None or match.start != 0:
        return False
    if keyword == "INDEX":
        return find_keyword(part, ("TYPE",), start=match.end) is not None
    return True


def _table_clauses(tail: str) -> dict[str, str]:
    """Map each table-level clause keyword in *tail* to its raw value."""
    matches = find_keywords(tail, TABLE_CLAUSE_KEYWORDS)
    clauses: dict[str, str] = {}
    for n, match in enumerate(matches):
        end = matches[n + 1].start if n + 1 < len(matches) else len(tail)
        key = " ".join(match.keyword.split()).upper()
        clauses.setdefault(key, tail[match.end : end].strip().rstrip(";").strip())
    return clauses


def parse_create_options(statement: str) -> ParsedCreateOptions:
    """Extract table-level clauses from a ``CREATE TABLE`` statement."""
    head, body, tail = _split_create(statement)

    on_cluster: str | None = None
    cluster = _CLUSTER_RE.search(head)
    if cluster:
        on_cluster = next(g for g in cluster.groups() if g)

    indices: list[ParsedIndex] = []
    projections: list[ParsedProjection] = []
    inline_primary_key: str | None = None
    for part in split_top_level(body):
        if _is_column_list_entry(part, "INDEX"):
            parsed_index = _parse_index(part)
            if parsed_index is not None:
                indices.append(parsed_index)
            else:
                logger.debug("Unparseable index definition: %.120s", part)
        elif _is_column_list_entry(part, "PROJECTION"):
            parsed_projection = _parse_projection(part)
            if parsed_projection is not None:
                projections.append(parsed_projection)
            else:
                logger.debug("Unparseable projection definition: %.120s", part)
        elif _is_column_list_entry(part, "PRIMARY KEY"):
            inline_primary_key = strip_wrapping_parens(part[find_keyword(part, ("PRIMARY KEY",)).end :])

    clauses = _table_clauses(tail)

    engine = clauses.get("ENGINE")
    if engine is not None:
        engine = engine.lstrip("=").strip() or None

    primary_key = clauses.get("PRIMARY KEY")
    if primary_key is not None:
        primary_key = strip_wrapping_parens(primary_key)
    elif inline_primary_key:
        primary_key = inline_primary_key

    comment: str | None = None
    raw_comment = clauses.get("COMMENT")
    if raw_comment:
        literal = read_quoted(raw_comment, 0)
        comment = literal[0] if literal is not None else raw_comment

    return ParsedCreateOptions(
        engine=engine,
        on_cluster=on_cluster,
        order_by=strip_wrapping_parens(clauses["ORDER BY"]) if "ORDER BY" in clauses else None,
        partition_by=strip_wrapping_parens(clauses["PARTITION BY"]) if "PARTITION BY" in clauses else None,
        primary_key=primary_key,
        sample_by=strip_wrapping_parens(clauses["SAMPLE BY"]) if "SAMPLE BY" in clauses else None,
        ttl=clauses.get("TTL") or None,
        indices=indices,
        projections=projections,
        comment=comment,
    )


def _clause_argument(definition: str, keyword: str) -> str | None:
    match = find_keyword(definition, (keyword,))
    if match is None:
        return None
    following = find_keyword(definition, TYPE_SUFFIX_KEYWORDS, start=match.end)
    end = following.start if following is not None else len(definition)
    return definition[match.end : end].strip() or None


def parse_columns_from_create(statement: str) -> list[ParsedColumn]:
    """Extract per-column definitions from a ``CREATE TABLE`` statement.

    Index, projection, primary-key, and constraint entries in the column
    list are skipped.
    """
    _, body, _ = _split_create(statement)
    columns: list[ParsedColumn] = []
    for part in split_top_level(body):
        if any(
            _is_column_list_entry(part, keyword)
            for keyword in ("INDEX", "PROJECTION", "PRIMARY KEY", *_COLUMN_LIST_SKIP)
        ):
            continue
        ident = read_identifier(part)
        if ident is None:
            continue
        name, pos = ident
        definition = part[pos:].strip()
        if not definition:
            continue

        comment: str | None = None
        comment_arg = _clause_argument(definition, "COMMENT")
        if comment_arg is not None:
            literal = read_quoted(comment_arg, 0)
            comment = literal[0] if literal is not None else comment_arg

        columns.append(
            ParsedColumn(
                name=name,
                type=normalize_type(definition),
                default=_clause_argument(definition, "DEFAULT"),
                comment=comment,
                definition=definition,
            )
        )
    return columns


_MATERIALIZED_VIEW_RE = re.compile(
    r"^\s*(?:CREATE|ATTACH)\s+(?:OR\s+REPLACE\s+)?MATERIALIZED\s+VIEW\b",
    re.IGNORECASE,
)


def is_materialized_view_statement(statement: str | None) -> bool:
    """Return True if *statement* creates a materialized view."""
    return bool(statement) and _MATERIALIZED_VIEW_RE.match(statement) is not None


def extract_view_query(statement: str | None) -> str | None:
    """Return the query after the top-level ``AS`` of a view statement.

    Only an unquoted ``AS`` outside any column list counts, so aliases inside
    the column list or string literals never end the header early.
    """
    if not statement:
        return None
    match = find_keyword(statement, ("AS",))
    if match is None:
        return None
    query = statement[match.end :].strip().rstrip(";").strip()
    return query or None
