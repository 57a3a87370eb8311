"""Classification of individual DDL statements.

Recognises the small DDL subset the migration tooling emits (table
creation, column add/modify, table comment changes, drops).  Anything else
classifies as :attr:`StatementKind.UNKNOWN`; that is not an error, it only
means the idempotency checker cannot short-circuit the statement.
"""

from __future__ import annotations

import logging
import re
from enum import Enum

from pydantic import BaseModel, Field

from drift_engine.parser.scanner import read_quoted, split_top_level

logger = logging.getLogger(__name__)


class StatementKind(str, Enum):
    """Semantic category of a DDL statement."""

    CREATE_TABLE = "CREATE_TABLE"
    ALTER_ADD_COLUMN = "ALTER_ADD_COLUMN"
    ALTER_MODIFY_COLUMN = "ALTER_MODIFY_COLUMN"
    ALTER_MODIFY_COMMENT = "ALTER_MODIFY_COMMENT"
    ALTER_TABLE = "ALTER_TABLE"
    DROP_TABLE = "DROP_TABLE"
    UNKNOWN = "UNKNOWN"


class ParsedStatement(BaseModel):
    """Typed descriptor for a single classified statement."""

    kind: StatementKind = Field(..., description="Semantic category of the statement.")
    statement: str = Field(default="", description="The trimmed statement text.")
    table_name: str | None = Field(default=None, description="Target table, when recognised.")
    column_name: str | None = Field(default=None, description="Target column for column-level ALTERs.")
    column_type: str | None = Field(
        default=None,
        description="Everything after the column name, e.g. 'Int32 DEFAULT 0'.",
    )
    comment: str | None = Field(default=None, description="Unescaped comment for MODIFY COMMENT.")


_IDENT = r"`((?:[^`]|``)+)`"

_CREATE_RE = re.compile(rf"^CREATE\s+TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?{_IDENT}", re.IGNORECASE)
_ADD_COLUMN_RE = re.compile(
    rf"^ALTER\s+TABLE\s+{_IDENT}\s+ADD\s+COLUMN\s+(?:IF\s+NOT\s+EXISTS\s+)?{_IDENT}\s+(.+)$",
    re.IGNORECASE | re.DOTALL,
)
_MODIFY_COLUMN_RE = re.compile(
    rf"^ALTER\s+TABLE\s+{_IDENT}\s+MODIFY\s+COLUMN\s+(?:IF\s+EXISTS\s+)?{_IDENT}\s+(.+)$",
    re.IGNORECASE | re.DOTALL,
)
_MODIFY_COMMENT_RE = re.compile(rf"^ALTER\s+TABLE\s+{_IDENT}\s+MODIFY\s+COMMENT\s+", re.IGNORECASE)
_ALTER_RE = re.compile(rf"^ALTER\s+TABLE\s+{_IDENT}", re.IGNORECASE)
_DROP_RE = re.compile(rf"^DROP\s+TABLE\s+(?:IF\s+EXISTS\s+)?{_IDENT}", re.IGNORECASE)


def _ident(raw: str) -> str:
    return raw.replace("``", "`")


def classify_statement(statement: str) -> ParsedStatement:
    """Parse *statement* into a :class:`ParsedStatement`.

    Patterns are anchored at the start of the statement and require a
    backtick-quoted identifier immediately after the DDL keyword.
    """
    trimmed = statement.strip().rstrip(";").strip()
    if not trimmed:
        return ParsedStatement(kind=StatementKind.UNKNOWN, statement="")

    match = _CREATE_RE.match(trimmed)
    if match:
        return ParsedStatement(
            kind=StatementKind.CREATE_TABLE,
            statement=trimmed,
            table_name=_ident(match.group(1)),
        )

    match = _ADD_COLUMN_RE.match(trimmed)
    if match:
        return ParsedStatement(
            kind=StatementKind.ALTER_ADD_COLUMN,
            statement=trimmed,
            table_name=_ident(match.group(1)),
            column_name=_ident(match.group(2)),
            column_type=match.group(3).strip(),
        )

    match = _MODIFY_COLUMN_RE.match(trimmed)
    if match:
        return ParsedStatement(
            kind=StatementKind.ALTER_MODIFY_COLUMN,
            statement=trimmed,
            table_name=_ident(match.group(1)),
            column_name=_ident(match.group(2)),
            column_type=match.group(3).strip(),
        )

    match = _MODIFY_COMMENT_RE.match(trimmed)
    if match:
        literal = read_quoted(trimmed, match.end())
        if literal is not None:
            return ParsedStatement(
                kind=StatementKind.ALTER_MODIFY_COMMENT,
                statement=trimmed,
                table_name=_ident(match.group(1)),
                comment=literal[0],
            )
        logger.debug("MODIFY COMMENT without a terminated literal: %.120s", trimmed)

    match = _ALTER_RE.match(trimmed)
    if match:
        return ParsedStatement(
            kind=StatementKind.ALTER_TABLE,
            statement=trimmed,
            table_name=_ident(match.group(1)),
        )

    match = _DROP_RE.match(trimmed)
    if match:
        return ParsedStatement(
            kind=StatementKind.DROP_TABLE,
            statement=trimmed,
            table_name=_ident(match.group(1)),
        )

    return ParsedStatement(kind=StatementKind.UNKNOWN, statement=trimmed)


def split_statements(sql_text: str) -> list[str]:
    """Split a migration file into statements on top-level, unquoted ``;``."""
    return split_top_level(sql_text, separator=";")
