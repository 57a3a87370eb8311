"""Decide whether individual migration statements have already taken effect.

Only statement kinds whose effect can be observed in a table description
are ever considered applied.  Everything else (drops, generic ALTERs,
unrecognised statements) is always reported as pending; re-running those is
the caller's decision.
"""

from __future__ import annotations

import logging
from enum import Enum

from pydantic import BaseModel, Field

from drift_engine.catalog.base import RemoteCatalog
from drift_engine.parser.normalizer import collapse_whitespace, comparable_type
from drift_engine.parser.statement import ParsedStatement, StatementKind, classify_statement, split_statements

logger = logging.getLogger(__name__)


def _comment_key(comment: str | None) -> str:
    return collapse_whitespace(comment or "")


def is_statement_applied(statement: str | ParsedStatement, catalog: RemoteCatalog) -> bool:
    """Return True if the effect of *statement* is already visible remotely."""
    parsed = statement if isinstance(statement, ParsedStatement) else classify_statement(statement)
    if parsed.table_name is None:
        return False

    if parsed.kind not in (
        StatementKind.CREATE_TABLE,
        StatementKind.ALTER_ADD_COLUMN,
        StatementKind.ALTER_MODIFY_COLUMN,
        StatementKind.ALTER_MODIFY_COMMENT,
    ):
        return False

    remote = catalog.describe(parsed.table_name)
    if remote is None:
        return False

    if parsed.kind == StatementKind.CREATE_TABLE:
        return True

    if parsed.kind == StatementKind.ALTER_ADD_COLUMN:
        return parsed.column_name in remote.columns

    if parsed.kind == StatementKind.ALTER_MODIFY_COLUMN:
        remote_type = remote.columns.get(parsed.column_name or "")
        if remote_type is None:
            return False
        return comparable_type(remote_type) == comparable_type(parsed.column_type)

    return _comment_key(remote.comment) == _comment_key(parsed.comment)


class MigrationState(str, Enum):
    """Aggregate state of a migration file."""

    APPLIED = "applied"
    PENDING = "pending"
    PARTIAL = "partial"


class MigrationStatus(BaseModel):
    """How much of a migration file is already reflected in the database."""

    state: MigrationState
    total: int = Field(default=0, description="Number of statements in the file.")
    applied: int = Field(default=0, description="Statements whose effect is already visible.")
    pending: list[str] = Field(default_factory=list, description="Statements still to run, in file order.")


def migration_status(sql_text: str, catalog: RemoteCatalog) -> MigrationStatus:
    """Classify a migration file as applied, pending, or partially applied.

    An empty file counts as applied.
    """
    statements = split_statements(sql_text)
    pending: list[str] = []
    applied = 0
    for statement in statements:
        parsed = classify_statement(statement)
        if is_statement_applied(parsed, catalog):
            applied += 1
        else:
            logger.debug("Pending %s statement: %.120s", parsed.kind.value, parsed.statement)
            pending.append(parsed.statement)

    if not pending:
        state = MigrationState.APPLIED
    elif applied == 0:
        state = MigrationState.PENDING
    else:
        state = MigrationState.PARTIAL
    return MigrationStatus(state=state, total=len(statements), applied=applied, pending=pending)
