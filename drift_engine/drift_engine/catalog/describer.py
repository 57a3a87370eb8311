"""Build a :class:`RemoteTableDescription` from raw introspection output.

Column information arrives from two redundant sources: the column listing
(``DESCRIBE TABLE`` rows) and the ``SHOW CREATE TABLE`` text.  The listing
is authoritative for the column set, order, and type; defaults and comments
that only the CREATE text carries are merged in.  When the listing is empty
the CREATE text supplies the columns on its own.

Parsing failures never raise: they leave ``options``/``defaults`` empty,
clear ``options_known``, and add a warning to the description.  Without
any CREATE text the options are likewise unknown.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from drift_engine.errors import CreateStatementParseError
from drift_engine.models.remote import ParsedColumn, ParsedCreateOptions, RemoteTableDescription
from drift_engine.parser.create_parser import (
    extract_view_query,
    is_materialized_view_statement,
    parse_columns_from_create,
    parse_create_options,
)
from drift_engine.parser.normalizer import extract_comment, normalize_type
from drift_engine.parser.scanner import quote_literal

logger = logging.getLogger(__name__)


def _row_default(row: Mapping[str, Any]) -> str | None:
    default_type = str(row.get("default_type") or "").upper()
    expression = row.get("default_expression")
    if expression and default_type in ("", "DEFAULT"):
        return str(expression)
    return None


def build_remote_description(
    columns_rows: Iterable[Mapping[str, Any]],
    create_statement: str | None,
    table_comment: str | None = None,
) -> RemoteTableDescription:
    """Assemble a remote description.

    Parameters
    ----------
    columns_rows:
        Column listing rows with at least ``name`` and ``type`` keys, and
        optionally ``default_type``, ``default_expression``, and ``comment``.
    create_statement:
        The ``SHOW CREATE TABLE`` text; may be empty.
    table_comment:
        The table comment from the system catalog; when ``None`` the
        ``COMMENT`` clause of the CREATE text is used instead.
    """
    warnings: list[str] = []
    options = ParsedCreateOptions()
    options_known = False
    parsed_columns: list[ParsedColumn] = []
    view_query: str | None = None

    if create_statement and create_statement.strip():
        if is_materialized_view_statement(create_statement):
            # Views carry no table options; only their query is compared.
            view_query = extract_view_query(create_statement)
        else:
            try:
                options = parse_create_options(create_statement)
                parsed_columns = parse_columns_from_create(create_statement)
                options_known = True
            except CreateStatementParseError as exc:
                logger.warning("Could not parse CREATE statement: %s", exc)
                warnings.append(f"could not parse remote CREATE statement ({exc}); table options were not compared")
                options = ParsedCreateOptions()
                parsed_columns = []

    created_by_lower = {col.name.lower(): col for col in parsed_columns}

    columns: dict[str, str] = {}
    defaults: dict[str, str] = {}
    listed = [row for row in columns_rows if row.get("name")]

    if listed:
        for row in listed:
            name = str(row["name"])
            raw_type = str(row.get("type") or "")
            from_create = created_by_lower.get(name.lower())

            comment = row.get("comment") or extract_comment(raw_type)
            if not comment and from_create is not None:
                comment = from_create.comment

            type_text = normalize_type(raw_type) or (from_create.type if from_create else "")
            if comment:
                type_text = f"{type_text} COMMENT {quote_literal(str(comment))}"
            columns[name] = type_text

            default = _row_default(row)
            if default is None and from_create is not None:
                default = from_create.default
            if default is not None:
                defaults[name.lower()] = default
    else:
        for col in parsed_columns:
            type_text = col.type
            if col.comment:
                type_text = f"{type_text} COMMENT {quote_literal(col.comment)}"
            columns[col.name] = type_text
            if col.default is not None:
                defaults[col.name.lower()] = col.default

    comment = table_comment if table_comment is not None else options.comment

    return RemoteTableDescription(
        columns=columns,
        defaults=defaults,
        options=options,
        options_known=options_known,
        view_query=view_query,
        comment=comment,
        warnings=warnings,
    )
