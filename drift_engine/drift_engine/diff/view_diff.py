"""Query drift detection for materialized views.

A materialized view has no columns or clauses of its own to alter: the only
thing compared is its ``AS`` query.  Both sides go through
:func:`~drift_engine.parser.normalizer.normalize_view_query` so spacing,
identifier quoting and keyword case never count as drift.  A changed query
is applied by re-issuing the view's ``CREATE`` statement; no shadow plan is
built.
"""

from __future__ import annotations

import logging

from drift_engine.models.analysis import DiffOptions, DiffReason, ReasonKind, TableDiff
from drift_engine.models.remote import RemoteTableDescription
from drift_engine.models.table_definition import LocalTableDefinition
from drift_engine.parser.normalizer import normalize_view_query

logger = logging.getLogger(__name__)

VIEW_QUERY_REASON = "materialized view query change"


def diff_materialized_view(
    local: LocalTableDefinition,
    remote: RemoteTableDescription,
    options: DiffOptions | None = None,
) -> TableDiff:
    """Compare the query of a declared view with the live one.

    Returns an empty diff when the queries match.  Otherwise the diff records
    a ``query`` option change and its plan holds the view's ``CREATE``
    statement.
    """
    options = options or DiffOptions()
    local_query = normalize_view_query(local.view.query if local.view else None)
    remote_query = normalize_view_query(remote.view_query)
    if local_query == remote_query:
        return TableDiff()

    warnings: list[str] = []
    if remote.view_query is None:
        warnings.append("remote object has no readable materialized view query")

    create_sql = local.to_create_sql(default_metadata_version=options.default_metadata_version)
    if not create_sql:
        warnings.append("materialized view is externally managed; its query is not replaced")
    elif not local.view.or_replace:
        warnings.append(
            "CREATE MATERIALIZED VIEW IF NOT EXISTS keeps the existing view; "
            "drop it first or declare or_replace to apply the new query"
        )

    logger.info("Materialized view %s query differs from the live definition", local.name)
    return TableDiff(
        option_changes=["query"],
        destructive_reasons=[VIEW_QUERY_REASON],
        reasons=[DiffReason(kind=ReasonKind.VIEW_QUERY_CHANGE, message=VIEW_QUERY_REASON)],
        warnings=warnings,
        plan=[create_sql] if create_sql else [],
        shadow_plan=None,
    )
