"""Shadow-swap policy and plan construction.

A shadow swap rebuilds a table whose changes cannot be expressed safely as
in-place ALTERs: create a parallel table with the desired schema, copy the
compatible columns into it, then atomically swap the two names.

:func:`requires_shadow_swap` is the single gate deciding when a shadow plan
is built.  It is deliberately conservative: anything other than appending
new columns at the end of the table (a comment rewrite included) produces a
shadow plan alongside the in-place plan, and the caller chooses which one
to run.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence

from drift_engine.models.analysis import ADDITIVE_REASON_KINDS, DiffOptions, TableDiff
from drift_engine.models.table_definition import LocalTableDefinition
from drift_engine.parser.scanner import quote_identifier

logger = logging.getLogger(__name__)

REORDER_REASON = "column reordering or insertion detected (requires shadow swap)"


def is_purely_additive(diff: TableDiff) -> bool:
    """Return True when every recorded change only adds something.

    Additivity is decided by each reason's
    :class:`~drift_engine.models.analysis.ReasonKind`, never by its text.  A
    destructive reason without a structured counterpart in ``diff.reasons``
    counts as non-additive.
    """
    if diff.modifies or diff.drops or diff.option_changes:
        return False
    if any(reason.kind not in ADDITIVE_REASON_KINDS for reason in diff.reasons):
        return False
    classified = {reason.message for reason in diff.reasons}
    return all(message in classified for message in diff.destructive_reasons)


def column_order_preserved(local_order: Sequence[str], remote_order: Sequence[str]) -> bool:
    """Return True when the remote columns form a prefix of the local column order."""
    return list(local_order[: len(remote_order)]) == list(remote_order)


def requires_shadow_swap(diff: TableDiff) -> bool:
    """Decide whether *diff* needs a rebuild-and-swap plan.

    A diff is exempt only when it is purely additive.  Warnings never
    influence the decision.
    """
    return not is_purely_additive(diff)


def swap_table_names(table: str, options: DiffOptions) -> tuple[str, str]:
    """Return ``(shadow_name, backup_name)`` for *table*."""
    timestamp = options.timestamp if options.timestamp is not None else int(time.time() * 1000)
    return f"{table}{options.shadow_suffix}{timestamp}", f"{table}{options.backup_suffix}{timestamp}"


def build_shadow_plan(
    local: LocalTableDefinition,
    copy_columns: Sequence[tuple[str, str]],
    options: DiffOptions,
    *,
    comment: str | None = None,
) -> list[str]:
    """Return the create-shadow, copy, and rename statements for *local*.

    *copy_columns* holds ``(local_name, remote_name)`` pairs whose data is
    copied from the live table.  The copy step is omitted when there is
    nothing to copy.
    """
    table = local.name
    shadow_name, backup_name = swap_table_names(table, options)

    create_sql = local.to_create_sql(
        shadow_name,
        default_metadata_version=options.default_metadata_version,
        comment=comment,
    )
    plan = [create_sql]

    if copy_columns:
        targets = ", ".join(quote_identifier(local_name) for local_name, _ in copy_columns)
        sources = ", ".join(quote_identifier(remote_name) for _, remote_name in copy_columns)
        plan.append(
            f"INSERT INTO {quote_identifier(shadow_name)} ({targets}) "
            f"SELECT {sources} FROM {quote_identifier(table)}"
        )
    else:
        logger.warning("Shadow swap for %s copies no data: no compatible columns", table)

    rename_sql = (
        f"RENAME TABLE {quote_identifier(table)} TO {quote_identifier(backup_name)}, "
        f"{quote_identifier(shadow_name)} TO {quote_identifier(table)}"
    )
    if local.options.on_cluster:
        rename_sql += f" ON CLUSTER {local.options.on_cluster}"
    plan.append(rename_sql)
    return plan
