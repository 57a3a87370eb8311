"""Compare one declared table against its live description.

:func:`diff_table` is a pure function: it takes a
:class:`~drift_engine.models.table_definition.LocalTableDefinition` and a
:class:`~drift_engine.models.remote.RemoteTableDescription` and returns a
:class:`~drift_engine.models.analysis.TableDiff`.  It performs no I/O.

Reconciliation happens in four passes:

1. **Columns** -- exact-name matches first, then rename candidates chosen by
   a :class:`~drift_engine.diff.rename.RenameStrategy`.  Unmatched local
   columns are added; matched ones are compared by type, then default, then
   comment; unmatched remote columns are reported as drops.
2. **Table clauses** -- engine, ``ORDER BY``, ``PARTITION BY``, ``TTL``,
   ``PRIMARY KEY`` and ``ON CLUSTER``.
3. **Indices and projections** -- matched by canonical name.  Remote-only
   entries are reported, never dropped.
4. **Metadata** -- the housekit envelope in the table comment.

Every value is normalised before comparison so formatting differences
never surface as drift.  Whenever the result is anything but an append of
new trailing columns, a shadow-swap plan is built next to the in-place plan.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from drift_engine.diff.rename import CanonicalNameRenameStrategy, RenameStrategy
from drift_engine.diff.shadow import (
    REORDER_REASON,
    build_shadow_plan,
    column_order_preserved,
    is_purely_additive,
    requires_shadow_swap,
)
from drift_engine.diff.view_diff import diff_materialized_view
from drift_engine.models.analysis import DiffOptions, DiffReason, ReasonKind, TableDiff
from drift_engine.models.metadata import (
    normalize_metadata,
    read_metadata_comment,
    serialize_metadata_comment,
    upgrade_metadata,
)
from drift_engine.models.remote import RemoteTableDescription
from drift_engine.models.table_definition import ColumnSpec, LocalTableDefinition
from drift_engine.parser.normalizer import (
    canonical_index_expression,
    canonical_name,
    canonical_projection_query,
    canonicalize_type,
    comparable_type,
    engine_arguments,
    engine_name,
    extract_comment,
    names_equivalent,
    normalize_clause,
    normalize_comment,
    normalize_default,
    normalize_ttl,
    normalize_type,
    type_shape,
)
from drift_engine.parser.scanner import quote_identifier, quote_literal

logger = logging.getLogger(__name__)


@dataclass
class _Findings:
    """Mutable accumulator used while a diff is being computed."""

    adds: list[str] = field(default_factory=list)
    modifies: list[str] = field(default_factory=list)
    drops: list[str] = field(default_factory=list)
    option_changes: list[str] = field(default_factory=list)
    reasons: list[DiffReason] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    plan: list[str] = field(default_factory=list)

    def add_reason(self, kind: ReasonKind, message: str) -> None:
        self.reasons.append(DiffReason(kind=kind, message=message))

    def to_diff(self, shadow_plan: list[str] | None = None) -> TableDiff:
        return TableDiff(
            adds=list(self.adds),
            modifies=list(self.modifies),
            drops=list(self.drops),
            option_changes=list(self.option_changes),
            destructive_reasons=[reason.message for reason in self.reasons],
            reasons=list(self.reasons),
            warnings=list(self.warnings),
            plan=list(self.plan),
            shadow_plan=shadow_plan,
        )


def _parenthesize(expression: str) -> str:
    return expression if expression == "tuple()" else f"({expression})"


# ---------------------------------------------------------------------------
# Columns
# ---------------------------------------------------------------------------


def _match_columns(
    local: LocalTableDefinition,
    remote: RemoteTableDescription,
    strategy: RenameStrategy,
) -> dict[str, str]:
    """Map local SQL column names to the remote column each one corresponds to.

    Exact names are claimed before any rename candidate is considered, so a
    canonical match can never steal a column that exists under its exact name.
    """
    matches: dict[str, str] = {}
    claimed: set[str] = set()
    for col in local.columns.values():
        if col.name in remote.columns:
            matches[col.name] = col.name
            claimed.add(col.name)

    for col in local.columns.values():
        if col.name in matches:
            continue
        unclaimed = [name for name in remote.columns if name not in claimed]
        candidate = strategy.match(col.name, unclaimed)
        if candidate is not None:
            matches[col.name] = candidate
            claimed.add(candidate)
    return matches


def _column_change(
    col: ColumnSpec,
    remote_raw: str,
    remote_default: str | None,
) -> tuple[bool, DiffReason | None]:
    """Return ``(changed, destructive_reason)`` for a matched column.

    Type, default and comment are checked in that order; only the first
    difference is reported.  Comment-only changes carry no reason.
    """
    local_full = col.to_sql()
    if comparable_type(local_full) != comparable_type(remote_raw):
        return True, DiffReason(
            kind=ReasonKind.TYPE_CHANGE,
            message=f"type change {col.name}: {normalize_type(remote_raw)} -> {normalize_type(local_full)}",
        )

    local_default = normalize_default(col.default_sql())
    remote_default_norm = normalize_default(remote_default)
    if local_default != remote_default_norm:
        if remote_default_norm is not None:
            return True, DiffReason(
                kind=ReasonKind.DEFAULT_CHANGE,
                message=f"default change {col.name}: {remote_default_norm} -> {local_default or 'none'}",
            )
        return True, DiffReason(kind=ReasonKind.DEFAULT_ADDED, message=f"default added {col.name}: {local_default}")

    if normalize_comment(col.comment) != normalize_comment(extract_comment(remote_raw)):
        return True, None
    return False, None


def _reconcile_columns(
    local: LocalTableDefinition,
    remote: RemoteTableDescription,
    matches: dict[str, str],
    findings: _Findings,
) -> None:
    table = quote_identifier(local.name)

    for col in local.columns.values():
        local_full = col.to_sql()
        remote_name = matches.get(col.name)
        if remote_name is None:
            findings.plan.append(f"ALTER TABLE {table} ADD COLUMN {quote_identifier(col.name)} {local_full}")
            findings.adds.append(col.name)
            continue

        renamed = remote_name != col.name and not names_equivalent(remote_name, col.name)
        if renamed:
            findings.warnings.append(
                f'column name change detected: "{remote_name}" -> "{col.name}" (requires shadow swap)'
            )
            findings.add_reason(ReasonKind.COLUMN_RENAME, f"column rename {remote_name} -> {col.name}")

        changed, reason = _column_change(col, remote.columns[remote_name], remote.defaults.get(remote_name.lower()))
        if not changed:
            continue
        findings.modifies.append(col.name)
        if reason is not None:
            findings.reasons.append(reason)
        if renamed:
            # The shadow table carries the new name; an in-place MODIFY would keep the old one.
            continue
        findings.plan.append(f"ALTER TABLE {table} MODIFY COLUMN {quote_identifier(remote_name)} {local_full}")

    claimed = set(matches.values())
    for remote_name in remote.columns:
        if remote_name in claimed:
            continue
        findings.drops.append(remote_name)
        findings.add_reason(ReasonKind.COLUMN_DROP, f"column drop {remote_name}")


# ---------------------------------------------------------------------------
# Table clauses
# ---------------------------------------------------------------------------


def _clause_differs(
    findings: _Findings,
    label: str,
    local_value: str | None,
    remote_value: str | None,
    *,
    ttl: bool = False,
) -> bool:
    normalize = normalize_ttl if ttl else normalize_clause
    local_norm = normalize(local_value) or "unset"
    remote_norm = normalize(remote_value) or "unset"
    if local_norm == remote_norm:
        return False
    findings.option_changes.append(label)
    findings.warnings.append(f'{label} differs (remote="{remote_norm}", local="{local_norm}")')
    return True


def _reconcile_options(local: LocalTableDefinition, remote: RemoteTableDescription, findings: _Findings) -> None:
    """Compare table-level clauses and plan in-place changes for them.

    When the remote options are unknown no clause is compared and no
    in-place statement is planned; the table is rebuilt through the shadow
    swap, whose ``CREATE`` carries every declared clause.
    """
    if not remote.options_known:
        findings.option_changes.append("tableOptions")
        findings.add_reason(
            ReasonKind.OPTIONS_UNKNOWN,
            "table options unknown (remote CREATE statement could not be parsed)",
        )
        findings.warnings.append("remote table options are unknown; clause changes are left to the shadow swap")
        return

    table = quote_identifier(local.name)
    opts = local.options
    remote_opts = remote.options

    local_engine = local.engine_sql()
    if engine_name(local_engine) != engine_name(remote_opts.engine):
        findings.option_changes.append("engine")
        findings.add_reason(
            ReasonKind.ENGINE_CHANGE,
            f'engine change (local="{local_engine}", remote="{remote_opts.engine or "unset"}") (requires shadow swap)',
        )
        findings.warnings.append("engine mismatch requires full table recreation")
    else:
        local_args = engine_arguments(local_engine)
        remote_args = engine_arguments(remote_opts.engine)
        if local_args and remote_args and local_args != remote_args:
            findings.warnings.append(f'engine arguments differ (remote="{remote_args}", local="{local_args}")')

    local_order = local.effective_order_by()
    if _clause_differs(findings, "orderBy", local_order, remote_opts.order_by):
        findings.add_reason(ReasonKind.ORDER_BY_CHANGE, "order by change")
        if local_order:
            findings.plan.append(f"ALTER TABLE {table} MODIFY ORDER BY {_parenthesize(local_order)}")

    local_partition = local.resolve_clause(opts.partition_by)
    if _clause_differs(findings, "partitionBy", local_partition, remote_opts.partition_by):
        findings.add_reason(ReasonKind.PARTITION_CHANGE, "partition change")
        if local_partition:
            findings.plan.append(f"ALTER TABLE {table} MODIFY PARTITION BY ({local_partition})")

    local_ttl = local.ttl_sql()
    if _clause_differs(findings, "ttl", local_ttl, remote_opts.ttl, ttl=True):
        findings.add_reason(ReasonKind.TTL_CHANGE, "ttl change")
        if local_ttl:
            findings.plan.append(f"ALTER TABLE {table} MODIFY TTL {local_ttl}")
        else:
            findings.plan.append(f"ALTER TABLE {table} REMOVE TTL")

    # An undeclared primary key is the sorting key on both sides.
    local_pk = local.resolve_clause(opts.primary_key)
    if local_pk or remote_opts.primary_key:
        if _clause_differs(
            findings,
            "primaryKey",
            local_pk or local_order,
            remote_opts.primary_key or remote_opts.order_by,
        ):
            findings.add_reason(ReasonKind.PRIMARY_KEY_CHANGE, "primary key change")
            if local_pk:
                findings.plan.append(f"ALTER TABLE {table} MODIFY PRIMARY KEY ({local_pk})")

    if opts.on_cluster and opts.on_cluster != remote_opts.on_cluster:
        findings.add_reason(
            ReasonKind.CLUSTER_MISMATCH,
            f"cluster mismatch (local={opts.on_cluster}, remote={remote_opts.on_cluster or 'unset'})",
        )
        findings.warnings.append("cluster change requires shadow swap")


# ---------------------------------------------------------------------------
# Indices and projections
# ---------------------------------------------------------------------------


def _reconcile_indices(local: LocalTableDefinition, remote: RemoteTableDescription, findings: _Findings) -> None:
    table = quote_identifier(local.name)
    key_map = {key: col.name for key, col in local.columns.items()}

    remote_by_canon = {}
    for remote_idx in remote.options.indices:
        remote_by_canon.setdefault(canonical_name(remote_idx.name), remote_idx)

    local_canon: set[str] = set()
    for idx in local.options.indices:
        canon = canonical_name(idx.name)
        local_canon.add(canon)
        expression = idx.expression_sql(key_map)
        if not expression:
            continue
        add_sql = (
            f"ALTER TABLE {table} ADD INDEX {quote_identifier(idx.name)} {expression} "
            f"TYPE {idx.type} GRANULARITY {idx.granularity}"
        )

        remote_idx = remote_by_canon.get(canon)
        if remote_idx is None:
            findings.option_changes.append(f"index {idx.name}")
            findings.plan.append(add_sql)
            continue

        if (
            canonical_index_expression(remote_idx.expression) != canonical_index_expression(expression)
            or canonicalize_type(remote_idx.type) != canonicalize_type(idx.type)
            or (remote_idx.granularity or 1) != idx.granularity
        ):
            findings.option_changes.append(f"index {idx.name}")
            findings.plan.append(f"ALTER TABLE {table} DROP INDEX {quote_identifier(remote_idx.name)}")
            findings.plan.append(add_sql)

    for remote_idx in remote.options.indices:
        if canonical_name(remote_idx.name) not in local_canon:
            findings.warnings.append(f"index {quote_identifier(remote_idx.name)} exists remotely but not locally")


def _reconcile_projections(local: LocalTableDefinition, remote: RemoteTableDescription, findings: _Findings) -> None:
    table = quote_identifier(local.name)

    remote_by_canon = {}
    for remote_proj in remote.options.projections:
        remote_by_canon.setdefault(canonical_name(remote_proj.name), remote_proj)

    local_canon: set[str] = set()
    for proj in local.options.projections:
        query = proj.query.strip()
        if not query:
            continue
        canon = canonical_name(proj.name)
        local_canon.add(canon)
        add_sql = f"ALTER TABLE {table} ADD PROJECTION {quote_identifier(proj.name)} ({query})"

        remote_proj = remote_by_canon.get(canon)
        if remote_proj is None:
            findings.option_changes.append(f"projection {proj.name}")
            findings.plan.append(add_sql)
            continue

        if canonical_projection_query(remote_proj.query) != canonical_projection_query(query):
            findings.option_changes.append(f"projection {proj.name}")
            findings.plan.append(f"ALTER TABLE {table} DROP PROJECTION {quote_identifier(remote_proj.name)}")
            findings.plan.append(add_sql)

    for remote_proj in remote.options.projections:
        if canonical_name(remote_proj.name) not in local_canon:
            findings.warnings.append(
                f"projection {quote_identifier(remote_proj.name)} exists remotely but not locally"
            )


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------


def _reconcile_metadata(
    local: LocalTableDefinition,
    remote: RemoteTableDescription,
    options: DiffOptions,
    findings: _Findings,
) -> str:
    """Compare metadata envelopes and return the comment the table should carry."""
    table = quote_identifier(local.name)
    parsed = read_metadata_comment(remote.comment)
    if parsed.malformed:
        findings.warnings.append("remote table comment holds malformed housekit metadata; it will be rewritten")
    remote_meta = normalize_metadata(parsed.metadata)

    local_version = local.metadata_version(options.default_metadata_version)
    target = upgrade_metadata(
        remote_meta,
        local_version,
        append_only=local.options.append_only,
        read_only=local.options.read_only,
    )
    local_comment = serialize_metadata_comment(target)

    if remote_meta is not None:
        if remote_meta.append_only != target.append_only:
            findings.warnings.append(
                f"appendOnly mismatch: DB={remote_meta.append_only}, code={target.append_only}"
            )
        if target.read_only is not None:
            remote_read_only = remote_meta.read_only if remote_meta.read_only is not None else False
            if remote_read_only != target.read_only:
                findings.warnings.append(f"readOnly mismatch: DB={remote_read_only}, code={target.read_only}")

    versions_match = remote_meta is not None and remote_meta.version == local_version
    remote_matches = (
        versions_match
        and remote_meta is not None
        and (remote_meta.append_only, remote_meta.read_only) == (target.append_only, target.read_only)
    )
    base_reason = remote_meta.describe() if remote_meta is not None else "missing/invalid metadata"

    if remote_meta is not None and not versions_match:
        findings.option_changes.append(
            f"metadata version mismatch: remote={remote_meta.version}, local={local_version} ({base_reason})"
        )
        if options.auto_upgrade_metadata:
            findings.option_changes.append(f"metadata/comment (auto-upgrade to {target.describe()})")
    if remote_meta is None:
        findings.option_changes.append(
            f"metadata/comment (remote missing housekit metadata; local expects version={local_version})"
        )

    compared = local_comment if remote_matches else remote.comment
    comment_differs = normalize_comment(compared) != normalize_comment(local_comment)
    if comment_differs:
        if remote_meta is not None:
            findings.option_changes.append(
                f"metadata/comment (remote housekit metadata drift: {base_reason}; local wants {target.describe()})"
            )
        else:
            findings.option_changes.append(
                f"metadata/comment (remote missing housekit metadata; local will set {target.describe()})"
            )

    rewrite_allowed = options.auto_upgrade_metadata or versions_match or remote_meta is None
    if comment_differs and rewrite_allowed:
        findings.plan.append(f"ALTER TABLE {table} MODIFY COMMENT {quote_literal(local_comment)}")
    return local_comment


# ---------------------------------------------------------------------------
# Shadow swap
# ---------------------------------------------------------------------------


def _copy_columns(
    local: LocalTableDefinition,
    remote: RemoteTableDescription,
    matches: dict[str, str],
    findings: _Findings,
) -> list[tuple[str, str]]:
    """Return ``(local_name, remote_name)`` pairs whose data can be copied."""
    pairs: list[tuple[str, str]] = []
    for col in local.columns.values():
        remote_name = matches.get(col.name)
        if remote_name is None:
            continue
        remote_shape = type_shape(remote.columns[remote_name])
        local_shape = type_shape(col.type_sql())
        if remote_shape != local_shape:
            findings.warnings.append(
                f"column {col.name} changes shape ({remote_shape} -> {local_shape}); "
                "its data is not copied into the shadow table"
            )
            continue
        pairs.append((col.name, remote_name))
    return pairs


def diff_table(
    local: LocalTableDefinition,
    remote: RemoteTableDescription,
    options: DiffOptions | None = None,
    *,
    rename_strategy: RenameStrategy | None = None,
) -> TableDiff:
    """Compute the drift between *local* and *remote*.

    Parameters
    ----------
    local:
        The table as declared in code.  A materialized view is compared by
        its query alone through
        :func:`~drift_engine.diff.view_diff.diff_materialized_view`.
    remote:
        The live description of the same table.
    options:
        Diff knobs; defaults are used when omitted.
    rename_strategy:
        How unmatched local columns are paired with remote ones.  Defaults
        to canonical-name matching.

    Returns
    -------
    TableDiff
        ``plan`` holds in-place DDL; ``shadow_plan`` is set whenever the
        change is more than an append of trailing columns.
    """
    options = options or DiffOptions()
    if local.is_materialized_view():
        return diff_materialized_view(local, remote, options)

    strategy = rename_strategy or CanonicalNameRenameStrategy()
    findings = _Findings()

    matches = _match_columns(local, remote, strategy)
    _reconcile_columns(local, remote, matches, findings)
    _reconcile_options(local, remote, findings)
    if remote.options_known:
        _reconcile_indices(local, remote, findings)
        _reconcile_projections(local, remote, findings)
    target_comment = _reconcile_metadata(local, remote, options, findings)

    draft = findings.to_diff()
    if draft.adds and is_purely_additive(draft):
        local_order = [matches.get(col.name, col.name) for col in local.columns.values()]
        if not column_order_preserved(local_order, list(remote.columns)):
            findings.add_reason(ReasonKind.COLUMN_REORDER, REORDER_REASON)
            draft = findings.to_diff()

    shadow_plan: list[str] | None = None
    if requires_shadow_swap(draft):
        if local.options.externally_managed:
            findings.warnings.append("table is externally managed; no shadow swap plan was generated")
        else:
            copy_columns = _copy_columns(local, remote, matches, findings)
            shadow_plan = build_shadow_plan(local, copy_columns, options, comment=target_comment)
            logger.warning(
                "Table %s requires a shadow swap (%d destructive reasons, %d option changes)",
                local.name,
                len(findings.reasons),
                len(findings.option_changes),
            )

    return findings.to_diff(shadow_plan)
