"""Drift detection across a whole declared schema.

:func:`detect_schema_drift` walks the declared tables in order, asks the
catalog for each table's live description, and diffs the two.  Description
fetching is the only I/O involved and may run on a small thread pool
(``fetch_workers``); diffing always happens sequentially on the calling
thread and is independent per table.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor

from drift_engine.catalog.base import RemoteCatalog
from drift_engine.diff.rename import RenameStrategy
from drift_engine.diff.table_diff import diff_table
from drift_engine.models.analysis import AnalysisOptions, AnalysisType, TableAnalysis
from drift_engine.models.remote import RemoteTableDescription
from drift_engine.models.table_definition import LocalTableDefinition
from drift_engine.parser.scanner import quote_identifier

logger = logging.getLogger(__name__)


def sanity_warnings(table: LocalTableDefinition) -> list[str]:
    """Return configuration warnings that do not block a migration."""
    opts = table.options
    warnings: list[str] = []

    if opts.deduplicate_by and not opts.version_column:
        warnings.append(
            "uses deduplicateBy without versionColumn. Consider setting versionColumn to make dedup deterministic."
        )

    dedup_keys = opts.deduplicate_by if isinstance(opts.deduplicate_by, list) else [opts.deduplicate_by]
    for key in dedup_keys:
        if key and not table.has_column(key):
            warnings.append(
                f"deduplicateBy column {quote_identifier(key)} not found in {quote_identifier(table.name)}"
            )

    if opts.version_column and not table.has_column(opts.version_column):
        warnings.append(
            f"versionColumn {quote_identifier(opts.version_column)} not found in {quote_identifier(table.name)}"
        )
    return warnings


def _fetch_descriptions(
    catalog: RemoteCatalog,
    names: list[str],
    workers: int,
) -> dict[str, RemoteTableDescription | None]:
    if workers <= 1 or len(names) <= 1:
        return {name: catalog.describe(name) for name in names}
    with ThreadPoolExecutor(max_workers=min(workers, len(names))) as pool:
        described = list(pool.map(catalog.describe, names))
    return dict(zip(names, described))


def _create_analysis(
    table: LocalTableDefinition,
    warnings: list[str],
    options: AnalysisOptions,
) -> TableAnalysis:
    create_sql = table.to_create_sql(default_metadata_version=options.default_metadata_version)
    return TableAnalysis(
        name=table.name,
        classification=AnalysisType.CREATE,
        warnings=warnings,
        plan=[create_sql] if create_sql else [],
        shadow_plan=None,
        row_count=0,
        externally_managed=table.options.externally_managed,
        remote=None,
    )


def detect_schema_drift(
    local_schema: Mapping[str, LocalTableDefinition] | Iterable[LocalTableDefinition],
    catalog: RemoteCatalog,
    options: AnalysisOptions | None = None,
    *,
    rename_strategy: RenameStrategy | None = None,
) -> list[TableAnalysis]:
    """Analyse every declared table against the live database.

    Parameters
    ----------
    local_schema:
        Declared tables, either as a mapping (values are used, in order) or
        as an iterable of definitions.
    catalog:
        Source of live table descriptions and row counts.
    options:
        Analysis knobs; defaults are used when omitted.
    rename_strategy:
        Passed through to :func:`~drift_engine.diff.table_diff.diff_table`.

    Returns
    -------
    list[TableAnalysis]
        One analysis per declared table, in declaration order.
    """
    options = options or AnalysisOptions()
    tables = list(local_schema.values()) if isinstance(local_schema, Mapping) else list(local_schema)
    descriptions = _fetch_descriptions(catalog, [t.name for t in tables], options.fetch_workers)

    results: list[TableAnalysis] = []
    for table in tables:
        warnings = sanity_warnings(table)
        remote = descriptions.get(table.name)

        if remote is None:
            logger.debug("Table %s does not exist remotely; planning creation", table.name)
            results.append(_create_analysis(table, warnings, options))
            continue

        row_count = catalog.count_rows(table.name)
        diff = diff_table(table, remote, options, rename_strategy=rename_strategy)
        classification = AnalysisType.MODIFY if diff.has_changes else AnalysisType.NO_CHANGES

        results.append(
            TableAnalysis(
                name=table.name,
                classification=classification,
                adds=diff.adds,
                modifies=diff.modifies,
                drops=diff.drops,
                option_changes=diff.option_changes,
                destructive_reasons=diff.destructive_reasons,
                reasons=diff.reasons,
                warnings=[*warnings, *remote.warnings, *diff.warnings],
                plan=diff.plan,
                shadow_plan=diff.shadow_plan,
                row_count=row_count,
                externally_managed=table.options.externally_managed,
                remote=remote,
            )
        )

    logger.info(
        "Analysed %d tables: %d create, %d modify, %d unchanged",
        len(results),
        sum(1 for r in results if r.classification == AnalysisType.CREATE),
        sum(1 for r in results if r.classification == AnalysisType.MODIFY),
        sum(1 for r in results if r.classification == AnalysisType.NO_CHANGES),
    )
    return results
