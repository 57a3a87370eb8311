"""Unit tests for drift_engine.analyzer."""

from __future__ import annotations

import logging
import threading

import pytest

from drift_engine.analyzer import detect_schema_drift, sanity_warnings
from drift_engine.catalog.base import StaticCatalog
from drift_engine.catalog.describer import build_remote_description
from drift_engine.diff.rename import ExplicitRenameStrategy
from drift_engine.models.analysis import AnalysisOptions, AnalysisType, ReasonKind
from drift_engine.models.remote import RemoteTableDescription
from drift_engine.models.table_definition import (
    ColumnSpec,
    LocalTableDefinition,
    TableKind,
    TableOptions,
    ViewOptions,
)

OPTIONS = AnalysisOptions(timestamp=1)


def _table(name: str, *columns: tuple[str, str], **options) -> LocalTableDefinition:
    return LocalTableDefinition(
        name=name,
        columns={col: ColumnSpec(name=col, sql_type=sql_type) for col, sql_type in columns},
        options=TableOptions(**options),
    )


def _describe(table: LocalTableDefinition) -> RemoteTableDescription:
    return build_remote_description([], table.to_create_sql())


class _RecordingCatalog(StaticCatalog):
    """StaticCatalog that records which threads served describe calls."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.described: list[str] = []
        self.threads: set[int] = set()
        self._lock = threading.Lock()

    def describe(self, table):
        with self._lock:
            self.described.append(table)
            self.threads.add(threading.get_ident())
        return super().describe(table)


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


class TestClassification:
    def test_missing_table_is_create(self):
        table = _table("events", ("id", "UInt64"))
        [analysis] = detect_schema_drift([table], StaticCatalog(), OPTIONS)
        assert analysis.classification == AnalysisType.CREATE
        assert analysis.plan == [table.to_create_sql()]
        assert analysis.shadow_plan is None
        assert analysis.remote is None
        assert analysis.row_count == 0

    def test_externally_managed_create_has_empty_plan(self):
        table = _table("events", ("id", "UInt64"), externally_managed=True)
        [analysis] = detect_schema_drift([table], StaticCatalog(), OPTIONS)
        assert analysis.classification == AnalysisType.CREATE
        assert analysis.plan == []
        assert analysis.externally_managed is True

    def test_identical_table_has_no_changes(self):
        table = _table("events", ("id", "UInt64"), ("name", "String"))
        catalog = StaticCatalog({"events": _describe(table)}, {"events": 10})
        [analysis] = detect_schema_drift([table], catalog, OPTIONS)
        assert analysis.classification == AnalysisType.NO_CHANGES
        assert analysis.plan == []
        assert analysis.shadow_plan is None
        assert analysis.row_count == 10

    def test_drift_is_modify(self):
        remote = _describe(_table("events", ("id", "UInt64")))
        table = _table("events", ("id", "UInt64"), ("name", "String"))
        catalog = StaticCatalog({"events": remote}, {"events": 3})
        [analysis] = detect_schema_drift([table], catalog, OPTIONS)
        assert analysis.classification == AnalysisType.MODIFY
        assert analysis.adds == ["name"]
        assert analysis.plan == ["ALTER TABLE `events` ADD COLUMN `name` String"]
        assert analysis.row_count == 3
        assert analysis.remote == remote

    def test_drop_marks_analysis_destructive(self):
        remote = _describe(_table("events", ("id", "UInt64"), ("legacy", "String")))
        [analysis] = detect_schema_drift([_table("events", ("id", "UInt64"))], StaticCatalog({"events": remote}))
        assert analysis.classification == AnalysisType.MODIFY
        assert analysis.is_destructive

    def test_warnings_only_is_no_changes(self):
        table = _table("events", ("id", "UInt64"), deduplicate_by="id")
        catalog = StaticCatalog({"events": _describe(table)})
        [analysis] = detect_schema_drift([table], catalog, OPTIONS)
        assert analysis.classification == AnalysisType.NO_CHANGES
        assert analysis.warnings


# ---------------------------------------------------------------------------
# Input shapes and ordering
# ---------------------------------------------------------------------------


class TestSchemaInput:
    def test_results_follow_declaration_order(self):
        tables = [_table(name, ("id", "UInt64")) for name in ("c", "a", "b")]
        results = detect_schema_drift(tables, StaticCatalog(), OPTIONS)
        assert [r.name for r in results] == ["c", "a", "b"]

    def test_mapping_input(self):
        schema = {"Events": _table("events", ("id", "UInt64")), "Users": _table("users", ("id", "UInt64"))}
        results = detect_schema_drift(schema, StaticCatalog(), OPTIONS)
        assert [r.name for r in results] == ["events", "users"]

    def test_empty_schema(self):
        assert detect_schema_drift([], StaticCatalog()) == []

    def test_rename_strategy_passed_through(self):
        remote = _describe(_table("events", ("customer", "String")))
        table = _table("events", ("account", "String"))
        [analysis] = detect_schema_drift(
            [table],
            StaticCatalog({"events": remote}),
            OPTIONS,
            rename_strategy=ExplicitRenameStrategy({"account": "customer"}),
        )
        assert analysis.adds == []
        assert analysis.drops == []
        assert "column rename customer -> account" in analysis.destructive_reasons


# ---------------------------------------------------------------------------
# Concurrent description fetch
# ---------------------------------------------------------------------------


class TestFetchWorkers:
    @pytest.mark.parametrize("workers", [1, 2, 8])
    def test_results_independent_of_workers(self, workers):
        tables = [_table(f"t{n}", ("id", "UInt64")) for n in range(6)]
        existing = {t.name: _describe(t) for t in tables[:3]}
        catalog = _RecordingCatalog(existing)
        results = detect_schema_drift(tables, catalog, AnalysisOptions(timestamp=1, fetch_workers=workers))
        assert [r.classification for r in results] == [AnalysisType.NO_CHANGES] * 3 + [AnalysisType.CREATE] * 3
        assert sorted(catalog.described) == sorted(t.name for t in tables)

    def test_single_worker_stays_on_calling_thread(self):
        tables = [_table(f"t{n}", ("id", "UInt64")) for n in range(3)]
        catalog = _RecordingCatalog()
        detect_schema_drift(tables, catalog, AnalysisOptions(fetch_workers=1))
        assert catalog.threads == {threading.get_ident()}


# ---------------------------------------------------------------------------
# Warnings
# ---------------------------------------------------------------------------


class TestSanityWarnings:
    def test_clean_table(self):
        assert sanity_warnings(_table("t", ("id", "UInt64"))) == []

    def test_dedup_without_version_column(self):
        warnings = sanity_warnings(_table("t", ("id", "UInt64"), deduplicate_by="id"))
        assert warnings == [
            "uses deduplicateBy without versionColumn. Consider setting versionColumn to make dedup deterministic."
        ]

    def test_dedup_column_missing(self):
        table = _table("t", ("id", "UInt64"), ("ver", "UInt32"), deduplicate_by=["id", "missing"], version_column="ver")
        assert sanity_warnings(table) == ["deduplicateBy column `missing` not found in `t`"]

    def test_version_column_missing(self):
        table = _table("t", ("id", "UInt64"), version_column="ver")
        assert sanity_warnings(table) == ["versionColumn `ver` not found in `t`"]

    def test_column_found_by_declaration_key(self):
        table = LocalTableDefinition(
            name="t",
            columns={"version": ColumnSpec(name="ver", sql_type="UInt32")},
            options=TableOptions(version_column="version"),
        )
        assert sanity_warnings(table) == []


class TestWarningMerge:
    def test_sanity_warnings_on_create(self):
        table = _table("t", ("id", "UInt64"), version_column="ver")
        [analysis] = detect_schema_drift([table], StaticCatalog(), OPTIONS)
        assert analysis.warnings == ["versionColumn `ver` not found in `t`"]

    def test_remote_and_diff_warnings_merged_in_order(self):
        table = _table("t", ("id", "UInt64"), ("ver", "UInt32"), deduplicate_by="id")
        remote = build_remote_description(
            [{"name": "id", "type": "UInt64"}, {"name": "ver", "type": "UInt32"}],
            "CREATE TABLE t (id UInt64",
        )
        [analysis] = detect_schema_drift([table], StaticCatalog({"t": remote}), OPTIONS)
        assert analysis.warnings[0].startswith("uses deduplicateBy without versionColumn")
        assert analysis.warnings[1].startswith("could not parse remote CREATE statement")
        assert analysis.warnings[2] == "remote table options are unknown; clause changes are left to the shadow swap"
        assert analysis.classification == AnalysisType.MODIFY
        assert analysis.shadow_plan is not None
        assert not any("MODIFY ORDER BY" in sql for sql in analysis.plan)


class TestLogging:
    def test_summary_logged(self, caplog):
        tables = [_table("a", ("id", "UInt64")), _table("b", ("id", "UInt64"))]
        catalog = StaticCatalog({"a": _describe(tables[0])})
        with caplog.at_level(logging.INFO, logger="drift_engine.analyzer"):
            detect_schema_drift(tables, catalog, OPTIONS)
        assert "Analysed 2 tables: 1 create, 0 modify, 1 unchanged" in caplog.text


# ---------------------------------------------------------------------------
# Materialized views
# ---------------------------------------------------------------------------


class TestMaterializedViews:
    QUERY = "SELECT kind, count() AS n FROM events GROUP BY kind"

    def _view(self, query: str) -> LocalTableDefinition:
        return LocalTableDefinition(
            name="kind_mv",
            kind=TableKind.MATERIALIZED_VIEW,
            view=ViewOptions(query=query, to_table="kind_counts", or_replace=True),
        )

    def _catalog(self, query: str) -> StaticCatalog:
        statement = (
            "CREATE MATERIALIZED VIEW default.kind_mv TO default.kind_counts "
            f"(`kind` String, `n` UInt64) AS {query}"
        )
        return StaticCatalog({"kind_mv": build_remote_description([], statement)})

    def test_missing_view_is_create(self):
        view = self._view(self.QUERY)
        [analysis] = detect_schema_drift([view], StaticCatalog(), OPTIONS)
        assert analysis.classification == AnalysisType.CREATE
        assert analysis.plan == [view.to_create_sql()]

    def test_unchanged_query(self):
        [analysis] = detect_schema_drift([self._view(self.QUERY)], self._catalog(self.QUERY), OPTIONS)
        assert analysis.classification == AnalysisType.NO_CHANGES
        assert analysis.plan == []

    def test_changed_query_is_modify(self):
        view = self._view("SELECT kind, uniq(user) AS n FROM events GROUP BY kind")
        [analysis] = detect_schema_drift([view], self._catalog(self.QUERY), OPTIONS)
        assert analysis.classification == AnalysisType.MODIFY
        assert analysis.option_changes == ["query"]
        assert analysis.destructive_reasons == ["materialized view query change"]
        assert [reason.kind for reason in analysis.reasons] == [ReasonKind.VIEW_QUERY_CHANGE]
        assert analysis.plan == [view.to_create_sql()]
        assert analysis.shadow_plan is None
        assert analysis.is_destructive
