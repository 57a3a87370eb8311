"""Unit tests for drift_engine.catalog (description builder and catalogs)."""

from __future__ import annotations

from drift_engine.catalog.base import StaticCatalog
from drift_engine.catalog.client import ClientCatalog
from drift_engine.catalog.describer import build_remote_description
from drift_engine.models.remote import RemoteTableDescription

CREATE = (
    "CREATE TABLE default.events (`id` UInt32, `ts` DateTime DEFAULT now(), "
    "`kind` String DEFAULT 'click' COMMENT 'kind note', `Flag` UInt8 DEFAULT 1) "
    "ENGINE = MergeTree ORDER BY id COMMENT 'from create'"
)

ROWS = [
    {"name": "id", "type": "UInt64", "default_type": "", "default_expression": "", "comment": ""},
    {"name": "ts", "type": "DateTime", "default_type": "DEFAULT", "default_expression": "now()", "comment": "event time"},
    {"name": "kind", "type": "String", "default_type": "", "default_expression": "", "comment": ""},
    {"name": "Flag", "type": "UInt8", "default_type": "DEFAULT", "default_expression": "1", "comment": ""},
]

# ---------------------------------------------------------------------------
# build_remote_description
# ---------------------------------------------------------------------------


class TestBuildRemoteDescription:
    def test_listing_wins_for_type(self):
        description = build_remote_description(ROWS, CREATE)
        assert description.columns["id"] == "UInt64"

    def test_column_order_follows_listing(self):
        description = build_remote_description(ROWS, CREATE)
        assert list(description.columns) == ["id", "ts", "kind", "Flag"]

    def test_listing_comment_embedded(self):
        description = build_remote_description(ROWS, CREATE)
        assert description.columns["ts"] == "DateTime COMMENT 'event time'"

    def test_comment_merged_from_create(self):
        description = build_remote_description(ROWS, CREATE)
        assert description.columns["kind"] == "String COMMENT 'kind note'"

    def test_defaults_from_listing_and_create(self):
        description = build_remote_description(ROWS, CREATE)
        assert description.defaults["ts"] == "now()"
        assert description.defaults["kind"] == "'click'"
        assert "id" not in description.defaults

    def test_defaults_keyed_lowercase(self):
        description = build_remote_description(ROWS, CREATE)
        assert description.defaults["flag"] == "1"

    def test_materialized_is_not_a_default(self):
        rows = [{"name": "m", "type": "UInt8", "default_type": "MATERIALIZED", "default_expression": "1"}]
        description = build_remote_description(rows, "CREATE TABLE t (`m` UInt8 MATERIALIZED 1) ENGINE = Memory")
        assert description.defaults == {}

    def test_options_parsed(self):
        description = build_remote_description(ROWS, CREATE)
        assert description.options.engine == "MergeTree"
        assert description.options.order_by == "id"

    def test_table_comment_argument_wins(self):
        description = build_remote_description(ROWS, CREATE, "from catalog")
        assert description.comment == "from catalog"

    def test_comment_falls_back_to_create(self):
        description = build_remote_description(ROWS, CREATE)
        assert description.comment == "from create"

    def test_create_only(self):
        description = build_remote_description([], CREATE)
        assert list(description.columns) == ["id", "ts", "kind", "Flag"]
        assert description.columns["id"] == "UInt32"
        assert description.columns["kind"] == "String COMMENT 'kind note'"
        assert description.defaults["flag"] == "1"

    def test_unparseable_create_degrades_to_warning(self):
        description = build_remote_description(ROWS, "CREATE TABLE broken (id UInt64")
        assert description.options.engine is None
        assert description.options.indices == []
        assert description.columns["id"] == "UInt64"
        assert description.defaults == {"ts": "now()", "flag": "1"}
        assert len(description.warnings) == 1
        assert "could not parse" in description.warnings[0]
        assert description.options_known is False

    def test_no_create_statement(self):
        description = build_remote_description(ROWS, None)
        assert description.warnings == []
        assert description.options.engine is None
        assert description.options_known is False

    def test_parsed_create_marks_options_known(self):
        assert build_remote_description(ROWS, CREATE).options_known is True

    def test_materialized_view_keeps_query(self):
        statement = (
            "CREATE MATERIALIZED VIEW default.mv TO default.rollup (`kind` String, `n` UInt64) "
            "AS SELECT kind, count() AS n FROM default.events GROUP BY kind"
        )
        description = build_remote_description([], statement)
        assert description.view_query == "SELECT kind, count() AS n FROM default.events GROUP BY kind"
        assert description.warnings == []

    def test_table_has_no_view_query(self):
        assert build_remote_description(ROWS, CREATE).view_query is None


# ---------------------------------------------------------------------------
# StaticCatalog
# ---------------------------------------------------------------------------


class TestStaticCatalog:
    def test_missing_table(self):
        assert StaticCatalog().describe("nope") is None
        assert StaticCatalog().count_rows("nope") == -1

    def test_returns_copies(self):
        catalog = StaticCatalog({"t": RemoteTableDescription(columns={"id": "Int32"})})
        first = catalog.describe("t")
        first.columns["x"] = "String"
        assert "x" not in catalog.describe("t").columns

    def test_row_counts(self):
        catalog = StaticCatalog({"t": RemoteTableDescription()}, row_counts={"t": 12})
        assert catalog.count_rows("t") == 12


# ---------------------------------------------------------------------------
# ClientCatalog
# ---------------------------------------------------------------------------


class _FakeClient:
    """Query client answering from canned rows keyed by SQL prefix."""

    def __init__(self, responses, failing=()):
        self.responses = responses
        self.failing = failing
        self.queries = []

    def execute(self, sql, parameters=None):
        self.queries.append((sql, parameters))
        for prefix in self.failing:
            if sql.startswith(prefix):
                raise RuntimeError(f"Table doesn't exist: {sql}")
        for prefix, rows in self.responses.items():
            if sql.startswith(prefix):
                return rows
        return []

    def command(self, sql):
        self.queries.append((sql, None))


class TestClientCatalog:
    def test_describe(self):
        client = _FakeClient(
            {
                "DESCRIBE TABLE": ROWS,
                "SHOW CREATE TABLE": [{"statement": CREATE}],
                "SELECT comment FROM system.tables": [{"comment": '{"housekit":{"version":"1.2.0"}}'}],
            }
        )
        description = ClientCatalog(client).describe("events")
        assert description is not None
        assert description.columns["id"] == "UInt64"
        assert description.comment == '{"housekit":{"version":"1.2.0"}}'
        assert client.queries[0][0] == "DESCRIBE TABLE `events`"

    def test_comment_lookup_is_parameterised(self):
        client = _FakeClient({"SHOW CREATE TABLE": [{"statement": CREATE}]})
        ClientCatalog(client).describe("events")
        comment_queries = [q for q in client.queries if "system.tables" in q[0]]
        assert comment_queries[0][1] == {"table": "events"}

    def test_empty_catalog_comment_falls_back_to_create(self):
        client = _FakeClient(
            {
                "DESCRIBE TABLE": ROWS,
                "SHOW CREATE TABLE": [{"statement": CREATE}],
                "SELECT comment FROM system.tables": [{"comment": ""}],
            }
        )
        assert ClientCatalog(client).describe("events").comment == "from create"

    def test_missing_table_is_none(self):
        client = _FakeClient({}, failing=("DESCRIBE TABLE",))
        assert ClientCatalog(client).describe("ghost") is None

    def test_no_create_rows_is_none(self):
        client = _FakeClient({"DESCRIBE TABLE": ROWS})
        assert ClientCatalog(client).describe("events") is None

    def test_count_rows(self):
        client = _FakeClient({"SELECT count()": [{"cnt": "42"}]})
        assert ClientCatalog(client).count_rows("events") == 42

    def test_count_rows_failure(self):
        client = _FakeClient({}, failing=("SELECT count()",))
        assert ClientCatalog(client).count_rows("events") == -1
