"""Code-declared table schema: columns, engine options, indices, projections.

A :class:`LocalTableDefinition` is owned by whatever loads the project's
schema; the drift engine treats it as immutable input.  The definition can
render its own ``CREATE TABLE`` statement, which is used both for brand new
tables and for the shadow table of a rebuild-and-swap plan.  A definition of
kind ``materialized_view`` renders ``CREATE MATERIALIZED VIEW`` instead.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from drift_engine.models.metadata import (
    DEFAULT_METADATA_VERSION,
    assert_metadata_version,
    build_metadata,
    serialize_metadata_comment,
)
from drift_engine.parser.scanner import quote_identifier, quote_literal, split_top_level

DEFAULT_REPLICATED_ENGINE = "ReplicatedMergeTree('/clickhouse/tables/{shard}/{database}/{table}', '{replica}')"


class ColumnSpec(BaseModel):
    """A single declared column.

    Exactly one way of declaring a default is expected: ``default_expr`` for
    a raw SQL expression (``now()``), or ``default_value`` for a Python
    literal that is rendered as SQL.  ``has_default_value`` distinguishes an
    explicit ``None`` default (``DEFAULT NULL``) from no default at all.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Column name in the database.")
    sql_type: str = Field(..., min_length=1, description="SQL type, e.g. 'Int32' or 'Array(String)'.")
    nullable: bool = Field(default=False, description="Wrap the type in Nullable(...).")
    default_expr: str | None = Field(default=None, description="Raw SQL DEFAULT expression.")
    default_value: Any = Field(default=None, description="Python literal DEFAULT value.")
    has_default_value: bool = Field(default=False, description="True when default_value was declared.")
    comment: str | None = Field(default=None, description="Column comment.")

    @model_validator(mode="before")
    @classmethod
    def _flag_default_value(cls, data: Any) -> Any:
        if isinstance(data, dict) and "default_value" in data and "has_default_value" not in data:
            data = {**data, "has_default_value": True}
        return data

    def type_sql(self) -> str:
        """Return the bare type, wrapped in ``Nullable`` when requested."""
        if self.nullable and not self.sql_type.lower().startswith("nullable("):
            return f"Nullable({self.sql_type})"
        return self.sql_type

    def default_sql(self) -> str | None:
        """Return the DEFAULT expression as SQL text, or ``None``."""
        if self.default_expr is not None:
            return self.default_expr
        if not self.has_default_value:
            return None
        value = self.default_value
        if value is None:
            return "NULL"
        if isinstance(value, bool):
            return "1" if value else "0"
        if isinstance(value, (int, float)):
            return str(value)
        return "'" + str(value).replace("'", "''") + "'"

    def to_sql(self) -> str:
        """Render the full column type: ``<type> [DEFAULT ...] [COMMENT '...']``."""
        sql = self.type_sql()
        default = self.default_sql()
        if default is not None:
            sql += f" DEFAULT {default}"
        if self.comment:
            sql += f" COMMENT {quote_literal(self.comment)}"
        return sql


ColumnRef = str | ColumnSpec


class IndexDefinition(BaseModel):
    """A declared data-skipping index over columns or a raw expression."""

    name: str = Field(..., min_length=1)
    columns: list[ColumnRef] = Field(default_factory=list)
    expression: str | None = Field(default=None, description="Raw index expression; overrides columns.")
    type: str = Field(default="minmax")
    granularity: int = Field(default=1, ge=1)

    def expression_sql(self, resolve: dict[str, str] | None = None) -> str:
        """Return the index expression SQL (``tuple(...)`` for several columns)."""
        if self.expression:
            return self.expression
        names = [_ref_name(ref, resolve or {}) for ref in self.columns]
        parts = [quote_identifier(name) for name in names]
        if not parts:
            return ""
        return f"tuple({', '.join(parts)})" if len(parts) > 1 else parts[0]


class ProjectionDefinition(BaseModel):
    """A declared projection: a name and its SELECT query."""

    name: str = Field(..., min_length=1)
    query: str


class TableOptions(BaseModel):
    """Engine and storage options of a declared table."""

    engine: str | None = Field(default=None, description="Engine SQL, e.g. 'MergeTree()'.")
    custom_engine: str | None = Field(default=None, description="Engine SQL used verbatim.")
    order_by: ColumnRef | list[ColumnRef] | None = None
    partition_by: ColumnRef | list[ColumnRef] | None = None
    primary_key: ColumnRef | list[ColumnRef] | None = None
    sample_by: ColumnRef | list[ColumnRef] | None = None
    ttl: str | list[str] | None = None
    on_cluster: str | None = None
    indices: list[IndexDefinition] = Field(default_factory=list)
    projections: list[ProjectionDefinition] = Field(default_factory=list)
    metadata_version: str | None = Field(default=None, description="None uses the configured default.")
    append_only: bool | None = Field(default=None, description="None when not declared.")
    read_only: bool | None = Field(default=None, description="None when not declared.")
    externally_managed: bool = False
    deduplicate_by: str | list[str] | None = None
    version_column: str | None = None

    @field_validator("metadata_version")
    @classmethod
    def _check_metadata_version(cls, value: str | None) -> str | None:
        return assert_metadata_version(value) if value is not None else None


class TableKind(str, Enum):
    """What a declaration creates."""

    TABLE = "table"
    MATERIALIZED_VIEW = "materialized_view"


class ViewOptions(BaseModel):
    """The query and target of a materialized view."""

    query: str = Field(..., min_length=1, description="SELECT the view runs on every insert.")
    to_table: str | None = Field(default=None, description="Target table; None stores rows in an inner table.")
    populate: bool = False
    or_replace: bool = Field(default=False, description="Render CREATE OR REPLACE instead of IF NOT EXISTS.")


class LocalTableDefinition(BaseModel):
    """A table as declared in code.

    ``columns`` maps a declaration key (often an attribute name) to its
    :class:`ColumnSpec`; the key may differ from the column's SQL name.
    Clause options may reference columns by key, by SQL name, or by the
    :class:`ColumnSpec` object itself.

    A materialized view is declared with ``kind=TableKind.MATERIALIZED_VIEW``
    and its query in ``view``.  Its ``options`` describe the inner table and
    are only rendered when no ``to_table`` is set.
    """

    name: str = Field(..., min_length=1)
    columns: dict[str, ColumnSpec] = Field(default_factory=dict)
    options: TableOptions = Field(default_factory=TableOptions)
    kind: TableKind = TableKind.TABLE
    view: ViewOptions | None = None

    @model_validator(mode="after")
    def _check_view(self) -> LocalTableDefinition:
        if self.kind == TableKind.MATERIALIZED_VIEW and self.view is None:
            raise ValueError(f"materialized view {self.name!r} has no view query")
        if self.kind == TableKind.TABLE and self.view is not None:
            raise ValueError(f"table {self.name!r} declares view options; set kind='materialized_view'")
        return self

    def is_materialized_view(self) -> bool:
        return self.kind == TableKind.MATERIALIZED_VIEW

    # -- column lookups --------------------------------------------------

    def column_names(self) -> list[str]:
        """Return SQL column names in declaration order."""
        return [col.name for col in self.columns.values()]

    def columns_by_name(self) -> dict[str, ColumnSpec]:
        return {col.name: col for col in self.columns.values()}

    def has_column(self, ref: str) -> bool:
        return ref in self.columns or ref in self.columns_by_name()

    def _key_map(self) -> dict[str, str]:
        return {key: col.name for key, col in self.columns.items()}

    def resolve_clause(self, value: ColumnRef | list[ColumnRef] | None) -> str | None:
        """Resolve column references in a clause option to a SQL expression."""
        if value is None:
            return None
        items = value if isinstance(value, list) else [value]
        key_map = self._key_map()
        parts: list[str] = []
        for item in items:
            if isinstance(item, ColumnSpec):
                parts.append(item.name)
            else:
                parts.extend(_ref_name(p, key_map) for p in split_top_level(str(item)))
        return ", ".join(parts) or None

    # -- effective options -----------------------------------------------

    def engine_sql(self) -> str:
        """Return the engine SQL this definition renders."""
        opts = self.options
        if opts.custom_engine:
            return opts.custom_engine
        engine = opts.engine
        if not engine:
            engine = DEFAULT_REPLICATED_ENGINE if opts.on_cluster else "MergeTree()"
        if opts.version_column and "replacing" not in engine.lower():
            return f"ReplacingMergeTree({opts.version_column})"
        return engine

    def is_merge_tree_family(self) -> bool:
        return "mergetree" in self.engine_sql().lower()

    def effective_order_by(self) -> str | None:
        """Return the rendered sorting key, including the implicit fallbacks."""
        order_by = self.resolve_clause(self.options.order_by)
        if order_by:
            return order_by
        if self.is_merge_tree_family():
            return self.resolve_clause(self.options.primary_key) or "tuple()"
        return None

    def ttl_sql(self) -> str | None:
        ttl = self.options.ttl
        if not ttl:
            return None
        return ", ".join(ttl) if isinstance(ttl, list) else ttl

    def metadata_version(self, default: str = DEFAULT_METADATA_VERSION) -> str:
        """Return the declared metadata version, or *default* when undeclared."""
        return self.options.metadata_version or default

    def metadata_comment(self, default_version: str = DEFAULT_METADATA_VERSION) -> str:
        """Return the metadata envelope written on create."""
        meta = build_metadata(
            self.metadata_version(default_version),
            append_only=self.options.append_only,
            read_only=self.options.read_only,
        )
        return serialize_metadata_comment(meta)

    # -- rendering -------------------------------------------------------

    def to_create_sql(
        self,
        table_name: str | None = None,
        *,
        default_metadata_version: str = DEFAULT_METADATA_VERSION,
        comment: str | None = None,
    ) -> str:
        """Render the full ``CREATE TABLE IF NOT EXISTS`` statement.

        *table_name* overrides the declared name (used for shadow tables) and
        *comment* overrides the metadata envelope written as the table
        comment.  Externally managed tables render an empty string, and a
        materialized view renders its ``CREATE MATERIALIZED VIEW`` statement.
        """
        if self.options.externally_managed:
            return ""
        if self.is_materialized_view():
            return self._create_view_sql(table_name)
        opts = self.options
        key_map = self._key_map()
        entries = [f"{quote_identifier(col.name)} {col.to_sql()}" for col in self.columns.values()]
        for idx in opts.indices:
            expression = idx.expression_sql(key_map)
            if not expression:
                continue
            entries.append(
                f"INDEX {quote_identifier(idx.name)} {expression} TYPE {idx.type} GRANULARITY {idx.granularity}"
            )
        for proj in opts.projections:
            query = proj.query.strip()
            if query:
                entries.append(f"PROJECTION {quote_identifier(proj.name)} ({query})")

        cluster = f" ON CLUSTER {opts.on_cluster}" if opts.on_cluster else ""
        sql = (
            f"CREATE TABLE IF NOT EXISTS {quote_identifier(table_name or self.name)}{cluster} "
            f"({', '.join(entries)}) ENGINE = {self.engine_sql()}"
        )
        order_by = self.effective_order_by()
        if order_by:
            sql += f" ORDER BY {_wrap(order_by)}"
        primary_key = self.resolve_clause(opts.primary_key)
        if primary_key:
            sql += f" PRIMARY KEY ({primary_key})"
        partition_by = self.resolve_clause(opts.partition_by)
        if partition_by:
            sql += f" PARTITION BY ({partition_by})"
        sample_by = self.resolve_clause(opts.sample_by)
        if sample_by:
            sql += f" SAMPLE BY ({sample_by})"
        ttl = self.ttl_sql()
        if ttl:
            sql += f" TTL {ttl}"
        if comment is None:
            comment = self.metadata_comment(default_metadata_version)
        sql += f" COMMENT {quote_literal(comment)}"
        return sql

    def _create_view_sql(self, view_name: str | None = None) -> str:
        view = self.view
        opts = self.options
        head = "CREATE OR REPLACE MATERIALIZED VIEW" if view.or_replace else "CREATE MATERIALIZED VIEW IF NOT EXISTS"
        parts = [head, quote_identifier(view_name or self.name)]
        if opts.on_cluster:
            parts.append(f"ON CLUSTER {opts.on_cluster}")

        # Without a target the view keeps rows in an inner table of its own.
        if view.to_table:
            parts.append(f"TO {quote_identifier(view.to_table)}")
        elif opts.engine or opts.custom_engine:
            parts.append(f"ENGINE = {opts.custom_engine or opts.engine}")
            order_by = self.resolve_clause(opts.order_by)
            if order_by:
                parts.append(f"ORDER BY ({order_by})")
            partition_by = self.resolve_clause(opts.partition_by)
            if partition_by:
                parts.append(f"PARTITION BY ({partition_by})")

        if view.populate:
            parts.append("POPULATE")
        parts.append(f"AS {view.query.strip().rstrip(';').strip()}")
        return " ".join(parts)


def render_create_table(
    definition: LocalTableDefinition,
    table_name: str | None = None,
    *,
    default_metadata_version: str = DEFAULT_METADATA_VERSION,
) -> str:
    """Render the CREATE statement for *definition*; see :meth:`LocalTableDefinition.to_create_sql`."""
    return definition.to_create_sql(table_name, default_metadata_version=default_metadata_version)


def _ref_name(ref: ColumnRef, key_map: dict[str, str]) -> str:
    if isinstance(ref, ColumnSpec):
        return ref.name
    return key_map.get(ref, ref)


def _wrap(expression: str) -> str:
    return expression if expression == "tuple()" else f"({expression})"
