"""Models describing the live (remote) state of a table."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ParsedIndex(BaseModel):
    """A data-skipping index as it appears in a ``CREATE TABLE`` statement."""

    name: str
    expression: str = ""
    type: str = ""
    granularity: int | None = None


class ParsedProjection(BaseModel):
    """A projection as it appears in a ``CREATE TABLE`` statement."""

    name: str
    query: str = ""


class ParsedColumn(BaseModel):
    """One entry of a ``CREATE TABLE`` column list."""

    name: str
    type: str = Field(..., description="Bare type with inline clauses stripped.")
    default: str | None = Field(default=None, description="Raw DEFAULT expression, if any.")
    comment: str | None = Field(default=None, description="Unescaped column comment, if any.")
    definition: str = Field(default="", description="Everything after the column name.")


class ParsedCreateOptions(BaseModel):
    """Table-level clauses extracted from a ``CREATE TABLE`` statement."""

    engine: str | None = None
    on_cluster: str | None = None
    order_by: str | None = None
    partition_by: str | None = None
    primary_key: str | None = None
    sample_by: str | None = None
    ttl: str | None = None
    indices: list[ParsedIndex] = Field(default_factory=list)
    projections: list[ParsedProjection] = Field(default_factory=list)
    comment: str | None = None


class RemoteTableDescription(BaseModel):
    """Snapshot of a table as it exists in the database at analysis time.

    Built fresh for every analysis and never cached: it always reflects the
    live state when it was fetched.
    """

    columns: dict[str, str] = Field(
        default_factory=dict,
        description="Ordered mapping of column name to raw type text (may embed a COMMENT clause).",
    )
    defaults: dict[str, str] = Field(
        default_factory=dict,
        description="Lower-cased column name to raw DEFAULT expression.",
    )
    options: ParsedCreateOptions = Field(default_factory=ParsedCreateOptions)
    options_known: bool = Field(
        default=True,
        description="False when no CREATE text could be parsed; options are then empty, not absent.",
    )
    view_query: str | None = Field(
        default=None,
        description="The AS query of a materialized view, taken from its CREATE text.",
    )
    comment: str | None = Field(
        default=None,
        description="Table comment; may hold a JSON metadata envelope.",
    )
    warnings: list[str] = Field(
        default_factory=list,
        description="Problems encountered while building the description.",
    )
