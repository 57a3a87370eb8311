"""Domain models for the drift engine."""

from drift_engine.models.analysis import (
    AnalysisOptions,
    AnalysisType,
    DiffOptions,
    DiffReason,
    ReasonKind,
    TableAnalysis,
    TableDiff,
)
from drift_engine.models.metadata import (
    DEFAULT_METADATA_VERSION,
    SUPPORTED_METADATA_VERSIONS,
    HousekitMetadata,
)
from drift_engine.models.remote import (
    ParsedColumn,
    ParsedCreateOptions,
    ParsedIndex,
    ParsedProjection,
    RemoteTableDescription,
)
from drift_engine.models.table_definition import (
    ColumnSpec,
    IndexDefinition,
    LocalTableDefinition,
    ProjectionDefinition,
    TableKind,
    TableOptions,
    ViewOptions,
    render_create_table,
)

__all__ = [
    "DEFAULT_METADATA_VERSION",
    "SUPPORTED_METADATA_VERSIONS",
    "AnalysisOptions",
    "AnalysisType",
    "ColumnSpec",
    "DiffOptions",
    "DiffReason",
    "HousekitMetadata",
    "IndexDefinition",
    "LocalTableDefinition",
    "ParsedColumn",
    "ParsedCreateOptions",
    "ParsedIndex",
    "ParsedProjection",
    "ProjectionDefinition",
    "ReasonKind",
    "RemoteTableDescription",
    "TableAnalysis",
    "TableDiff",
    "TableKind",
    "TableOptions",
    "ViewOptions",
    "render_create_table",
]
