"""Output models of the drift engine.

A :class:`TableDiff` is the pure result of comparing one local definition
with one remote description.  The analyzer wraps it into a
:class:`TableAnalysis` together with the classification, row count, and the
remote snapshot it was computed from.

``plan`` and ``shadow_plan`` are alternatives: an executor runs exactly one
of them, never both.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from drift_engine.models.metadata import DEFAULT_METADATA_VERSION
from drift_engine.models.remote import RemoteTableDescription

if TYPE_CHECKING:
    from drift_engine.config import DriftSettings


class AnalysisType(str, Enum):
    """Overall classification of a table analysis."""

    CREATE = "create"
    MODIFY = "modify"
    NO_CHANGES = "no_changes"


class ReasonKind(str, Enum):
    """What kind of change a destructive reason records."""

    DEFAULT_ADDED = "default_added"
    TYPE_CHANGE = "type_change"
    DEFAULT_CHANGE = "default_change"
    COLUMN_RENAME = "column_rename"
    COLUMN_DROP = "column_drop"
    COLUMN_REORDER = "column_reorder"
    ENGINE_CHANGE = "engine_change"
    ORDER_BY_CHANGE = "order_by_change"
    PARTITION_CHANGE = "partition_change"
    TTL_CHANGE = "ttl_change"
    PRIMARY_KEY_CHANGE = "primary_key_change"
    CLUSTER_MISMATCH = "cluster_mismatch"
    OPTIONS_UNKNOWN = "options_unknown"
    VIEW_QUERY_CHANGE = "view_query_change"


# Reason kinds that only add to a table and can be applied in place.
ADDITIVE_REASON_KINDS: frozenset[ReasonKind] = frozenset({ReasonKind.DEFAULT_ADDED})


class DiffReason(BaseModel):
    """A destructive reason together with its kind."""

    kind: ReasonKind
    message: str


class DiffOptions(BaseModel):
    """Knobs for a single table diff."""

    auto_upgrade_metadata: bool = Field(
        default=False,
        description="Rewrite the metadata comment even when the recorded version differs.",
    )
    shadow_suffix: str = "__shadow_"
    backup_suffix: str = "__backup_"
    default_metadata_version: str = Field(
        default=DEFAULT_METADATA_VERSION,
        description="Metadata version for tables that do not declare one.",
    )
    timestamp: int | None = Field(
        default=None,
        description="Millisecond timestamp used in shadow/backup names; defaults to now.",
    )


class AnalysisOptions(DiffOptions):
    """Options for a full drift-detection run."""

    fetch_workers: int = Field(default=1, ge=1, description="Concurrent description fetches.")

    @classmethod
    def from_settings(cls, settings: DriftSettings) -> AnalysisOptions:
        """Build options from environment-driven settings."""
        return cls(
            auto_upgrade_metadata=settings.auto_upgrade_metadata,
            shadow_suffix=settings.shadow_suffix,
            backup_suffix=settings.backup_suffix,
            fetch_workers=settings.fetch_workers,
            default_metadata_version=settings.metadata_version,
        )


class TableDiff(BaseModel):
    """Differences between one local definition and its remote counterpart."""

    adds: list[str] = Field(default_factory=list, description="Columns to add.")
    modifies: list[str] = Field(default_factory=list, description="Columns whose type/default/comment changed.")
    drops: list[str] = Field(default_factory=list, description="Remote columns with no local counterpart.")
    option_changes: list[str] = Field(default_factory=list, description="Table option differences.")
    destructive_reasons: list[str] = Field(default_factory=list)
    reasons: list[DiffReason] = Field(
        default_factory=list,
        description="Structured form of destructive_reasons, in the same order.",
    )
    warnings: list[str] = Field(default_factory=list)
    plan: list[str] = Field(default_factory=list, description="In-place DDL, safe to run in order.")
    shadow_plan: list[str] | None = Field(
        default=None,
        description="Create-shadow, copy, rename statements; an alternative to plan.",
    )

    @property
    def has_changes(self) -> bool:
        return bool(self.plan) or self.shadow_plan is not None


class TableAnalysis(TableDiff):
    """Complete drift analysis for one table."""

    name: str
    classification: AnalysisType
    row_count: int = 0
    externally_managed: bool = False
    remote: RemoteTableDescription | None = None

    @property
    def is_destructive(self) -> bool:
        return bool(self.destructive_reasons) or bool(self.drops)
