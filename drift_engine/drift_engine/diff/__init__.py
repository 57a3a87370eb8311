"""Table diffing: column, clause, index, projection and metadata reconciliation."""

from drift_engine.diff.rename import CanonicalNameRenameStrategy, ExplicitRenameStrategy, RenameStrategy
from drift_engine.diff.shadow import build_shadow_plan, requires_shadow_swap
from drift_engine.diff.table_diff import diff_table
from drift_engine.diff.view_diff import diff_materialized_view

__all__ = [
    "CanonicalNameRenameStrategy",
    "ExplicitRenameStrategy",
    "RenameStrategy",
    "build_shadow_plan",
    "diff_materialized_view",
    "diff_table",
    "requires_shadow_swap",
]
