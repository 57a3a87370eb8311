"""Interfaces for looking up the live state of tables.

The drift engine never talks to the database itself.  It asks a
:class:`RemoteCatalog` for descriptions and row counts; "no description"
is the signal that a table does not exist.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol

from drift_engine.models.remote import RemoteTableDescription


class RemoteCatalog(Protocol):
    """Structural interface for remote table lookups."""

    def describe(self, table: str) -> RemoteTableDescription | None:
        """Return the live description of *table*, or ``None`` if it is absent."""
        ...

    def count_rows(self, table: str) -> int:
        """Return the number of rows in *table*, or ``-1`` if unknown."""
        ...


class StaticCatalog:
    """In-memory catalog backed by pre-fetched descriptions.

    Useful for offline planning and for replaying a captured remote state.
    """

    def __init__(
        self,
        descriptions: Mapping[str, RemoteTableDescription] | None = None,
        row_counts: Mapping[str, int] | None = None,
    ) -> None:
        self._descriptions = dict(descriptions or {})
        self._row_counts = dict(row_counts or {})

    def describe(self, table: str) -> RemoteTableDescription | None:
        description = self._descriptions.get(table)
        # Hand out copies so callers never share mutable state between analyses.
        return description.model_copy(deep=True) if description is not None else None

    def count_rows(self, table: str) -> int:
        if table not in self._descriptions:
            return -1
        return self._row_counts.get(table, 0)
