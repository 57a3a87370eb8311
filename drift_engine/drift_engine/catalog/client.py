"""Catalog implementation backed by a database query client.

The client is any object exposing ``execute(sql, parameters)`` returning a
list of row dictionaries.  Every call to :meth:`ClientCatalog.describe`
issues fresh introspection queries; nothing is cached.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Protocol

from drift_engine.catalog.describer import build_remote_description
from drift_engine.models.remote import RemoteTableDescription
from drift_engine.parser.scanner import quote_identifier

logger = logging.getLogger(__name__)


class QueryClient(Protocol):
    """Minimal surface of the database client collaborator."""

    def execute(self, sql: str, parameters: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        """Run a read query and return its rows as dictionaries."""
        ...

    def command(self, sql: str) -> None:
        """Run a statement that returns no rows."""
        ...


class ClientCatalog:
    """Remote catalog that introspects tables through a :class:`QueryClient`."""

    def __init__(self, client: QueryClient) -> None:
        self._client = client

    def _table_comment(self, table: str) -> str | None:
        try:
            rows = self._client.execute(
                "SELECT comment FROM system.tables WHERE database = currentDatabase() AND name = {table:String} LIMIT 1",
                {"table": table},
            )
        except Exception as exc:  # noqa: BLE001
            logger.debug("Comment lookup for %s failed: %s", table, exc)
            return None
        if not rows:
            return None
        return rows[0].get("comment") or None

    def describe(self, table: str) -> RemoteTableDescription | None:
        """Fetch and assemble the live description of *table*.

        Any failure of the listing or ``SHOW CREATE`` queries is treated as
        the table being absent.
        """
        quoted = quote_identifier(table)
        try:
            columns_rows = self._client.execute(f"DESCRIBE TABLE {quoted}")
            create_rows = self._client.execute(f"SHOW CREATE TABLE {quoted}")
        except Exception as exc:  # noqa: BLE001
            logger.debug("Table %s not found or not readable: %s", table, exc)
            return None

        if not create_rows:
            logger.debug("SHOW CREATE returned no rows for %s", table)
            return None

        statement = str(create_rows[0].get("statement") or "")
        description = build_remote_description(columns_rows, statement, self._table_comment(table))
        logger.debug("Described %s: %d columns", table, len(description.columns))
        return description

    def count_rows(self, table: str) -> int:
        try:
            rows = self._client.execute(f"SELECT count() AS cnt FROM {quote_identifier(table)}")
        except Exception as exc:  # noqa: BLE001
            logger.debug("Row count for %s failed: %s", table, exc)
            return -1
        if not rows:
            return -1
        return int(rows[0].get("cnt") or 0)
