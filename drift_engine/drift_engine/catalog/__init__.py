"""Remote catalog lookups and description building."""

from drift_engine.catalog.base import RemoteCatalog, StaticCatalog
from drift_engine.catalog.client import ClientCatalog, QueryClient
from drift_engine.catalog.describer import build_remote_description

__all__ = [
    "ClientCatalog",
    "QueryClient",
    "RemoteCatalog",
    "StaticCatalog",
    "build_remote_description",
]
