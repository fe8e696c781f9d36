"""Catalog store interface and implementations (in-memory, PostgreSQL)."""

from .memory_store import InMemoryCatalogStore
from .store import CatalogStore, StoreError

__all__ = [
    "CatalogStore",
    "InMemoryCatalogStore",
    "StoreError",
]
