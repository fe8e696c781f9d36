from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .import_kind import EntityKind, ImportKind

"""Catalog entity and Dataset models shared by the store implementations."""

__all__ = [
    "CatalogEntity",
    "Dataset",
    "DatasetSummary",
]


@dataclass(frozen=True)
class CatalogEntity:
    """A persisted catalog entity (product, material, unit, department).

    code and name are lifted out of the attribute bag because every lookup the
    pipeline performs is by one of them.
    """
    id: str
    kind: EntityKind
    code: str
    name: str
    attributes: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DatasetSummary:
    id: str
    name: str
    imported_at: datetime


@dataclass(frozen=True)
class Dataset:
    """Persisted output of one successful commit. Append-only."""
    id: str
    name: str
    imported_at: datetime
    committed_rows: list[dict[str, Any]]
    kind: ImportKind | None = None

    @property
    def row_count(self) -> int:
        return len(self.committed_rows)

    def summary(self) -> DatasetSummary:
        return DatasetSummary(id=self.id, name=self.name, imported_at=self.imported_at)
