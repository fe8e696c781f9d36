from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any

from ..errors import CatalogImportError
from ..models.dataset import CatalogEntity, Dataset, DatasetSummary
from ..models.import_kind import EntityKind, ImportKind

"""Catalog store interface consumed by the import pipeline.

The store holds catalog entities (products, materials, units, departments) and
the append-only datasets produced by commits. It enforces no schema itself:
validation happens in the pipeline before anything is written. The reference
dataset pointer is owned here and changes only through set_reference_dataset.
"""

__all__ = [
    "CatalogStore",
    "StoreError",
    "split_fields",
]


class StoreError(CatalogImportError):
    """Raised by store implementations when a read or write fails."""


class CatalogStore(ABC):

    @abstractmethod
    def list_entities(self, kind: EntityKind) -> list[CatalogEntity]:
        ...

    def list_products(self) -> list[CatalogEntity]:
        return self.list_entities(EntityKind.PRODUCT)

    def list_materials(self) -> list[CatalogEntity]:
        return self.list_entities(EntityKind.MATERIAL)

    def list_units(self) -> list[CatalogEntity]:
        return self.list_entities(EntityKind.UNIT)

    def list_departments(self) -> list[CatalogEntity]:
        return self.list_entities(EntityKind.DEPARTMENT)

    @abstractmethod
    def get_by_id(self, entity_id: str) -> CatalogEntity | None:
        ...

    def find_by_code(self, kind: EntityKind, code: str) -> CatalogEntity | None:
        """Case-insensitive lookup by code. Empty codes never match."""
        key = code.strip().casefold()
        if not key:
            return None
        for entity in self.list_entities(kind):
            if entity.code.casefold() == key:
                return entity
        return None

    def find_by_name(self, kind: EntityKind, name: str) -> CatalogEntity | None:
        """Case-insensitive lookup by name. Empty names never match."""
        key = name.strip().casefold()
        if not key:
            return None
        for entity in self.list_entities(kind):
            if entity.name.casefold() == key:
                return entity
        return None

    @abstractmethod
    def create(self, kind: EntityKind, fields: Mapping[str, Any]) -> CatalogEntity:
        """Persist a new entity and return it with its assigned id.

        `fields` must contain "name"; "code" defaults to "". Every other key is
        stored as an attribute.
        """

    @abstractmethod
    def update(self, entity_id: str, fields: Mapping[str, Any]) -> CatalogEntity:
        ...

    @abstractmethod
    def delete(self, entity_id: str) -> None:
        ...

    @abstractmethod
    def insert_dataset(
        self,
        rows: Sequence[Mapping[str, Any]],
        name: str,
        kind: ImportKind | None = None,
    ) -> str:
        """Persist a dataset and return its id."""

    @property
    @abstractmethod
    def reference_dataset_id(self) -> str | None:
        ...

    @abstractmethod
    def set_reference_dataset(self, dataset_id: str | None) -> None:
        ...

    @abstractmethod
    def list_datasets(self) -> list[DatasetSummary]:
        ...

    @abstractmethod
    def get_dataset_by_id(self, dataset_id: str) -> Dataset | None:
        ...


def split_fields(fields: Mapping[str, Any]) -> tuple[str, str, dict[str, Any]]:
    """Split a create/update payload into (code, name, attributes)."""
    attributes = {k: v for k, v in fields.items() if k not in ("code", "name")}
    return str(fields.get("code") or ""), str(fields.get("name") or ""), attributes
