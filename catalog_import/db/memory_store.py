from __future__ import annotations

import itertools
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any

from ..models.dataset import CatalogEntity, Dataset, DatasetSummary
from ..models.import_kind import EntityKind, ImportKind
from .store import CatalogStore, StoreError, split_fields

"""In-memory catalog store.

Used by the tests, by --dry-run and when no database connection is available
(mock mode). Ids come from one running counter ("department-1", "unit-2", "ds-1") so
test expectations stay readable.
"""

__all__ = [
    "InMemoryCatalogStore",
]


class InMemoryCatalogStore(CatalogStore):
    def __init__(self, entities: Iterable[CatalogEntity] = ()) -> None:
        self._entities: dict[str, CatalogEntity] = {}
        self._datasets: dict[str, Dataset] = {}
        self._reference_id: str | None = None
        self._counter = itertools.count(1)
        self._dataset_counter = itertools.count(1)
        for entity in entities:
            self._entities[entity.id] = entity

    def list_entities(self, kind: EntityKind) -> list[CatalogEntity]:
        return [e for e in self._entities.values() if e.kind == kind]

    def get_by_id(self, entity_id: str) -> CatalogEntity | None:
        return self._entities.get(entity_id)

    def create(self, kind: EntityKind, fields: Mapping[str, Any]) -> CatalogEntity:
        code, name, attributes = split_fields(fields)
        if not name:
            raise StoreError(f"cannot create {kind.value} without a name")
        entity_id = f"{kind.value}-{next(self._counter)}"
        while entity_id in self._entities:
            entity_id = f"{kind.value}-{next(self._counter)}"
        entity = CatalogEntity(id=entity_id, kind=kind, code=code, name=name, attributes=attributes)
        self._entities[entity_id] = entity
        return entity

    def update(self, entity_id: str, fields: Mapping[str, Any]) -> CatalogEntity:
        current = self._entities.get(entity_id)
        if current is None:
            raise StoreError(f"entity not found: {entity_id}")
        attributes = dict(current.attributes)
        attributes.update({k: v for k, v in fields.items() if k not in ("code", "name")})
        updated = replace(
            current,
            code=str(fields.get("code", current.code)),
            name=str(fields.get("name", current.name)),
            attributes=attributes,
        )
        self._entities[entity_id] = updated
        return updated

    def delete(self, entity_id: str) -> None:
        if self._entities.pop(entity_id, None) is None:
            raise StoreError(f"entity not found: {entity_id}")

    def insert_dataset(
        self,
        rows: Sequence[Mapping[str, Any]],
        name: str,
        kind: ImportKind | None = None,
    ) -> str:
        dataset_id = f"ds-{next(self._dataset_counter)}"
        self._datasets[dataset_id] = Dataset(
            id=dataset_id,
            name=name,
            imported_at=datetime.now(UTC),
            committed_rows=[dict(r) for r in rows],
            kind=kind,
        )
        return dataset_id

    @property
    def reference_dataset_id(self) -> str | None:
        return self._reference_id

    def set_reference_dataset(self, dataset_id: str | None) -> None:
        if dataset_id is not None and dataset_id not in self._datasets:
            raise StoreError(f"dataset not found: {dataset_id}")
        self._reference_id = dataset_id

    def list_datasets(self) -> list[DatasetSummary]:
        return [d.summary() for d in self._datasets.values()]

    def get_dataset_by_id(self, dataset_id: str) -> Dataset | None:
        return self._datasets.get(dataset_id)
