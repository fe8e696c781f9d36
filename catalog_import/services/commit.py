from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable, MutableMapping, Sequence
from datetime import UTC, datetime
from typing import Any

from ..db.store import CatalogStore, StoreError
from ..errors import CatalogImportError
from ..models.candidate_record import CandidateRecord
from ..models.dataset import CatalogEntity, Dataset
from ..models.import_kind import CanonicalField, EntityKind, ImportKind
from ..models.reconciliation import Resolution, ResolutionAction, UnmatchedEntity
from .progress import ProgressTracker
from .reconciliation import CatalogIndex, apply_resolutions, resolution_key

"""Commit of the operator-approved records.

Order of writes:
1. entities flagged "create new" during reconciliation
2. departments referenced by name that do not exist yet (product / material)
3. one catalog entity per product / material record
4. the dataset (one row per committed record), optionally set as reference

The store applies each write independently; there is no rollback. Entities
created by an attempt that failed later are remembered by the executor, so a
retry does not create them twice.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "CommitError",
    "CommitExecutor",
    "NothingToCommit",
    "StoreWriteError",
]


class CommitError(CatalogImportError):
    """Raised when a commit attempt fails. The session keeps its records."""


class NothingToCommit(CommitError):
    """Raised when no record is both selected and error-free."""


class StoreWriteError(CommitError):
    """Raised when the store rejects a write."""


class CommitExecutor:
    def __init__(
        self,
        store: CatalogStore,
        *,
        auto_generate_code: bool = False,
        code_prefix: str = "P",
    ) -> None:
        self.store = store
        self.auto_generate_code = auto_generate_code
        self.code_prefix = code_prefix
        self.created_entities: list[CatalogEntity] = []
        self._created_rows: dict[int, CatalogEntity] = {}

    def commit(
        self,
        records: Sequence[CandidateRecord],
        resolutions: MutableMapping[str, Resolution],
        *,
        kind: ImportKind,
        dataset_name: str | None = None,
        set_reference: bool = False,
        unmatched: Sequence[UnmatchedEntity] = (),
    ) -> Dataset:
        """Write the eligible subset of `records` and return the persisted Dataset.

        CREATE_NEW resolutions are replaced in `resolutions` by resolutions
        carrying the created entity id.

        Raises:
            NothingToCommit: no selected, error-free record
            StoreWriteError: a store write failed
            CommitError: a referenced code is still unresolved
        """
        eligible = [r for r in records if r.is_eligible]
        if not eligible:
            raise NothingToCommit("no selected rows without errors to commit")

        started = time.perf_counter()
        try:
            reference = kind.spec.reference
            if reference is not None:
                catalog = CatalogIndex.load(self.store, reference.entity_kind)
                self._create_resolved(resolutions, unmatched, reference.entity_kind, catalog)
                unresolved = apply_resolutions(eligible, resolutions, catalog, reference)
                if unresolved:
                    codes = sorted({r.reference_code() for r in unresolved})
                    raise CommitError(f"unresolved {reference.entity_kind.value} codes: {', '.join(codes)}")

            with ProgressTracker(len(eligible), description=f"Committing {kind.value}") as progress:
                rows = []
                if kind.spec.creates is not None:
                    departments = CatalogIndex.load(self.store, EntityKind.DEPARTMENT)
                    existing = CatalogIndex.load(self.store, kind.spec.creates)
                    next_code = self._code_counter(existing)
                    for record in eligible:
                        rows.append(self._create_row_entity(record, kind.spec.creates, departments, next_code))
                        progress.advance()
                else:
                    for record in eligible:
                        rows.append(self._dataset_row(record))
                        progress.advance()

            name = dataset_name or f"{kind.value}-{datetime.now(UTC):%Y%m%d-%H%M%S}"
            dataset_id = self.store.insert_dataset(rows, name, kind)
            if set_reference:
                self.store.set_reference_dataset(dataset_id)
        except StoreError as e:
            raise StoreWriteError(str(e)) from e

        dataset = Dataset(
            id=dataset_id,
            name=name,
            imported_at=datetime.now(UTC),
            committed_rows=rows,
            kind=kind,
        )
        logger.debug(
            "dataset=%s rows=%d created=%d elapsed=%.3fs",
            dataset.id,
            dataset.row_count,
            len(self.created_entities),
            time.perf_counter() - started,
        )
        return dataset

    def _create_resolved(
        self,
        resolutions: MutableMapping[str, Resolution],
        unmatched: Sequence[UnmatchedEntity],
        entity_kind: EntityKind,
        catalog: CatalogIndex,
    ) -> None:
        names = {resolution_key(u.external_code): u.external_name for u in unmatched}
        for key, resolution in list(resolutions.items()):
            if resolution.action != ResolutionAction.CREATE_NEW or resolution.entity_id is not None:
                continue
            code = resolution.external_code
            fields: dict[str, Any] = {"code": code, "name": names.get(key) or code}
            entity = self.store.create(entity_kind, fields)
            catalog.add(entity)
            self.created_entities.append(entity)
            resolutions[key] = Resolution(
                external_code=code,
                action=ResolutionAction.CREATE_NEW,
                entity_id=entity.id,
            )
            logger.info(f"created {entity_kind.value} code={code} id={entity.id}")

    def _code_counter(self, existing: CatalogIndex) -> Callable[[], str]:
        pattern = re.compile(rf"^{re.escape(self.code_prefix)}-(\d+)$", re.IGNORECASE)
        highest = 0
        for entity in existing.entities:
            m = pattern.match(entity.code)
            if m:
                highest = max(highest, int(m.group(1)))

        def _next() -> str:
            nonlocal highest
            highest += 1
            return f"{self.code_prefix}-{highest:04d}"

        return _next

    def _department_id(self, name: str, departments: CatalogIndex) -> str | None:
        if not name:
            return None
        found = departments.match_name(name)
        if found is None:
            found = self.store.create(EntityKind.DEPARTMENT, {"name": name})
            departments.add(found)
            self.created_entities.append(found)
            logger.info(f"created department name={name} id={found.id}")
        return found.id

    def _create_row_entity(
        self,
        record: CandidateRecord,
        entity_kind: EntityKind,
        departments: CatalogIndex,
        next_code: Callable[[], str],
    ) -> dict[str, Any]:
        entity = self._created_rows.get(record.row_number)
        if entity is None:
            code = record.text(CanonicalField.CODE)
            if not code and self.auto_generate_code:
                code = next_code()
                record.values[CanonicalField.CODE] = code
            fields: dict[str, Any] = {
                "code": code,
                "name": record.text(CanonicalField.NAME),
                "department": record.text(CanonicalField.DEPARTMENT),
                "department_id": self._department_id(record.text(CanonicalField.DEPARTMENT), departments),
                "price": record.number(CanonicalField.PRICE),
                "unit": record.text(CanonicalField.UNIT),
            }
            if record.entity_id is not None:
                fields["unit_id"] = record.entity_id
            entity = self.store.create(entity_kind, fields)
            self._created_rows[record.row_number] = entity
            self.created_entities.append(entity)
        row = self._dataset_row(record)
        row["code"] = entity.code
        row["id"] = entity.id
        return row

    def _dataset_row(self, record: CandidateRecord) -> dict[str, Any]:
        row = record.to_row()
        reference = record.kind.spec.reference
        if reference is not None and record.entity_id is not None:
            row[f"{reference.entity_kind.value}_id"] = record.entity_id
        return row
