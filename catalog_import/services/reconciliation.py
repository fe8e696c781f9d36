from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

from ..db.store import CatalogStore
from ..errors import CatalogImportError
from ..models.candidate_record import CandidateRecord
from ..models.dataset import CatalogEntity
from ..models.import_kind import EntityKind, ReferenceSpec
from ..models.reconciliation import ReconciliationOutcome, Resolution, UnmatchedEntity

"""Reconciliation of references to entities missing from the catalog.

Sales rows reference products by code and material rows reference units; a
referenced entity that does not exist yet becomes an UnmatchedEntity. Each one
must be resolved (mapped to an existing entity or flagged for creation) before
the session may commit.

Resolutions are keyed by the case-folded external code (see resolution_key).
"""

logger = logging.getLogger(__name__)

__all__ = [
    "CatalogIndex",
    "ResolutionError",
    "apply_resolutions",
    "find_unmatched",
    "resolution_key",
    "resolve",
]


class ResolutionError(CatalogImportError):
    """Raised when a resolution targets an unknown code or entity."""


def resolution_key(code: str) -> str:
    return code.strip().casefold()


class CatalogIndex:
    """Case-insensitive lookup over one entity kind.

    Units are matched by name as well as code because unit columns usually hold
    the unit's name ("kg").
    """

    def __init__(self, kind: EntityKind, entities: Sequence[CatalogEntity]) -> None:
        self.kind = kind
        self.entities = list(entities)
        self._by_code: dict[str, CatalogEntity] = {}
        self._by_name: dict[str, CatalogEntity] = {}
        for e in self.entities:
            self.add(e)

    @classmethod
    def load(cls, store: CatalogStore, kind: EntityKind) -> CatalogIndex:
        return cls(kind, store.list_entities(kind))

    def add(self, entity: CatalogEntity) -> None:
        if entity not in self.entities:
            self.entities.append(entity)
        if entity.code:
            self._by_code.setdefault(resolution_key(entity.code), entity)
        if entity.name:
            self._by_name.setdefault(resolution_key(entity.name), entity)

    def match(self, code: str) -> CatalogEntity | None:
        key = resolution_key(code)
        if not key:
            return None
        found = self._by_code.get(key)
        if found is None and self.kind == EntityKind.UNIT:
            found = self._by_name.get(key)
        return found

    def match_name(self, name: str) -> CatalogEntity | None:
        key = resolution_key(name)
        return self._by_name.get(key) if key else None

    def similar(self, name: str) -> list[str]:
        """Ids of entities whose name contains `name` or is contained in it."""
        key = resolution_key(name)
        if not key:
            return []
        return [
            e.id for e in self.entities
            if e.name and (key in e.name.casefold() or e.name.casefold() in key)
        ]


def find_unmatched(
    records: Sequence[CandidateRecord],
    catalog: CatalogIndex,
    reference: ReferenceSpec,
) -> list[UnmatchedEntity]:
    """Group eligible records by referenced code and keep the codes absent from the catalog.

    Order follows first appearance in the file.
    """
    grouped: dict[str, UnmatchedEntity] = {}
    for record in records:
        if not record.is_eligible:
            continue
        code = record.text(reference.field)
        if not code or catalog.match(code) is not None:
            continue
        key = resolution_key(code)
        entity = grouped.get(key)
        if entity is None:
            name = record.text(reference.name_field) if reference.name_field else ""
            entity = UnmatchedEntity(external_code=code, external_name=name or code)
            grouped[key] = entity
        elif entity.external_name == entity.external_code and reference.name_field:
            entity.external_name = record.text(reference.name_field) or entity.external_name
        entity.occurrence_count += 1

    for entity in grouped.values():
        entity.possible_matches = catalog.similar(entity.external_name)
    if grouped:
        logger.debug("unmatched %s codes: %s", reference.entity_kind.value, list(grouped))
    return list(grouped.values())


def resolve(
    unmatched: Sequence[UnmatchedEntity],
    resolutions: Mapping[str, Resolution],
) -> ReconciliationOutcome:
    """Continue only when every unmatched entity has a resolution."""
    missing = tuple(u.external_code for u in unmatched if resolution_key(u.external_code) not in resolutions)
    return ReconciliationOutcome(blocked=bool(missing), missing=missing)


def apply_resolutions(
    records: Sequence[CandidateRecord],
    resolutions: Mapping[str, Resolution],
    catalog: CatalogIndex,
    reference: ReferenceSpec,
) -> list[CandidateRecord]:
    """Set `entity_id` on every eligible record and return those left unresolved.

    Catalog matches win; otherwise the resolution's entity id is used. A
    CREATE_NEW resolution must already carry the id of the created entity.
    """
    unresolved = []
    for record in records:
        if not record.is_eligible:
            continue
        code = record.text(reference.field)
        found = catalog.match(code)
        if found is not None:
            record.entity_id = found.id
            continue
        resolution = resolutions.get(resolution_key(code))
        if resolution is not None and resolution.entity_id is not None:
            record.entity_id = resolution.entity_id
            continue
        unresolved.append(record)
    return unresolved
