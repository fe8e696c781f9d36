from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

"""Reconciliation models: unmatched entity references and their resolutions."""

__all__ = [
    "ReconciliationOutcome",
    "Resolution",
    "ResolutionAction",
    "UnmatchedEntity",
]


@dataclass
class UnmatchedEntity:
    """A referenced code with no match in the catalog.

    occurrence_count accumulates across every row of the session that refers
    to the same code.
    """
    external_code: str
    external_name: str
    occurrence_count: int = 0
    possible_matches: list[str] = field(default_factory=list)  # catalog entity ids


class ResolutionAction(Enum):
    MAP_EXISTING = "map_existing"
    CREATE_NEW = "create_new"


@dataclass(frozen=True)
class Resolution:
    external_code: str
    action: ResolutionAction
    entity_id: str | None = None  # target id for MAP_EXISTING; filled after creation otherwise

    @classmethod
    def map_existing(cls, code: str, entity_id: str) -> Resolution:
        return cls(external_code=code, action=ResolutionAction.MAP_EXISTING, entity_id=entity_id)

    @classmethod
    def create_new(cls, code: str) -> Resolution:
        return cls(external_code=code, action=ResolutionAction.CREATE_NEW)


@dataclass(frozen=True)
class ReconciliationOutcome:
    """Result of checking unmatched entities against the operator's resolutions."""
    blocked: bool
    missing: tuple[str, ...] = ()  # codes with neither mapping nor create flag
