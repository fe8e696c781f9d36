from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from .import_kind import CanonicalField, ImportKind

"""ColumnMapping model: canonical field -> file column index (or unset)."""

__all__ = [
    "ColumnMapping",
]


@dataclass
class ColumnMapping:
    """Exhaustive mapping over the canonical fields of one import kind.

    `columns` always holds every field of `kind` (None = unset). `manual`
    remembers the fields the operator chose explicitly so that re-running
    auto-map never overwrites them.
    """
    kind: ImportKind
    columns: dict[CanonicalField, int | None] = field(default_factory=dict)
    manual: set[CanonicalField] = field(default_factory=set)

    def __post_init__(self) -> None:
        unknown = set(self.columns) - set(self.kind.fields)
        if unknown:
            raise ValueError(
                f"fields {sorted(f.value for f in unknown)} do not belong to {self.kind.value} imports"
            )
        for f in self.kind.fields:
            self.columns.setdefault(f, None)

    @classmethod
    def empty(cls, kind: ImportKind) -> ColumnMapping:
        return cls(kind=kind)

    def get(self, f: CanonicalField) -> int | None:
        return self.columns.get(f)

    def assign(self, f: CanonicalField, index: int | None, *, manual: bool = True) -> None:
        if f not in self.columns:
            raise ValueError(f"field '{f.value}' does not belong to {self.kind.value} imports")
        self.columns[f] = index
        if manual:
            self.manual.add(f)

    def unset_fields(self, fields: Iterable[CanonicalField]) -> list[CanonicalField]:
        return [f for f in fields if self.columns.get(f) is None]

    def as_dict(self) -> dict[str, int | None]:
        return {f.value: idx for f, idx in self.columns.items()}
