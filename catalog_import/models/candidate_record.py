from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from .import_kind import CanonicalField, ImportKind

"""CandidateRecord model.

One canonical record projected from one data row. It is mutable during
preview: inline edits and re-validation update it, selection toggles flip
`is_selected`. Once the session has committed it is never touched again.
"""

__all__ = [
    "CandidateRecord",
]


@dataclass
class CandidateRecord:
    row_number: int  # 1-based source row of the data row
    kind: ImportKind
    values: dict[CanonicalField, Any]  # str for text fields, Decimal for numeric fields
    raw_values: dict[CanonicalField, str] = field(default_factory=dict)
    unparsed_fields: set[CanonicalField] = field(default_factory=set)
    is_selected: bool = True
    has_error: bool = False
    error_reasons: list[str] = field(default_factory=list)
    entity_id: str | None = None  # resolved reference id (sale -> product, material -> unit)

    def text(self, f: CanonicalField) -> str:
        value = self.values.get(f)
        return "" if value is None else str(value)

    def number(self, f: CanonicalField) -> Decimal:
        value = self.values.get(f)
        return value if isinstance(value, Decimal) else Decimal(0)

    @property
    def is_eligible(self) -> bool:
        """Only selected, error-free rows are ever committed."""
        return self.is_selected and not self.has_error

    @property
    def error_message(self) -> str:
        return "; ".join(self.error_reasons)

    def reference_code(self) -> str:
        ref = self.kind.spec.reference
        if ref is None:
            return ""
        return self.text(ref.field)

    def to_row(self) -> dict[str, Any]:
        """Plain dict keyed by canonical field name (used for datasets/export)."""
        row: dict[str, Any] = {f.value: self.values.get(f) for f in self.kind.fields}
        return row
