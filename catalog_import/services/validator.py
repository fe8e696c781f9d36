from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from decimal import Decimal

from ..models.candidate_record import CandidateRecord
from ..models.dataset import CatalogEntity
from ..models.import_kind import CanonicalField, ImportKind

"""Per-record validation and duplicate detection.

Row errors are data, not exceptions: every record gets a ValidationResult and
the preview keeps errored rows visible with their reasons. An errored row is
never eligible for commit and cannot be re-selected.

Duplicate detection (product / material imports):
- "exact" (default): code or name equal, case-insensitive, to an existing
  entity of the same kind (excluding the entity being edited)
- "substring": additionally flags names containing, or contained in, an
  existing name
- within the file, the second and later rows repeating a code or name
"""

logger = logging.getLogger(__name__)

__all__ = [
    "DUPLICATE_MATCH_MODES",
    "SeenKeys",
    "ValidationResult",
    "apply_validation",
    "set_selected",
    "validate",
    "validate_all",
]

DUPLICATE_MATCH_MODES = ("exact", "substring")

_LABELS = {
    CanonicalField.NAME: "name",
    CanonicalField.CODE: "code",
    CanonicalField.DEPARTMENT: "department",
    CanonicalField.PRICE: "price",
    CanonicalField.UNIT: "unit",
    CanonicalField.PRODUCT_CODE: "product code",
    CanonicalField.PRODUCT_NAME: "product name",
    CanonicalField.QUANTITY: "quantity",
    CanonicalField.UNIT_PRICE: "unit price",
    CanonicalField.DATE: "date",
}


@dataclass(frozen=True)
class ValidationResult:
    has_error: bool
    error_reasons: tuple[str, ...] = ()

    @classmethod
    def from_reasons(cls, reasons: Sequence[str]) -> ValidationResult:
        return cls(has_error=bool(reasons), error_reasons=tuple(reasons))


@dataclass
class SeenKeys:
    """Codes and names of earlier valid rows in the same file -> row number."""
    codes: dict[str, int] = field(default_factory=dict)
    names: dict[str, int] = field(default_factory=dict)


def _fold(text: str) -> str:
    return text.strip().casefold()


def _check_required(record: CandidateRecord, required: Iterable[CanonicalField], reasons: list[str]) -> None:
    for f in record.kind.fields:
        if f in required and not record.raw_values.get(f, record.text(f)):
            reasons.append(f"{_LABELS[f]} is required")


def _check_number(
    record: CandidateRecord,
    f: CanonicalField,
    reasons: list[str],
    *,
    positive: bool = False,
) -> None:
    if not record.raw_values.get(f):
        return  # reported as missing
    if f in record.unparsed_fields:
        reasons.append(f"invalid number for {_LABELS[f]}: '{record.raw_values[f]}'")
        return
    value = record.number(f)
    if positive and value <= 0:
        reasons.append(f"{_LABELS[f]} must be greater than zero")
    elif not positive and value < Decimal(0):
        reasons.append(f"{_LABELS[f]} must be zero or greater")


def _check_duplicates(
    record: CandidateRecord,
    existing: Sequence[CatalogEntity],
    reasons: list[str],
    *,
    duplicate_match: str,
    exclude_id: str | None,
    seen: SeenKeys | None,
) -> None:
    code = _fold(record.text(CanonicalField.CODE))
    name = _fold(record.text(CanonicalField.NAME))
    for entity in existing:
        if exclude_id is not None and entity.id == exclude_id:
            continue
        if code and _fold(entity.code) == code:
            reasons.append(f"duplicate code: '{entity.code}' already exists")
        if name:
            other = _fold(entity.name)
            if other == name:
                reasons.append(f"duplicate name: '{entity.name}' already exists")
            elif duplicate_match == "substring" and other and (other in name or name in other):
                reasons.append(f"similar name: '{entity.name}' already exists")
    if seen is not None:
        if code and code in seen.codes:
            reasons.append(f"duplicate code in file (first seen at row {seen.codes[code]})")
        if name and name in seen.names:
            reasons.append(f"duplicate name in file (first seen at row {seen.names[name]})")


def validate(
    record: CandidateRecord,
    existing: Sequence[CatalogEntity],
    *,
    duplicate_match: str = "exact",
    exclude_id: str | None = None,
    seen: SeenKeys | None = None,
    auto_generate_code: bool = False,
) -> ValidationResult:
    """Validate one record against the existing entities of its kind.

    When `seen` is given, the record's code and name are registered in it if
    the record turns out valid.
    """
    if duplicate_match not in DUPLICATE_MATCH_MODES:
        raise ValueError(f"unknown duplicate_match mode: {duplicate_match}")
    reasons: list[str] = []
    kind = record.kind
    _check_required(record, kind.required_fields(auto_generate_code), reasons)

    if kind == ImportKind.SALE:
        _check_number(record, CanonicalField.QUANTITY, reasons, positive=True)
        _check_number(record, CanonicalField.UNIT_PRICE, reasons)
    else:
        _check_number(record, CanonicalField.PRICE, reasons)
        _check_duplicates(
            record,
            existing,
            reasons,
            duplicate_match=duplicate_match,
            exclude_id=exclude_id,
            seen=seen,
        )
        if seen is not None and not reasons:
            code = _fold(record.text(CanonicalField.CODE))
            name = _fold(record.text(CanonicalField.NAME))
            if code:
                seen.codes.setdefault(code, record.row_number)
            if name:
                seen.names.setdefault(name, record.row_number)
    return ValidationResult.from_reasons(reasons)


def apply_validation(record: CandidateRecord, result: ValidationResult) -> CandidateRecord:
    """Store a verdict on the record.

    Errored rows are unselected. A row that was errored and is now valid
    (after an inline edit) is selected again.
    """
    was_error = record.has_error
    record.has_error = result.has_error
    record.error_reasons = list(result.error_reasons)
    if result.has_error:
        record.is_selected = False
    elif was_error:
        record.is_selected = True
    return record


def set_selected(record: CandidateRecord, selected: bool) -> bool:
    """Toggle selection. No-op (returns False) on errored rows."""
    if record.has_error:
        return False
    record.is_selected = selected
    return True


def validate_all(
    records: Sequence[CandidateRecord],
    existing: Sequence[CatalogEntity],
    *,
    duplicate_match: str = "exact",
    auto_generate_code: bool = False,
) -> int:
    """Validate every record in file order and return the error count."""
    seen = SeenKeys()
    errors = 0
    for record in records:
        result = validate(
            record,
            existing,
            duplicate_match=duplicate_match,
            exclude_id=None,
            seen=seen,
            auto_generate_code=auto_generate_code,
        )
        apply_validation(record, result)
        if result.has_error:
            errors += 1
            logger.debug("row=%d errors=%s", record.row_number, record.error_message)
    return errors
