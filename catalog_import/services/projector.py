from __future__ import annotations

import re
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation

from ..models.candidate_record import CandidateRecord
from ..models.column_mapping import ColumnMapping
from ..models.import_kind import CanonicalField, ImportKind
from ..models.tabular import TabularData
from ..tabular.normalizer import normalize, to_ascii_digits

"""Project tabular rows onto canonical candidate records.

Projection never raises. Numeric fields go through parse_number; text it
cannot read becomes Decimal(0) and the field is listed in `unparsed_fields`
so the validator can report it.
"""

__all__ = [
    "edit_record",
    "parse_number",
    "project",
    "project_row",
]

_DECIMAL_SEPARATORS = str.maketrans({"٫": "."})  # ARABIC DECIMAL SEPARATOR
_GROUPING = re.compile("[,،٬'\\s]")  # comma, Arabic comma, Arabic thousands sep, apostrophe
_NON_NUMERIC = re.compile(r"[^0-9.\-]+")


def parse_number(text: str | None) -> Decimal | None:
    """Locale-tolerant number parser.

    Accepts Persian/Arabic-Indic digits, thousands separators, the Arabic
    decimal separator and surrounding currency text ("1,200 ریال" -> 1200).
    Returns None when nothing numeric is left.
    """
    cleaned = to_ascii_digits(normalize(text)).translate(_DECIMAL_SEPARATORS)
    cleaned = _GROUPING.sub("", cleaned)
    cleaned = _NON_NUMERIC.sub("", cleaned)
    if not cleaned or not any(c.isdigit() for c in cleaned):
        return None
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return None


def project_row(kind: ImportKind, raw_values: Mapping[CanonicalField, str], row_number: int) -> CandidateRecord:
    numeric = kind.spec.numeric
    values: dict[CanonicalField, object] = {}
    unparsed: set[CanonicalField] = set()
    for f in kind.fields:
        text = normalize(raw_values.get(f, ""))
        if f in numeric:
            number = parse_number(text)
            if number is None:
                unparsed.add(f)
                number = Decimal(0)
            values[f] = number
        else:
            values[f] = text
    return CandidateRecord(
        row_number=row_number,
        kind=kind,
        values=values,
        raw_values={f: normalize(raw_values.get(f, "")) for f in kind.fields},
        unparsed_fields=unparsed,
    )


def project(tabular: TabularData, mapping: ColumnMapping) -> list[CandidateRecord]:
    """One CandidateRecord per data row, in file order. Unset fields read as ""."""
    records = []
    for i, row in enumerate(tabular.rows):
        raw: dict[CanonicalField, str] = {}
        for f in mapping.kind.fields:
            idx = mapping.get(f)
            raw[f] = row[idx] if idx is not None and 0 <= idx < len(row) else ""
        records.append(project_row(mapping.kind, raw, tabular.row_number(i)))
    return records


def edit_record(record: CandidateRecord, changes: Mapping[CanonicalField, str]) -> CandidateRecord:
    """Apply inline edits (cell text) and re-project the record in place.

    Validation state is left untouched; the caller re-validates.
    """
    unknown = set(changes) - set(record.kind.fields)
    if unknown:
        raise ValueError(f"fields {sorted(f.value for f in unknown)} do not belong to {record.kind.value} imports")
    raw = dict(record.raw_values)
    raw.update(changes)
    fresh = project_row(record.kind, raw, record.row_number)
    record.values = fresh.values
    record.raw_values = fresh.raw_values
    record.unparsed_fields = fresh.unparsed_fields
    return record
