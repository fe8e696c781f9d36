from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

from ..models.column_mapping import ColumnMapping
from ..models.import_kind import CanonicalField, ImportKind
from ..tabular.normalizer import normalize

"""Heuristic header -> canonical field mapping.

auto_map is a pure best-effort guess: for each field (in declaration order)
it first looks for a header equal to one of the field's synonyms, then for the
first header containing a synonym. A column claimed by an earlier field is
not offered again, so "unit_price" cannot be claimed by both price fields.
Anything it gets wrong is fixed by a manual override, and manual overrides
always win.
"""

__all__ = [
    "apply_overrides",
    "auto_map",
    "is_complete",
    "missing_required",
    "remap",
]


def _key(text: str) -> str:
    return normalize(text).casefold()


def auto_map(
    headers: Sequence[str],
    field_synonyms: Mapping[CanonicalField, Iterable[str]],
    kind: ImportKind,
) -> ColumnMapping:
    keys = [_key(h) for h in headers]
    mapping = ColumnMapping.empty(kind)
    claimed: set[int] = set()

    def _claim(f: CanonicalField, idx: int) -> None:
        mapping.assign(f, idx, manual=False)
        claimed.add(idx)

    synonyms = {f: [_key(s) for s in field_synonyms.get(f, ()) if _key(s)] for f in kind.fields}

    # pass 1: exact header match, synonym priority order
    for f in kind.fields:
        for syn in synonyms[f]:
            idx = next((i for i, k in enumerate(keys) if k == syn and i not in claimed), None)
            if idx is not None:
                _claim(f, idx)
                break

    # pass 2: first column containing a synonym
    for f in kind.fields:
        if mapping.get(f) is not None:
            continue
        for i, k in enumerate(keys):
            if i in claimed or not k:
                continue
            if any(syn in k for syn in synonyms[f]):
                _claim(f, i)
                break
    return mapping


def apply_overrides(
    mapping: ColumnMapping,
    overrides: Mapping[CanonicalField, int | None],
) -> ColumnMapping:
    """Return a copy of `mapping` with operator choices applied.

    Fields overridden earlier stay as they were unless overridden again.
    """
    result = ColumnMapping(kind=mapping.kind, columns=dict(mapping.columns), manual=set(mapping.manual))
    for f, idx in overrides.items():
        result.assign(f, idx, manual=True)
    return result


def remap(
    headers: Sequence[str],
    field_synonyms: Mapping[CanonicalField, Iterable[str]],
    previous: ColumnMapping,
) -> ColumnMapping:
    """Re-run auto_map keeping the manual choices of `previous`.

    A manual choice pointing past the last column of `headers` is dropped
    and the field falls back to the auto-map guess.
    """
    fresh = auto_map(headers, field_synonyms, previous.kind)
    kept = {
        f: previous.get(f) for f in previous.manual
        if previous.get(f) is None or previous.get(f) < len(headers)
    }
    return apply_overrides(fresh, kept)


def missing_required(mapping: ColumnMapping, required_fields: Iterable[CanonicalField] | None = None) -> list[CanonicalField]:
    required = mapping.kind.required_fields() if required_fields is None else frozenset(required_fields)
    return [f for f in mapping.kind.fields if f in required and mapping.get(f) is None]


def is_complete(mapping: ColumnMapping, required_fields: Iterable[CanonicalField] | None = None) -> bool:
    """True iff every required field is mapped; optional fields are ignored."""
    return not missing_required(mapping, required_fields)
