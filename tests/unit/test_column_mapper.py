from __future__ import annotations

import itertools

import pytest

from catalog_import.models.column_mapping import ColumnMapping
from catalog_import.models.import_kind import DEFAULT_FIELD_SYNONYMS, CanonicalField, ImportKind
from catalog_import.services.column_mapper import (
    apply_overrides,
    auto_map,
    is_complete,
    missing_required,
    remap,
)

F = CanonicalField


def test_product_headers_map_exactly():
    headers = ["name", "code", "department", "price", "unit"]
    mapping = auto_map(headers, DEFAULT_FIELD_SYNONYMS[ImportKind.PRODUCT], ImportKind.PRODUCT)
    assert mapping.as_dict() == {"name": 0, "code": 1, "department": 2, "price": 3, "unit": 4}
    assert mapping.manual == set()
    assert is_complete(mapping)


def test_case_and_substring_matching():
    headers = ["Product Name", "SKU", "Dept.", "Unit Price (IRR)"]
    mapping = auto_map(headers, DEFAULT_FIELD_SYNONYMS[ImportKind.PRODUCT], ImportKind.PRODUCT)
    assert mapping.get(F.NAME) == 0
    assert mapping.get(F.CODE) == 1
    assert mapping.get(F.DEPARTMENT) == 2
    assert mapping.get(F.PRICE) == 3
    assert mapping.get(F.UNIT) is None  # column 3 already claimed by price


def test_persian_headers():
    headers = ["نام كالا", "کد", "بخش", "قيمت", "واحد"]  # Arabic kaf / yeh normalized first
    mapping = auto_map(headers, DEFAULT_FIELD_SYNONYMS[ImportKind.MATERIAL], ImportKind.MATERIAL)
    assert mapping.as_dict() == {"name": 0, "code": 1, "department": 2, "price": 3, "unit": 4}


def test_sale_exact_match_wins_over_substring():
    headers = ["unit_price", "date", "product_code", "quantity", "product_name"]
    mapping = auto_map(headers, DEFAULT_FIELD_SYNONYMS[ImportKind.SALE], ImportKind.SALE)
    assert mapping.as_dict() == {
        "product_code": 2,
        "product_name": 4,
        "quantity": 3,
        "unit_price": 0,
        "date": 1,
    }


def test_unknown_headers_stay_unset():
    mapping = auto_map(["foo", "bar"], DEFAULT_FIELD_SYNONYMS[ImportKind.PRODUCT], ImportKind.PRODUCT)
    assert all(v is None for v in mapping.as_dict().values())
    assert not is_complete(mapping)
    assert missing_required(mapping) == [F.NAME, F.CODE, F.DEPARTMENT]


def test_manual_overrides_win_and_survive_remap():
    headers = ["name", "code", "department", "price", "cost"]
    synonyms = DEFAULT_FIELD_SYNONYMS[ImportKind.PRODUCT]
    mapping = apply_overrides(auto_map(headers, synonyms, ImportKind.PRODUCT), {F.PRICE: 4})
    assert mapping.get(F.PRICE) == 4
    assert F.PRICE in mapping.manual
    again = remap(headers, synonyms, mapping)
    assert again.get(F.PRICE) == 4


def test_override_rejects_foreign_field():
    mapping = ColumnMapping.empty(ImportKind.PRODUCT)
    with pytest.raises(ValueError):
        apply_overrides(mapping, {F.QUANTITY: 0})


def test_is_complete_only_depends_on_required_fields():
    kind = ImportKind.PRODUCT
    required = kind.required_fields()
    optional = [f for f in kind.fields if f not in required]
    for mapped in itertools.chain.from_iterable(
        itertools.combinations(kind.fields, n) for n in range(len(kind.fields) + 1)
    ):
        mapping = ColumnMapping.empty(kind)
        for i, f in enumerate(mapped):
            mapping.assign(f, i)
        assert is_complete(mapping) == required.issubset(mapped)
    assert optional == [F.PRICE, F.UNIT]


def test_auto_generated_codes_make_code_optional():
    mapping = ColumnMapping(
        kind=ImportKind.PRODUCT,
        columns={F.NAME: 0, F.DEPARTMENT: 1, F.PRICE: 2},
    )
    assert not is_complete(mapping)
    assert is_complete(mapping, ImportKind.PRODUCT.required_fields(auto_generate_code=True))
