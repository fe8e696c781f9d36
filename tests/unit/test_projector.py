from __future__ import annotations

from decimal import Decimal

import pytest

from catalog_import.models.column_mapping import ColumnMapping
from catalog_import.models.import_kind import CanonicalField, ImportKind
from catalog_import.models.tabular import TabularData
from catalog_import.services.projector import edit_record, parse_number, project

F = CanonicalField


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("12", Decimal("12")),
        ("1,200.50", Decimal("1200.50")),
        ("۲۵۰۰۰", Decimal("25000")),
        ("٣٫٥", Decimal("3.5")),
        ("۱٬۲۰۰ ریال", Decimal("1200")),
        ("$ 9.99", Decimal("9.99")),
        ("-4", Decimal("-4")),
        (" 0 ", Decimal("0")),
    ],
)
def test_parse_number(text: str, expected: Decimal):
    assert parse_number(text) == expected


@pytest.mark.parametrize("text", ["", None, "abc", "-", ".", "1.2.3", "5-5"])
def test_parse_number_rejects(text):
    assert parse_number(text) is None


def _sale_mapping() -> ColumnMapping:
    return ColumnMapping(
        kind=ImportKind.SALE,
        columns={F.PRODUCT_CODE: 0, F.QUANTITY: 1, F.UNIT_PRICE: 2, F.DATE: 3},
    )


def test_project_sales_rows():
    data = TabularData(
        headers=["code", "qty", "price", "date"],
        rows=[["X9", "2", "1,500", "2024-01-01"], ["X9", "two", "", "2024-01-02"]],
        source_rows=[2, 3],
    )
    records = project(data, _sale_mapping())
    assert [r.row_number for r in records] == [2, 3]
    first, second = records
    assert first.values[F.QUANTITY] == Decimal(2)
    assert first.values[F.UNIT_PRICE] == Decimal(1500)
    assert first.values[F.PRODUCT_NAME] == ""  # unset field
    assert first.unparsed_fields == set()
    assert second.values[F.QUANTITY] == Decimal(0)
    assert second.unparsed_fields == {F.QUANTITY, F.UNIT_PRICE}
    assert second.raw_values[F.QUANTITY] == "two"
    assert all(r.is_selected and not r.has_error for r in records)


def test_edit_record_reprojects():
    data = TabularData(headers=["c", "q", "p", "d"], rows=[["X9", "x", "1", "2024-01-01"]])
    record = project(data, _sale_mapping())[0]
    edit_record(record, {F.QUANTITY: "۳"})
    assert record.values[F.QUANTITY] == Decimal(3)
    assert F.QUANTITY not in record.unparsed_fields
    with pytest.raises(ValueError):
        edit_record(record, {F.PRICE: "1"})
