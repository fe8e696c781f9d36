from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

"""Import kinds and their canonical fields.

Every import kind (product, material, sale) declares a closed set of canonical
fields. Column mappings, projection and validation all work against these
enumerations instead of free-form column names, so "is the mapping complete"
is a total function over a known set.
"""

__all__ = [
    "CanonicalField",
    "DEFAULT_FIELD_SYNONYMS",
    "EntityKind",
    "ImportKind",
    "KindSpec",
    "ReferenceSpec",
]


class EntityKind(Enum):
    """Catalog entity kinds held by the external store."""
    PRODUCT = "product"
    MATERIAL = "material"
    UNIT = "unit"
    DEPARTMENT = "department"


class CanonicalField(Enum):
    NAME = "name"
    CODE = "code"
    DEPARTMENT = "department"
    PRICE = "price"
    UNIT = "unit"
    PRODUCT_CODE = "product_code"
    PRODUCT_NAME = "product_name"
    QUANTITY = "quantity"
    UNIT_PRICE = "unit_price"
    DATE = "date"


@dataclass(frozen=True)
class ReferenceSpec:
    """A field whose value refers to another catalog entity by code.

    name_field, when set, carries the display name used when the referenced
    entity has to be created during reconciliation.
    """
    field: CanonicalField
    entity_kind: EntityKind
    name_field: CanonicalField | None = None


@dataclass(frozen=True)
class KindSpec:
    fields: tuple[CanonicalField, ...]  # declaration order = auto-map order
    required: frozenset[CanonicalField]
    numeric: frozenset[CanonicalField]
    creates: EntityKind | None  # catalog kind created per committed row
    reference: ReferenceSpec | None = None


class ImportKind(Enum):
    PRODUCT = "product"
    MATERIAL = "material"
    SALE = "sale"

    @property
    def spec(self) -> KindSpec:
        return _KIND_SPECS[self]

    @property
    def fields(self) -> tuple[CanonicalField, ...]:
        return self.spec.fields

    def required_fields(self, auto_generate_code: bool = False) -> frozenset[CanonicalField]:
        """Required fields for this kind.

        When codes are generated at commit time the code column is no longer
        needed in the file.
        """
        required = self.spec.required
        if auto_generate_code and self.spec.creates is not None:
            required = required - {CanonicalField.CODE}
        return required


_KIND_SPECS: dict[ImportKind, KindSpec] = {
    ImportKind.PRODUCT: KindSpec(
        fields=(
            CanonicalField.NAME,
            CanonicalField.CODE,
            CanonicalField.DEPARTMENT,
            CanonicalField.PRICE,
            CanonicalField.UNIT,
        ),
        required=frozenset({
            CanonicalField.NAME,
            CanonicalField.CODE,
            CanonicalField.DEPARTMENT,
        }),
        numeric=frozenset({CanonicalField.PRICE}),
        creates=EntityKind.PRODUCT,
    ),
    ImportKind.MATERIAL: KindSpec(
        fields=(
            CanonicalField.NAME,
            CanonicalField.CODE,
            CanonicalField.DEPARTMENT,
            CanonicalField.PRICE,
            CanonicalField.UNIT,
        ),
        required=frozenset({
            CanonicalField.NAME,
            CanonicalField.CODE,
            CanonicalField.DEPARTMENT,
            CanonicalField.PRICE,
            CanonicalField.UNIT,
        }),
        numeric=frozenset({CanonicalField.PRICE}),
        creates=EntityKind.MATERIAL,
        reference=ReferenceSpec(field=CanonicalField.UNIT, entity_kind=EntityKind.UNIT),
    ),
    ImportKind.SALE: KindSpec(
        fields=(
            CanonicalField.PRODUCT_CODE,
            CanonicalField.PRODUCT_NAME,
            CanonicalField.QUANTITY,
            CanonicalField.UNIT_PRICE,
            CanonicalField.DATE,
        ),
        required=frozenset({
            CanonicalField.PRODUCT_CODE,
            CanonicalField.QUANTITY,
            CanonicalField.UNIT_PRICE,
            CanonicalField.DATE,
        }),
        numeric=frozenset({CanonicalField.QUANTITY, CanonicalField.UNIT_PRICE}),
        creates=None,
        reference=ReferenceSpec(
            field=CanonicalField.PRODUCT_CODE,
            entity_kind=EntityKind.PRODUCT,
            name_field=CanonicalField.PRODUCT_NAME,
        ),
    ),
}


# Header synonyms, English + Persian. Persian entries are written in their
# normalized form (Persian Yeh / Keheh) because headers are normalized first.
DEFAULT_FIELD_SYNONYMS: dict[ImportKind, dict[CanonicalField, tuple[str, ...]]] = {
    ImportKind.PRODUCT: {
        CanonicalField.NAME: ("name", "title", "نام", "نام کالا", "نام محصول", "عنوان"),
        CanonicalField.CODE: ("code", "sku", "id", "کد", "کد کالا", "کد محصول", "شناسه"),
        CanonicalField.DEPARTMENT: ("department", "dept", "category", "بخش", "دسته"),
        CanonicalField.PRICE: ("price", "cost", "قیمت", "مبلغ", "ارزش"),
        CanonicalField.UNIT: ("unit", "uom", "واحد"),
    },
    ImportKind.MATERIAL: {
        CanonicalField.NAME: ("name", "title", "نام", "نام کالا", "نام متریال", "عنوان"),
        CanonicalField.CODE: ("code", "sku", "id", "کد", "کد کالا", "شناسه"),
        CanonicalField.DEPARTMENT: ("department", "dept", "category", "بخش", "دسته"),
        CanonicalField.PRICE: ("price", "cost", "قیمت", "مبلغ", "ارزش"),
        CanonicalField.UNIT: ("unit", "uom", "واحد", "واحد اندازه گیری"),
    },
    ImportKind.SALE: {
        CanonicalField.PRODUCT_CODE: (
            "product_code", "product code", "code", "sku", "کد محصول", "کد کالا", "کد",
        ),
        CanonicalField.PRODUCT_NAME: (
            "product_name", "product name", "name", "نام محصول", "نام کالا", "نام",
        ),
        CanonicalField.QUANTITY: ("quantity", "qty", "count", "تعداد", "مقدار"),
        CanonicalField.UNIT_PRICE: ("unit_price", "unit price", "price", "قیمت واحد", "فی", "قیمت"),
        CanonicalField.DATE: ("date", "sale date", "تاریخ", "تاریخ فروش"),
    },
}
