from __future__ import annotations

from decimal import Decimal

import pytest

from catalog_import.db.memory_store import InMemoryCatalogStore
from catalog_import.db.store import StoreError
from catalog_import.models.import_kind import CanonicalField, EntityKind, ImportKind
from catalog_import.models.reconciliation import Resolution, ResolutionAction, UnmatchedEntity
from catalog_import.services.commit import CommitError, CommitExecutor, NothingToCommit, StoreWriteError
from catalog_import.services.projector import project_row

F = CanonicalField


class FlakyStore(InMemoryCatalogStore):
    """Fails the next insert_dataset call."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_next = True

    def insert_dataset(self, rows, name, kind=None):
        if self.fail_next:
            self.fail_next = False
            raise StoreError("connection reset")
        return super().insert_dataset(rows, name, kind)


def _product(row: int, name: str, code: str, department: str = "Bakery", price: str = "10", unit: str = ""):
    return project_row(
        ImportKind.PRODUCT,
        {F.NAME: name, F.CODE: code, F.DEPARTMENT: department, F.PRICE: price, F.UNIT: unit},
        row,
    )


def _sale(row: int, code: str, name: str = ""):
    return project_row(
        ImportKind.SALE,
        {F.PRODUCT_CODE: code, F.PRODUCT_NAME: name, F.QUANTITY: "2", F.UNIT_PRICE: "5", F.DATE: "2024-01-01"},
        row,
    )


def test_products_commit_only_eligible_rows(seeded_store):
    errored = _product(4, "Bad", "P9", price="x")
    errored.has_error = True
    errored.is_selected = False
    unselected = _product(5, "Tea", "P8")
    unselected.is_selected = False
    records = [_product(2, "Milk", "P2", department="Dairy"), _product(3, "Cake", "P3"), errored, unselected]

    executor = CommitExecutor(seeded_store)
    dataset = executor.commit(records, {}, kind=ImportKind.PRODUCT, dataset_name="jan")

    assert dataset.name == "jan"
    assert dataset.kind == ImportKind.PRODUCT
    assert [r["code"] for r in dataset.committed_rows] == ["P2", "P3"]
    assert seeded_store.get_dataset_by_id(dataset.id).row_count == 2

    created = {(e.kind, e.name) for e in executor.created_entities}
    assert created == {
        (EntityKind.DEPARTMENT, "Dairy"),
        (EntityKind.PRODUCT, "Milk"),
        (EntityKind.PRODUCT, "Cake"),
    }
    cake = seeded_store.find_by_code(EntityKind.PRODUCT, "P3")
    assert cake.attributes["department_id"] == "department-1"
    assert cake.attributes["price"] == Decimal(10)
    assert seeded_store.find_by_code(EntityKind.PRODUCT, "P9") is None
    assert seeded_store.reference_dataset_id is None


def test_nothing_to_commit(store):
    record = _product(2, "Milk", "P2")
    record.is_selected = False
    with pytest.raises(NothingToCommit):
        CommitExecutor(store).commit([record], {}, kind=ImportKind.PRODUCT)
    assert store.list_datasets() == []


def test_auto_generated_codes_continue_after_existing(store):
    store.create(EntityKind.PRODUCT, {"code": "P-0007", "name": "Old"})
    records = [_product(2, "Milk", ""), _product(3, "Cake", "C1")]
    dataset = CommitExecutor(store, auto_generate_code=True, code_prefix="P").commit(
        records, {}, kind=ImportKind.PRODUCT, set_reference=True
    )
    assert [r["code"] for r in dataset.committed_rows] == ["P-0008", "C1"]
    assert records[0].values[F.CODE] == "P-0008"
    assert store.reference_dataset_id == dataset.id
    assert dataset.name.startswith("product-")


def test_material_rows_carry_unit_id(seeded_store):
    record = project_row(
        ImportKind.MATERIAL,
        {F.NAME: "Flour", F.CODE: "M1", F.DEPARTMENT: "Bakery", F.PRICE: "3", F.UNIT: "KG"},
        2,
    )
    dataset = CommitExecutor(seeded_store).commit([record], {}, kind=ImportKind.MATERIAL)
    flour = seeded_store.find_by_code(EntityKind.MATERIAL, "M1")
    assert flour.attributes["unit_id"] == "unit-2"
    assert dataset.committed_rows[0]["unit_id"] == "unit-2"


def test_sales_require_resolved_products(seeded_store):
    records = [_sale(2, "P1"), _sale(3, "X9", "Cake")]
    with pytest.raises(CommitError, match="X9"):
        CommitExecutor(seeded_store).commit(records, {}, kind=ImportKind.SALE)
    assert seeded_store.list_datasets() == []


def test_sales_create_new_products(seeded_store):
    records = [_sale(2, "P1"), _sale(3, "X9", "Cake"), _sale(4, "x9")]
    resolutions = {"x9": Resolution.create_new("X9")}
    unmatched = [UnmatchedEntity(external_code="X9", external_name="Cake", occurrence_count=2)]

    executor = CommitExecutor(seeded_store)
    dataset = executor.commit(records, resolutions, kind=ImportKind.SALE, unmatched=unmatched)

    cake = seeded_store.find_by_code(EntityKind.PRODUCT, "X9")
    assert cake.name == "Cake"
    assert resolutions["x9"].action == ResolutionAction.CREATE_NEW
    assert resolutions["x9"].entity_id == cake.id
    assert [r["product_id"] for r in dataset.committed_rows] == ["product-3", cake.id, cake.id]
    assert dataset.committed_rows[0]["quantity"] == Decimal(2)
    assert executor.created_entities == [cake]


def test_sales_map_existing(seeded_store):
    records = [_sale(2, "OLD-1")]
    resolutions = {"old-1": Resolution.map_existing("OLD-1", "product-3")}
    dataset = CommitExecutor(seeded_store).commit(records, resolutions, kind=ImportKind.SALE)
    assert dataset.committed_rows[0]["product_id"] == "product-3"
    assert seeded_store.list_products()[0].code == "P1"
    assert len(seeded_store.list_products()) == 1


def test_store_failure_and_idempotent_retry():
    store = FlakyStore()
    records = [_product(2, "Milk", "P2"), _product(3, "Cake", "P3")]
    executor = CommitExecutor(store)

    with pytest.raises(StoreWriteError, match="connection reset"):
        executor.commit(records, {}, kind=ImportKind.PRODUCT)
    assert len(store.list_products()) == 2
    assert store.list_datasets() == []

    dataset = executor.commit(records, {}, kind=ImportKind.PRODUCT)
    assert dataset.row_count == 2
    assert len(store.list_products()) == 2
    assert len(store.list_departments()) == 1
