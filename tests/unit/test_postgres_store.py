from __future__ import annotations

import json
from datetime import UTC, datetime
from decimal import Decimal

import psycopg2
import pytest

from catalog_import.db.postgres_store import SCHEMA_SQL, PostgresCatalogStore, _dumps
from catalog_import.db.store import StoreError
from catalog_import.models.import_kind import EntityKind, ImportKind


class FakeCursor:
    """Records statements; fetch results are queued by the test."""

    def __init__(self) -> None:
        self.executed: list[tuple[str, tuple | None]] = []
        self.results: list = []
        self.rowcount = 1
        self.batches: list[list] = []

    def execute(self, sql, params=None):
        self.executed.append((sql, params))

    def fetchone(self):
        return self.results.pop(0)

    def fetchall(self):
        return self.results.pop(0)


@pytest.fixture(autouse=True)
def patch_execute_values(monkeypatch):
    import catalog_import.db.batch_insert as bi
    def fake_execute_values(cursor, sql, rows, page_size=1000):
        cursor.batches.append(list(rows))
    monkeypatch.setattr(bi, "execute_values", fake_execute_values)


@pytest.fixture()
def cur() -> FakeCursor:
    return FakeCursor()


def test_ensure_schema(cur):
    PostgresCatalogStore(cur).ensure_schema()
    assert [sql for sql, _ in cur.executed] == list(SCHEMA_SQL)


def test_list_and_lookup(cur):
    store = PostgresCatalogStore(cur)
    cur.results.append([("a1", "product", "P1", "Bread", {"price": "10"})])
    products = store.list_products()
    assert products[0].id == "a1"
    assert products[0].kind == EntityKind.PRODUCT
    assert products[0].attributes == {"price": "10"}
    assert cur.executed[-1][1] == ("product",)

    cur.results.append(("u1", "unit", "kg", "kg", None))
    unit = store.find_by_code(EntityKind.UNIT, " KG ")
    assert unit.attributes == {}
    assert cur.executed[-1][1] == ("unit", "KG")

    cur.results.append(None)
    assert store.find_by_name(EntityKind.DEPARTMENT, "Bakery") is None
    executed = len(cur.executed)
    assert store.find_by_code(EntityKind.PRODUCT, "  ") is None
    assert len(cur.executed) == executed


def test_create_stores_attributes_as_json(cur):
    entity = PostgresCatalogStore(cur).create(
        EntityKind.PRODUCT, {"code": "P1", "name": "Bread", "price": Decimal("12.50")}
    )
    sql, params = cur.executed[-1]
    assert sql.startswith("INSERT INTO catalog_entities")
    assert params[:4] == (entity.id, "product", "P1", "Bread")
    assert params[4].adapted == {"price": Decimal("12.50")}
    assert entity.attributes == {"price": Decimal("12.50")}
    with pytest.raises(StoreError):
        PostgresCatalogStore(cur).create(EntityKind.PRODUCT, {"code": "P2"})


def test_dumps_keeps_decimal_precision():
    stamp = datetime(2024, 1, 1, tzinfo=UTC)
    assert json.loads(_dumps({"p": Decimal("0.10"), "at": stamp, "n": "نان"})) == {
        "p": "0.10",
        "at": "2024-01-01T00:00:00+00:00",
        "n": "نان",
    }
    with pytest.raises(TypeError):
        _dumps({"x": object()})


def test_update_merges_attributes(cur):
    store = PostgresCatalogStore(cur)
    cur.results.append(("a1", "product", "P1", "Bread", {"price": "10", "unit": "pcs"}))
    updated = store.update("a1", {"price": 12})
    assert updated.attributes == {"price": 12, "unit": "pcs"}
    assert updated.code == "P1"
    assert cur.executed[-1][1][3] == "a1"

    cur.results.append(None)
    with pytest.raises(StoreError):
        store.update("missing", {"name": "x"})


def test_delete_checks_rowcount(cur):
    store = PostgresCatalogStore(cur)
    store.delete("a1")
    cur.rowcount = 0
    with pytest.raises(StoreError):
        store.delete("a1")


def test_insert_dataset_batches_rows(cur):
    dataset_id = PostgresCatalogStore(cur).insert_dataset(
        [{"code": "P1", "price": Decimal("3")}, {"code": "P2", "price": Decimal("4")}],
        "products-jan",
        ImportKind.PRODUCT,
    )
    head_sql, head_params = cur.executed[-1]
    assert head_sql.startswith("INSERT INTO datasets")
    assert head_params[:3] == (dataset_id, "products-jan", "product")
    batch = cur.batches[0]
    assert [(r[0], r[1]) for r in batch] == [(dataset_id, 0), (dataset_id, 1)]
    assert batch[1][2].adapted == {"code": "P2", "price": Decimal("4")}


def test_insert_dataset_failure_becomes_store_error(cur, monkeypatch):
    import catalog_import.db.batch_insert as bi
    def failing(cursor, sql, rows, page_size=1000):
        raise psycopg2.DataError("invalid input syntax for type json")
    monkeypatch.setattr(bi, "execute_values", failing)
    with pytest.raises(StoreError, match="dataset rows"):
        PostgresCatalogStore(cur).insert_dataset([{"code": "P1"}], "x")


def test_reference_pointer(cur):
    store = PostgresCatalogStore(cur)
    cur.results.append(None)
    assert store.reference_dataset_id is None

    cur.results.append(("d1", "jan", "sale", datetime(2024, 1, 1, tzinfo=UTC)))
    cur.results.append([])
    store.set_reference_dataset("d1")
    assert cur.executed[-1][1] == ("reference_dataset_id", "d1")

    cur.results.append(None)
    with pytest.raises(StoreError):
        store.set_reference_dataset("nope")


def test_get_dataset_by_id(cur):
    stamp = datetime(2024, 1, 1, tzinfo=UTC)
    cur.results.append(("d1", "jan", "sale", stamp))
    cur.results.append([({"product_code": "P1"},), ({"product_code": "P2"},)])
    dataset = PostgresCatalogStore(cur).get_dataset_by_id("d1")
    assert dataset.kind == ImportKind.SALE
    assert dataset.row_count == 2
    assert dataset.imported_at == stamp

    cur.results.append([("d1", "jan", stamp)])
    assert [d.name for d in PostgresCatalogStore(cur).list_datasets()] == ["jan"]


def test_driver_errors_become_store_errors():
    class Broken(FakeCursor):
        def execute(self, sql, params=None):
            raise psycopg2.OperationalError("server closed the connection unexpectedly")
    with pytest.raises(StoreError, match="database error"):
        PostgresCatalogStore(Broken()).list_units()
