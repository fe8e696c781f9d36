from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

import psycopg2
from psycopg2.extras import Json

from ..models.dataset import CatalogEntity, Dataset, DatasetSummary
from ..models.import_kind import EntityKind, ImportKind
from .batch_insert import BatchInsertError, batch_insert
from .store import CatalogStore, StoreError, split_fields

"""PostgreSQL catalog store (psycopg2).

Works on a cursor owned by the caller; the connection's transaction boundary
(commit / rollback) belongs to the CLI, not to the store. Entity attributes and
dataset rows are JSONB documents, Decimal values are stored as strings so no
precision is lost.

Tables (created by ensure_schema):
- catalog_entities(id, kind, code, name, attributes)
- datasets(id, name, kind, imported_at)
- dataset_rows(dataset_id, position, data)
- catalog_settings(key, value)  -- holds the reference dataset pointer
"""

logger = logging.getLogger(__name__)

__all__ = [
    "PostgresCatalogStore",
    "SCHEMA_SQL",
]

REFERENCE_KEY = "reference_dataset_id"

SCHEMA_SQL = (
    """CREATE TABLE IF NOT EXISTS catalog_entities (
        id TEXT PRIMARY KEY,
        kind TEXT NOT NULL,
        code TEXT NOT NULL DEFAULT '',
        name TEXT NOT NULL,
        attributes JSONB NOT NULL DEFAULT '{}'::jsonb
    )""",
    """CREATE TABLE IF NOT EXISTS datasets (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        kind TEXT,
        imported_at TIMESTAMPTZ NOT NULL
    )""",
    """CREATE TABLE IF NOT EXISTS dataset_rows (
        dataset_id TEXT NOT NULL REFERENCES datasets(id),
        position INTEGER NOT NULL,
        data JSONB NOT NULL,
        PRIMARY KEY (dataset_id, position)
    )""",
    """CREATE TABLE IF NOT EXISTS catalog_settings (
        key TEXT PRIMARY KEY,
        value TEXT
    )""",
)


def _default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"not JSON serializable: {type(value).__name__}")


def _dumps(value: Any) -> str:
    return json.dumps(value, default=_default, ensure_ascii=False)


def _entity(row: Sequence[Any]) -> CatalogEntity:
    entity_id, kind, code, name, attributes = row
    return CatalogEntity(
        id=entity_id,
        kind=EntityKind(kind),
        code=code,
        name=name,
        attributes=dict(attributes or {}),
    )


class PostgresCatalogStore(CatalogStore):
    def __init__(self, cursor: Any) -> None:
        self._cursor = cursor

    def _execute(self, sql: str, params: Sequence[Any] | None = None) -> None:
        try:
            self._cursor.execute(sql, params)
        except psycopg2.Error as e:
            raise StoreError(f"database error: {e}") from e

    def ensure_schema(self) -> None:
        for statement in SCHEMA_SQL:
            self._execute(statement)
        logger.debug("catalog schema ensured")

    def list_entities(self, kind: EntityKind) -> list[CatalogEntity]:
        self._execute(
            "SELECT id, kind, code, name, attributes FROM catalog_entities WHERE kind = %s ORDER BY name",
            (kind.value,),
        )
        return [_entity(r) for r in self._cursor.fetchall()]

    def get_by_id(self, entity_id: str) -> CatalogEntity | None:
        self._execute(
            "SELECT id, kind, code, name, attributes FROM catalog_entities WHERE id = %s",
            (entity_id,),
        )
        row = self._cursor.fetchone()
        return _entity(row) if row else None

    def find_by_code(self, kind: EntityKind, code: str) -> CatalogEntity | None:
        if not code.strip():
            return None
        self._execute(
            "SELECT id, kind, code, name, attributes FROM catalog_entities "
            "WHERE kind = %s AND lower(code) = lower(%s) LIMIT 1",
            (kind.value, code.strip()),
        )
        row = self._cursor.fetchone()
        return _entity(row) if row else None

    def find_by_name(self, kind: EntityKind, name: str) -> CatalogEntity | None:
        if not name.strip():
            return None
        self._execute(
            "SELECT id, kind, code, name, attributes FROM catalog_entities "
            "WHERE kind = %s AND lower(name) = lower(%s) LIMIT 1",
            (kind.value, name.strip()),
        )
        row = self._cursor.fetchone()
        return _entity(row) if row else None

    def create(self, kind: EntityKind, fields: Mapping[str, Any]) -> CatalogEntity:
        code, name, attributes = split_fields(fields)
        if not name:
            raise StoreError(f"cannot create {kind.value} without a name")
        entity_id = uuid.uuid4().hex
        self._execute(
            "INSERT INTO catalog_entities (id, kind, code, name, attributes) VALUES (%s, %s, %s, %s, %s)",
            (entity_id, kind.value, code, name, Json(attributes, dumps=_dumps)),
        )
        return CatalogEntity(id=entity_id, kind=kind, code=code, name=name, attributes=attributes)

    def update(self, entity_id: str, fields: Mapping[str, Any]) -> CatalogEntity:
        current = self.get_by_id(entity_id)
        if current is None:
            raise StoreError(f"entity not found: {entity_id}")
        attributes = dict(current.attributes)
        attributes.update({k: v for k, v in fields.items() if k not in ("code", "name")})
        code = str(fields.get("code", current.code))
        name = str(fields.get("name", current.name))
        self._execute(
            "UPDATE catalog_entities SET code = %s, name = %s, attributes = %s WHERE id = %s",
            (code, name, Json(attributes, dumps=_dumps), entity_id),
        )
        return CatalogEntity(id=entity_id, kind=current.kind, code=code, name=name, attributes=attributes)

    def delete(self, entity_id: str) -> None:
        self._execute("DELETE FROM catalog_entities WHERE id = %s", (entity_id,))
        if self._cursor.rowcount == 0:
            raise StoreError(f"entity not found: {entity_id}")

    def insert_dataset(
        self,
        rows: Sequence[Mapping[str, Any]],
        name: str,
        kind: ImportKind | None = None,
    ) -> str:
        dataset_id = uuid.uuid4().hex
        self._execute(
            "INSERT INTO datasets (id, name, kind, imported_at) VALUES (%s, %s, %s, %s)",
            (dataset_id, name, kind.value if kind else None, datetime.now(UTC)),
        )
        try:
            result = batch_insert(
                self._cursor,
                "dataset_rows",
                ["dataset_id", "position", "data"],
                [(dataset_id, i, Json(dict(r), dumps=_dumps)) for i, r in enumerate(rows)],
            )
        except BatchInsertError as e:
            raise StoreError(f"failed writing dataset rows: {e}") from e
        logger.debug("dataset=%s rows=%d elapsed=%.3fs", dataset_id, result.inserted_rows, result.elapsed_seconds)
        return dataset_id

    @property
    def reference_dataset_id(self) -> str | None:
        self._execute("SELECT value FROM catalog_settings WHERE key = %s", (REFERENCE_KEY,))
        row = self._cursor.fetchone()
        return row[0] if row else None

    def set_reference_dataset(self, dataset_id: str | None) -> None:
        if dataset_id is not None and self.get_dataset_by_id(dataset_id) is None:
            raise StoreError(f"dataset not found: {dataset_id}")
        self._execute(
            "INSERT INTO catalog_settings (key, value) VALUES (%s, %s) "
            "ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value",
            (REFERENCE_KEY, dataset_id),
        )

    def list_datasets(self) -> list[DatasetSummary]:
        self._execute("SELECT id, name, imported_at FROM datasets ORDER BY imported_at")
        return [DatasetSummary(id=r[0], name=r[1], imported_at=r[2]) for r in self._cursor.fetchall()]

    def get_dataset_by_id(self, dataset_id: str) -> Dataset | None:
        self._execute("SELECT id, name, kind, imported_at FROM datasets WHERE id = %s", (dataset_id,))
        head = self._cursor.fetchone()
        if head is None:
            return None
        self._execute(
            "SELECT data FROM dataset_rows WHERE dataset_id = %s ORDER BY position",
            (dataset_id,),
        )
        rows = [dict(r[0]) for r in self._cursor.fetchall()]
        return Dataset(
            id=head[0],
            name=head[1],
            imported_at=head[3],
            committed_rows=rows,
            kind=ImportKind(head[2]) if head[2] else None,
        )
