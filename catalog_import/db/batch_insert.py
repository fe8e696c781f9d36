from __future__ import annotations

import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from psycopg2.extras import execute_values

from ..errors import CatalogImportError

"""Batched INSERT helper on top of psycopg2.extras.execute_values.

Dataset rows are the only bulk write of a commit; catalog entities are created
one at a time because every created id is needed before the rows are remapped.
"""

__all__ = [
    "BatchInsertError",
    "InsertResult",
    "batch_insert",
]


class BatchInsertError(CatalogImportError):
    pass


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int
    elapsed_seconds: float = 0.0  # time spent in execute_values


def batch_insert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    page_size: int = 1000,
) -> InsertResult:
    """Perform batched INSERT using psycopg2.extras.execute_values.

    Parameters
    ----------
    cursor: psycopg2 cursor
    table: target table name (trusted, never taken from file content)
    columns: inserted columns
    rows: row sequences in column order
    page_size: execute_values page_size
    """
    rows_list = list(rows)
    if not rows_list:
        return InsertResult(inserted_rows=0)

    cols_sql = ",".join(f'"{c}"' for c in columns)
    sql = f"INSERT INTO {table} ({cols_sql}) VALUES %s"

    start_time = time.perf_counter()
    try:
        execute_values(cursor, sql, rows_list, page_size=page_size)
    except Exception as e:  # psycopg2.Error and adaptation errors alike
        raise BatchInsertError(str(e)) from e
    return InsertResult(inserted_rows=len(rows_list), elapsed_seconds=time.perf_counter() - start_time)
