from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Any

import pandas as pd

from ..models.dataset import Dataset

"""Export a committed dataset back to a workbook.

Columns are the canonical field names of the dataset's import kind, so the
exported file maps itself automatically when imported again. Internal ids are
not written.
"""

__all__ = [
    "dataset_frame",
    "export_dataset",
]


def _plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value


def dataset_frame(dataset: Dataset) -> pd.DataFrame:
    if dataset.kind is not None:
        columns = [f.value for f in dataset.kind.fields]
    else:
        columns = []
        for row in dataset.committed_rows:
            columns.extend(k for k in row if k not in columns)
    records = [{c: _plain(row.get(c, "")) for c in columns} for row in dataset.committed_rows]
    return pd.DataFrame(records, columns=columns)


def export_dataset(dataset: Dataset, path: Path) -> Path:
    """Write `dataset` to `path` (.xlsx) and return the path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    dataset_frame(dataset).to_excel(path, index=False, sheet_name="data", engine="openpyxl")
    return path
