from __future__ import annotations

from collections.abc import Sequence

from ..models.tabular import DetectedEncoding, TabularData
from .errors import EmptyFile

"""Turn parsed records into rectangular TabularData.

Shared by the delimited-text and spreadsheet adapters:
- the first record is the header row (or headers are synthesized)
- every data row is padded with "" / truncated to the header width
- header + at least one data row is required
"""

__all__ = [
    "to_tabular",
]


def _fit(cells: Sequence[str], width: int) -> list[str]:
    row = list(cells[:width])
    if len(row) < width:
        row.extend([""] * (width - len(row)))
    return row


def to_tabular(
    records: Sequence[tuple[int, list[str]]],
    *,
    source: str,
    has_header: bool = True,
    encoding: DetectedEncoding | None = None,
) -> TabularData:
    """Build TabularData from (source_row, cells) records.

    Blank records must already be removed by the caller.
    """
    if has_header:
        if len(records) < 2:
            raise EmptyFile(f"'{source}' has no data rows (a header row and at least one data row are required)")
        headers = list(records[0][1])
        body = records[1:]
    else:
        if not records:
            raise EmptyFile(f"'{source}' has no data rows")
        width = max(len(cells) for _, cells in records)
        headers = [f"Column {i}" for i in range(1, width + 1)]
        body = records

    width = len(headers)
    return TabularData(
        headers=headers,
        rows=[_fit(cells, width) for _, cells in body],
        encoding=encoding,
        source_rows=[line for line, _ in body],
    )
