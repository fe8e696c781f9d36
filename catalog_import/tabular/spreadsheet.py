from __future__ import annotations

import io
import logging
from datetime import date, datetime
from typing import Any

import pandas as pd

from ..models.tabular import RawFile, TabularData
from .errors import EmptyFile, MalformedFile
from .normalizer import normalize
from .shape import to_tabular

"""Spreadsheet adapter (.xlsx / .xls).

Only the first sheet is read, raw (header=None) and with pandas' default NA
conversion disabled so literal "NA"/"NULL" cells survive as text. Every cell
becomes a string before normalization:
- empty cells -> ""
- whole floats -> integer text (12.0 -> "12")
- dates -> ISO text
"""

logger = logging.getLogger(__name__)

__all__ = [
    "cell_to_text",
    "parse_spreadsheet",
]

_ENGINES = {
    ".xlsx": "openpyxl",
    ".xls": "xlrd",
}


def cell_to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, datetime):  # pd.Timestamp is a datetime subclass
        if (value.hour, value.minute, value.second, value.microsecond) == (0, 0, 0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    if pd.isna(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def read_first_sheet(raw: RawFile) -> pd.DataFrame:
    engine = _ENGINES.get(raw.extension)
    try:
        return pd.read_excel(
            io.BytesIO(raw.content),
            sheet_name=0,
            header=None,
            dtype=object,
            keep_default_na=False,
            engine=engine,
        )
    except Exception as e:  # pandas/openpyxl/xlrd raise many unrelated types for corrupt input
        raise MalformedFile(f"cannot read workbook '{raw.name}': {e}") from e


def parse_spreadsheet(raw: RawFile, *, has_header: bool = True) -> TabularData:
    """Parse the first sheet of a workbook into TabularData.

    Raises:
        EmptyFile: the sheet has no header row or no data row
        MalformedFile: the workbook cannot be opened
    """
    if not raw.content:
        raise EmptyFile(f"'{raw.name}' is empty")
    df = read_first_sheet(raw)
    logger.debug("file=%s sheet_shape=%s", raw.name, df.shape)

    records: list[tuple[int, list[str]]] = []
    for position, values in enumerate(df.itertuples(index=False, name=None), start=1):
        cells = [normalize(cell_to_text(v)) for v in values]
        if not any(cells):
            continue
        records.append((position, cells))

    # trailing empty header cells come from formatted-but-empty columns
    if has_header and records:
        width = len(records[0][1])
        while width > 0 and not records[0][1][width - 1] and all(len(c) < width or not c[width - 1] for _, c in records[1:]):
            width -= 1
        records = [(line, cells[:width]) for line, cells in records]

    return to_tabular(records, source=raw.name, has_header=has_header)
