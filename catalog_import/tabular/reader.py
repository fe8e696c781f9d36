from __future__ import annotations

import logging

from ..models.tabular import DELIMITED_EXTENSIONS, SPREADSHEET_EXTENSIONS, DetectedEncoding, RawFile, TabularData
from .delimited import parse_delimited
from .encoding import DEFAULT_SAMPLE_SIZE
from .errors import UnsupportedFormat
from .spreadsheet import parse_spreadsheet

"""Format dispatch for uploaded files.

The declared extension (case-insensitive) selects the adapter:
.csv/.txt -> delimited text, .xlsx/.xls -> spreadsheet.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "is_supported",
    "read_tabular",
]


def is_supported(name: str) -> bool:
    ext = RawFile(name=name, content=b"").extension
    return ext in DELIMITED_EXTENSIONS or ext in SPREADSHEET_EXTENSIONS


def read_tabular(
    raw: RawFile,
    *,
    delimiter: str = ",",
    has_header: bool = True,
    encoding: DetectedEncoding | None = None,
    sample_size: int = DEFAULT_SAMPLE_SIZE,
) -> TabularData:
    """Parse `raw` into TabularData.

    `encoding` overrides detection for delimited text and is ignored for
    spreadsheets (they carry their own encoding).
    """
    ext = raw.extension
    if ext in DELIMITED_EXTENSIONS:
        data = parse_delimited(
            raw,
            encoding,
            delimiter=delimiter,
            has_header=has_header,
            sample_size=sample_size,
        )
    elif ext in SPREADSHEET_EXTENSIONS:
        data = parse_spreadsheet(raw, has_header=has_header)
    else:
        raise UnsupportedFormat(f"unsupported file type '{ext or raw.name}' (expected .csv, .txt, .xlsx or .xls)")
    logger.debug("file=%s headers=%s rows=%d", raw.name, data.headers, len(data.rows))
    return data
