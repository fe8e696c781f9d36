from __future__ import annotations

import csv
import io
import logging

from ..models.config_models import SUPPORTED_DELIMITERS
from ..models.tabular import DetectedEncoding, RawFile, TabularData
from .encoding import DEFAULT_SAMPLE_SIZE, decode, detect
from .errors import EmptyFile, MalformedFile
from .normalizer import normalize
from .shape import to_tabular

"""Delimited-text adapter (.csv / .txt).

Decode with the detected (or operator-chosen) encoding, split records with the
csv module so quoted delimiters and embedded newlines survive, normalize every
cell and treat the first record as the header row.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "parse_delimited",
]


def parse_delimited(
    raw: RawFile,
    encoding: DetectedEncoding | None = None,
    *,
    delimiter: str = ",",
    has_header: bool = True,
    sample_size: int = DEFAULT_SAMPLE_SIZE,
) -> TabularData:
    """Parse a delimited-text file into TabularData.

    Raises:
        ValueError: delimiter is not one of ',', ';' or tab
        EmptyFile: no header row or no data row
        MalformedFile: the text cannot be split into records
    """
    if delimiter not in SUPPORTED_DELIMITERS:
        raise ValueError(f"unsupported delimiter: {delimiter!r}")
    if not raw.content.strip():
        raise EmptyFile(f"'{raw.name}' is empty")

    if encoding is None:
        encoding = detect(raw.content, sample_size)
    logger.debug("file=%s encoding=%s delimiter=%r", raw.name, encoding.value, delimiter)
    text = decode(raw.content, encoding)

    reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter, strict=True)
    records: list[tuple[int, list[str]]] = []
    try:
        for cells in reader:
            normalized = [normalize(c) for c in cells]
            if not any(normalized):
                continue  # blank line
            records.append((reader.line_num, normalized))
    except csv.Error as e:
        raise MalformedFile(f"'{raw.name}' line {reader.line_num}: {e}") from e

    return to_tabular(records, source=raw.name, has_header=has_header, encoding=encoding)
