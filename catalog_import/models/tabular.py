from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePath

"""Raw file, detected encoding and parsed tabular data models.

RawFile is the immutable byte buffer the operator selected. TabularData is what
either parser adapter produces: a header row plus data rows of normalized text,
every row padded or truncated to the header width.
"""

__all__ = [
    "DELIMITED_EXTENSIONS",
    "DetectedEncoding",
    "RawFile",
    "SPREADSHEET_EXTENSIONS",
    "TabularData",
]

DELIMITED_EXTENSIONS = frozenset({".csv", ".txt"})
SPREADSHEET_EXTENSIONS = frozenset({".xlsx", ".xls"})


class DetectedEncoding(Enum):
    """Closed set of encodings the pipeline can decode.

    The value is the label shown to operators, `codec` the Python codec name.
    """
    UTF_8 = "UTF-8"
    UTF_16LE = "UTF-16LE"
    UTF_16BE = "UTF-16BE"
    WINDOWS_1256 = "windows-1256"
    LATIN_1 = "ISO-8859-1"

    @property
    def codec(self) -> str:
        return _CODECS[self]

    @classmethod
    def from_label(cls, label: str) -> DetectedEncoding:
        """Resolve an operator/config supplied label (case-insensitive)."""
        key = label.strip().lower().replace("_", "-")
        for member in cls:
            if key in (member.value.lower(), member.name.lower().replace("_", "-"), member.codec):
                return member
        raise ValueError(f"unsupported encoding: {label}")


_CODECS = {
    DetectedEncoding.UTF_8: "utf-8",
    DetectedEncoding.UTF_16LE: "utf-16-le",
    DetectedEncoding.UTF_16BE: "utf-16-be",
    DetectedEncoding.WINDOWS_1256: "cp1256",
    DetectedEncoding.LATIN_1: "latin-1",
}


@dataclass(frozen=True)
class RawFile:
    """Operator-selected file: declared name + byte content."""
    name: str
    content: bytes

    @property
    def extension(self) -> str:
        return PurePath(self.name).suffix.lower()

    @property
    def size(self) -> int:
        return len(self.content)

    @classmethod
    def from_path(cls, path: Path) -> RawFile:
        return cls(name=path.name, content=path.read_bytes())


@dataclass(frozen=True)
class TabularData:
    headers: list[str]
    rows: list[list[str]]
    encoding: DetectedEncoding | None = None  # None for spreadsheets
    source_rows: list[int] = field(default_factory=list)  # 1-based file line/row per data row

    @property
    def width(self) -> int:
        return len(self.headers)

    def row_number(self, index: int) -> int:
        """Original (1-based) file row of the data row at `index`."""
        if self.source_rows:
            return self.source_rows[index]
        return index + 1
