from __future__ import annotations

from ..errors import CatalogImportError

"""Parse errors raised by the tabular adapters.

All of them are fatal to the upload attempt only: the session reports the message and
stays on the upload stage so the operator can pick another file.
"""

__all__ = [
    "EmptyFile",
    "MalformedFile",
    "ParseError",
    "UnsupportedFormat",
]


class ParseError(CatalogImportError):
    """Raised when an uploaded file cannot be turned into tabular data."""
    error_type = "PARSE_ERROR"


class EmptyFile(ParseError):
    """Raised when the file has no header row or no data row."""
    error_type = "EMPTY_FILE"


class MalformedFile(ParseError):
    """Raised when the file content cannot be parsed (bad quoting, corrupt workbook)."""
    error_type = "MALFORMED_FILE"


class UnsupportedFormat(MalformedFile):
    """Raised when the declared extension is not one of .csv/.txt/.xlsx/.xls."""
    error_type = "UNSUPPORTED_FORMAT"
