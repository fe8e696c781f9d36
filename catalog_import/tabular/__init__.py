"""File decoding, text normalization and parsing into tabular data."""

from .encoding import decode, detect
from .errors import EmptyFile, MalformedFile, ParseError, UnsupportedFormat
from .normalizer import normalize
from .reader import read_tabular

__all__ = [
    "EmptyFile",
    "MalformedFile",
    "ParseError",
    "UnsupportedFormat",
    "decode",
    "detect",
    "normalize",
    "read_tabular",
]
