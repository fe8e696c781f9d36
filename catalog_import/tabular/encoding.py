from __future__ import annotations

from ..models.tabular import DetectedEncoding

"""Byte-level encoding detection for uploaded delimited-text files.

Best-effort heuristic, not a guarantee. Files exported by local accounting
software are usually either UTF-8 (with or without BOM) or Windows-1256; this
module picks between them from a sample of the buffer. A wrong guess produces
garbled text, never an exception: callers decode with errors="replace" and the
validator rejects rows that end up unusable.
"""

__all__ = [
    "DEFAULT_SAMPLE_SIZE",
    "decode",
    "detect",
]

DEFAULT_SAMPLE_SIZE = 1000
SCRIPT_THRESHOLD = 10

_BOMS: tuple[tuple[bytes, DetectedEncoding], ...] = (
    (b"\xef\xbb\xbf", DetectedEncoding.UTF_8),
    (b"\xff\xfe", DetectedEncoding.UTF_16LE),
    (b"\xfe\xff", DetectedEncoding.UTF_16BE),
)


def _sequence_length(lead: int) -> int:
    """Expected UTF-8 sequence length for a lead byte (0 = not a lead byte)."""
    if 0xC2 <= lead <= 0xDF:
        return 2
    if 0xE0 <= lead <= 0xEF:
        return 3
    if 0xF0 <= lead <= 0xF4:
        return 4
    return 0


def _count_patterns(sample: bytes) -> tuple[int, int, int]:
    """Return (legacy_count, utf8_count, script_count) for a byte sample.

    utf8_count: bytes belonging to well-formed UTF-8 multi-byte sequences.
    legacy_count: remaining high bytes (0x80 < b < 0xFF).
    script_count: bytes in the Arabic-script ranges of UTF-8 lead bytes
    (0xD8-0xDF) and legacy letters (0x98-0x9F).
    """
    legacy = utf8 = script = 0
    i = 0
    n = len(sample)
    while i < n:
        b = sample[i]
        if (0xD8 <= b <= 0xDF) or (0x98 <= b <= 0x9F):
            script += 1
        if b < 0x80:
            i += 1
            continue
        length = _sequence_length(b)
        tail = sample[i + 1:i + length]
        if length and all(0x80 <= c <= 0xBF for c in tail):
            if len(tail) < length - 1:
                break  # sequence cut by the end of the sample
            utf8 += length
            # continuation bytes are skipped so 0x98-0x9F only counts outside sequences
            i += length
            continue
        if 0x80 < b < 0xFF:
            legacy += 1
        i += 1
    return legacy, utf8, script


def detect(content: bytes, sample_size: int = DEFAULT_SAMPLE_SIZE) -> DetectedEncoding:
    """Detect the encoding of a byte buffer.

    Pure and total: always returns one of the DetectedEncoding members.
    Latin-1 is never guessed; it can only be chosen explicitly.
    """
    for bom, encoding in _BOMS:
        if content.startswith(bom):
            return encoding

    legacy, utf8, script = _count_patterns(content[:sample_size])
    if script > SCRIPT_THRESHOLD and utf8 > legacy:
        return DetectedEncoding.UTF_8
    if legacy > utf8:
        return DetectedEncoding.WINDOWS_1256
    return DetectedEncoding.UTF_8


def decode(content: bytes, encoding: DetectedEncoding) -> str:
    """Decode with the given encoding, dropping a leading BOM.

    Undecodable bytes are replaced, never raised.
    """
    if encoding == DetectedEncoding.UTF_8 and content.startswith(b"\xef\xbb\xbf"):
        content = content[3:]
    elif encoding == DetectedEncoding.UTF_16LE and content.startswith(b"\xff\xfe"):
        content = content[2:]
    elif encoding == DetectedEncoding.UTF_16BE and content.startswith(b"\xfe\xff"):
        content = content[2:]
    return content.decode(encoding.codec, errors="replace")
