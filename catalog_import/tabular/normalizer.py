from __future__ import annotations

import re

"""Text normalization for cells and headers.

normalize() is total and idempotent. Steps:
1. look-alike substitutions: Arabic Yeh/Kaf/Alef Maksura -> Persian forms,
   Arabic-Indic digits -> Persian digits
2. strip zero-width characters and BOM
3. drop stray kasra after the letters legacy exports decorate with it
4. collapse whitespace runs, trim

ASCII letters and digits are never changed, and digit substitutions keep the
numeric value (parse_number understands both digit scripts).
"""

__all__ = [
    "normalize",
    "to_ascii_digits",
]

_CHAR_TABLE = str.maketrans({
    "ي": "ی",  # ARABIC LETTER YEH -> FARSI YEH
    "ى": "ی",  # ARABIC LETTER ALEF MAKSURA -> FARSI YEH
    "ك": "ک",  # ARABIC LETTER KAF -> KEHEH
    "٠": "۰",
    "١": "۱",
    "٢": "۲",
    "٣": "۳",
    "٤": "۴",
    "٥": "۵",
    "٦": "۶",
    "٧": "۷",
    "٨": "۸",
    "٩": "۹",
})

_INVISIBLE = re.compile("[\u200b-\u200d\ufeff]")
# kasra (U+0650) left after dal, beh, zain, thal by some exports; sheen and seen
# also lose a kasra written just before them
_STRAY_KASRA = re.compile("\u0650*([شس])\u0650+|([دبزذ])\u0650+")
_WHITESPACE = re.compile(r"\s+")

_ASCII_DIGITS = str.maketrans(
    "۰۱۲۳۴۵۶۷۸۹"
    "٠١٢٣٤٥٦٧٨٩",
    "01234567890123456789",
)


def normalize(text: str | None) -> str:
    if not text:
        return ""
    out = text.translate(_CHAR_TABLE)
    out = _INVISIBLE.sub("", out)
    out = _STRAY_KASRA.sub(r"\1\2", out)
    out = _WHITESPACE.sub(" ", out)
    return out.strip()


def to_ascii_digits(text: str) -> str:
    """Map Persian and Arabic-Indic digits to ASCII digits."""
    return text.translate(_ASCII_DIGITS)
