from __future__ import annotations

import random

import pytest

from catalog_import.tabular.normalizer import normalize, to_ascii_digits


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("علي", "علی"),  # Arabic yeh -> Persian yeh
        ("كتاب", "کتاب"),  # Arabic kaf -> keheh
        ("موسى", "موسی"),  # alef maksura -> Persian yeh
        ("١٢٣", "۱۲۳"),  # Arabic-Indic -> Persian digits
        ("\ufeffname", "name"),
        ("a\u200bb\u200cc\u200dd", "abcd"),
        ("  Bread \t  Roll\n ", "Bread Roll"),
        ("ب\u0650", "ب"),  # stray kasra after beh
        ("س\u0650\u0650", "س"),
        ("ب\u200b\u0650", "ب"),
    ],
)
def test_normalize_substitutions(text: str, expected: str):
    assert normalize(text) == expected


def test_normalize_none_and_empty():
    assert normalize(None) == ""
    assert normalize("") == ""
    assert normalize(" \u200b ") == ""


def test_ascii_letters_and_digits_unchanged():
    text = "Price 12.50 ABC-xyz_09"
    assert normalize(text) == text


def test_kasra_on_other_letters_is_kept():
    # kasra on mim is a real diacritic, not an export artefact
    assert normalize("م\u0650") == "م\u0650"


def test_kasra_before_dal_belongs_to_the_previous_letter():
    assert normalize("م\u0650د\u0650") == "م\u0650د"


@pytest.mark.parametrize("letter", ["ش", "س"])
def test_kasra_around_sheen_and_seen_is_dropped(letter: str):
    assert normalize(f"\u0650{letter}\u0650") == letter


_ALPHABET = [
    "a", "B", "1", " ", "\t", "\n", ",",
    "ب", "د", "س", "م", "\u0650",
    "ي", "ك", "ى", "١", "۱",
    "\u200b", "\u200c", "\u200d", "\ufeff",
]


def test_normalize_is_idempotent():
    rng = random.Random(42)
    for _ in range(2000):
        s = "".join(rng.choice(_ALPHABET) for _ in range(rng.randrange(0, 12)))
        once = normalize(s)
        assert normalize(once) == once, repr(s)


def test_to_ascii_digits():
    assert to_ascii_digits("۱۲۳") == "123"
    assert to_ascii_digits("١٢٣") == "123"
    assert to_ascii_digits("A1") == "A1"
