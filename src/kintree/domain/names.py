"""Name normalization and similarity shared by duplicate detection and prediction rules."""

from __future__ import annotations

import re
import unicodedata

_ARABIC_FOLDS = str.maketrans(
    {
        "أ": "ا",
        "إ": "ا",
        "آ": "ا",
        "ٱ": "ا",
        "ة": "ه",
        "ى": "ي",
        "ـ": None,  # tatweel
    }
)
_WHITESPACE = re.compile(r"\s+")
_NON_WORD = re.compile(r"[^\w]+")


def normalize_name(value: str | None) -> str | None:
    """Fold Arabic letter variants and diacritics, case-fold and collapse whitespace."""

    if value is None:
        return None
    decomposed = unicodedata.normalize("NFKD", value)
    stripped = "".join(char for char in decomposed if not unicodedata.combining(char))
    folded = unicodedata.normalize("NFC", stripped).translate(_ARABIC_FOLDS).casefold()
    collapsed = _WHITESPACE.sub(" ", folded).strip()
    return collapsed or None


def name_tokens(value: str | None) -> list[str]:
    normalized = normalize_name(value)
    if normalized is None:
        return []
    return [token for token in _NON_WORD.split(normalized) if token]


def composite_name(*parts: str | None) -> str | None:
    """Join the non-empty parts with single spaces."""

    present = [part for part in parts if part]
    return " ".join(present) if present else None


def trigrams(value: str) -> frozenset[str]:
    """Trigram set in the style of PostgreSQL's pg_trgm.

    Each word is padded with two leading spaces and one trailing space before
    being cut into three-character windows.
    """

    grams: set[str] = set()
    for word in _NON_WORD.split(value.casefold()):
        if not word:
            continue
        padded = f"  {word} "
        grams.update(padded[index : index + 3] for index in range(len(padded) - 2))
    return frozenset(grams)


def similarity(first: str, second: str) -> float:
    """Shared trigrams over all trigrams of both strings, 0.0 to 1.0."""

    first_grams = trigrams(first)
    second_grams = trigrams(second)
    if not first_grams or not second_grams:
        return 0.0
    return len(first_grams & second_grams) / len(first_grams | second_grams)
