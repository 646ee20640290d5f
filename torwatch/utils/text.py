"""Text helpers shared by the matchers."""
from __future__ import annotations

import re
import unicodedata


def fold_diacritics(value: str) -> str:
    """'Pokémon' -> 'Pokemon'. Non-latin letters are left untouched."""
    decomposed = unicodedata.normalize("NFKD", value or "")
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def keep_letters_digits(value: str, replacement: str = "") -> str:
    """Replace anything that is not a unicode letter, digit or whitespace."""
    return "".join(
        ch if (ch.isalnum() or ch.isspace()) else replacement
        for ch in value or ""
    )


def collapse_spaces(value: str) -> str:
    return re.sub(r"\s+", " ", value or "").strip()
