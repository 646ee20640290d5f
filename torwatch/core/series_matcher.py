"""
Series Matcher
Guards against indexers returning loosely related titles for a series query.
"""
from __future__ import annotations

from typing import Iterable, List
import re

from ..utils.text import collapse_spaces, fold_diacritics, keep_letters_digits


MIN_MATCHER_LENGTH = 2


def normalize_for_series_match(value: str) -> str:
    text = fold_diacritics(value or "").lower()
    text = re.sub(r"[_/.:\-]+", " ", text)
    text = keep_letters_digits(text)
    return collapse_spaces(text)


def build_series_matchers(variants: Iterable[str]) -> List[str]:
    """Normalized, deduplicated title variants (primary title plus aliases)."""
    matchers: List[str] = []
    for variant in variants:
        norm = normalize_for_series_match(variant)
        if len(norm) < MIN_MATCHER_LENGTH or norm in matchers:
            continue
        matchers.append(norm)
    return matchers


def matches_series(title: str, matchers: List[str]) -> bool:
    # No usable matcher: fail open.
    if not matchers:
        return True
    norm_title = normalize_for_series_match(title)
    if not norm_title:
        return False
    return any(needle in norm_title for needle in matchers)
