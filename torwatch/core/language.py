"""
Language Classifier
Audio-language allow-list check driven by a structured indexer attribute
when present, else by release-name heuristics.

Name heuristics are best-effort: scene names rarely state the audio track, so
an untagged release is allowed.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional, Pattern, Sequence, Set, Tuple
import re


LANG_PATTERNS: Tuple[Tuple[str, Pattern], ...] = (
    ("en", re.compile(r"\b(?:english|eng(?!\w)|en[-_. ]?(?:us|gb|uk))\b", re.IGNORECASE)),
    ("hi", re.compile(r"\b(?:hindi|hin|hind)\b", re.IGNORECASE)),
    ("ta", re.compile(r"\btamil\b", re.IGNORECASE)),
    ("te", re.compile(r"\btelugu\b", re.IGNORECASE)),
    ("ml", re.compile(r"\bmalayalam\b", re.IGNORECASE)),
    ("kn", re.compile(r"\bkannada\b", re.IGNORECASE)),
    ("ko", re.compile(r"\b(?:korean|kor(?!\w))\b", re.IGNORECASE)),
    ("ja", re.compile(r"\b(?:japanese|jpn|jap(?!\w))\b", re.IGNORECASE)),
    ("zh", re.compile(r"\b(?:chinese|mandarin|cantonese|chi(?!\w))\b", re.IGNORECASE)),
    ("fr", re.compile(r"\b(?:french|fra|vf|vostfr)\b", re.IGNORECASE)),
    ("de", re.compile(r"\b(?:german|deu|ger(?!\w))\b", re.IGNORECASE)),
    ("es", re.compile(r"\b(?:spanish|spa|latino|castellano)\b", re.IGNORECASE)),
    ("pt", re.compile(r"\b(?:portuguese|português|pt[-_. ]?br|brazilian|dublado)\b", re.IGNORECASE)),
    ("ru", re.compile(r"\b(?:russian|rus(?!\w))\b", re.IGNORECASE)),
    ("it", re.compile(r"\b(?:italian|ita(?!\w))\b", re.IGNORECASE)),
    ("tr", re.compile(r"\b(?:turkish|turk(?!\w))\b", re.IGNORECASE)),
    ("ar", re.compile(r"\b(?:arabic|ara(?!\w))\b", re.IGNORECASE)),
    ("pl", re.compile(r"\b(?:polish|pol(?!\w))\b", re.IGNORECASE)),
    ("th", re.compile(r"\b(?:thai|tha(?!\w))\b", re.IGNORECASE)),
    ("id", re.compile(r"\b(?:indonesian|indo)\b", re.IGNORECASE)),
    ("vi", re.compile(r"\b(?:vietnamese|viet)\b", re.IGNORECASE)),
    ("uk", re.compile(r"\b(?:ukrainian|ukr(?!\w))\b", re.IGNORECASE)),
    ("fa", re.compile(r"\b(?:persian|farsi)\b", re.IGNORECASE)),
)

# (code, attribute prefixes, attribute substrings)
ATTR_PREFIXES: Tuple[Tuple[str, Tuple[str, ...], Tuple[str, ...]], ...] = (
    ("en", ("en",), ()),
    ("hi", ("hi",), ()),
    ("ta", ("ta",), ()),
    ("te", ("te",), ()),
    ("ml", ("ml",), ()),
    ("kn", ("kn",), ()),
    ("ko", ("ko",), ()),
    ("ja", ("ja", "jp"), ()),
    ("zh", ("zh",), ("mandarin", "cantonese")),
    ("fr", ("fr",), ()),
    ("de", ("de",), ()),
    ("es", ("es",), ("latino",)),
    ("pt", ("pt",), ("brazil",)),
    ("ru", ("ru",), ()),
    ("it", ("it",), ()),
    ("tr", ("tr",), ()),
    ("ar", ("ar",), ()),
    ("pl", ("pl",), ()),
    ("th", ("th",), ()),
    ("id", ("id",), ()),
    ("vi", ("vi",), ()),
    ("uk", ("uk",), ()),
    ("fa", ("fa",), ("farsi",)),
)

SUBS_ONLY_RX = re.compile(r"\b(?:e-?subs?|eng(?:lish)?[\s._-]*subs?|subbed)\b", re.IGNORECASE)
MULTI_OR_DUAL_RX = re.compile(r"\b(?:multi|dual(?:[\s._-]*audio)?)\b", re.IGNORECASE)
DUB_RX = re.compile(r"\b(?:dub|dubbed)\b", re.IGNORECASE)
ENGLISH_AUDIO_RX = re.compile(r"english|eng(?!\w)", re.IGNORECASE)


@dataclass(frozen=True)
class LanguageDetection:
    languages: FrozenSet[str]
    any_explicit: bool
    multi_or_dual: bool
    subs_only: bool


class LanguageClassifier:
    """Allow-list check over a release's audio languages"""

    def __init__(
        self,
        patterns: Sequence[Tuple[str, Pattern]] = LANG_PATTERNS,
        attr_prefixes: Sequence[Tuple[str, Tuple[str, ...], Tuple[str, ...]]] = ATTR_PREFIXES,
    ):
        self._patterns = tuple(patterns)
        self._attr_prefixes = tuple(attr_prefixes)

    def normalize_attr(self, value: Optional[str]) -> Optional[str]:
        """Map an indexer language attribute ("English", "ja-JP", "Latino") to a code."""
        text = str(value or "").strip().lower()
        if not text:
            return None
        for code, prefixes, contains in self._attr_prefixes:
            if text.startswith(prefixes) or any(part in text for part in contains):
                return code
        # Full language names that do not share the ISO prefix ("German", "Spanish").
        for code, rx in self._patterns:
            if rx.search(text):
                return code
        return None

    def detect(self, title: str) -> LanguageDetection:
        text = title or ""
        subs_only = bool(SUBS_ONLY_RX.search(text))
        # Subtitle markers say nothing about the audio track.
        audio_text = SUBS_ONLY_RX.sub(" ", text) if subs_only else text

        languages: Set[str] = set()
        for code, rx in self._patterns:
            if rx.search(audio_text):
                languages.add(code)

        multi_or_dual = bool(MULTI_OR_DUAL_RX.search(audio_text))
        any_explicit = bool(languages) or multi_or_dual or bool(DUB_RX.search(audio_text))
        return LanguageDetection(
            languages=frozenset(languages),
            any_explicit=any_explicit,
            multi_or_dual=multi_or_dual,
            subs_only=subs_only,
        )

    def is_allowed(self, title: str, language_attr: Optional[str], allowed: Iterable[str]) -> bool:
        allowed_set = frozenset(code.lower() for code in allowed)

        attr = self.normalize_attr(language_attr)
        if attr:
            return attr in allowed_set

        detection = self.detect(title)
        audio_text = SUBS_ONLY_RX.sub(" ", title or "")
        if detection.multi_or_dual and not ENGLISH_AUDIO_RX.search(audio_text):
            # Dual tracks without an English marker: only a named allowed track counts.
            return bool(detection.languages & allowed_set)
        if detection.languages:
            return bool(detection.languages & allowed_set)
        return True


def allowed_languages_for(kind: str, original_language: Optional[str]) -> Optional[FrozenSet[str]]:
    """
    Allow-list per search kind. Movies accept English plus the original
    language, anime only the original language (Japanese by default), TV
    results are not language-filtered.
    """
    orig = (original_language or "").strip().lower() or None
    if kind == "movie":
        return frozenset({"en", orig} if orig else {"en"})
    if kind == "anime":
        return frozenset({orig or "ja"})
    return None
