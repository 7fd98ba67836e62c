"""Keyword-list classifiers for content type and language.

Both are cheap heuristics with no model behind them.  They sit behind
:class:`IContentClassifier` so a real classifier can replace either one
without touching the ``metadata_extraction`` transform.
"""

from __future__ import annotations

import re
from collections import Counter

from docvault.interfaces.content_classifier import IContentClassifier

# Checked in order; the first label with any matching pattern wins.
_CONTENT_TYPE_PATTERNS: list[tuple[str, list[str]]] = [
    ("technical_documentation", [r"\bapi\b", r"\bendpoints?\b", r"\bfunction\b"]),
    ("code", [r"\bdef\s", r"\bclass\s", r"\bimport\s", r"\bconst\s", r"\bvar\s"]),
    ("email", [r"\bdear\s", r"\bsincerely\b", r"\bregards\b"]),
    ("meeting_notes", [r"\bmeeting\b", r"\bagenda\b", r"\bminutes\b"]),
    ("research", [r"\bresearch\b", r"\bstudy\b", r"\banalysis\b"]),
    ("article", [r"\bintroduction\b", r"\bconclusion\b", r"\barticle\b"]),
]

DEFAULT_CONTENT_TYPE = "general_text"

_STOPWORDS: dict[str, frozenset[str]] = {
    "english": frozenset({"the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by"}),
    "spanish": frozenset({"el", "la", "de", "que", "y", "a", "en", "un", "es", "se", "no", "te"}),
    "french": frozenset({"le", "de", "et", "à", "un", "il", "être", "en", "avoir", "que", "pour"}),
}

UNKNOWN_LANGUAGE = "unknown"

_WORD_RE = re.compile(r"\w+", re.UNICODE)


class KeywordContentTypeClassifier(IContentClassifier):
    """Label text by the first matching keyword group."""

    def __init__(self, patterns: list[tuple[str, list[str]]] | None = None) -> None:
        source = patterns if patterns is not None else _CONTENT_TYPE_PATTERNS
        self._compiled = [
            (label, [re.compile(p, re.IGNORECASE) for p in group]) for label, group in source
        ]

    def classify(self, text: str) -> str:
        for label, regexes in self._compiled:
            if any(rx.search(text) for rx in regexes):
                return label
        return DEFAULT_CONTENT_TYPE

    def labels(self) -> list[str]:
        return [label for label, _ in self._compiled] + [DEFAULT_CONTENT_TYPE]


class StopwordLanguageClassifier(IContentClassifier):
    """Guess the language with the highest whole-word stop-word count.

    English wins only with a strict majority over both others; Spanish
    must beat French; French needs at least one hit.  Anything else is
    ``unknown``.
    """

    def classify(self, text: str) -> str:
        words = Counter(_WORD_RE.findall(text.lower()))
        if not words:
            return UNKNOWN_LANGUAGE

        counts = {
            language: sum(words[w] for w in stopwords)
            for language, stopwords in _STOPWORDS.items()
        }
        english, spanish, french = counts["english"], counts["spanish"], counts["french"]

        if english > spanish and english > french:
            return "english"
        if spanish > french:
            return "spanish"
        if french > 0:
            return "french"
        return UNKNOWN_LANGUAGE

    def labels(self) -> list[str]:
        return [*_STOPWORDS, UNKNOWN_LANGUAGE]
