"""Abstract base class for heuristic text classifiers.

The ``metadata_extraction`` transform labels text with a content type
(code, email, meeting notes...) and a language.  Both are produced through
this interface so the keyword heuristics can be swapped for a trained
model, or for a fixed-label fake in tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations: KeywordContentTypeClassifier, StopwordLanguageClassifier
# Located in: docvault/providers/classifier/
class IContentClassifier(ABC):
    """Map a text to a single string label."""

    @abstractmethod
    def classify(self, text: str) -> str:
        """Return the label for *text*.  Must not raise on empty input."""

    @abstractmethod
    def labels(self) -> list[str]:
        """Return every label this classifier can emit, default label last."""
