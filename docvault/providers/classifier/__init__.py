"""Heuristic classifier implementations."""

from docvault.providers.classifier.keyword_classifier import (
    KeywordContentTypeClassifier,
    StopwordLanguageClassifier,
)

__all__ = ["KeywordContentTypeClassifier", "StopwordLanguageClassifier"]
