"""File-to-text extraction."""

from docvault.services.extraction.content_extractor import PLACEHOLDER_PREFIX, ContentExtractor

__all__ = ["PLACEHOLDER_PREFIX", "ContentExtractor"]
