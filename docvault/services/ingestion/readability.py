"""Readability check and ingestion-time metadata scraping."""

from __future__ import annotations

import re
from pathlib import Path

from docvault.models.files import FileMetadata
from docvault.services.extraction import media_types

_AUTHOR_RE = re.compile(r"^\s*(?:author\s*:|@author\b)\s*(.+)$", re.IGNORECASE)

# Printable ASCII plus tab, LF, CR.
_PRINTABLE = frozenset(range(0x20, 0x7F)) | {0x09, 0x0A, 0x0D}


def is_printable_sample(sample: bytes, printable_ratio: float = 0.8) -> bool:
    """True when more than *printable_ratio* of *sample* is printable ASCII."""
    if not sample:
        return False
    printable = sum(1 for byte in sample if byte in _PRINTABLE)
    return printable / len(sample) > printable_ratio


def is_readable(
    path: str | Path,
    mime_type: str,
    sniff_bytes: int = 1024,
    printable_ratio: float = 0.8,
) -> bool:
    """Whether the extractor can be expected to produce text for *path*.

    Known text and document types are readable without looking at the
    bytes; anything else is sniffed.

    Raises
    ------
    OSError
        If an unknown-type file cannot be read.
    """
    if media_types.is_text_mime(mime_type) or media_types.is_document_mime(mime_type):
        return True
    with open(path, "rb") as fh:
        sample = fh.read(sniff_bytes)
    return is_printable_sample(sample, printable_ratio)


def extract_file_metadata(file_id: int, text: str) -> FileMetadata:
    """Scrape author, topic and tags from extracted text.

    * author: first ``Author:`` / ``@author`` line within the first 20 lines
    * topic: first non-empty line, cut to 100 characters
    * tags: every line starting with ``#``, marker stripped
    """
    lines = text.splitlines()

    author = None
    for line in lines[:20]:
        match = _AUTHOR_RE.match(line)
        if match:
            author = match.group(1).strip() or None
            break

    topic = next((line.strip()[:100] for line in lines if line.strip()), None)

    tags: list[str] = []
    for line in lines:
        stripped = line.strip()
        if stripped.startswith("#"):
            tag = stripped.lstrip("#").strip()
            if tag and tag not in tags:
                tags.append(tag)

    return FileMetadata(file_id=file_id, author=author, topic=topic, tags=tags)
