"""Media-type detection by file name, with a small override table.

``mimetypes`` knows most types, but its table depends on the host
(``/etc/mime.types``), so the Office formats and a few text formats are
pinned here to give the same answer everywhere.
"""

from __future__ import annotations

import mimetypes
from pathlib import PurePath

OCTET_STREAM = "application/octet-stream"

PDF = "application/pdf"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
PPTX = "application/vnd.openxmlformats-officedocument.presentationml.presentation"
XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
JSON = "application/json"
HTML = "text/html"

SPREADSHEET_TYPES = frozenset(
    {
        XLSX,
        "application/vnd.ms-excel",
        "application/vnd.oasis.opendocument.spreadsheet",
    }
)

ARCHIVE_TYPES = frozenset(
    {
        "application/zip",
        "application/x-zip-compressed",
        "application/x-tar",
        "application/gzip",
        "application/x-gzip",
        "application/x-bzip2",
        "application/x-xz",
        "application/x-compressed-tar",
    }
)

# Structured documents whose text the extractor can pull out.
DOCUMENT_TYPES = frozenset({PDF, DOCX, PPTX, JSON, HTML, "application/xhtml+xml", "application/xml"})

_OVERRIDES: dict[str, str] = {
    ".md": "text/markdown",
    ".markdown": "text/markdown",
    ".rst": "text/x-rst",
    ".log": "text/plain",
    ".toml": "text/plain",
    ".yaml": "text/yaml",
    ".yml": "text/yaml",
    ".json": JSON,
    ".htm": HTML,
    ".html": HTML,
    ".pdf": PDF,
    ".docx": DOCX,
    ".pptx": PPTX,
    ".xlsx": XLSX,
    ".xls": "application/vnd.ms-excel",
    ".ods": "application/vnd.oasis.opendocument.spreadsheet",
    ".zip": "application/zip",
    ".tar": "application/x-tar",
    ".tgz": "application/x-compressed-tar",
    ".gz": "application/gzip",
    ".bz2": "application/x-bzip2",
    ".xz": "application/x-xz",
}


def guess_mime_type(path: str | PurePath) -> str:
    """Return the media type implied by *path*'s extension, or octet-stream."""
    suffix = PurePath(path).suffix.lower()
    if suffix in _OVERRIDES:
        return _OVERRIDES[suffix]
    guessed, _ = mimetypes.guess_type(str(path), strict=False)
    return guessed or OCTET_STREAM


def is_text_mime(mime_type: str) -> bool:
    return mime_type.startswith("text/") or mime_type in ("application/xml", "application/x-sh")


def is_document_mime(mime_type: str) -> bool:
    return mime_type in DOCUMENT_TYPES


def is_archive_mime(mime_type: str) -> bool:
    return mime_type in ARCHIVE_TYPES
