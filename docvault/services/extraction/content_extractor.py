"""Content extractor: file path in, normalized text plus metadata out.

Dispatches on the detected media type:

* **plain text** (txt, md, csv, source code...) -- decoded as UTF-8 with
  replacement characters; title, author and keywords scraped from the text.
* **PDF** -- PyMuPDF (``fitz``), page by page, in a worker thread bounded
  by ``pdf_timeout_seconds``; title/author from the document metadata.
* **DOCX** -- ``python-docx`` paragraphs and core properties.
* **PPTX** -- opened as the zip archive it is; text runs (``<a:t>``) from
  each ``ppt/slides/slideN.xml`` in slide order.
* **HTML** -- BeautifulSoup ``get_text`` with ``<title>`` and ``<meta>``.
* **JSON** -- flattened into ``key.path: value`` lines.
* **spreadsheets** -- not supported; placeholder.

A document that cannot be parsed never raises.  The result carries a
clearly labelled placeholder text and ``is_placeholder=True`` so later
stages still have something to work on.  Only a missing or unreadable
path raises :class:`ExtractionError`.
"""

from __future__ import annotations

import asyncio
import json
import re
import zipfile
from collections import Counter
from pathlib import Path
from typing import Any
from xml.etree import ElementTree

import docx
import fitz  # PyMuPDF
import structlog
from bs4 import BeautifulSoup

from docvault.models.content import ContentMetadata, ExtractedContent
from docvault.services.extraction import media_types
from docvault.utils.errors import ExtractionError
from docvault.utils.text_normalizer import normalize_text

logger = structlog.get_logger(logger_name=__name__)

PLACEHOLDER_PREFIX = "[docvault placeholder]"

_DRAWINGML_NS = "{http://schemas.openxmlformats.org/drawingml/2006/main}"
_SLIDE_RE = re.compile(r"^ppt/slides/slide(\d+)\.xml$")
_AUTHOR_LINE_RE = re.compile(r"^\s*(?:author|by)\s*:\s*(.+)$", re.IGNORECASE)
_KEYWORD_RE = re.compile(r"[^\W\d_]{4,}", re.UNICODE)


class ContentExtractor:
    """Turns a file into :class:`ExtractedContent`.

    Parameters
    ----------
    pdf_timeout_seconds:
        Upper bound for parsing one PDF.
    text_extensions:
        Extensions always read as plain text, whatever ``mimetypes`` says.
    """

    def __init__(
        self,
        pdf_timeout_seconds: float = 30.0,
        text_extensions: list[str] | None = None,
    ) -> None:
        self._pdf_timeout = pdf_timeout_seconds
        self._text_extensions = {ext.lower() for ext in (text_extensions or [])}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def detect_mime_type(self, path: str | Path) -> str:
        path = Path(path)
        if path.suffix.lower() in self._text_extensions:
            guessed = media_types.guess_mime_type(path)
            return guessed if media_types.is_text_mime(guessed) else "text/plain"
        return media_types.guess_mime_type(path)

    async def extract(self, path: str | Path, mime_type: str | None = None) -> ExtractedContent:
        """Extract normalized text and metadata from *path*.

        Parameters
        ----------
        path:
            File to read.
        mime_type:
            Already-detected media type; detected from the name when omitted.

        Raises
        ------
        ExtractionError
            If the path does not exist or cannot be read.
        """
        path = Path(path)
        if not path.is_file():
            raise ExtractionError(message=f"File not found: {path}")
        try:
            file_size = path.stat().st_size
        except OSError as exc:
            raise ExtractionError(message=f"Cannot stat {path}: {exc}") from exc

        mime_type = mime_type or self.detect_mime_type(path)

        if mime_type == media_types.PDF:
            content = await self._extract_pdf(path)
        elif mime_type == media_types.DOCX:
            content = await self._guarded(path, mime_type, self._read_docx)
        elif mime_type == media_types.PPTX:
            content = await self._guarded(path, mime_type, self._read_pptx)
        elif mime_type in media_types.SPREADSHEET_TYPES:
            content = self._placeholder(path, "spreadsheet extraction is not supported")
        elif mime_type in (media_types.HTML, "application/xhtml+xml"):
            content = await self._guarded(path, mime_type, self._read_html)
        elif mime_type == media_types.JSON:
            content = await self._guarded(path, mime_type, self._read_json)
        else:
            content = await self._read_text(path)

        metadata = content.metadata.model_copy(
            update={
                "word_count": len(content.text.split()),
                "char_count": len(content.text),
                "file_size": file_size,
                "mime_type": mime_type,
            }
        )
        result = content.model_copy(update={"metadata": metadata})
        logger.debug(
            "content_extracted",
            path=str(path),
            mime_type=mime_type,
            words=metadata.word_count,
            placeholder=result.is_placeholder,
        )
        return result

    # ------------------------------------------------------------------
    # Plain text
    # ------------------------------------------------------------------

    async def _read_text(self, path: Path) -> ExtractedContent:
        try:
            raw = await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            raise ExtractionError(message=f"Cannot read {path}: {exc}") from exc

        text = normalize_text(raw.decode("utf-8", errors="replace"))
        return ExtractedContent(text=text, metadata=self._text_metadata(text))

    @staticmethod
    def _text_metadata(text: str) -> ContentMetadata:
        lines = text.split("\n")

        title = None
        first = lines[0].strip() if lines else ""
        if 10 < len(first) < 100:
            title = first

        author = None
        for line in lines[:10]:
            match = _AUTHOR_LINE_RE.match(line)
            if match:
                author = match.group(1).strip()
                break

        counts = Counter(word.lower() for word in _KEYWORD_RE.findall(text))
        frequent = [(word, n) for word, n in counts.items() if n > 2]
        frequent.sort(key=lambda item: (-item[1], item[0]))
        keywords = [word for word, _ in frequent[:10]]

        return ContentMetadata(title=title, author=author, keywords=keywords)

    # ------------------------------------------------------------------
    # PDF
    # ------------------------------------------------------------------

    async def _extract_pdf(self, path: Path) -> ExtractedContent:
        try:
            return await asyncio.wait_for(asyncio.to_thread(self._read_pdf, path), timeout=self._pdf_timeout)
        except asyncio.TimeoutError:
            logger.warning("pdf_extraction_timeout", path=str(path), timeout=self._pdf_timeout)
            return self._placeholder(path, f"PDF extraction timed out after {self._pdf_timeout}s")
        except Exception as exc:
            logger.warning("pdf_extraction_failed", path=str(path), error=str(exc))
            return self._placeholder(path, f"PDF could not be parsed ({exc.__class__.__name__})")

    @staticmethod
    def _read_pdf(path: Path) -> ExtractedContent:
        doc = fitz.open(str(path))
        try:
            pages = [doc[i].get_text("text") for i in range(doc.page_count)]
            meta = doc.metadata or {}
            page_count = doc.page_count
        finally:
            doc.close()

        text = normalize_text("\n\n".join(page.strip() for page in pages if page.strip()))
        if not text:
            text = f"{PLACEHOLDER_PREFIX} PDF {path.name} has no extractable text layer ({page_count} pages)"
        return ExtractedContent(
            text=text,
            metadata=ContentMetadata(
                title=meta.get("title") or None,
                author=meta.get("author") or None,
                subject=meta.get("subject") or None,
                keywords=[k.strip() for k in (meta.get("keywords") or "").split(",") if k.strip()],
                page_count=page_count,
            ),
            is_placeholder=text.startswith(PLACEHOLDER_PREFIX),
        )

    # ------------------------------------------------------------------
    # Office formats
    # ------------------------------------------------------------------

    @staticmethod
    def _read_docx(path: Path) -> ExtractedContent:
        document = docx.Document(str(path))
        paragraphs = [p.text for p in document.paragraphs]
        props = document.core_properties
        return ExtractedContent(
            text=normalize_text("\n".join(paragraphs)),
            metadata=ContentMetadata(
                title=props.title or None,
                author=props.author or None,
                subject=props.subject or None,
                keywords=[k.strip() for k in (props.keywords or "").split(",") if k.strip()],
            ),
        )

    @staticmethod
    def _read_pptx(path: Path) -> ExtractedContent:
        slides: list[tuple[int, str]] = []
        with zipfile.ZipFile(path) as archive:
            for name in archive.namelist():
                match = _SLIDE_RE.match(name)
                if not match:
                    continue
                root = ElementTree.fromstring(archive.read(name))
                runs = [node.text for node in root.iter(f"{_DRAWINGML_NS}t") if node.text]
                slides.append((int(match.group(1)), " ".join(runs)))

        slides.sort()
        text = normalize_text("\n\n".join(body for _, body in slides if body.strip()))
        return ExtractedContent(text=text, metadata=ContentMetadata(page_count=len(slides)))

    # ------------------------------------------------------------------
    # Markup / structured
    # ------------------------------------------------------------------

    @staticmethod
    def _read_html(path: Path) -> ExtractedContent:
        soup = BeautifulSoup(path.read_bytes(), "html.parser")
        for tag in soup(["script", "style", "noscript"]):
            tag.decompose()

        def _meta(name: str) -> str | None:
            tag = soup.find("meta", attrs={"name": name})
            content = tag.get("content") if tag else None
            return content.strip() if isinstance(content, str) and content.strip() else None

        title = soup.title.get_text(strip=True) if soup.title else None
        keywords = _meta("keywords")
        return ExtractedContent(
            text=normalize_text(soup.get_text("\n")),
            metadata=ContentMetadata(
                title=title or None,
                author=_meta("author"),
                subject=_meta("description"),
                keywords=[k.strip() for k in keywords.split(",") if k.strip()] if keywords else [],
            ),
        )

    @staticmethod
    def _read_json(path: Path) -> ExtractedContent:
        data = json.loads(path.read_text(encoding="utf-8", errors="replace"))
        lines: list[str] = []
        _flatten_json(data, "", lines)

        title = author = subject = None
        if isinstance(data, dict):
            title = _str_or_none(data.get("title") or data.get("name"))
            author = _str_or_none(data.get("author"))
            subject = _str_or_none(data.get("description"))
        return ExtractedContent(
            text=normalize_text("\n".join(lines)),
            metadata=ContentMetadata(title=title, author=author, subject=subject),
        )

    # ------------------------------------------------------------------
    # Failure handling
    # ------------------------------------------------------------------

    async def _guarded(self, path: Path, mime_type: str, reader) -> ExtractedContent:  # noqa: ANN001
        """Run a blocking *reader* in a thread; parse failures become placeholders."""
        try:
            return await asyncio.to_thread(reader, path)
        except OSError as exc:
            raise ExtractionError(message=f"Cannot read {path}: {exc}") from exc
        except Exception as exc:
            logger.warning("document_parse_failed", path=str(path), mime_type=mime_type, error=str(exc))
            return self._placeholder(path, f"{mime_type} document could not be parsed ({exc.__class__.__name__})")

    @staticmethod
    def _placeholder(path: Path, reason: str) -> ExtractedContent:
        return ExtractedContent(
            text=f"{PLACEHOLDER_PREFIX} {path.name}: {reason}",
            metadata=ContentMetadata(title=path.name),
            is_placeholder=True,
        )


def _flatten_json(value: Any, prefix: str, out: list[str]) -> None:
    if isinstance(value, dict):
        for key, child in value.items():
            _flatten_json(child, f"{prefix}.{key}" if prefix else str(key), out)
    elif isinstance(value, list):
        for index, child in enumerate(value):
            _flatten_json(child, f"{prefix}[{index}]", out)
    elif value is not None:
        out.append(f"{prefix}: {value}" if prefix else str(value))


def _str_or_none(value: Any) -> str | None:
    return value.strip() or None if isinstance(value, str) else None
