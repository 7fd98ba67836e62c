"""Text chunking with word-boundary backoff.

Splits text into :class:`~docvault.models.content.TextChunk` objects sized
for embedding models.  Two units are supported:

1. **characters** (default) -- slide a window of ``chunk_size`` characters.
   When the window's right edge lands inside a word, back off to the last
   whitespace in the window so no word is cut in half.  The next window
   starts at that boundary, skipping the whitespace itself, so the chunks
   tile the text without overlap.

2. **words** -- windows of ``chunk_size`` whitespace-separated words that
   advance by ``chunk_size - overlap`` words (at least one), so
   consecutive chunks share ``overlap`` words of context.

Output is deterministic: identical text and parameters always give the
same chunks with the same 0-based ``chunk_index`` values, and no chunk is
longer than ``chunk_size`` units.
"""

from __future__ import annotations

from typing import Literal

import structlog

from docvault.models.content import TextChunk

logger = structlog.get_logger(logger_name=__name__)

ChunkUnit = Literal["characters", "words"]


class TextChunker:
    """Splits text into bounded chunks preferring word boundaries.

    Parameters
    ----------
    chunk_size:
        Maximum chunk length, in ``unit`` (must be >= 1).
    overlap:
        Words shared between consecutive chunks in ``"words"`` mode.
        Character mode tiles without overlap.
    unit:
        ``"characters"`` or ``"words"``.
    """

    def __init__(self, chunk_size: int = 1000, overlap: int = 100, unit: ChunkUnit = "characters") -> None:
        if chunk_size < 1:
            msg = f"chunk_size must be >= 1, got {chunk_size}"
            raise ValueError(msg)
        if overlap < 0:
            msg = f"overlap must be >= 0, got {overlap}"
            raise ValueError(msg)
        if unit not in ("characters", "words"):
            msg = f"unit must be 'characters' or 'words', got {unit!r}"
            raise ValueError(msg)
        self._chunk_size = chunk_size
        self._overlap = overlap
        self._unit = unit

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def unit(self) -> ChunkUnit:
        return self._unit

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(self, text: str) -> list[TextChunk]:
        """Split *text* into ordered chunks.

        Whitespace-only input yields an empty list; text that already fits
        is returned unchanged as a single chunk.
        """
        if not text or not text.strip():
            return []

        if self._unit == "words":
            pieces = self._chunk_words(text)
        else:
            pieces = self._chunk_characters(text)

        chunks = [TextChunk(chunk_index=i, text=piece) for i, piece in enumerate(pieces)]
        logger.debug(
            "chunking_complete",
            unit=self._unit,
            chunk_size=self._chunk_size,
            num_chunks=len(chunks),
            input_chars=len(text),
        )
        return chunks

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def _chunk_characters(self, text: str) -> list[str]:
        size = self._chunk_size
        length = len(text)
        if length <= size:
            return [text]

        pieces: list[str] = []
        start = 0
        while start < length:
            end = min(start + size, length)
            if end < length and not text[end].isspace() and not text[end - 1].isspace():
                boundary = self._last_whitespace(text, start + 1, end)
                # A single word longer than the window is hard-split.
                if boundary != -1:
                    end = boundary

            piece = text[start:end]
            if piece.strip():
                pieces.append(piece)

            start = end
            while start < length and text[start].isspace():
                start += 1
        return pieces

    def _chunk_words(self, text: str) -> list[str]:
        words = text.split()
        size = self._chunk_size
        if len(words) <= size:
            return [text]

        step = max(1, size - self._overlap)
        pieces: list[str] = []
        start = 0
        while True:
            pieces.append(" ".join(words[start : start + size]))
            if start + size >= len(words):
                break
            start += step
        return pieces

    @staticmethod
    def _last_whitespace(text: str, lo: int, hi: int) -> int:
        """Index of the last whitespace character in ``text[lo:hi]``, or -1."""
        for i in range(hi - 1, lo - 1, -1):
            if text[i].isspace():
                return i
        return -1
