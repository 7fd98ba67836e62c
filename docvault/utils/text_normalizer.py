"""Whitespace and line-ending normalization shared by extraction and cleaning.

Three concerns, each a small pure function:

1. **Line endings** -- ``\\r\\n`` and bare ``\\r`` become ``\\n``.
2. **Trailing whitespace** -- stripped from every line.
3. **Blank-line runs** -- more than ``max_blank`` consecutive blank lines
   collapse to ``max_blank``.
"""

import re

_TRAILING_WS = re.compile(r"[ \t\f\v]+$", re.MULTILINE)


def normalize_line_endings(text: str) -> str:
    """Convert Windows (CRLF) and classic Mac (CR) endings to LF."""
    return text.replace("\r\n", "\n").replace("\r", "\n")


def strip_trailing_whitespace(text: str) -> str:
    """Remove trailing spaces and tabs from every line."""
    return _TRAILING_WS.sub("", text)


def collapse_blank_lines(text: str, max_blank: int = 2) -> str:
    """Keep at most *max_blank* consecutive blank lines."""
    result: list[str] = []
    blank_run = 0
    for line in text.split("\n"):
        if line.strip():
            blank_run = 0
            result.append(line)
            continue
        blank_run += 1
        if blank_run <= max_blank:
            result.append(line)
    return "\n".join(result)


def normalize_text(text: str, max_blank: int = 2) -> str:
    """Apply all three normalizations and strip surrounding whitespace.

    Args:
        text: Raw extracted text.
        max_blank: Longest run of blank lines to keep.

    Returns:
        Normalized text.
    """
    text = normalize_line_endings(text)
    text = strip_trailing_whitespace(text)
    text = collapse_blank_lines(text, max_blank=max_blank)
    return text.strip()


def word_count(text: str) -> int:
    return len(text.split())
