"""Task-type-specific cleaning transforms.

Each transform maps a task's ``input_content`` to its ``output_content``.
The deterministic ones are plain functions of the text; the model-assisted
ones call the text-generation collaborator.  :class:`CleaningTransforms`
bundles them behind one ``async run(task_type, text)`` entry point used by
the processor.

| task type               | kind           | output                          |
|-------------------------|----------------|---------------------------------|
| text_cleanup            | deterministic  | cleaned text                    |
| metadata_extraction     | deterministic  | ContentAnalysis JSON            |
| format_conversion       | deterministic  | FormatConversionReport JSON     |
| duplicate_removal       | deterministic  | text without repeated paragraphs|
| structure_repair        | model-assisted | rewritten text                  |
| content_normalization   | model-assisted | rewritten text                  |
"""

from __future__ import annotations

import math
import re

import structlog

from docvault.interfaces.content_classifier import IContentClassifier
from docvault.interfaces.llm_provider import ILLMProvider
from docvault.models.cleaning import (
    ContentAnalysis,
    ContentStatistics,
    FormatConversionReport,
    TaskType,
)
from docvault.providers.classifier.keyword_classifier import (
    KeywordContentTypeClassifier,
    StopwordLanguageClassifier,
)
from docvault.utils.errors import TransformError
from docvault.utils.text_normalizer import (
    collapse_blank_lines,
    normalize_line_endings,
    strip_trailing_whitespace,
)

logger = structlog.get_logger(logger_name=__name__)

WORDS_PER_MINUTE = 200

_SENTENCE_SPLIT_RE = re.compile(r"[.!?]")
_PARAGRAPH_SPLIT_RE = re.compile(r"\n\s*\n")

_STRUCTURE_REPAIR_PROMPT = """\
Repair the structure of the following text. Fix broken line wraps, restore
paragraph breaks and list formatting, and keep the wording unchanged.
Return only the repaired text.

Text:
{content}"""

_NORMALIZATION_PROMPT = """\
Normalize the following text: consistent capitalization, punctuation and
spacing, expanded obvious abbreviations, and no change in meaning.
Return only the normalized text.

Text:
{content}"""


# ---------------------------------------------------------------------------
# Deterministic transforms
# ---------------------------------------------------------------------------


def clean_text(text: str) -> str:
    """Drop blank lines and trailing whitespace on every line."""
    lines = normalize_line_endings(text).split("\n")
    return "\n".join(line.rstrip() for line in lines if line.strip())


def complexity_score(text: str) -> float:
    """Heuristic 0-1 reading complexity.

    Four capped contributions are summed and clamped to 1.0:

    * average word length / 10, at most 0.3
    * average sentence length (words) / 20, at most 0.3
    * special characters per word, at most 0.2
    * share of capitalized words, at most 0.2
    """
    words = text.split()
    if not words:
        return 0.0

    n_words = len(words)
    score = 0.0

    avg_word_length = sum(len(w) for w in words) / n_words
    score += min(avg_word_length / 10.0, 0.3)

    sentences = max(1, len(_SENTENCE_SPLIT_RE.split(text)))
    score += min((n_words / sentences) / 20.0, 0.3)

    special = sum(1 for c in text if not c.isalnum() and not c.isspace())
    score += min(special / n_words, 0.2)

    capitalized = sum(1 for w in words if w[0].isupper())
    score += min(capitalized / n_words, 0.2)

    return min(score, 1.0)


def analyze_content(
    text: str,
    content_type_classifier: IContentClassifier,
    language_classifier: IContentClassifier,
) -> ContentAnalysis:
    """Compute the ``metadata_extraction`` result for *text*.

    The empty string yields all-zero counts and a complexity of 0.0.
    """
    lines = text.splitlines()
    empty_lines = sum(1 for line in lines if not line.strip())
    non_empty_lines = len(lines) - empty_lines
    words = text.split()
    chars = len(text)

    statistics = ContentStatistics(
        total_lines=len(lines),
        non_empty_lines=non_empty_lines,
        empty_lines=empty_lines,
        total_words=len(words),
        unique_words=len({w.lower() for w in words}),
        total_characters=chars,
        characters_no_spaces=sum(1 for c in text if not c.isspace()),
        average_words_per_line=(len(words) / non_empty_lines) if non_empty_lines else 0.0,
        average_characters_per_line=(chars / non_empty_lines) if non_empty_lines else 0.0,
        reading_time_minutes=math.ceil(len(words) / WORDS_PER_MINUTE),
    )

    return ContentAnalysis(
        statistics=statistics,
        content_type=content_type_classifier.classify(text),
        language=language_classifier.classify(text),
        complexity_score=complexity_score(text),
        has_numbers=any(c.isdigit() for c in text),
        has_special_chars=any(not c.isalnum() and not c.isspace() for c in text),
        sentence_count=max(0, len(_SENTENCE_SPLIT_RE.split(text)) - 1),
    )


def convert_format(text: str, target_encoding: str = "utf-8") -> FormatConversionReport:
    """Normalize line endings and blank-line runs, then check the target encoding."""
    normalized = normalize_line_endings(text)
    normalized = strip_trailing_whitespace(normalized)
    normalized = collapse_blank_lines(normalized, max_blank=2)

    try:
        normalized.encode(target_encoding)
        encoding_valid = True
    except UnicodeEncodeError:
        encoding_valid = False
    except LookupError as exc:
        raise TransformError(message=f"Unknown target encoding {target_encoding!r}") from exc

    return FormatConversionReport(
        target_encoding=target_encoding,
        encoding_valid=encoding_valid,
        original_size=len(text.encode("utf-8", errors="replace")),
        converted_size=len(normalized.encode("utf-8", errors="replace")),
        non_ascii_chars=sum(1 for c in normalized if not c.isascii() and not c.isspace()),
        content=normalized,
    )


def remove_duplicate_paragraphs(text: str) -> str:
    """Keep the first occurrence of each paragraph, compared case- and space-insensitively."""
    seen: set[str] = set()
    kept: list[str] = []
    for paragraph in _PARAGRAPH_SPLIT_RE.split(normalize_line_endings(text)):
        key = " ".join(paragraph.split()).lower()
        if not key or key in seen:
            continue
        seen.add(key)
        kept.append(paragraph.strip("\n"))
    return "\n\n".join(kept)


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


class CleaningTransforms:
    """Runs the transform matching a task type.

    Parameters
    ----------
    llm_provider:
        Text-generation collaborator for the model-assisted types.  When
        ``None`` those types fail with :class:`TransformError`.
    content_type_classifier, language_classifier:
        Strategies used by ``metadata_extraction``; keyword heuristics by
        default.
    target_encoding:
        Encoding ``format_conversion`` validates against.
    generation_model:
        Model identifier passed to the text-generation collaborator.
    """

    def __init__(
        self,
        llm_provider: ILLMProvider | None = None,
        content_type_classifier: IContentClassifier | None = None,
        language_classifier: IContentClassifier | None = None,
        target_encoding: str = "utf-8",
        generation_model: str | None = None,
    ) -> None:
        self._llm = llm_provider
        self._content_type_classifier = content_type_classifier or KeywordContentTypeClassifier()
        self._language_classifier = language_classifier or StopwordLanguageClassifier()
        self._target_encoding = target_encoding
        self._generation_model = generation_model

    async def run(self, task_type: TaskType | str, text: str | None) -> str:
        """Apply the transform for *task_type* to *text* and return the output.

        Raises
        ------
        TransformError
            For model-assisted types without a provider, or an unknown type.
        LLMError
            When the text-generation collaborator fails or times out.
        """
        text = text or ""
        task_type = TaskType(task_type)

        if task_type is TaskType.TEXT_CLEANUP:
            return clean_text(text)
        if task_type is TaskType.METADATA_EXTRACTION:
            analysis = analyze_content(text, self._content_type_classifier, self._language_classifier)
            return analysis.model_dump_json(indent=2)
        if task_type is TaskType.FORMAT_CONVERSION:
            return convert_format(text, self._target_encoding).model_dump_json(indent=2)
        if task_type is TaskType.DUPLICATE_REMOVAL:
            return remove_duplicate_paragraphs(text)
        if task_type is TaskType.STRUCTURE_REPAIR:
            return await self._generate(_STRUCTURE_REPAIR_PROMPT, text, task_type)
        if task_type is TaskType.CONTENT_NORMALIZATION:
            return await self._generate(_NORMALIZATION_PROMPT, text, task_type)

        raise TransformError(message=f"No transform registered for {task_type.value}")

    async def _generate(self, template: str, text: str, task_type: TaskType) -> str:
        if self._llm is None:
            raise TransformError(
                message=f"{task_type.value} requires a text-generation provider, none configured",
            )
        if not text.strip():
            return ""
        output = await self._llm.generate(template.format(content=text), model=self._generation_model)
        logger.debug("model_assisted_transform", task_type=task_type.value, output_chars=len(output))
        return output.strip()
