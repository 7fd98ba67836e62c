"""Unit tests for cleaning transforms and the keyword classifiers."""

from __future__ import annotations

import json

import pytest

from docvault.models.cleaning import TaskType
from docvault.providers.classifier.keyword_classifier import (
    KeywordContentTypeClassifier,
    StopwordLanguageClassifier,
)
from docvault.services.cleaning.transforms import (
    CleaningTransforms,
    analyze_content,
    clean_text,
    complexity_score,
    convert_format,
    remove_duplicate_paragraphs,
)
from docvault.utils.errors import LLMError, TransformError


class TestCleanText:
    def test_drops_blank_lines_and_trailing_space(self) -> None:
        assert clean_text("a  \n\n   \nb\t\r\nc") == "a\nb\nc"

    def test_idempotent(self) -> None:
        once = clean_text("x \n\n y  \n")
        assert clean_text(once) == once


class TestAnalyzeContent:
    def test_empty_text_gives_zeros(self) -> None:
        analysis = analyze_content("", KeywordContentTypeClassifier(), StopwordLanguageClassifier())
        stats = analysis.statistics
        assert stats.total_lines == 0
        assert stats.total_words == 0
        assert stats.total_characters == 0
        assert stats.average_words_per_line == 0.0
        assert stats.reading_time_minutes == 0
        assert analysis.complexity_score == 0.0
        assert analysis.language == "unknown"
        assert analysis.content_type == "general_text"
        assert analysis.sentence_count == 0

    def test_counts(self) -> None:
        text = "The cat sat.\n\nThe dog ran 5 miles!"
        analysis = analyze_content(text, KeywordContentTypeClassifier(), StopwordLanguageClassifier())
        stats = analysis.statistics
        assert stats.total_lines == 3
        assert stats.non_empty_lines == 2
        assert stats.empty_lines == 1
        assert stats.total_words == 8
        assert stats.unique_words == 7
        assert stats.reading_time_minutes == 1
        assert analysis.has_numbers is True
        assert analysis.has_special_chars is True
        assert analysis.sentence_count == 2
        assert analysis.language == "english"

    def test_complexity_bounded(self) -> None:
        assert complexity_score("") == 0.0
        dense = "Extraordinarily!!! Complicated@@ Terminology### Everywhere$$$ " * 20
        assert 0.0 < complexity_score(dense) <= 1.0


class TestClassifiers:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("The API exposes three endpoints", "technical_documentation"),
            ("def main():\n    import os", "code"),
            ("Dear team, kind regards", "email"),
            ("Agenda for the weekly meeting", "meeting_notes"),
            ("Our study presents an analysis", "research"),
            ("In conclusion, the article argues", "article"),
            ("Shopping: milk, eggs", "general_text"),
        ],
    )
    def test_content_type(self, text: str, expected: str) -> None:
        assert KeywordContentTypeClassifier().classify(text) == expected

    def test_first_matching_group_wins(self) -> None:
        assert KeywordContentTypeClassifier().classify("meeting about the api") == "technical_documentation"

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("the cat and the dog went to the park", "english"),
            ("el perro y la casa es que no", "spanish"),
            ("le chat et il pour avoir", "french"),
            ("zzz qqq", "unknown"),
        ],
    )
    def test_language(self, text: str, expected: str) -> None:
        assert StopwordLanguageClassifier().classify(text) == expected

    def test_stopwords_match_whole_words_only(self) -> None:
        # "theory" and "android" contain "the"/"and" but are not stop-words.
        assert StopwordLanguageClassifier().classify("theory android") == "unknown"

    def test_english_needs_strict_majority(self) -> None:
        # One English, one Spanish, zero French stop-word: Spanish beats French.
        assert StopwordLanguageClassifier().classify("the el") == "spanish"


class TestFormatConversion:
    def test_normalizes_and_reports(self) -> None:
        report = convert_format("café\r\n\r\n\r\n\r\nend  ", "utf-8")
        assert report.content == "café\n\n\nend"
        assert report.encoding_valid is True
        assert report.non_ascii_chars == 1

    def test_invalid_for_ascii_target(self) -> None:
        assert convert_format("naïve", "ascii").encoding_valid is False

    def test_unknown_encoding_raises(self) -> None:
        with pytest.raises(TransformError):
            convert_format("x", "no-such-codec")


def test_duplicate_paragraphs_removed() -> None:
    text = "Alpha beta.\n\nGamma.\n\nalpha   BETA.\n\nDelta."
    assert remove_duplicate_paragraphs(text) == "Alpha beta.\n\nGamma.\n\nDelta."


class TestCleaningTransforms:
    @pytest.mark.asyncio
    async def test_metadata_output_is_json(self) -> None:
        output = await CleaningTransforms().run(TaskType.METADATA_EXTRACTION, "Hello world.")
        data = json.loads(output)
        assert data["statistics"]["total_words"] == 2
        assert "complexity_score" in data

    @pytest.mark.asyncio
    async def test_format_output_is_json(self) -> None:
        output = await CleaningTransforms(target_encoding="ascii").run("format_conversion", "plain")
        data = json.loads(output)
        assert data["target_encoding"] == "ascii"
        assert data["encoding_valid"] is True

    @pytest.mark.asyncio
    async def test_none_input_treated_as_empty(self) -> None:
        assert await CleaningTransforms().run(TaskType.TEXT_CLEANUP, None) == ""

    @pytest.mark.asyncio
    async def test_model_assisted_without_provider_raises(self) -> None:
        with pytest.raises(TransformError):
            await CleaningTransforms().run(TaskType.STRUCTURE_REPAIR, "text")

    @pytest.mark.asyncio
    async def test_model_assisted_uses_provider(self, fake_llm) -> None:
        fake_llm.response = "  repaired text  "
        transforms = CleaningTransforms(llm_provider=fake_llm, generation_model="tiny")
        output = await transforms.run(TaskType.CONTENT_NORMALIZATION, "raw text")
        assert output.strip() == "repaired text"
        assert "raw text" in fake_llm.prompts[0]

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self, fake_llm) -> None:
        fake_llm.fail = True
        with pytest.raises(LLMError):
            await CleaningTransforms(llm_provider=fake_llm).run(TaskType.STRUCTURE_REPAIR, "raw")
