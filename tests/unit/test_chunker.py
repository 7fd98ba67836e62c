"""Unit tests for TextChunker: character and word modes."""

from __future__ import annotations

import pytest

from docvault.services.indexing.chunker import TextChunker

_PARAGRAPH = (
    "The archive holds scanned letters, meeting notes and drafts of annual reports. "
    "Each document was transcribed by volunteers and reviewed twice before publication. "
)


class TestCharacterMode:
    def test_empty_and_blank_text_give_no_chunks(self) -> None:
        chunker = TextChunker(chunk_size=50)
        assert chunker.chunk("") == []
        assert chunker.chunk("   \n\t ") == []

    def test_short_text_is_single_unchanged_chunk(self) -> None:
        chunks = TextChunker(chunk_size=100).chunk("hello world")
        assert len(chunks) == 1
        assert chunks[0].text == "hello world"
        assert chunks[0].chunk_index == 0

    def test_no_chunk_exceeds_size(self) -> None:
        chunker = TextChunker(chunk_size=40)
        chunks = chunker.chunk(_PARAGRAPH * 5)
        assert len(chunks) > 1
        assert all(len(c.text) <= 40 for c in chunks)

    def test_indices_are_sequential(self) -> None:
        chunks = TextChunker(chunk_size=30).chunk(_PARAGRAPH * 3)
        assert [c.chunk_index for c in chunks] == list(range(len(chunks)))

    def test_words_are_not_split(self) -> None:
        text = _PARAGRAPH * 4
        chunks = TextChunker(chunk_size=45).chunk(text)
        words = set(text.split())
        for chunk in chunks:
            for word in chunk.text.split():
                assert word in words

    def test_chunks_rejoin_to_original_words(self) -> None:
        text = _PARAGRAPH * 3
        chunks = TextChunker(chunk_size=37).chunk(text)
        rejoined = " ".join(c.text for c in chunks).split()
        assert rejoined == text.split()

    def test_long_word_is_hard_split(self) -> None:
        chunks = TextChunker(chunk_size=10).chunk("x" * 25)
        assert [len(c.text) for c in chunks] == [10, 10, 5]

    def test_deterministic(self) -> None:
        chunker = TextChunker(chunk_size=33)
        assert chunker.chunk(_PARAGRAPH * 2) == chunker.chunk(_PARAGRAPH * 2)


class TestWordMode:
    def test_overlap_between_consecutive_chunks(self) -> None:
        text = " ".join(f"w{i}" for i in range(20))
        chunks = TextChunker(chunk_size=8, overlap=3, unit="words").chunk(text)
        first, second = chunks[0].text.split(), chunks[1].text.split()
        assert len(first) == 8
        assert first[-3:] == second[:3]

    def test_last_chunk_reaches_end(self) -> None:
        text = " ".join(f"w{i}" for i in range(23))
        chunks = TextChunker(chunk_size=10, overlap=2, unit="words").chunk(text)
        assert chunks[-1].text.split()[-1] == "w22"
        assert all(len(c.text.split()) <= 10 for c in chunks)

    def test_overlap_not_smaller_than_size_still_advances(self) -> None:
        text = " ".join(f"w{i}" for i in range(6))
        chunks = TextChunker(chunk_size=3, overlap=5, unit="words").chunk(text)
        assert len(chunks) == 4
        assert chunks[-1].text == "w3 w4 w5"


class TestValidation:
    @pytest.mark.parametrize(
        "kwargs",
        [{"chunk_size": 0}, {"overlap": -1}, {"unit": "tokens"}],
    )
    def test_bad_arguments_raise(self, kwargs) -> None:
        with pytest.raises(ValueError):
            TextChunker(**kwargs)
