"""Tests for crawler.text."""

from __future__ import annotations

from crawler.text import (
    clean_text,
    extract_keywords,
    is_stop_word,
    jaccard_similarity,
    tokenize,
    word_count,
)


class TestTokenize:
    def test_lowercases_and_strips_punctuation(self):
        assert tokenize("Hello, World!", stem_tokens=False) == ["hello", "world"]

    def test_stop_words_and_length_bounds(self):
        tokens = tokenize(
            "The cat is on a mat",
            min_length=2,
            remove_stopwords=True,
            stem_tokens=False,
        )
        assert tokens == ["cat", "mat"]

    def test_stemming(self):
        assert tokenize("running cats", stem_tokens=True) == ["run", "cat"]

    def test_empty(self):
        assert tokenize(None) == []
        assert tokenize("") == []


class TestKeywords:
    def test_most_frequent_first(self):
        keywords = extract_keywords("python python python code code snake", max_keywords=2)
        assert [(k.word, k.frequency) for k in keywords] == [("python", 3), ("code", 2)]

    def test_short_and_stop_words_excluded(self):
        keywords = extract_keywords("the an of it go python")
        assert [k.word for k in keywords] == ["python"]


class TestHelpers:
    def test_clean_text(self):
        assert clean_text("  Hello\n\n  world <3 © ") == "Hello world 3"
        assert clean_text(None) == ""

    def test_word_count(self):
        assert word_count("one two  three") == 3
        assert word_count("") == 0

    def test_is_stop_word(self):
        assert is_stop_word("The")
        assert not is_stop_word("python")

    def test_jaccard(self):
        assert jaccard_similarity("python code", "python code") == 1.0
        assert jaccard_similarity("python", "snake") == 0.0
        assert jaccard_similarity("", "") == 0.0
