"""Text cleaning, tokenization, and keyword helpers shared by extraction and search."""

from __future__ import annotations

from collections import Counter
from functools import lru_cache
import re
from typing import Iterable

from nltk.stem import PorterStemmer

from .types import Keyword


STOP_WORDS = frozenset(
    {
        "a", "an", "and", "are", "as", "at", "be", "by", "for", "from", "has", "he",
        "in", "is", "it", "its", "of", "on", "that", "the", "to", "was", "were",
        "will", "with", "would", "could", "should", "this", "these", "they", "them",
        "their", "there", "where", "when", "what", "who", "why", "how", "can", "do",
        "have", "had", "been", "being", "but", "not", "or", "so", "if", "no", "yes",
    }
)

WHITESPACE_RE = re.compile(r"\s+")
DISALLOWED_CHARS_RE = re.compile(r"[^\w\s.,!?;:-]")
NON_WORD_RE = re.compile(r"[^\w\s]")

_STEMMER = PorterStemmer()


def clean_text(text: str | None) -> str:
    """Collapse whitespace and drop characters outside word/basic punctuation."""

    if not text:
        return ""
    value = WHITESPACE_RE.sub(" ", str(text))
    value = DISALLOWED_CHARS_RE.sub("", value)
    return value.strip()


@lru_cache(maxsize=65536)
def stem(token: str) -> str:
    return _STEMMER.stem(token)


def tokenize(
    text: str | None,
    *,
    min_length: int = 1,
    max_length: int = 50,
    remove_stopwords: bool = False,
    stem_tokens: bool = True,
) -> list[str]:
    """Lowercase, strip punctuation, filter by length/stop words, optionally stem.

    Length bounds apply to the surface token before stemming.
    """

    if not text:
        return []

    value = NON_WORD_RE.sub(" ", str(text).lower())
    tokens = [
        token
        for token in value.split()
        if min_length <= len(token) <= max_length
    ]

    if remove_stopwords:
        tokens = [token for token in tokens if token not in STOP_WORDS]

    if stem_tokens:
        tokens = [stem(token) for token in tokens]

    return tokens


def extract_keywords(
    text: str | None,
    *,
    max_keywords: int = 20,
    min_length: int = 3,
    exclude_stopwords: bool = True,
    stem_tokens: bool = False,
) -> list[Keyword]:
    """Return the most frequent terms of `text`, ties kept in first-seen order."""

    words = tokenize(
        text,
        min_length=min_length,
        remove_stopwords=exclude_stopwords,
        stem_tokens=stem_tokens,
    )
    counts = Counter(words)
    return [
        Keyword(word=word, frequency=frequency)
        for word, frequency in counts.most_common(max_keywords)
    ]


def word_count(text: str | None) -> int:
    if not text:
        return 0
    return len(text.split())


def is_stop_word(word: str) -> bool:
    return word.lower() in STOP_WORDS


def jaccard_similarity(text_a: str, text_b: str) -> float:
    """Jaccard overlap of the stop-word-free token sets of two texts."""

    tokens_a = set(tokenize(text_a, remove_stopwords=True))
    tokens_b = set(tokenize(text_b, remove_stopwords=True))
    union = tokens_a | tokens_b
    if not union:
        return 0.0
    return len(tokens_a & tokens_b) / len(union)


def join_nonempty(parts: Iterable[str | None], separator: str = " ") -> str:
    return separator.join(part for part in parts if part)


__all__ = [
    "STOP_WORDS",
    "clean_text",
    "extract_keywords",
    "is_stop_word",
    "jaccard_similarity",
    "join_nonempty",
    "stem",
    "tokenize",
    "word_count",
]
