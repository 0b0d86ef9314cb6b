"""In-memory TF-IDF search index over crawled documents."""

from __future__ import annotations

import argparse
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from hashlib import sha1
import json
import logging
import math
from pathlib import Path
import re
import threading
import time
from typing import Any, Mapping, Sequence

import numpy as np
from rapidfuzz import process
from rapidfuzz.distance import Levenshtein

from crawler.storage import read_snapshot
from crawler.text import tokenize
from crawler.types import CrawledDocument, parse_iso_utc, utc_now_iso

from retrieval.config import SearchConfig


LOGGER = logging.getLogger(__name__)
INDEX_FORMAT = "tfidf_index_v1"
PHRASE_NORMALIZE_RE = re.compile(r"[^\w\s]")
WHITESPACE_RE = re.compile(r"\s+")


def normalize_phrase(text: str | None) -> str:
    """Lowercase, map punctuation to spaces, and collapse whitespace."""

    if not text:
        return ""
    value = PHRASE_NORMALIZE_RE.sub(" ", str(text).lower())
    return WHITESPACE_RE.sub(" ", value).strip()


def document_id_for(url: str) -> str:
    """Stable document id for a normalized URL."""

    return sha1(url.encode("utf-8")).hexdigest()


@dataclass(frozen=True, slots=True)
class SearchFilters:
    """Caller-supplied predicates applied to candidates before ranking."""

    content_type: str | None = None
    min_quality: float | None = None
    max_age_days: float | None = None
    min_word_count: int | None = None
    topics: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any] | None) -> "SearchFilters":
        if not payload:
            return cls()
        topics = payload.get("topics") or ()
        if isinstance(topics, str):
            topics = (topics,)
        return cls(
            content_type=payload.get("content_type"),
            min_quality=payload.get("min_quality"),
            max_age_days=payload.get("max_age_days"),
            min_word_count=payload.get("min_word_count"),
            topics=tuple(str(topic).lower() for topic in topics),
        )

    def matches(self, meta: Mapping[str, Any], *, now: datetime) -> bool:
        if self.content_type and meta.get("content_type") != self.content_type:
            return False
        if self.min_quality is not None and meta.get("quality_score", 0) < self.min_quality:
            return False
        if self.min_word_count is not None and meta.get("word_count", 0) < self.min_word_count:
            return False
        if self.max_age_days is not None:
            published = parse_iso_utc(meta.get("publish_date"))
            # Undated documents pass the age filter.
            if published is not None and _age_days(published, now) > self.max_age_days:
                return False
        if self.topics:
            doc_topics = {str(topic).lower() for topic in meta.get("topics", [])}
            if not doc_topics.intersection(self.topics):
                return False
        return True


@dataclass(frozen=True, slots=True)
class SearchResult:
    id: str
    url: str
    title: str
    description: str
    content_type: str
    quality_score: int
    word_count: int
    publish_date: str | None
    topics: list[str]
    relevance_score: float

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "description": self.description,
            "content_type": self.content_type,
            "quality_score": self.quality_score,
            "word_count": self.word_count,
            "publish_date": self.publish_date,
            "topics": list(self.topics),
            "relevance_score": self.relevance_score,
        }


@dataclass(frozen=True, slots=True)
class SearchResponse:
    query: str
    results: list[SearchResult] = field(default_factory=list)
    total: int = 0
    elapsed_ms: float = 0.0

    def to_json(self) -> dict[str, Any]:
        return {
            "results": [result.to_json() for result in self.results],
            "total": self.total,
            "query": self.query,
            "elapsed_ms": self.elapsed_ms,
        }


class SearchIndex:
    """Inverted index with per-document weighted term frequencies.

    Holds four structures: posting lists (term -> doc ids), term frequencies
    (doc id -> term -> field-boosted count), document frequencies
    (term -> number of distinct docs), and a metadata projection per doc.
    Document frequency is incremented once per (term, doc) pair and only
    reset by `clear`. All methods are safe to call from several threads.
    """

    def __init__(self, config: SearchConfig | None = None) -> None:
        self.config = config or SearchConfig()
        self._lock = threading.RLock()
        self._reset_locked()

    def _reset_locked(self) -> None:
        self._postings: dict[str, set[str]] = {}
        self._term_frequencies: dict[str, dict[str, float]] = {}
        self._document_frequency: dict[str, int] = {}
        self._documents: dict[str, dict[str, Any]] = {}
        self._phrase_texts: dict[str, str] = {}
        self._vocabulary: Counter[str] = Counter()
        self._total_documents = 0

    def _tokenize(self, text: str | None, *, stem_tokens: bool | None = None) -> list[str]:
        return tokenize(
            text,
            min_length=self.config.min_term_length,
            max_length=self.config.max_term_length,
            remove_stopwords=True,
            stem_tokens=self.config.stemming if stem_tokens is None else stem_tokens,
        )

    @staticmethod
    def _field_texts(document: CrawledDocument) -> dict[str, str]:
        return {
            "title": document.title,
            "description": document.description,
            "headings": " ".join(heading.text for heading in document.headings),
            "content": " ".join(document.paragraphs),
            "keywords": " ".join(document.keywords),
            "topics": " ".join(document.topics),
        }

    def index_document(self, doc_id: str, document: CrawledDocument) -> bool:
        """Index one document; returns False if `doc_id` is already indexed."""

        field_texts = self._field_texts(document)
        term_frequencies: dict[str, float] = {}
        surface_words: set[str] = set()
        for name, text in field_texts.items():
            boost = self.config.boost(name)
            for term in self._tokenize(text):
                term_frequencies[term] = term_frequencies.get(term, 0.0) + boost
            surface_words.update(self._tokenize(text, stem_tokens=False))

        metadata = {
            "id": doc_id,
            "url": document.url,
            "title": document.title,
            "description": document.description,
            "quality_score": document.quality_score,
            "content_type": document.content_type.value,
            "publish_date": document.publish_date,
            "word_count": document.word_count,
            "topics": list(document.topics),
            "term_count": len(term_frequencies),
            "indexed_at": utc_now_iso(),
        }
        phrase_text = normalize_phrase(
            " ".join([document.title, document.description, *document.paragraphs])
        )

        with self._lock:
            if doc_id in self._documents:
                LOGGER.debug("Document %s already indexed; skipping", doc_id)
                return False

            for term in term_frequencies:
                self._postings.setdefault(term, set()).add(doc_id)
                self._document_frequency[term] = self._document_frequency.get(term, 0) + 1
            self._vocabulary.update(surface_words)

            self._term_frequencies[doc_id] = term_frequencies
            self._documents[doc_id] = metadata
            self._phrase_texts[doc_id] = phrase_text
            self._total_documents += 1

        LOGGER.debug("Indexed %s (%s): %d terms", doc_id, document.url, len(term_frequencies))
        return True

    def search(
        self,
        query: str,
        *,
        limit: int | None = None,
        offset: int = 0,
        filters: SearchFilters | Mapping[str, Any] | None = None,
        now: datetime | None = None,
    ) -> SearchResponse:
        """Rank documents for `query`.

        Queries shorter than `min_query_length`, or with no indexable terms,
        return an empty response.
        """

        started = time.perf_counter()
        if offset < 0:
            raise ValueError("offset must be >= 0")
        if limit is not None and limit <= 0:
            raise ValueError("limit must be > 0")

        query = query or ""
        effective_limit = min(limit or self.config.default_limit, self.config.max_limit)
        if not isinstance(filters, SearchFilters):
            filters = SearchFilters.from_dict(filters)
        reference = now or datetime.now(timezone.utc)

        if len(query.strip()) < self.config.min_query_length:
            return SearchResponse(query=query, elapsed_ms=_elapsed_ms(started))

        query_terms = list(dict.fromkeys(self._tokenize(query)))
        if not query_terms:
            return SearchResponse(query=query, elapsed_ms=_elapsed_ms(started))

        with self._lock:
            expanded_terms = self._expand_terms(query_terms)
            candidates: set[str] = set()
            for term in expanded_terms:
                candidates.update(self._postings.get(term, ()))

            ordered_ids = [doc_id for doc_id in self._documents if doc_id in candidates]
            ordered_ids = [
                doc_id
                for doc_id in ordered_ids
                if filters.matches(self._documents[doc_id], now=reference)
            ]
            scores = np.asarray(
                [
                    self._score_document(
                        doc_id,
                        query=query,
                        query_terms=query_terms,
                        now=reference,
                    )
                    for doc_id in ordered_ids
                ],
                dtype=np.float64,
            )

            results: list[SearchResult] = []
            if scores.size:
                ranked = np.argsort(-scores, kind="stable")
                ranked = ranked[scores[ranked] > 0]
                total = int(ranked.shape[0])
                for row in ranked[offset : offset + effective_limit].tolist():
                    results.append(self._build_result(ordered_ids[row], float(scores[row])))
            else:
                total = 0

        return SearchResponse(
            query=query,
            results=results,
            total=total,
            elapsed_ms=_elapsed_ms(started),
        )

    def _expand_terms(self, query_terms: Sequence[str]) -> list[str]:
        expanded: dict[str, None] = {}
        for term in query_terms:
            if term in self._postings:
                expanded.setdefault(term, None)
            if not self.config.enable_fuzzy or len(term) < self.config.fuzzy_min_term_length:
                continue

            matches = process.extract(
                term,
                list(self._postings),
                scorer=Levenshtein.normalized_similarity,
                score_cutoff=self.config.fuzzy_threshold,
                limit=None,
            )
            for candidate, similarity, _ in matches:
                if candidate != term and similarity > self.config.fuzzy_threshold:
                    expanded.setdefault(candidate, None)
        return list(expanded)

    def _score_document(
        self,
        doc_id: str,
        *,
        query: str,
        query_terms: Sequence[str],
        now: datetime,
    ) -> float:
        meta = self._documents[doc_id]
        term_frequencies = self._term_frequencies.get(doc_id, {})
        total_documents = max(self._total_documents, 1)

        score = 0.0
        for term in query_terms:
            tf = term_frequencies.get(term)
            if not tf:
                continue
            df = self._document_frequency.get(term, 0)
            if df > 0:
                score += tf * math.log(total_documents / df)

        phrase = normalize_phrase(query)
        if phrase:
            occurrences = self._phrase_texts.get(doc_id, "").count(phrase)
            if occurrences:
                score += self.config.boost("exact_match") * math.log1p(occurrences)

        for name in ("title", "description"):
            field_terms = set(self._tokenize(meta.get(name)))
            matched = sum(1 for term in query_terms if term in field_terms)
            if matched:
                score += matched / len(query_terms) * self.config.boost(name)

        score += float(meta.get("quality_score", 0)) * self.config.boost("quality")

        published = parse_iso_utc(meta.get("publish_date"))
        if published is not None:
            freshness = max(0.0, min(1.0, (365 - _age_days(published, now)) / 365))
            score += freshness * self.config.freshness_weight

        score += self.config.content_type_bonus.get(str(meta.get("content_type")), 0.0)

        term_count = int(meta.get("term_count") or 0) or 1
        return score / math.log(1 + term_count)

    def _build_result(self, doc_id: str, score: float) -> SearchResult:
        meta = self._documents[doc_id]
        return SearchResult(
            id=doc_id,
            url=str(meta["url"]),
            title=str(meta.get("title", "")),
            description=str(meta.get("description", "")),
            content_type=str(meta.get("content_type", "")),
            quality_score=int(meta.get("quality_score", 0)),
            word_count=int(meta.get("word_count", 0)),
            publish_date=meta.get("publish_date"),
            topics=list(meta.get("topics", [])),
            relevance_score=round(score, 2),
        )

    def suggest(self, partial_query: str, limit: int = 10) -> list[str]:
        """Indexed words starting with `partial_query`, most common first."""

        prefix = (partial_query or "").lower().strip()
        if len(prefix) < self.config.min_query_length or limit <= 0:
            return []

        with self._lock:
            matches = [
                (word, count) for word, count in self._vocabulary.items() if word.startswith(prefix)
            ]
        matches.sort(key=lambda item: (-item[1], item[0]))
        return [word for word, _ in matches[:limit]]

    def document_frequency(self, term: str) -> int:
        with self._lock:
            return self._document_frequency.get(term, 0)

    def terms_for(self, doc_id: str) -> set[str]:
        with self._lock:
            return set(self._term_frequencies.get(doc_id, {}))

    def get_document(self, doc_id: str) -> dict[str, Any] | None:
        with self._lock:
            meta = self._documents.get(doc_id)
            return dict(meta) if meta is not None else None

    def __contains__(self, doc_id: object) -> bool:
        with self._lock:
            return doc_id in self._documents

    def __len__(self) -> int:
        with self._lock:
            return self._total_documents

    @property
    def total_documents(self) -> int:
        return len(self)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            total_terms = len(self._document_frequency)
            term_counts = [len(tfs) for tfs in self._term_frequencies.values()]
            average = sum(term_counts) / len(term_counts) if term_counts else 0.0
            return {
                "total_documents": self._total_documents,
                "total_terms": total_terms,
                "average_terms_per_document": round(average, 2),
            }

    def clear(self) -> None:
        with self._lock:
            self._reset_locked()
        LOGGER.info("Search index cleared")

    def export_index(self) -> dict[str, Any]:
        """Flat JSON-serializable copy of every index structure."""

        with self._lock:
            return {
                "format": INDEX_FORMAT,
                "exported_at": utc_now_iso(),
                "total_documents": self._total_documents,
                "postings": {term: sorted(ids) for term, ids in self._postings.items()},
                "term_frequencies": {
                    doc_id: dict(tfs) for doc_id, tfs in self._term_frequencies.items()
                },
                "document_frequency": dict(self._document_frequency),
                "documents": {doc_id: dict(meta) for doc_id, meta in self._documents.items()},
                "phrase_texts": dict(self._phrase_texts),
                "vocabulary": dict(self._vocabulary),
            }

    def import_index(self, payload: Mapping[str, Any]) -> None:
        """Replace the index contents with an `export_index` payload."""

        fmt = payload.get("format", INDEX_FORMAT)
        if fmt != INDEX_FORMAT:
            raise ValueError(f"Unsupported index format: {fmt!r}")

        postings = {
            str(term): {str(doc_id) for doc_id in ids}
            for term, ids in dict(payload.get("postings", {})).items()
        }
        document_frequency = {
            str(term): int(count) for term, count in dict(payload.get("document_frequency", {})).items()
        }
        missing_df = [term for term in postings if document_frequency.get(term, 0) <= 0]
        if missing_df:
            raise ValueError(
                f"Index payload has {len(missing_df)} posting terms without document frequency"
            )

        with self._lock:
            self._reset_locked()
            self._postings = postings
            self._document_frequency = document_frequency
            self._term_frequencies = {
                str(doc_id): {str(term): float(tf) for term, tf in dict(tfs).items()}
                for doc_id, tfs in dict(payload.get("term_frequencies", {})).items()
            }
            self._documents = {
                str(doc_id): dict(meta) for doc_id, meta in dict(payload.get("documents", {})).items()
            }
            self._phrase_texts = {
                str(doc_id): str(text)
                for doc_id, text in dict(payload.get("phrase_texts", {})).items()
            }
            self._vocabulary = Counter(
                {str(word): int(count) for word, count in dict(payload.get("vocabulary", {})).items()}
            )
            self._total_documents = int(payload.get("total_documents", len(self._documents)))

        LOGGER.info(
            "Imported search index: documents=%d terms=%d",
            self._total_documents,
            len(self._document_frequency),
        )

    @classmethod
    def from_content_store(
        cls,
        content_store: Mapping[str, Any],
        *,
        config: SearchConfig | None = None,
    ) -> "SearchIndex":
        """Build an index from `{doc_id: document}` where documents may be JSON payloads."""

        index = cls(config)
        for doc_id, document in content_store.items():
            if not isinstance(document, CrawledDocument):
                document = CrawledDocument.from_json(document)
            index.index_document(str(doc_id), document)
        return index


def _age_days(published: datetime, now: datetime) -> float:
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return (now - published).total_seconds() / 86400


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 3)


def _setup_logging(level_name: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level_name),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def load_index_from_snapshot(path: str | Path, *, config: SearchConfig | None = None) -> SearchIndex:
    """Load the search index of a saved crawl snapshot, rebuilding it if absent."""

    payload = read_snapshot(path)
    if payload.get("search_index"):
        index = SearchIndex(config)
        index.import_index(payload["search_index"])
        return index
    return SearchIndex.from_content_store(payload.get("content_store", {}), config=config)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Search a saved crawl snapshot.")
    parser.add_argument("--snapshot", type=Path, required=True, help="Snapshot JSON written by the crawler.")
    parser.add_argument("--query", type=str, required=True)
    parser.add_argument("--limit", type=int, default=None)
    parser.add_argument("--offset", type=int, default=0)
    parser.add_argument("--content_type", type=str, default=None)
    parser.add_argument("--min_quality", type=float, default=None)
    parser.add_argument("--max_age_days", type=float, default=None)
    parser.add_argument("--min_word_count", type=int, default=None)
    parser.add_argument(
        "--topic",
        action="append",
        default=[],
        help="Topic filter; repeat to match any of several topics.",
    )
    parser.add_argument(
        "--suggest",
        action="store_true",
        help="Print term suggestions for --query instead of results.",
    )
    parser.add_argument(
        "--log_level",
        type=str,
        default="WARNING",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
    )
    return parser.parse_args(argv)


def run(args: argparse.Namespace) -> dict[str, Any]:
    index = load_index_from_snapshot(args.snapshot)

    if args.suggest:
        limit = args.limit or 10
        return {"query": args.query, "suggestions": index.suggest(args.query, limit)}

    filters = SearchFilters(
        content_type=args.content_type,
        min_quality=args.min_quality,
        max_age_days=args.max_age_days,
        min_word_count=args.min_word_count,
        topics=tuple(topic.lower() for topic in args.topic),
    )
    response = index.search(args.query, limit=args.limit, offset=args.offset, filters=filters)
    return {**response.to_json(), "snapshot": str(args.snapshot), "index": index.stats()}


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    _setup_logging(args.log_level)
    summary = run(args)
    print(json.dumps(summary, indent=2, ensure_ascii=False, sort_keys=True))
    return 0


__all__ = [
    "SearchFilters",
    "SearchIndex",
    "SearchResponse",
    "SearchResult",
    "document_id_for",
    "load_index_from_snapshot",
    "main",
    "normalize_phrase",
]


if __name__ == "__main__":
    raise SystemExit(main())
