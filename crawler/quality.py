"""Heuristic 0-100 quality score for extracted documents."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
import re
from typing import Any, Mapping

from .text import extract_keywords, join_nonempty
from .types import CrawledDocument, parse_iso_utc


LOGGER = logging.getLogger(__name__)

SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")


@dataclass(slots=True)
class QualityWeights:
    """Weight of each factor; the defaults sum to 1.0."""

    word_count: float = 0.2
    heading_structure: float = 0.15
    meta_data: float = 0.15
    link_quality: float = 0.1
    image_optimization: float = 0.05
    text_quality: float = 0.2
    structured_data: float = 0.1
    freshness: float = 0.05

    def to_dict(self) -> dict[str, float]:
        return {
            "word_count": self.word_count,
            "heading_structure": self.heading_structure,
            "meta_data": self.meta_data,
            "link_quality": self.link_quality,
            "image_optimization": self.image_optimization,
            "text_quality": self.text_quality,
            "structured_data": self.structured_data,
            "freshness": self.freshness,
        }


@dataclass(slots=True)
class QualityThresholds:
    min_word_count: int = 100
    optimal_word_count: int = 800
    max_word_count: int = 5000
    optimal_heading_count: int = 5

    def __post_init__(self) -> None:
        if not 0 < self.min_word_count < self.optimal_word_count < self.max_word_count:
            raise ValueError("word count thresholds must satisfy 0 < min < optimal < max")
        if self.optimal_heading_count <= 0:
            raise ValueError("optimal_heading_count must be > 0")


@dataclass(frozen=True, slots=True)
class QualityBreakdown:
    """Per-factor 0-100 scores plus the weighted total."""

    factors: dict[str, float] = field(default_factory=dict)
    total: int = 0

    def to_json(self) -> dict[str, Any]:
        return {"factors": dict(self.factors), "total": self.total}


@dataclass(frozen=True, slots=True)
class QualityAssessment:
    score: int
    breakdown: QualityBreakdown
    word_count: str
    headings: str
    meta_data: str
    recommendations: list[str] = field(default_factory=list)

    def to_json(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "breakdown": self.breakdown.to_json(),
            "word_count": self.word_count,
            "headings": self.headings,
            "meta_data": self.meta_data,
            "recommendations": list(self.recommendations),
        }


class QualityScorer:
    """Weighted multi-factor scorer.

    Each factor produces a 0-100 sub-score; the final score is the weighted
    sum, rounded and clamped to 0-100. Only freshness depends on the clock.
    """

    def __init__(
        self,
        weights: QualityWeights | None = None,
        thresholds: QualityThresholds | None = None,
    ) -> None:
        self.weights = weights or QualityWeights()
        self.thresholds = thresholds or QualityThresholds()

    def score(self, document: CrawledDocument, *, now: datetime | None = None) -> int:
        return self.breakdown(document, now=now).total

    def breakdown(
        self,
        document: CrawledDocument,
        *,
        now: datetime | None = None,
    ) -> QualityBreakdown:
        factors = {
            "word_count": self._score_word_count(document.word_count),
            "heading_structure": self._score_headings(document),
            "meta_data": self._score_meta_data(document),
            "link_quality": self._score_links(document),
            "image_optimization": self._score_images(document),
            "text_quality": self._score_text_quality(document),
            "structured_data": self._score_structured_data(document),
            "freshness": self._score_freshness(document.publish_date, now=now),
        }
        weights = self.weights.to_dict()
        weighted = sum(factors[name] * weights[name] for name in factors)
        total = max(0, min(100, round(weighted)))
        LOGGER.debug("Quality for %s: total=%d factors=%s", document.url, total, factors)
        return QualityBreakdown(factors=factors, total=total)

    def assess(
        self,
        document: CrawledDocument,
        *,
        now: datetime | None = None,
    ) -> QualityAssessment:
        breakdown = self.breakdown(document, now=now)
        factors = breakdown.factors

        recommendations: list[str] = []
        if factors["word_count"] < 50:
            recommendations.append(
                f"Consider adding more content to reach at least "
                f"{self.thresholds.min_word_count} words"
            )
        if factors["heading_structure"] < 50:
            recommendations.append("Add more headings to improve content structure")
        if not document.description:
            recommendations.append("Add a meta description to improve SEO")
        if not document.title or len(document.title) < 10:
            recommendations.append("Improve the page title for better SEO")

        return QualityAssessment(
            score=breakdown.total,
            breakdown=breakdown,
            word_count=_word_count_label(document.word_count),
            headings=_heading_label(len(document.headings)),
            meta_data=_meta_label(document),
            recommendations=recommendations,
        )

    def _score_word_count(self, count: int) -> float:
        thresholds = self.thresholds
        if count < thresholds.min_word_count:
            return count / thresholds.min_word_count * 50
        if count <= thresholds.optimal_word_count:
            span = thresholds.optimal_word_count - thresholds.min_word_count
            return 50 + (count - thresholds.min_word_count) / span * 50
        if count <= thresholds.max_word_count:
            span = thresholds.max_word_count - thresholds.optimal_word_count
            return 100 - (count - thresholds.optimal_word_count) / span * 20
        return 80.0

    def _score_headings(self, document: CrawledDocument) -> float:
        headings = document.headings
        if not headings:
            return 0.0

        score = min(len(headings) / self.thresholds.optimal_heading_count, 1.0) * 60
        levels = [heading.level for heading in headings]
        if 1 in levels:
            score += 20
        if len(set(levels)) > 1:
            score += 20
        if len(levels) > 1:
            well_nested = sum(
                1 for previous, current in zip(levels, levels[1:]) if current <= previous + 1
            )
            score += well_nested / (len(levels) - 1) * 20
        return min(score, 100.0)

    @staticmethod
    def _score_meta_data(document: CrawledDocument) -> float:
        score = 0.0
        if document.title:
            score += 25
            if 10 <= len(document.title) <= 70:
                score += 15
        if document.description:
            score += 25
            if 50 <= len(document.description) <= 300:
                score += 15
        if document.author:
            score += 10
        if document.publish_date:
            score += 10
        if document.keywords:
            score += 10
        return min(score, 100.0)

    @staticmethod
    def _score_links(document: CrawledDocument) -> float:
        links = document.links
        if not links:
            return 0.0

        score = min(len(links) / 10, 1.0) * 30
        if any(link.is_internal for link in links):
            score += 20
        if any(not link.is_internal for link in links):
            score += 10

        descriptive = sum(
            1
            for link in links
            if len(link.text) > 5 and "click here" not in link.text.lower()
        )
        score += descriptive / len(links) * 40
        return score

    @staticmethod
    def _score_images(document: CrawledDocument) -> float:
        images = document.images
        if not images:
            return 0.0

        score = 30.0
        with_alt = sum(1 for image in images if len(image.alt) > 5)
        score += with_alt / len(images) * 40
        if 2 <= len(images) <= 10:
            score += 30
        return score

    @staticmethod
    def _score_text_quality(document: CrawledDocument) -> float:
        paragraphs = document.paragraphs
        all_text = join_nonempty([document.title, document.description, *paragraphs])

        score = min(len(paragraphs) / 5, 1.0) * 25
        if paragraphs:
            average_length = sum(len(p) for p in paragraphs) / len(paragraphs)
            if 50 <= average_length <= 200:
                score += 25

        sentences = [
            sentence for sentence in SENTENCE_SPLIT_RE.split(all_text) if len(sentence.strip()) > 10
        ]
        if sentences:
            average_sentence = len(all_text) / len(sentences)
            if 15 <= average_sentence <= 30:
                score += 25

        if len(extract_keywords(all_text, max_keywords=20)) >= 5:
            score += 25
        return score

    @staticmethod
    def _score_structured_data(document: CrawledDocument) -> float:
        records = document.structured_data
        if not records:
            return 0.0

        kinds = {record.get("type") for record in records if isinstance(record, Mapping)}
        score = 50.0
        if "json-ld" in kinds:
            score += 30
        if "microdata" in kinds:
            score += 20
        return score

    @staticmethod
    def _score_freshness(publish_date: str | None, *, now: datetime | None = None) -> float:
        published = parse_iso_utc(publish_date)
        if published is None:
            return 50.0

        reference = now or datetime.now(timezone.utc)
        if reference.tzinfo is None:
            reference = reference.replace(tzinfo=timezone.utc)
        age_days = (reference - published).total_seconds() / 86400

        if age_days < 0:
            return 50.0
        if age_days <= 7:
            return 100.0
        if age_days <= 30:
            return 90.0
        if age_days <= 90:
            return 80.0
        if age_days <= 365:
            return 70.0
        if age_days <= 730:
            return 60.0
        return 50.0


def _word_count_label(count: int) -> str:
    if count < 100:
        return "Too short"
    if count < 300:
        return "Short"
    if count < 800:
        return "Good length"
    if count < 2000:
        return "Comprehensive"
    return "Very long"


def _heading_label(count: int) -> str:
    if count == 0:
        return "No headings"
    if count < 3:
        return "Few headings"
    if count < 6:
        return "Good structure"
    return "Well structured"


def _meta_label(document: CrawledDocument) -> str:
    if document.title and document.description and document.author:
        return "Complete"
    if document.title and document.description:
        return "Good"
    if document.title:
        return "Basic"
    return "Poor"


__all__ = [
    "QualityAssessment",
    "QualityBreakdown",
    "QualityScorer",
    "QualityThresholds",
    "QualityWeights",
]
