"""Search index configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


DEFAULT_BOOST_FACTORS: dict[str, float] = {
    "title": 10.0,
    "description": 5.0,
    "headings": 3.0,
    "content": 2.0,
    "keywords": 4.0,
    "topics": 1.0,
    "quality": 0.1,
    "exact_match": 5.0,
}

DEFAULT_CONTENT_TYPE_BONUS: dict[str, float] = {
    "article": 0.2,
    "blog-post": 0.15,
    "tutorial": 0.25,
    "news-article": 0.1,
    "review": 0.1,
    "product-page": 0.05,
    "recipe": 0.15,
}


def _as_int(value: Any, key: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid int for '{key}': {value!r}") from exc


def _as_float(value: Any, key: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid float for '{key}': {value!r}") from exc


def _as_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    raise ValueError(f"Invalid bool for '{key}': {value!r}")


def _as_float_map(value: Any, key: str) -> dict[str, float]:
    if not isinstance(value, Mapping):
        raise ValueError(f"'{key}' must be a mapping, got {value!r}")
    return {str(name): _as_float(weight, f"{key}.{name}") for name, weight in value.items()}


@dataclass(slots=True)
class SearchConfig:
    """Ranking and query-handling knobs for `SearchIndex`."""

    default_limit: int = 10
    max_limit: int = 100
    min_query_length: int = 2
    enable_fuzzy: bool = True
    fuzzy_threshold: float = 0.8
    fuzzy_min_term_length: int = 4
    stemming: bool = True
    min_term_length: int = 2
    max_term_length: int = 50
    freshness_weight: float = 0.1
    boost_factors: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_BOOST_FACTORS))
    content_type_bonus: dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_CONTENT_TYPE_BONUS)
    )

    def __post_init__(self) -> None:
        if self.default_limit <= 0:
            raise ValueError("default_limit must be > 0")
        if self.max_limit < self.default_limit:
            raise ValueError("max_limit must be >= default_limit")
        if self.min_query_length < 1:
            raise ValueError("min_query_length must be >= 1")
        if not 0.0 < self.fuzzy_threshold <= 1.0:
            raise ValueError("fuzzy_threshold must be in (0, 1]")
        if self.min_term_length < 1 or self.max_term_length < self.min_term_length:
            raise ValueError("term length bounds must satisfy 1 <= min <= max")
        if self.freshness_weight < 0:
            raise ValueError("freshness_weight must be >= 0")

        merged = dict(DEFAULT_BOOST_FACTORS)
        merged.update(self.boost_factors)
        self.boost_factors = merged

    def boost(self, name: str) -> float:
        return self.boost_factors.get(name, 1.0)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "SearchConfig":
        return cls(
            default_limit=_as_int(payload.get("default_limit", 10), "default_limit"),
            max_limit=_as_int(payload.get("max_limit", 100), "max_limit"),
            min_query_length=_as_int(payload.get("min_query_length", 2), "min_query_length"),
            enable_fuzzy=_as_bool(payload.get("enable_fuzzy", True), "enable_fuzzy"),
            fuzzy_threshold=_as_float(payload.get("fuzzy_threshold", 0.8), "fuzzy_threshold"),
            fuzzy_min_term_length=_as_int(
                payload.get("fuzzy_min_term_length", 4), "fuzzy_min_term_length"
            ),
            stemming=_as_bool(payload.get("stemming", True), "stemming"),
            min_term_length=_as_int(payload.get("min_term_length", 2), "min_term_length"),
            max_term_length=_as_int(payload.get("max_term_length", 50), "max_term_length"),
            freshness_weight=_as_float(payload.get("freshness_weight", 0.1), "freshness_weight"),
            boost_factors=_as_float_map(
                payload.get("boost_factors", DEFAULT_BOOST_FACTORS), "boost_factors"
            ),
            content_type_bonus=_as_float_map(
                payload.get("content_type_bonus", DEFAULT_CONTENT_TYPE_BONUS),
                "content_type_bonus",
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "default_limit": self.default_limit,
            "max_limit": self.max_limit,
            "min_query_length": self.min_query_length,
            "enable_fuzzy": self.enable_fuzzy,
            "fuzzy_threshold": self.fuzzy_threshold,
            "fuzzy_min_term_length": self.fuzzy_min_term_length,
            "stemming": self.stemming,
            "min_term_length": self.min_term_length,
            "max_term_length": self.max_term_length,
            "freshness_weight": self.freshness_weight,
            "boost_factors": dict(self.boost_factors),
            "content_type_bonus": dict(self.content_type_bonus),
        }


__all__ = [
    "DEFAULT_BOOST_FACTORS",
    "DEFAULT_CONTENT_TYPE_BONUS",
    "SearchConfig",
]
