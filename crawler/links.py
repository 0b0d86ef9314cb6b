"""Outbound link scoring, domain policy, and link pattern analysis."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
import logging
import re
from typing import Any, Iterable, Mapping, Sequence
from urllib.parse import urlsplit

from .constants import DEFAULT_MAX_LINKS_PER_DOMAIN
from .types import Link
from .url import hostname, is_allowed_domain, is_http_url, should_exclude


LOGGER = logging.getLogger(__name__)

AVOID_PATTERNS = (
    re.compile(r"/login", re.IGNORECASE),
    re.compile(r"/register", re.IGNORECASE),
    re.compile(r"/signup", re.IGNORECASE),
    re.compile(r"/cart", re.IGNORECASE),
    re.compile(r"/checkout", re.IGNORECASE),
    re.compile(r"/account", re.IGNORECASE),
    re.compile(r"/profile", re.IGNORECASE),
    re.compile(r"/settings", re.IGNORECASE),
    re.compile(r"/admin", re.IGNORECASE),
    re.compile(r"/wp-admin", re.IGNORECASE),
    re.compile(r"/api/", re.IGNORECASE),
    re.compile(r"\.(pdf|doc|docx|zip|exe)$", re.IGNORECASE),
)
VALUABLE_PATH_PATTERNS = (
    "/article/",
    "/post/",
    "/blog/",
    "/news/",
    "/story/",
    "/content/",
    "/page/",
    "/tutorial/",
    "/guide/",
    "/review/",
)
CONTENT_WORDS = ("article", "post", "story", "news", "blog", "tutorial", "guide", "review")
NAVIGATION_WORDS = ("home", "about", "contact", "sitemap")
GENERIC_PHRASES = ("click here", "read more", "continue", "next", "prev")
RELEVANT_CONTEXT_WORDS = (
    "information",
    "details",
    "learn",
    "discover",
    "explore",
    "comprehensive",
    "complete",
    "full",
    "detailed",
)
HAS_LETTER_RE = re.compile(r"[a-zA-Z]")

SAME_HOST_BONUS = 10.0
CROSS_HOST_BONUS = 2.0


@dataclass(frozen=True, slots=True)
class ScoredLink:
    link: Link
    priority: float

    @property
    def url(self) -> str:
        return self.link.url


@dataclass(slots=True)
class LinkPolicy:
    """Domain rules applied to outbound links before prioritization."""

    allowed_domains: list[str] = field(default_factory=list)
    blocked_domains: list[str] = field(default_factory=list)
    max_links_per_domain: int = DEFAULT_MAX_LINKS_PER_DOMAIN

    def __post_init__(self) -> None:
        if self.max_links_per_domain <= 0:
            raise ValueError("max_links_per_domain must be > 0")

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "LinkPolicy":
        allowed = payload.get("allowed_domains", [])
        blocked = payload.get("blocked_domains", [])
        if not isinstance(allowed, list) or not isinstance(blocked, list):
            raise ValueError("'allowed_domains' and 'blocked_domains' must be lists")
        try:
            max_links = int(payload.get("max_links_per_domain", DEFAULT_MAX_LINKS_PER_DOMAIN))
        except (TypeError, ValueError) as exc:
            raise ValueError(
                f"Invalid int for 'max_links_per_domain': {payload.get('max_links_per_domain')!r}"
            ) from exc
        return cls(
            allowed_domains=[str(item) for item in allowed],
            blocked_domains=[str(item) for item in blocked],
            max_links_per_domain=max_links,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "allowed_domains": list(self.allowed_domains),
            "blocked_domains": list(self.blocked_domains),
            "max_links_per_domain": self.max_links_per_domain,
        }


class LinkPrioritizer:
    """Score outbound links so the frontier crawls content pages first."""

    def prioritize(self, links: Iterable[Link], base_url: str) -> list[ScoredLink]:
        scored = [
            ScoredLink(link=link, priority=self.score(link, base_url))
            for link in links
        ]
        kept = [item for item in scored if item.priority > 0]
        kept.sort(key=lambda item: item.priority, reverse=True)
        LOGGER.debug("Prioritized %d/%d links from %s", len(kept), len(scored), base_url)
        return kept

    def score(self, link: Link, base_url: str) -> float:
        if not is_http_url(link.url) or self.should_avoid(link.url):
            return 0.0

        total = (
            self._domain_score(link.url, base_url)
            + self._anchor_text_score(link.text)
            + self._url_structure_score(link.url)
            + self._context_score(link.context, link.text)
        )
        return max(0.0, total)

    @staticmethod
    def should_avoid(url: str) -> bool:
        return should_exclude(url) or any(pattern.search(url) for pattern in AVOID_PATTERNS)

    @staticmethod
    def _domain_score(url: str, base_url: str) -> float:
        base_host = hostname(base_url)
        if base_host and hostname(url) == base_host:
            return SAME_HOST_BONUS
        return CROSS_HOST_BONUS

    @staticmethod
    def _anchor_text_score(text: str) -> float:
        if not text:
            return 0.0

        lowered = text.lower()
        score = 0.0
        if 5 < len(text) < 100:
            score += 3
        if any(word in lowered for word in CONTENT_WORDS):
            score += 5
        if any(word in lowered for word in NAVIGATION_WORDS):
            score += 1
        if any(phrase in lowered for phrase in GENERIC_PHRASES):
            score -= 2
        return score

    @staticmethod
    def _url_structure_score(url: str) -> float:
        lowered = url.lower()
        score = 0.0
        if any(pattern in lowered for pattern in VALUABLE_PATH_PATTERNS):
            score += 8

        path_depth = url.count("/") - 2
        if path_depth <= 2:
            score += 3
        elif path_depth <= 4:
            score += 1

        if "?" not in url:
            score += 1

        last_segment = url.split("/")[-1]
        if len(last_segment) > 3 and HAS_LETTER_RE.search(last_segment):
            score += 2
        return score

    @staticmethod
    def _context_score(context: str, anchor_text: str) -> float:
        if not context:
            return 0.0

        lowered = context.lower()
        score = 0.0
        if len(context) > 50:
            score += 2
        score += sum(1 for word in RELEVANT_CONTEXT_WORDS if word in lowered)

        context_words = set(lowered.split())
        anchor_words = [word for word in anchor_text.lower().split() if len(word) > 3]
        score += sum(1 for word in anchor_words if word in context_words)
        return score


def filter_by_domain_policy(links: Iterable[Link], policy: LinkPolicy) -> list[Link]:
    """Apply allow/block lists and a per-domain cap, preserving link order."""

    per_domain: Counter[str] = Counter()
    kept: list[Link] = []

    for link in links:
        host = hostname(link.url)
        if not host:
            continue
        if policy.allowed_domains and not is_allowed_domain(host, policy.allowed_domains):
            continue
        if policy.blocked_domains and is_allowed_domain(host, policy.blocked_domains):
            continue
        if per_domain[host] >= policy.max_links_per_domain:
            continue
        per_domain[host] += 1
        kept.append(link)

    return kept


def analyze_domain_patterns(links: Sequence[Link], domain: str) -> dict[str, Any]:
    """Summarize how the links of one host are laid out.

    Returns the ten most common first path segments, the ten most common
    anchor words longer than three characters, and a path depth histogram.
    """

    domain_host = domain.lower()
    path_segments: Counter[str] = Counter()
    anchor_words: Counter[str] = Counter()
    depth_distribution: Counter[int] = Counter()

    for link in links:
        if hostname(link.url) != domain_host:
            continue

        segments = [segment for segment in urlsplit(link.url).path.split("/") if segment]
        if segments:
            path_segments[segments[0]] += 1
        depth_distribution[len(segments)] += 1

        for word in link.text.lower().split():
            if len(word) > 3:
                anchor_words[word] += 1

    return {
        "common_paths": [
            {"segment": segment, "count": count}
            for segment, count in path_segments.most_common(10)
        ],
        "common_anchor_words": [
            {"word": word, "count": count} for word, count in anchor_words.most_common(10)
        ],
        "depth_distribution": dict(sorted(depth_distribution.items())),
    }


__all__ = [
    "AVOID_PATTERNS",
    "LinkPolicy",
    "LinkPrioritizer",
    "ScoredLink",
    "analyze_domain_patterns",
    "filter_by_domain_policy",
]
