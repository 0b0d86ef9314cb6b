"""Core type definitions for the crawler and search index.

This module is intentionally dependency-light so other crawler modules can import
shared records without introducing cycles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping


JSONPrimitive = str | int | float | bool | None
JSONValue = JSONPrimitive | list["JSONValue"] | dict[str, "JSONValue"]
JSONDict = dict[str, JSONValue]


class FetchBackend(str, Enum):
    """Backend used to fetch page content."""

    REQUESTS = "requests"
    SELENIUM = "selenium"


class FetchErrorKind(str, Enum):
    """Tagged failure categories produced by the fetch adapter and scheduler."""

    INVALID_URL = "invalid_url"
    ROBOTS_BLOCKED = "robots_blocked"
    TIMEOUT = "timeout"
    HTTP_ERROR = "http_error"
    TRANSIENT = "transient"
    EXTRACTION = "extraction"
    OTHER = "other"

    @property
    def retryable(self) -> bool:
        return self is FetchErrorKind.TRANSIENT


class ContentType(str, Enum):
    """Page classification assigned by the extractor."""

    ARTICLE = "article"
    BLOG_POST = "blog-post"
    NEWS_ARTICLE = "news-article"
    PRODUCT_PAGE = "product-page"
    ABOUT_PAGE = "about-page"
    CONTACT_PAGE = "contact-page"
    RECIPE = "recipe"
    TUTORIAL = "tutorial"
    REVIEW = "review"
    LANDING_PAGE = "landing-page"
    WEBPAGE = "webpage"


class CrawlEvent(str, Enum):
    """Events emitted by the scheduler to registered listeners."""

    CRAWL_STARTED = "crawl_started"
    PAGE_CRAWLED = "page_crawled"
    CRAWL_ERROR = "crawl_error"
    CRAWL_COMPLETED = "crawl_completed"
    CRAWL_STOPPED = "crawl_stopped"


def utc_now_iso() -> str:
    """Return an RFC3339-like UTC timestamp string."""

    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def parse_iso_utc(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp as an aware UTC datetime, or None."""

    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@dataclass(frozen=True, slots=True)
class Heading:
    level: int
    text: str
    id: str | None = None

    def to_json(self) -> JSONDict:
        return {"level": self.level, "text": self.text, "id": self.id}

    @classmethod
    def from_json(cls, payload: Mapping[str, Any]) -> "Heading":
        return cls(
            level=int(payload["level"]),
            text=str(payload.get("text", "")),
            id=payload.get("id"),
        )


@dataclass(frozen=True, slots=True)
class Link:
    """One outbound anchor found on a page."""

    url: str
    text: str
    title: str = ""
    context: str = ""
    is_internal: bool = False
    rel: str = ""

    def to_json(self) -> JSONDict:
        return {
            "url": self.url,
            "text": self.text,
            "title": self.title,
            "context": self.context,
            "is_internal": self.is_internal,
            "rel": self.rel,
        }

    @classmethod
    def from_json(cls, payload: Mapping[str, Any]) -> "Link":
        return cls(
            url=str(payload["url"]),
            text=str(payload.get("text", "")),
            title=str(payload.get("title", "")),
            context=str(payload.get("context", "")),
            is_internal=bool(payload.get("is_internal", False)),
            rel=str(payload.get("rel", "")),
        )


@dataclass(frozen=True, slots=True)
class Image:
    src: str
    alt: str = ""
    title: str = ""
    width: int | None = None
    height: int | None = None
    context: str = ""

    def to_json(self) -> JSONDict:
        return {
            "src": self.src,
            "alt": self.alt,
            "title": self.title,
            "width": self.width,
            "height": self.height,
            "context": self.context,
        }

    @classmethod
    def from_json(cls, payload: Mapping[str, Any]) -> "Image":
        return cls(
            src=str(payload["src"]),
            alt=str(payload.get("alt", "")),
            title=str(payload.get("title", "")),
            width=payload.get("width"),
            height=payload.get("height"),
            context=str(payload.get("context", "")),
        )


@dataclass(frozen=True, slots=True)
class Keyword:
    word: str
    frequency: int

    def to_json(self) -> JSONDict:
        return {"word": self.word, "frequency": self.frequency}


@dataclass(frozen=True, slots=True)
class CrawledDocument:
    """Structured page produced by the extractor and enriched by the scheduler.

    Instances are immutable; the scheduler derives the scored copy with
    `dataclasses.replace`.
    """

    url: str
    domain: str
    path: str = "/"
    language: str = "en"
    title: str = ""
    description: str = ""
    author: str = ""
    publish_date: str | None = None
    keywords: list[str] = field(default_factory=list)
    headings: list[Heading] = field(default_factory=list)
    paragraphs: list[str] = field(default_factory=list)
    links: list[Link] = field(default_factory=list)
    images: list[Image] = field(default_factory=list)
    metadata: dict[str, str] = field(default_factory=dict)
    structured_data: list[JSONDict] = field(default_factory=list)
    word_count: int = 0
    reading_time: int = 0
    content_density: float = 0.0
    semantic_keywords: list[Keyword] = field(default_factory=list)
    content_type: ContentType = ContentType.WEBPAGE
    topics: list[str] = field(default_factory=list)
    extracted_at: str = field(default_factory=utc_now_iso)
    quality_score: int = 0
    crawl_depth: int = 0
    crawl_priority: float = 0.0

    def to_json(self) -> JSONDict:
        return {
            "url": self.url,
            "domain": self.domain,
            "path": self.path,
            "language": self.language,
            "title": self.title,
            "description": self.description,
            "author": self.author,
            "publish_date": self.publish_date,
            "keywords": list(self.keywords),
            "headings": [heading.to_json() for heading in self.headings],
            "paragraphs": list(self.paragraphs),
            "links": [link.to_json() for link in self.links],
            "images": [image.to_json() for image in self.images],
            "metadata": dict(self.metadata),
            "structured_data": list(self.structured_data),
            "word_count": self.word_count,
            "reading_time": self.reading_time,
            "content_density": self.content_density,
            "semantic_keywords": [keyword.to_json() for keyword in self.semantic_keywords],
            "content_type": self.content_type.value,
            "topics": list(self.topics),
            "extracted_at": self.extracted_at,
            "quality_score": self.quality_score,
            "crawl_depth": self.crawl_depth,
            "crawl_priority": self.crawl_priority,
        }

    @classmethod
    def from_json(cls, payload: Mapping[str, Any]) -> "CrawledDocument":
        return cls(
            url=str(payload["url"]),
            domain=str(payload.get("domain", "")),
            path=str(payload.get("path", "/")),
            language=str(payload.get("language", "en")),
            title=str(payload.get("title") or ""),
            description=str(payload.get("description") or ""),
            author=str(payload.get("author") or ""),
            publish_date=payload.get("publish_date") or None,
            keywords=[str(item) for item in payload.get("keywords", [])],
            headings=[Heading.from_json(item) for item in payload.get("headings", [])],
            paragraphs=[str(item) for item in payload.get("paragraphs", [])],
            links=[Link.from_json(item) for item in payload.get("links", [])],
            images=[Image.from_json(item) for item in payload.get("images", [])],
            metadata={str(k): str(v) for k, v in dict(payload.get("metadata", {})).items()},
            structured_data=list(payload.get("structured_data", [])),
            word_count=int(payload.get("word_count", 0)),
            reading_time=int(payload.get("reading_time", 0)),
            content_density=float(payload.get("content_density", 0.0)),
            semantic_keywords=[
                Keyword(word=str(item["word"]), frequency=int(item["frequency"]))
                for item in payload.get("semantic_keywords", [])
            ],
            content_type=ContentType(payload.get("content_type", ContentType.WEBPAGE.value)),
            topics=[str(item) for item in payload.get("topics", [])],
            extracted_at=str(payload.get("extracted_at") or utc_now_iso()),
            quality_score=int(payload.get("quality_score", 0)),
            crawl_depth=int(payload.get("crawl_depth", 0)),
            crawl_priority=float(payload.get("crawl_priority", 0.0)),
        )


@dataclass(frozen=True, slots=True)
class FrontierEntry:
    """A pending crawl candidate tracked by the frontier."""

    url: str
    depth: int
    priority: float
    parent_url: str | None = None
    discovered_at: str = field(default_factory=utc_now_iso)

    def to_json(self) -> JSONDict:
        return {
            "url": self.url,
            "depth": self.depth,
            "priority": self.priority,
            "parent_url": self.parent_url,
            "discovered_at": self.discovered_at,
        }


@dataclass(slots=True)
class FetchResult:
    """Result of attempting to download one URL."""

    requested_url: str
    final_url: str | None
    status_code: int | None
    html: str | None
    backend: FetchBackend = FetchBackend.REQUESTS
    fetched_at: str = field(default_factory=utc_now_iso)
    elapsed_ms: int | None = None
    error: str | None = None
    error_kind: FetchErrorKind | None = None

    @property
    def ok(self) -> bool:
        return (
            self.error is None
            and self.status_code is not None
            and 200 <= self.status_code < 300
            and self.html is not None
        )

    @classmethod
    def failure(
        cls,
        url: str,
        kind: FetchErrorKind,
        message: str,
        *,
        backend: FetchBackend = FetchBackend.REQUESTS,
        status_code: int | None = None,
        elapsed_ms: int | None = None,
    ) -> "FetchResult":
        return cls(
            requested_url=url,
            final_url=None,
            status_code=status_code,
            html=None,
            backend=backend,
            elapsed_ms=elapsed_ms,
            error=message,
            error_kind=kind,
        )


@dataclass(frozen=True, slots=True)
class ErrorRecord:
    """One permanent crawl failure kept in the scheduler's error log."""

    kind: FetchErrorKind
    url: str
    message: str
    depth: int | None = None
    attempts: int = 1
    created_at: str = field(default_factory=utc_now_iso)

    @classmethod
    def from_exception(
        cls,
        *,
        kind: FetchErrorKind,
        url: str,
        exc: Exception,
        **kwargs: Any,
    ) -> "ErrorRecord":
        return cls(
            kind=kind,
            url=url,
            message=f"{exc.__class__.__name__}: {exc}",
            **kwargs,
        )

    def to_json(self) -> JSONDict:
        return {
            "kind": self.kind.value,
            "url": self.url,
            "message": self.message,
            "depth": self.depth,
            "attempts": self.attempts,
            "created_at": self.created_at,
        }

    @classmethod
    def from_json(cls, payload: Mapping[str, Any]) -> "ErrorRecord":
        return cls(
            kind=FetchErrorKind(payload.get("kind", FetchErrorKind.OTHER.value)),
            url=str(payload["url"]),
            message=str(payload.get("message", "")),
            depth=payload.get("depth"),
            attempts=int(payload.get("attempts", 1)),
            created_at=str(payload.get("created_at") or utc_now_iso()),
        )


__all__ = [
    "ContentType",
    "CrawlEvent",
    "CrawledDocument",
    "ErrorRecord",
    "FetchBackend",
    "FetchErrorKind",
    "FetchResult",
    "FrontierEntry",
    "Heading",
    "Image",
    "JSONDict",
    "JSONPrimitive",
    "JSONValue",
    "Keyword",
    "Link",
    "parse_iso_utc",
    "utc_now_iso",
]
