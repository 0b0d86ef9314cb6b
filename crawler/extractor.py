"""Structured content extraction from fetched HTML."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timezone
import json
import logging
import math
import re
from typing import Iterable, Sequence
from urllib.parse import urlsplit

from bs4 import BeautifulSoup, Tag
from dateutil import parser as date_parser

from .constants import (
    DEFAULT_MAX_SEMANTIC_KEYWORDS,
    DEFAULT_MAX_TOPICS,
    DEFAULT_MIN_PARAGRAPH_LENGTH,
    WORDS_PER_MINUTE,
)
from .text import clean_text, extract_keywords, is_stop_word, join_nonempty, word_count
from .types import ContentType, CrawledDocument, Heading, Image, JSONDict, Keyword, Link
from .url import is_internal, resolve_url


LOGGER = logging.getLogger(__name__)

CONTENT_SELECTORS = (
    "article",
    "main",
    ".content",
    ".post-content",
    ".entry-content",
    ".article-body",
    "#content",
    '[role="main"]',
)
NOISE_SELECTORS = (
    "script",
    "style",
    "nav",
    "header",
    "footer",
    "aside",
    ".sidebar",
    ".advertisement",
    ".ads",
    ".social-share",
    ".comments",
    ".related-posts",
    ".breadcrumb",
    ".pagination",
    "noscript",
    ".hidden",
    ".invisible",
)
TITLE_SELECTORS = ("title", "h1", ".title", ".headline", 'meta[property="og:title"]')
DESCRIPTION_SELECTORS = (
    'meta[name="description"]',
    'meta[property="og:description"]',
    'meta[name="twitter:description"]',
    ".summary",
    ".excerpt",
)
AUTHOR_SELECTORS = (
    'meta[name="author"]',
    '[rel="author"]',
    ".author",
    ".byline",
    'meta[property="article:author"]',
)
PUBLISH_DATE_SELECTORS = (
    'meta[property="article:published_time"]',
    'meta[property="article:modified_time"]',
    "time[datetime]",
    ".publish-date",
    ".date",
)
KEYWORD_SELECTORS = (
    'meta[name="keywords"]',
    'meta[property="article:tag"]',
    ".tags",
    ".keywords",
)

HIDDEN_STYLE_RE = re.compile(r"display\s*:\s*none|visibility\s*:\s*hidden", re.IGNORECASE)
KEYWORD_SPLIT_RE = re.compile(r"[,;]+")
LEADING_INT_RE = re.compile(r"^\s*(\d+)")

LINK_CONTEXT_CHARS = 200
IMAGE_CONTEXT_CHARS = 100
DESCRIPTION_FALLBACK_CHARS = 300


class ExtractionError(ValueError):
    """Raised when markup cannot be turned into a document."""


@dataclass(slots=True)
class ExtractorConfig:
    """Config for HTML extraction."""

    min_paragraph_length: int = DEFAULT_MIN_PARAGRAPH_LENGTH
    max_semantic_keywords: int = DEFAULT_MAX_SEMANTIC_KEYWORDS
    max_topics: int = DEFAULT_MAX_TOPICS
    remove_noise: bool = True

    def __post_init__(self) -> None:
        if self.min_paragraph_length < 0:
            raise ValueError("min_paragraph_length must be >= 0")
        if self.max_semantic_keywords <= 0:
            raise ValueError("max_semantic_keywords must be > 0")
        if self.max_topics <= 0:
            raise ValueError("max_topics must be > 0")

    def to_dict(self) -> dict[str, int | bool]:
        return {
            "min_paragraph_length": self.min_paragraph_length,
            "max_semantic_keywords": self.max_semantic_keywords,
            "max_topics": self.max_topics,
            "remove_noise": self.remove_noise,
        }


class ContentExtractor:
    """Turn page markup into a `CrawledDocument`.

    `extract` is a pure function of its inputs; the extractor keeps no state
    between calls and is safe to share across threads.
    """

    def __init__(self, config: ExtractorConfig | None = None) -> None:
        self.config = config or ExtractorConfig()

    def extract(self, html: str | bytes, url: str) -> CrawledDocument:
        parsed_url = urlsplit(url)
        if not parsed_url.hostname:
            raise ExtractionError(f"Cannot extract content for URL without host: {url!r}")

        soup = BeautifulSoup(self._coerce_html_text(html), "lxml")

        # JSON-LD lives in <script> tags, which noise removal drops.
        json_ld = self._extract_json_ld(soup)
        if self.config.remove_noise:
            self._remove_noise(soup)

        title = self._extract_title(soup)
        description = self._extract_description(soup)
        headings = self._extract_headings(soup)
        paragraphs = self._extract_paragraphs(soup)

        total_words = word_count(
            join_nonempty([title, description, *(h.text for h in headings), *paragraphs])
        )
        semantic_keywords = extract_keywords(
            join_nonempty([title, description, *paragraphs]).lower(),
            max_keywords=self.config.max_semantic_keywords,
            min_length=4,
        )
        keywords = self._extract_keywords(soup)

        document = CrawledDocument(
            url=url,
            domain=parsed_url.hostname.lower(),
            path=parsed_url.path or "/",
            language=self._detect_language(soup),
            title=title,
            description=description,
            author=self._extract_author(soup),
            publish_date=self._extract_publish_date(soup),
            keywords=keywords,
            headings=headings,
            paragraphs=paragraphs,
            links=self._extract_links(soup, url),
            images=self._extract_images(soup, url),
            metadata=self._extract_metadata(soup),
            structured_data=json_ld + self._extract_microdata(soup),
            word_count=total_words,
            reading_time=math.ceil(total_words / WORDS_PER_MINUTE),
            content_density=self._content_density(paragraphs, total_words),
            semantic_keywords=semantic_keywords,
            content_type=classify_content(url, title, paragraphs, headings, total_words),
            topics=self._extract_topics(keywords, semantic_keywords, headings),
        )

        LOGGER.debug(
            "Extracted %s: title=%r words=%d headings=%d links=%d images=%d",
            url,
            document.title,
            document.word_count,
            len(document.headings),
            len(document.links),
            len(document.images),
        )
        return document

    @staticmethod
    def _coerce_html_text(html: str | bytes) -> str:
        if isinstance(html, bytes):
            return html.decode("utf-8", errors="replace")
        return html

    @staticmethod
    def _remove_noise(soup: BeautifulSoup) -> None:
        for selector in NOISE_SELECTORS:
            for element in soup.select(selector):
                if not element.decomposed:
                    element.decompose()

        for element in soup.find_all(style=True):
            if element.decomposed:
                continue
            if HIDDEN_STYLE_RE.search(str(element.get("style", ""))):
                element.decompose()

    @staticmethod
    def _element_value(element: Tag) -> str:
        content = element.get("content")
        if content:
            return str(content)
        return element.get_text(" ", strip=True)

    def _first_candidate(
        self,
        soup: BeautifulSoup,
        selectors: Sequence[str],
        *,
        min_length: int = 1,
    ) -> str:
        for selector in selectors:
            element = soup.select_one(selector)
            if element is None:
                continue
            value = self._element_value(element).strip()
            if len(value) >= min_length:
                return clean_text(value)
        return ""

    @staticmethod
    def _detect_language(soup: BeautifulSoup) -> str:
        html_tag = soup.find("html")
        candidates = [
            html_tag.get("lang") if isinstance(html_tag, Tag) else None,
            _meta_content(soup, {"http-equiv": re.compile("^content-language$", re.I)}),
            _meta_content(soup, {"name": re.compile("^language$", re.I)}),
        ]
        for value in candidates:
            if value and str(value).strip():
                return str(value).strip()[:2].lower()
        return "en"

    def _extract_title(self, soup: BeautifulSoup) -> str:
        return self._first_candidate(soup, TITLE_SELECTORS)

    def _extract_description(self, soup: BeautifulSoup) -> str:
        description = self._first_candidate(soup, DESCRIPTION_SELECTORS, min_length=11)
        if description:
            return description

        first_paragraph = soup.find("p")
        if first_paragraph is not None:
            text = first_paragraph.get_text(" ", strip=True)
            if len(text) > 50:
                return clean_text(text[:DESCRIPTION_FALLBACK_CHARS] + "...")
        return ""

    def _extract_author(self, soup: BeautifulSoup) -> str:
        return self._first_candidate(soup, AUTHOR_SELECTORS)

    def _extract_publish_date(self, soup: BeautifulSoup) -> str | None:
        for selector in PUBLISH_DATE_SELECTORS:
            element = soup.select_one(selector)
            if element is None:
                continue
            raw = element.get("content") or element.get("datetime") or element.get_text(" ", strip=True)
            parsed = parse_date(str(raw) if raw else None)
            if parsed is not None:
                return parsed
        return None

    @staticmethod
    def _extract_keywords(soup: BeautifulSoup) -> list[str]:
        keywords: dict[str, None] = {}
        for selector in KEYWORD_SELECTORS:
            for element in soup.select(selector):
                text = element.get("content") or element.get_text(",", strip=True)
                if not text:
                    continue
                for keyword in KEYWORD_SPLIT_RE.split(str(text)):
                    keyword = keyword.strip()
                    if len(keyword) > 2:
                        keywords.setdefault(keyword.lower(), None)
        return list(keywords)

    @staticmethod
    def _extract_headings(soup: BeautifulSoup) -> list[Heading]:
        headings: list[Heading] = []
        for element in soup.find_all(["h1", "h2", "h3", "h4", "h5", "h6"]):
            text = element.get_text(" ", strip=True)
            if not text:
                continue
            element_id = element.get("id")
            headings.append(
                Heading(
                    level=int(element.name[1]),
                    text=clean_text(text),
                    id=str(element_id) if element_id else None,
                )
            )
        return headings

    def _extract_paragraphs(self, soup: BeautifulSoup) -> list[str]:
        container: Tag | BeautifulSoup | None = None
        for selector in CONTENT_SELECTORS:
            container = soup.select_one(selector)
            if container is not None:
                break
        if container is None:
            container = soup.body or soup

        min_length = self.config.min_paragraph_length
        paragraphs: list[str] = []
        for element in container.find_all("p"):
            text = element.get_text(" ", strip=True)
            if len(text) <= min_length:
                continue
            cleaned = clean_text(text)
            if len(cleaned) > min_length:
                paragraphs.append(cleaned)
        return paragraphs

    @staticmethod
    def _extract_links(soup: BeautifulSoup, base_url: str) -> list[Link]:
        links: list[Link] = []
        seen: set[str] = set()

        for element in soup.find_all("a", href=True):
            text = element.get_text(" ", strip=True)
            if not text:
                continue

            absolute = resolve_url(base_url, str(element["href"]))
            if absolute is None:
                LOGGER.debug("Skipping unusable href on %s: %r", base_url, element["href"])
                continue
            if absolute in seen:
                continue
            seen.add(absolute)

            rel = element.get("rel") or []
            if isinstance(rel, str):
                rel = [rel]

            links.append(
                Link(
                    url=absolute,
                    text=clean_text(text),
                    title=clean_text(element.get("title")),
                    context=_truncate(_parent_text(element), LINK_CONTEXT_CHARS),
                    is_internal=is_internal(absolute, base_url),
                    rel=" ".join(str(value) for value in rel),
                )
            )
        return links

    @staticmethod
    def _extract_images(soup: BeautifulSoup, base_url: str) -> list[Image]:
        images: list[Image] = []
        for element in soup.find_all("img", src=True):
            absolute = resolve_url(base_url, str(element["src"]), normalize=False)
            if absolute is None:
                continue

            context = ""
            figure = element.find_parent("figure")
            if figure is not None:
                caption = figure.find("figcaption")
                if caption is not None:
                    context = caption.get_text(" ", strip=True)
            if not context:
                context = _truncate(_parent_text(element), IMAGE_CONTEXT_CHARS)

            images.append(
                Image(
                    src=absolute,
                    alt=clean_text(element.get("alt")),
                    title=clean_text(element.get("title")),
                    width=_leading_int(element.get("width")),
                    height=_leading_int(element.get("height")),
                    context=context,
                )
            )
        return images

    @staticmethod
    def _extract_metadata(soup: BeautifulSoup) -> dict[str, str]:
        metadata: dict[str, str] = {}
        for element in soup.find_all("meta"):
            name = element.get("name") or element.get("property")
            content = element.get("content")
            if name and content:
                metadata[str(name)] = str(content)
        return metadata

    @staticmethod
    def _extract_json_ld(soup: BeautifulSoup) -> list[JSONDict]:
        records: list[JSONDict] = []
        for element in soup.find_all("script", attrs={"type": "application/ld+json"}):
            raw = element.string or element.get_text()
            if not raw or not raw.strip():
                continue
            try:
                data = json.loads(raw)
            except json.JSONDecodeError as exc:
                LOGGER.debug("Skipping malformed JSON-LD block: %s", exc)
                continue
            records.append({"type": "json-ld", "data": data})
        return records

    @staticmethod
    def _extract_microdata(soup: BeautifulSoup) -> list[JSONDict]:
        records: list[JSONDict] = []
        for element in soup.find_all(attrs={"itemscope": True}):
            properties: dict[str, str] = {}
            for prop in element.find_all(attrs={"itemprop": True}):
                value = prop.get("content") or prop.get_text(" ", strip=True)
                properties[str(prop["itemprop"])] = str(value)
            if properties:
                item_type = element.get("itemtype")
                records.append(
                    {
                        "type": "microdata",
                        "item_type": str(item_type) if item_type else None,
                        "properties": properties,
                    }
                )
        return records

    @staticmethod
    def _content_density(paragraphs: Sequence[str], total_words: int) -> float:
        estimated_length = total_words * 5
        if estimated_length <= 0:
            return 0.0
        return min(len("".join(paragraphs)) / estimated_length, 1.0)

    def _extract_topics(
        self,
        keywords: Iterable[str],
        semantic_keywords: Sequence[Keyword],
        headings: Iterable[Heading],
    ) -> list[str]:
        topics: dict[str, None] = {}
        for keyword in keywords:
            topics.setdefault(keyword, None)
        for keyword in semantic_keywords[:10]:
            topics.setdefault(keyword.word, None)
        for heading in headings:
            for word in heading.text.lower().split():
                if len(word) > 4 and not is_stop_word(word):
                    topics.setdefault(word, None)
        return list(topics)[: self.config.max_topics]


def classify_content(
    url: str,
    title: str,
    paragraphs: Sequence[str],
    headings: Sequence[Heading],
    total_words: int,
) -> ContentType:
    """Classify a page by URL path, then vocabulary, then structure."""

    lowered_url = url.lower()
    if "/blog/" in lowered_url or "/post/" in lowered_url:
        return ContentType.BLOG_POST
    if "/news/" in lowered_url:
        return ContentType.NEWS_ARTICLE
    if "/product/" in lowered_url:
        return ContentType.PRODUCT_PAGE
    if "/about" in lowered_url:
        return ContentType.ABOUT_PAGE
    if "/contact" in lowered_url:
        return ContentType.CONTACT_PAGE

    text = " ".join(paragraphs).lower()
    if "recipe" in text or "ingredients" in text:
        return ContentType.RECIPE
    if "tutorial" in text or "how to" in text:
        return ContentType.TUTORIAL
    if "review" in text and "rating" in text:
        return ContentType.REVIEW

    if len(headings) > 3 and total_words > 500:
        return ContentType.ARTICLE
    if len(paragraphs) < 3:
        return ContentType.LANDING_PAGE
    return ContentType.WEBPAGE


def parse_date(value: str | None) -> str | None:
    """Parse a free-form date string into an ISO-8601 UTC timestamp."""

    if not value or not value.strip():
        return None
    try:
        parsed = date_parser.parse(value.strip())
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).isoformat()


def _meta_content(soup: BeautifulSoup, attrs: dict[str, object]) -> str | None:
    element = soup.find("meta", attrs=attrs)
    if isinstance(element, Tag):
        content = element.get("content")
        return str(content) if content else None
    return None


def _parent_text(element: Tag) -> str:
    parent = element.parent
    if parent is None:
        return ""
    return parent.get_text(" ", strip=True)


def _truncate(text: str, limit: int) -> str:
    return text[:limit] + "..." if len(text) > limit else text


def _leading_int(value: object) -> int | None:
    if value is None:
        return None
    match = LEADING_INT_RE.match(str(value))
    return int(match.group(1)) if match else None


__all__ = [
    "CONTENT_SELECTORS",
    "NOISE_SELECTORS",
    "ContentExtractor",
    "ExtractionError",
    "ExtractorConfig",
    "classify_content",
    "parse_date",
]
