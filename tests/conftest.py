"""Shared fixtures: HTML pages, document factories, and network-free fakes."""

from __future__ import annotations

import threading
import time
from collections import Counter
from typing import Callable

import pytest

from crawler.config import CrawlConfig
from crawler.types import ContentType, CrawledDocument, FetchBackend, FetchErrorKind, FetchResult


ARTICLE_URL = "https://example.com/guides/generators"

ARTICLE_HTML = """<!DOCTYPE html>
<html lang="en-US">
<head>
  <title>Understanding Python Generators</title>
  <meta name="description" content="A practical guide to Python generators, iterators, and lazy evaluation.">
  <meta name="author" content="Jane Writer">
  <meta name="keywords" content="python, generators, iterators">
  <meta property="article:published_time" content="2024-03-01T10:00:00Z">
  <script type="application/ld+json">{"@type": "Article", "headline": "Understanding Python Generators"}</script>
  <script>var tracking = 1;</script>
</head>
<body>
  <nav><a href="/home">Home navigation link</a></nav>
  <article>
    <h1>Understanding Python Generators</h1>
    <p>Generators let you produce values lazily, one at a time, without building a full list in memory.</p>
    <h2 id="yield">The yield keyword</h2>
    <p>Each call to next resumes the generator function right after the last yield statement.</p>
    <p>Short one.</p>
    <h3>Generator expressions</h3>
    <p>Generator expressions look like list comprehensions but use parentheses and evaluate lazily.</p>
    <p>Read the <a href="/blog/iterators-explained">detailed article about iterators</a> for more background.</p>
    <p>See also the <a href="https://docs.python.org/3/tutorial/classes.html#generators">official tutorial section</a> on the topic.</p>
    <img src="/images/generator.png" alt="Diagram of generator flow" width="640px" height="480">
    <div style="display: none"><p>This hidden paragraph should never be extracted by the parser.</p></div>
  </article>
  <footer><p>Copyright footer text that is long enough to count as a paragraph.</p></footer>
</body>
</html>
"""


def make_page(title: str, body: str, links: tuple[tuple[str, str], ...] = ()) -> str:
    anchors = "".join(
        f'<p>Continue with <a href="{href}">{text}</a> for more detailed information.</p>'
        for href, text in links
    )
    return (
        f"<html><head><title>{title}</title></head><body><article>"
        f"<h1>{title}</h1><p>{body}</p>{anchors}</article></body></html>"
    )


SITE_PAGES = {
    "https://example.com/": make_page(
        "Example Home",
        "Welcome to the example site where we write about python generators and iterators.",
        (
            ("/blog/first-post", "First blog post about generators"),
            ("/blog/second-post", "Second blog post about iterators"),
            ("/login", "Login to your account"),
        ),
    ),
    "https://example.com/blog/first-post": make_page(
        "First Post",
        "Generators produce values lazily and keep memory usage small in long pipelines.",
        (
            ("/", "Back to the home page"),
            ("/blog/second-post", "Second blog post about iterators"),
        ),
    ),
    "https://example.com/blog/second-post": make_page(
        "Second Post",
        "Iterators implement the iteration protocol with the dunder next method.",
        (("/blog/third-post", "Third blog post about coroutines"),),
    ),
    "https://example.com/blog/third-post": make_page(
        "Third Post",
        "Coroutines extend generators so that values can be sent back into them.",
    ),
}


class FakeFetcher:
    """In-memory page fetcher that records every call.

    `responses` maps a URL to an HTML string, a `FetchResult`, or a list of
    either (consumed one per call, the last one repeating).
    """

    def __init__(
        self,
        responses: dict | None = None,
        *,
        default_html: str | None = None,
        delay_seconds: float = 0.0,
    ) -> None:
        self.responses = dict(responses or {})
        self.default_html = default_html
        self.delay_seconds = delay_seconds
        self.calls: list[str] = []
        self.closed = False
        self.max_in_flight = 0
        self._in_flight = 0
        self._lock = threading.Lock()

    @property
    def call_counts(self) -> Counter:
        return Counter(self.calls)

    def fetch(self, url: str, *, timeout: float | None = None) -> FetchResult:
        with self._lock:
            self.calls.append(url)
            attempt = self.calls.count(url)
            self._in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self._in_flight)
        try:
            if self.delay_seconds:
                time.sleep(self.delay_seconds)
            return self._response_for(url, attempt)
        finally:
            with self._lock:
                self._in_flight -= 1

    def _response_for(self, url: str, attempt: int) -> FetchResult:
        response = self.responses.get(url, self.default_html)
        if isinstance(response, list):
            response = response[min(attempt, len(response)) - 1]
        if response is None:
            return FetchResult.failure(url, FetchErrorKind.HTTP_ERROR, "HTTP 404", status_code=404)
        if isinstance(response, FetchResult):
            return response
        return FetchResult(
            requested_url=url,
            final_url=url,
            status_code=200,
            html=response,
            backend=FetchBackend.REQUESTS,
            elapsed_ms=5,
        )

    def close(self) -> None:
        self.closed = True


class FakeRobots:
    def __init__(self, disallowed_prefixes: tuple[str, ...] = ()) -> None:
        self.disallowed_prefixes = disallowed_prefixes
        self.checked: list[str] = []

    def allowed(self, url: str, user_agent: str | None = None) -> bool:
        self.checked.append(url)
        return not any(url.startswith(prefix) for prefix in self.disallowed_prefixes)


def transient_failure(url: str) -> FetchResult:
    return FetchResult.failure(url, FetchErrorKind.TRANSIENT, "ConnectionError: reset by peer")


@pytest.fixture
def crawl_config() -> CrawlConfig:
    return CrawlConfig(
        backend=FetchBackend.REQUESTS,
        max_concurrency=2,
        delay_seconds=0.0,
        retry_delay_seconds=0.0,
        respect_robots=False,
    )


@pytest.fixture
def site_fetcher() -> FakeFetcher:
    return FakeFetcher(SITE_PAGES)


@pytest.fixture
def make_document() -> Callable[..., CrawledDocument]:
    def _make(
        url: str = "https://example.com/page",
        *,
        title: str = "",
        description: str = "",
        paragraphs: list[str] | None = None,
        quality_score: int = 0,
        content_type: ContentType = ContentType.WEBPAGE,
        publish_date: str | None = None,
        topics: list[str] | None = None,
        word_count: int | None = None,
        **kwargs,
    ) -> CrawledDocument:
        paragraphs = list(paragraphs or [])
        if word_count is None:
            word_count = sum(len(text.split()) for text in [title, description, *paragraphs])
        return CrawledDocument(
            url=url,
            domain="example.com",
            title=title,
            description=description,
            paragraphs=paragraphs,
            quality_score=quality_score,
            content_type=content_type,
            publish_date=publish_date,
            topics=list(topics or []),
            word_count=word_count,
            **kwargs,
        )

    return _make
