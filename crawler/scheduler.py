"""Crawl scheduling: fetch, extract, score, index, and re-schedule."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import replace
import logging
import threading
from typing import Any, Callable, Iterable, Iterator, Mapping, Protocol

from retrieval.search_index import SearchIndex, SearchResponse, document_id_for

from .config import CrawlConfig
from .constants import DEFAULT_PRIORITY, SNAPSHOT_VERSION
from .extractor import ContentExtractor
from .fetcher import BrowserUnavailableError, Fetcher, RobotsPolicy
from .frontier import EnqueueStatus, Frontier
from .links import LinkPrioritizer, filter_by_domain_policy
from .quality import QualityScorer
from .stats import StatsCollector
from .types import (
    CrawlEvent,
    CrawledDocument,
    ErrorRecord,
    FetchErrorKind,
    FetchResult,
    utc_now_iso,
)
from .url import normalize_url


LOGGER = logging.getLogger(__name__)

Listener = Callable[[dict[str, Any]], None]


class PageFetcher(Protocol):
    def fetch(self, url: str, *, timeout: float | None = None) -> FetchResult: ...

    def close(self) -> None: ...


class RobotsPredicate(Protocol):
    def allowed(self, url: str, user_agent: str | None = None) -> bool: ...


class Scheduler:
    """Owns one crawl session: frontier, content store, link graph, and index.

    Concurrency model:
    - `crawl_one` may be called from several threads; a bounded semaphore
      caps simultaneous fetches at `max_concurrency`, and every fetch waits
      `delay_seconds` after taking its slot.
    - Store, index, and frontier updates are serialized under one lock.
    - `crawl_batch` drains the frontier one entry at a time, highest
      priority first.
    """

    def __init__(
        self,
        config: CrawlConfig | None = None,
        *,
        fetcher: PageFetcher | None = None,
        robots: RobotsPredicate | None = None,
        extractor: ContentExtractor | None = None,
        scorer: QualityScorer | None = None,
        prioritizer: LinkPrioritizer | None = None,
        index: SearchIndex | None = None,
        stats: StatsCollector | None = None,
    ) -> None:
        self.config = config or CrawlConfig()

        self.fetcher: PageFetcher = fetcher or Fetcher(self.config)
        self.robots = robots
        if self.robots is None and self.config.respect_robots:
            self.robots = RobotsPolicy(self.config.user_agent)
        self.extractor = extractor or ContentExtractor(self.config.extractor)
        self.scorer = scorer or QualityScorer()
        self.prioritizer = prioritizer or LinkPrioritizer()
        self.index = index or SearchIndex(self.config.search)
        self.stats = stats or StatsCollector()

        self._owns_fetcher = fetcher is None

        self.frontier = Frontier()
        self.content_store: dict[str, CrawledDocument] = {}
        self.link_graph: dict[str, list[dict[str, str]]] = {}
        self._errors: list[ErrorRecord] = []

        self._state_lock = threading.Lock()
        self._slots = threading.BoundedSemaphore(self.config.max_concurrency)
        self._stop_event = threading.Event()
        self._listeners: dict[CrawlEvent, list[Listener]] = {event: [] for event in CrawlEvent}

    def on(self, event: CrawlEvent | str, callback: Listener) -> None:
        """Register `callback(payload)` for a crawl event."""

        self._listeners[CrawlEvent(event)].append(callback)

    def _emit(self, event: CrawlEvent, payload: dict[str, Any]) -> None:
        for callback in list(self._listeners[event]):
            try:
                callback(payload)
            except Exception:
                LOGGER.exception("Listener for %s failed", event.value)

    def stop(self) -> None:
        """Stop starting new fetches; in-flight fetches run to completion."""

        LOGGER.info("Stop requested")
        self._stop_event.set()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def start_crawl(
        self,
        urls: Iterable[str],
        max_depth: int = 2,
        follow_links: bool = True,
    ) -> dict[str, Any]:
        """Crawl `urls`; returns `{"stats": ..., "document": ...}`.

        With `follow_links=False` only the first URL is fetched and its
        document (or None) is returned.
        """

        seeds = [url for url in urls if url and url.strip()]
        if not seeds:
            raise ValueError("start_crawl requires at least one URL")

        if follow_links:
            return {"stats": self.crawl_batch(seeds, max_depth=max_depth), "document": None}

        self._stop_event.clear()
        self.stats.start()
        document = self.crawl_one(
            seeds[0],
            depth=0,
            priority=self.config.seed_priority,
            max_depth=max_depth,
            follow_links=False,
        )
        self.stats.finish()
        return {"stats": self.get_stats(), "document": document}

    def crawl_batch(
        self,
        seeds: Iterable[str],
        *,
        max_depth: int | None = None,
    ) -> dict[str, Any]:
        """Seed the frontier and crawl until it is empty or `stop` is called."""

        depth_limit = self.config.max_depth if max_depth is None else max_depth
        seeds = list(seeds)

        self._stop_event.clear()
        self.stats.start()
        LOGGER.info(
            "Starting crawl: seeds=%d max_depth=%d max_concurrency=%d",
            len(seeds),
            depth_limit,
            self.config.max_concurrency,
        )
        self._emit(CrawlEvent.CRAWL_STARTED, {"seeds": seeds, "max_depth": depth_limit})

        for seed in seeds:
            result = self.frontier.push(
                seed,
                depth=0,
                priority=self.config.seed_priority,
                max_depth=depth_limit,
            )
            if result.status == EnqueueStatus.SKIPPED_INVALID_URL:
                self._record_invalid_url(seed, depth=0)

        while not self._stop_event.is_set():
            entry = self.frontier.pop()
            if entry is None:
                break
            self.crawl_one(
                entry.url,
                depth=entry.depth,
                priority=entry.priority,
                parent_url=entry.parent_url,
                max_depth=depth_limit,
            )

        self.stats.finish()
        summary = self.get_stats()
        if self._stop_event.is_set():
            LOGGER.info("Crawl stopped: %s", _summary_line(summary))
            self._emit(CrawlEvent.CRAWL_STOPPED, summary)
        else:
            LOGGER.info("Crawl completed: %s", _summary_line(summary))
            self._emit(CrawlEvent.CRAWL_COMPLETED, summary)
        return summary

    def crawl_one(
        self,
        url: str,
        depth: int = 0,
        priority: float = DEFAULT_PRIORITY,
        *,
        parent_url: str | None = None,
        max_depth: int | None = None,
        follow_links: bool = True,
    ) -> CrawledDocument | None:
        """Crawl one URL; returns the stored document, or None if skipped or failed."""

        depth_limit = self.config.max_depth if max_depth is None else max_depth

        normalized = normalize_url(url)
        if normalized is None:
            self._record_invalid_url(url, depth=depth)
            return None
        if depth > depth_limit:
            LOGGER.debug("Skipping %s: depth %d exceeds %d", normalized, depth, depth_limit)
            return None
        if self._stop_event.is_set():
            # The caller may already have popped this entry.
            self.frontier.push(normalized, depth=depth, priority=priority, parent_url=parent_url)
            return None
        if not self.frontier.claim(normalized):
            LOGGER.debug("Skipping %s: already crawled, failed, or in flight", normalized)
            return None

        if (
            self.config.respect_robots
            and self.robots is not None
            and not self.robots.allowed(normalized, self.config.user_agent)
        ):
            self._record_failure(
                normalized,
                FetchErrorKind.ROBOTS_BLOCKED,
                "Blocked by robots.txt",
                depth=depth,
                attempts=0,
            )
            return None

        try:
            fetched = self._fetch_with_retries(normalized, depth=depth)
        except BrowserUnavailableError:
            self.frontier.release(normalized)
            self.frontier.push(normalized, depth=depth, priority=priority, parent_url=parent_url)
            raise

        if fetched is None:
            # Stop was requested before the fetch began.
            self.frontier.release(normalized)
            self.frontier.push(normalized, depth=depth, priority=priority, parent_url=parent_url)
            return None

        result, attempts = fetched
        if not result.ok:
            self._record_failure(
                normalized,
                result.error_kind or FetchErrorKind.OTHER,
                result.error or "Unknown fetch failure",
                depth=depth,
                attempts=attempts,
            )
            return None

        return self._process_page(
            normalized,
            result,
            depth=depth,
            priority=priority,
            attempts=attempts,
            max_depth=depth_limit,
            follow_links=follow_links,
        )

    @contextmanager
    def _slot(self) -> Iterator[None]:
        self._slots.acquire()
        try:
            if self.config.delay_seconds > 0:
                self._stop_event.wait(self.config.delay_seconds)
            yield
        finally:
            self._slots.release()

    def _fetch_with_retries(self, url: str, *, depth: int) -> tuple[FetchResult, int] | None:
        attempts = 0
        while True:
            with self._slot():
                if self._stop_event.is_set() and attempts == 0:
                    return None
                attempts += 1
                result = self._fetch_once(url)
            self.stats.record_fetch(result)

            if result.ok:
                return result, attempts

            kind = result.error_kind or FetchErrorKind.OTHER
            if (
                not kind.retryable
                or attempts > self.config.max_retries
                or self._stop_event.is_set()
            ):
                return result, attempts

            LOGGER.info(
                "Retrying %s (attempt %d/%d) after %s",
                url,
                attempts + 1,
                self.config.max_retries + 1,
                result.error,
            )
            self.stats.record_retry()
            self._stop_event.wait(self.config.retry_delay_seconds)

    def _fetch_once(self, url: str) -> FetchResult:
        try:
            return self.fetcher.fetch(url, timeout=self.config.timeout_seconds)
        except BrowserUnavailableError:
            raise
        except Exception as exc:
            return FetchResult.failure(url, FetchErrorKind.OTHER, f"{exc.__class__.__name__}: {exc}")

    def _process_page(
        self,
        url: str,
        result: FetchResult,
        *,
        depth: int,
        priority: float,
        attempts: int,
        max_depth: int,
        follow_links: bool,
    ) -> CrawledDocument | None:
        try:
            extracted = self.extractor.extract(result.html or "", url)
            quality = self.scorer.score(extracted)
        except Exception as exc:
            record = ErrorRecord.from_exception(
                kind=FetchErrorKind.EXTRACTION,
                url=url,
                exc=exc,
                depth=depth,
                attempts=attempts,
            )
            self._record_failure(url, record.kind, record.message, depth=depth, attempts=attempts)
            return None

        document = replace(
            extracted,
            quality_score=quality,
            crawl_depth=depth,
            crawl_priority=priority,
        )
        doc_id = document_id_for(url)

        with self._state_lock:
            self.content_store[doc_id] = document
            self.index.index_document(doc_id, document)
            self.link_graph[url] = [
                {"url": link.url, "text": link.text, "context": link.context}
                for link in document.links
            ]
            self.frontier.mark_crawled(url)

        self.stats.record_page(document)
        LOGGER.info(
            "Crawled %s depth=%d title=%r words=%d quality=%d",
            url,
            depth,
            document.title,
            document.word_count,
            document.quality_score,
        )
        self._emit(
            CrawlEvent.PAGE_CRAWLED,
            {
                "url": url,
                "title": document.title,
                "depth": depth,
                "quality": document.quality_score,
                "word_count": document.word_count,
            },
        )

        if follow_links and depth < max_depth:
            self._schedule_children(document, depth=depth, max_depth=max_depth)
        return document

    def _schedule_children(self, document: CrawledDocument, *, depth: int, max_depth: int) -> int:
        links = filter_by_domain_policy(document.links, self.config.link_policy)
        ranked = self.prioritizer.prioritize(links, document.url)

        accepted = 0
        for scored in ranked[: self.config.max_children_per_page]:
            result = self.frontier.push(
                scored.url,
                depth=depth + 1,
                priority=scored.priority,
                parent_url=document.url,
                max_depth=max_depth,
            )
            if result.accepted:
                accepted += 1

        LOGGER.debug("Scheduled %d children of %s", accepted, document.url)
        return accepted

    def _record_invalid_url(self, url: str, *, depth: int) -> None:
        LOGGER.warning("Rejected invalid URL: %r", url)
        with self._state_lock:
            self._errors.append(
                ErrorRecord(
                    kind=FetchErrorKind.INVALID_URL,
                    url=str(url),
                    message="Invalid or unsupported URL",
                    depth=depth,
                    attempts=0,
                )
            )

    def _record_failure(
        self,
        url: str,
        kind: FetchErrorKind,
        message: str,
        *,
        depth: int,
        attempts: int,
    ) -> None:
        record = ErrorRecord(kind=kind, url=url, message=message, depth=depth, attempts=attempts)
        with self._state_lock:
            self.frontier.mark_failed(url)
            self._errors.append(record)
        self.stats.record_failure(kind)

        if kind == FetchErrorKind.ROBOTS_BLOCKED:
            LOGGER.info("Blocked by robots.txt: %s", url)
            return

        LOGGER.warning("Failed %s after %d attempt(s): [%s] %s", url, attempts, kind.value, message)
        self._emit(
            CrawlEvent.CRAWL_ERROR,
            {"url": url, "error": message, "kind": kind.value, "depth": depth},
        )

    def errors(self) -> list[ErrorRecord]:
        with self._state_lock:
            return list(self._errors)

    def get_stats(self) -> dict[str, Any]:
        return self.stats.summary(pending_urls=len(self.frontier))

    def search(self, query: str, **kwargs: Any) -> SearchResponse:
        return self.index.search(query, **kwargs)

    def suggest(self, partial_query: str, limit: int = 10) -> list[str]:
        return self.index.suggest(partial_query, limit)

    def export_data(self) -> dict[str, Any]:
        """Snapshot of the whole session, enough to search without re-crawling."""

        with self._state_lock:
            return {
                "metadata": {
                    "export_date": utc_now_iso(),
                    "version": SNAPSHOT_VERSION,
                    "stats": self.get_stats(),
                    "config": self.config.to_dict(),
                },
                "crawled_urls": sorted(self.frontier.crawled_urls()),
                "failed_urls": sorted(self.frontier.failed_urls()),
                "pending": [entry.to_json() for entry in self.frontier.pending_entries()],
                "content_store": {
                    doc_id: document.to_json() for doc_id, document in self.content_store.items()
                },
                "link_graph": {url: list(links) for url, links in self.link_graph.items()},
                "errors": [record.to_json() for record in self._errors],
                "search_index": self.index.export_index(),
            }

    def import_data(self, payload: Mapping[str, Any]) -> None:
        """Replace session state with an `export_data` snapshot."""

        content_store = {
            str(doc_id): CrawledDocument.from_json(document)
            for doc_id, document in dict(payload.get("content_store", {})).items()
        }
        errors = [ErrorRecord.from_json(item) for item in payload.get("errors", [])]

        with self._state_lock:
            self.frontier.clear()
            self.frontier.restore(
                crawled=payload.get("crawled_urls", []),
                failed=payload.get("failed_urls", []),
            )
            for entry in payload.get("pending", []):
                self.frontier.push(
                    str(entry["url"]),
                    depth=int(entry.get("depth", 0)),
                    priority=float(entry.get("priority", DEFAULT_PRIORITY)),
                    parent_url=entry.get("parent_url"),
                )

            self.content_store = content_store
            self.link_graph = {
                str(url): [dict(link) for link in links]
                for url, links in dict(payload.get("link_graph", {})).items()
            }
            self._errors = errors

            if payload.get("search_index"):
                self.index.import_index(payload["search_index"])
            else:
                self.index.clear()
                for doc_id, document in content_store.items():
                    self.index.index_document(doc_id, document)

        self.stats.restore(dict(payload.get("metadata", {}).get("stats", {})))
        LOGGER.info(
            "Imported snapshot: documents=%d crawled=%d failed=%d",
            len(content_store),
            len(self.frontier.crawled_urls()),
            len(self.frontier.failed_urls()),
        )

    def clear(self) -> None:
        """Drop all session state, including the search index."""

        with self._state_lock:
            self.frontier.clear()
            self.content_store.clear()
            self.link_graph.clear()
            self._errors.clear()
            self.index.clear()
        self.stats.reset()

    def close(self) -> None:
        if self._owns_fetcher:
            self.fetcher.close()

    def __enter__(self) -> "Scheduler":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _summary_line(summary: Mapping[str, Any]) -> str:
    return (
        f"pages={summary['total_pages']} failed={summary['total_failed']} "
        f"words={summary['total_words']} avg_quality={summary['average_quality']} "
        f"pending={summary['pending_urls']} duration={summary['duration_seconds']}s"
    )


__all__ = [
    "PageFetcher",
    "RobotsPredicate",
    "Scheduler",
]
