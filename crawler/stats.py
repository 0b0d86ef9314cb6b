"""Thread-safe crawl statistics aggregation utilities."""

from __future__ import annotations

from collections import defaultdict
import threading
import time
from typing import Any, Mapping

from .types import CrawledDocument, FetchErrorKind, FetchResult, utc_now_iso
from .url import hostname


class StatsCollector:
    """Collect and summarize crawl session statistics.

    The collector is thread-safe; the scheduler records into it from
    concurrent fetch completions.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.reset()

    def reset(self) -> None:
        with self._lock:
            self._started_at: str | None = None
            self._finished_at: str | None = None
            self._started_monotonic: float | None = None
            self._finished_monotonic: float | None = None

            self._total_pages = 0
            self._total_failed = 0
            self._total_words = 0
            self._quality_sum = 0
            self._domains: set[str] = set()

            self._robots_blocked = 0
            self._retries = 0
            self._error_kind_counts: dict[str, int] = defaultdict(int)
            self._fetch_elapsed_ms_total = 0
            self._fetch_elapsed_samples = 0

    def start(self) -> None:
        """Mark the session start; repeated calls keep the first timestamp."""

        with self._lock:
            if self._started_monotonic is None:
                self._started_at = utc_now_iso()
                self._started_monotonic = time.monotonic()
            self._finished_at = None
            self._finished_monotonic = None

    def finish(self) -> None:
        with self._lock:
            self._finished_at = utc_now_iso()
            self._finished_monotonic = time.monotonic()

    def record_page(self, document: CrawledDocument) -> None:
        """Record one successfully crawled and scored document."""

        with self._lock:
            self._total_pages += 1
            self._total_words += document.word_count
            self._quality_sum += document.quality_score
            host = hostname(document.url)
            if host:
                self._domains.add(host)

    def record_failure(self, kind: FetchErrorKind) -> None:
        with self._lock:
            self._total_failed += 1
            self._error_kind_counts[kind.value] += 1
            if kind == FetchErrorKind.ROBOTS_BLOCKED:
                self._robots_blocked += 1

    def record_retry(self) -> None:
        with self._lock:
            self._retries += 1

    def record_fetch(self, result: FetchResult) -> None:
        if result.elapsed_ms is None:
            return
        with self._lock:
            self._fetch_elapsed_ms_total += int(result.elapsed_ms)
            self._fetch_elapsed_samples += 1

    def restore(self, payload: Mapping[str, Any]) -> None:
        """Seed counters from an exported summary."""

        with self._lock:
            self._total_pages = int(payload.get("total_pages", 0))
            self._total_failed = int(payload.get("total_failed", 0))
            self._total_words = int(payload.get("total_words", 0))
            self._quality_sum = int(
                round(float(payload.get("average_quality", 0)) * self._total_pages)
            )
            self._robots_blocked = int(payload.get("robots_blocked", 0))
            self._retries = int(payload.get("retries", 0))
            self._error_kind_counts = defaultdict(
                int, {str(k): int(v) for k, v in dict(payload.get("error_kinds", {})).items()}
            )
            self._domains = set(str(item) for item in payload.get("domains", []))

    @property
    def total_pages(self) -> int:
        with self._lock:
            return self._total_pages

    @property
    def average_quality(self) -> float:
        with self._lock:
            return self._quality_sum / self._total_pages if self._total_pages else 0.0

    def summary(self, *, pending_urls: int = 0) -> dict[str, Any]:
        """Return the session summary as a JSON-serializable dict."""

        with self._lock:
            total_urls = self._total_pages + self._total_failed
            duration_seconds = self._duration_seconds_locked()
            average_quality = self._quality_sum / self._total_pages if self._total_pages else 0.0
            fetch_elapsed_avg = (
                self._fetch_elapsed_ms_total / self._fetch_elapsed_samples
                if self._fetch_elapsed_samples > 0
                else 0.0
            )

            return {
                "total_pages": self._total_pages,
                "total_urls": total_urls,
                "total_words": self._total_words,
                "total_failed": self._total_failed,
                "average_quality": round(average_quality),
                "unique_domains": len(self._domains),
                "domains": sorted(self._domains),
                "pending_urls": pending_urls,
                "duration_seconds": round(duration_seconds, 3),
                "pages_per_second": (
                    round(self._total_pages / duration_seconds, 3) if duration_seconds > 0 else 0.0
                ),
                "success_rate": round(self._total_pages / total_urls * 100) if total_urls else 0,
                "robots_blocked": self._robots_blocked,
                "retries": self._retries,
                "error_kinds": dict(self._error_kind_counts),
                "fetch_elapsed_ms_avg": fetch_elapsed_avg,
                "started_at": self._started_at,
                "finished_at": self._finished_at,
            }

    def _duration_seconds_locked(self) -> float:
        if self._started_monotonic is None:
            return 0.0
        end = self._finished_monotonic
        if end is None:
            end = time.monotonic()
        return max(0.0, end - self._started_monotonic)


__all__ = ["StatsCollector"]
