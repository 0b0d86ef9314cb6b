"""Thread-safe priority frontier with crawl-session dedup bookkeeping."""

from __future__ import annotations

import heapq
import itertools
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from .types import FrontierEntry
from .url import normalize_url


class EnqueueStatus(str, Enum):
    """Result status for frontier enqueue attempts."""

    ENQUEUED = "enqueued"
    SKIPPED_INVALID_URL = "skipped_invalid_url"
    SKIPPED_DEPTH = "skipped_depth"
    SKIPPED_SEEN = "skipped_seen"
    SKIPPED_PENDING = "skipped_pending"


@dataclass(frozen=True, slots=True)
class EnqueueResult:
    """Outcome of one enqueue attempt."""

    status: EnqueueStatus
    normalized_url: str | None = None
    entry: FrontierEntry | None = None

    @property
    def accepted(self) -> bool:
        return self.status == EnqueueStatus.ENQUEUED


class Frontier:
    """Pending/crawled/failed URL sets plus a max-priority queue.

    - `push` dedups against every set and the in-flight claims.
    - `pop` returns the highest-priority pending entry; equal priorities come
      out in insertion order.
    - `claim` moves a URL into the in-flight set so that it is fetched at most
      once per session; `mark_crawled` / `mark_failed` release the claim into
      exactly one terminal set.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._heap: list[tuple[float, int, str]] = []
        self._counter = itertools.count()

        self._pending: dict[str, FrontierEntry] = {}
        # Heap sequence of the live row for each pending URL.
        self._live_seq: dict[str, int] = {}
        self._in_flight: set[str] = set()
        self._crawled: set[str] = set()
        self._failed: set[str] = set()

        self._enqueued_count = 0
        self._dequeued_count = 0
        self._skipped_seen_count = 0
        self._skipped_depth_count = 0
        self._skipped_invalid_count = 0

    def push(
        self,
        url: str,
        *,
        depth: int,
        priority: float,
        parent_url: str | None = None,
        max_depth: int | None = None,
    ) -> EnqueueResult:
        """Attempt to enqueue one URL with dedup and depth checks enforced."""

        normalized = normalize_url(url)
        if not normalized:
            with self._lock:
                self._skipped_invalid_count += 1
            return EnqueueResult(EnqueueStatus.SKIPPED_INVALID_URL)

        if max_depth is not None and depth > max_depth:
            with self._lock:
                self._skipped_depth_count += 1
            return EnqueueResult(EnqueueStatus.SKIPPED_DEPTH, normalized_url=normalized)

        with self._lock:
            if self._is_seen_locked(normalized):
                self._skipped_seen_count += 1
                return EnqueueResult(EnqueueStatus.SKIPPED_SEEN, normalized_url=normalized)
            if normalized in self._pending:
                self._skipped_seen_count += 1
                return EnqueueResult(EnqueueStatus.SKIPPED_PENDING, normalized_url=normalized)

            entry = FrontierEntry(
                url=normalized,
                depth=depth,
                priority=priority,
                parent_url=parent_url,
            )
            seq = next(self._counter)
            self._pending[normalized] = entry
            self._live_seq[normalized] = seq
            heapq.heappush(self._heap, (-priority, seq, normalized))
            self._enqueued_count += 1

        return EnqueueResult(EnqueueStatus.ENQUEUED, normalized_url=normalized, entry=entry)

    def pop(self) -> FrontierEntry | None:
        """Remove and return the highest-priority pending entry, or None."""

        with self._lock:
            while self._heap:
                _, seq, url = heapq.heappop(self._heap)
                # `claim` and re-pushes leave stale heap rows behind.
                if self._live_seq.get(url) != seq:
                    continue
                del self._live_seq[url]
                self._dequeued_count += 1
                return self._pending.pop(url)
            return None

    def claim(self, url: str) -> bool:
        """Mark a normalized URL as in flight; False if already seen or claimed."""

        with self._lock:
            if self._is_seen_locked(url):
                return False
            self._pending.pop(url, None)
            self._live_seq.pop(url, None)
            self._in_flight.add(url)
            return True

    def release(self, url: str) -> None:
        """Drop an in-flight claim without recording an outcome."""

        with self._lock:
            self._in_flight.discard(url)

    def mark_crawled(self, url: str) -> None:
        with self._lock:
            self._in_flight.discard(url)
            self._failed.discard(url)
            self._crawled.add(url)

    def mark_failed(self, url: str) -> None:
        with self._lock:
            self._in_flight.discard(url)
            if url not in self._crawled:
                self._failed.add(url)

    def is_seen(self, url: str) -> bool:
        """True if URL was crawled, failed, or is currently in flight."""

        with self._lock:
            return self._is_seen_locked(url)

    def is_pending(self, url: str) -> bool:
        with self._lock:
            return url in self._pending

    def _is_seen_locked(self, url: str) -> bool:
        return url in self._crawled or url in self._failed or url in self._in_flight

    def restore(self, *, crawled: Iterable[str] = (), failed: Iterable[str] = ()) -> None:
        """Seed terminal sets from a snapshot; pending entries are left alone."""

        with self._lock:
            self._crawled.update(crawled)
            self._failed.update(url for url in failed if url not in self._crawled)

    def clear(self) -> None:
        with self._lock:
            self._heap.clear()
            self._pending.clear()
            self._live_seq.clear()
            self._in_flight.clear()
            self._crawled.clear()
            self._failed.clear()

    def pending_entries(self) -> list[FrontierEntry]:
        """Pending entries in pop order."""

        with self._lock:
            ordered = sorted(
                (item for item in self._heap if self._live_seq.get(item[2]) == item[1]),
                key=lambda item: (item[0], item[1]),
            )
            return [self._pending[url] for _, _, url in ordered]

    def crawled_urls(self) -> set[str]:
        with self._lock:
            return set(self._crawled)

    def failed_urls(self) -> set[str]:
        with self._lock:
            return set(self._failed)

    def in_flight_count(self) -> int:
        with self._lock:
            return len(self._in_flight)

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    def empty(self) -> bool:
        return len(self) == 0

    def snapshot(self) -> dict[str, int]:
        """Return frontier counters for logs/stats reporting."""

        with self._lock:
            return {
                "pending": len(self._pending),
                "in_flight": len(self._in_flight),
                "crawled": len(self._crawled),
                "failed": len(self._failed),
                "enqueued": self._enqueued_count,
                "dequeued": self._dequeued_count,
                "skipped_seen": self._skipped_seen_count,
                "skipped_depth": self._skipped_depth_count,
                "skipped_invalid": self._skipped_invalid_count,
            }


__all__ = [
    "EnqueueResult",
    "EnqueueStatus",
    "Frontier",
]
