"""Tests for crawler.frontier."""

from __future__ import annotations

import threading

from crawler.frontier import EnqueueStatus, Frontier


class TestPush:
    def test_normalizes_and_enqueues(self):
        frontier = Frontier()
        result = frontier.push("HTTPS://Example.com/a/?utm_source=x#frag", depth=0, priority=1.0)
        assert result.accepted
        assert result.normalized_url == "https://example.com/a"
        assert frontier.is_pending("https://example.com/a")
        assert len(frontier) == 1

    def test_invalid_url(self):
        result = Frontier().push("mailto:someone@example.com", depth=0, priority=1.0)
        assert result.status == EnqueueStatus.SKIPPED_INVALID_URL

    def test_depth_limit(self):
        result = Frontier().push("https://example.com/", depth=3, priority=1.0, max_depth=2)
        assert result.status == EnqueueStatus.SKIPPED_DEPTH

    def test_pending_duplicate(self):
        frontier = Frontier()
        frontier.push("https://example.com/a", depth=0, priority=1.0)
        result = frontier.push("https://example.com/a/", depth=1, priority=9.0)
        assert result.status == EnqueueStatus.SKIPPED_PENDING
        assert len(frontier) == 1

    def test_seen_urls_rejected(self):
        frontier = Frontier()
        frontier.push("https://example.com/a", depth=0, priority=1.0)
        entry = frontier.pop()
        assert frontier.claim(entry.url)
        frontier.mark_crawled(entry.url)
        assert frontier.push("https://example.com/a", depth=0, priority=1.0).status == EnqueueStatus.SKIPPED_SEEN


class TestPop:
    def test_highest_priority_first_then_fifo(self):
        frontier = Frontier()
        frontier.push("https://example.com/low", depth=0, priority=1.0)
        frontier.push("https://example.com/high", depth=0, priority=10.0)
        frontier.push("https://example.com/tie-a", depth=0, priority=5.0)
        frontier.push("https://example.com/tie-b", depth=0, priority=5.0)

        order = [frontier.pop().url for _ in range(4)]
        assert order == [
            "https://example.com/high",
            "https://example.com/tie-a",
            "https://example.com/tie-b",
            "https://example.com/low",
        ]
        assert frontier.pop() is None
        assert frontier.empty()

    def test_pending_entries_in_pop_order(self):
        frontier = Frontier()
        frontier.push("https://example.com/a", depth=0, priority=1.0)
        frontier.push("https://example.com/b", depth=1, priority=3.0, parent_url="https://example.com/")
        entries = frontier.pending_entries()
        assert [entry.url for entry in entries] == ["https://example.com/b", "https://example.com/a"]
        assert entries[0].parent_url == "https://example.com/"

    def test_claimed_pending_url_is_not_popped(self):
        frontier = Frontier()
        frontier.push("https://example.com/a", depth=0, priority=1.0)
        assert frontier.claim("https://example.com/a")
        assert frontier.pop() is None


class TestClaims:
    def test_claim_is_exclusive(self):
        frontier = Frontier()
        assert frontier.claim("https://example.com/a")
        assert not frontier.claim("https://example.com/a")
        assert frontier.in_flight_count() == 1

    def test_concurrent_claims_admit_exactly_one(self):
        frontier = Frontier()
        wins: list[bool] = []
        lock = threading.Lock()

        def worker():
            won = frontier.claim("https://example.com/race")
            with lock:
                wins.append(won)

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert wins.count(True) == 1

    def test_terminal_sets_are_exclusive(self):
        frontier = Frontier()
        frontier.claim("https://example.com/a")
        frontier.mark_failed("https://example.com/a")
        frontier.mark_crawled("https://example.com/a")
        assert frontier.crawled_urls() == {"https://example.com/a"}
        assert frontier.failed_urls() == set()
        assert frontier.in_flight_count() == 0

    def test_release_allows_requeue(self):
        frontier = Frontier()
        frontier.claim("https://example.com/a")
        frontier.release("https://example.com/a")
        assert not frontier.is_seen("https://example.com/a")
        assert frontier.push("https://example.com/a", depth=0, priority=1.0).accepted

    def test_requeue_after_claim_lists_url_once(self):
        frontier = Frontier()
        frontier.push("https://example.com/a", depth=0, priority=5.0)
        frontier.push("https://example.com/b", depth=0, priority=2.0)
        assert frontier.claim("https://example.com/a")
        frontier.release("https://example.com/a")
        frontier.push("https://example.com/a", depth=0, priority=1.0)

        assert [entry.url for entry in frontier.pending_entries()] == [
            "https://example.com/b",
            "https://example.com/a",
        ]
        assert frontier.pop().url == "https://example.com/b"
        assert frontier.pop().url == "https://example.com/a"
        assert frontier.pop() is None


class TestRestore:
    def test_restore_and_snapshot(self):
        frontier = Frontier()
        frontier.restore(
            crawled=["https://example.com/a"],
            failed=["https://example.com/a", "https://example.com/b"],
        )
        assert frontier.crawled_urls() == {"https://example.com/a"}
        assert frontier.failed_urls() == {"https://example.com/b"}
        assert frontier.is_seen("https://example.com/b")

        counters = frontier.snapshot()
        assert counters["crawled"] == 1
        assert counters["failed"] == 1

    def test_clear(self):
        frontier = Frontier()
        frontier.push("https://example.com/a", depth=0, priority=1.0)
        frontier.restore(crawled=["https://example.com/b"])
        frontier.clear()
        assert len(frontier) == 0
        assert frontier.crawled_urls() == set()
