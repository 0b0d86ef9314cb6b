"""Tests for crawler.storage."""

from __future__ import annotations

import json

import pytest

from crawler.storage import Storage, read_snapshot, write_snapshot
from crawler.types import ErrorRecord, FetchErrorKind


class TestSnapshots:
    def test_round_trip(self, tmp_path):
        payload = {"crawled_urls": ["https://example.com/"], "metadata": {"version": "1.0"}}
        path = tmp_path / "nested" / "snapshot.json"
        write_snapshot(path, payload)

        assert read_snapshot(path) == payload
        assert list(path.parent.glob("*.tmp")) == []

    def test_non_object_snapshot_is_rejected(self, tmp_path):
        path = tmp_path / "snapshot.json"
        path.write_text("[1, 2, 3]", encoding="utf-8")
        with pytest.raises(ValueError):
            read_snapshot(path)


class TestStorage:
    def test_layout_and_paths(self, tmp_path):
        storage = Storage(tmp_path / "out")
        assert storage.manifests_dir.is_dir()
        assert storage.logs_dir.is_dir()
        assert storage.paths["snapshot"].endswith("snapshot.json")
        assert not storage.has_snapshot()

        storage.save_snapshot({"a": 1})
        assert storage.has_snapshot()
        assert storage.load_snapshot() == {"a": 1}

    def test_save_errors_appends_jsonl(self, tmp_path):
        storage = Storage(tmp_path)
        first = ErrorRecord(kind=FetchErrorKind.TIMEOUT, url="https://example.com/a", message="slow")
        second = ErrorRecord(
            kind=FetchErrorKind.HTTP_ERROR, url="https://example.com/b", message="HTTP 500", depth=1
        )

        assert storage.save_errors([first]) == 1
        assert storage.save_errors([second]) == 1
        assert storage.save_errors([]) == 0

        rows = [json.loads(line) for line in storage.errors_path.read_text(encoding="utf-8").splitlines()]
        assert [row["kind"] for row in rows] == ["timeout", "http_error"]
        assert ErrorRecord.from_json(rows[1]) == second

    def test_manifests(self, tmp_path):
        storage = Storage(tmp_path)
        storage.save_crawl_config({"max_depth": 2})
        storage.save_crawl_stats({"total_pages": 3})

        assert json.loads(storage.crawl_config_path.read_text(encoding="utf-8")) == {"max_depth": 2}
        assert json.loads(storage.crawl_stats_path.read_text(encoding="utf-8")) == {"total_pages": 3}
