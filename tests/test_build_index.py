"""Tests for retrieval.build_index."""

from __future__ import annotations

import pytest

from crawler.storage import read_snapshot, write_snapshot
from retrieval.build_index import parse_args, run
from retrieval.search_index import SearchIndex


@pytest.fixture
def snapshot_path(tmp_path, make_document):
    documents = {
        "gen": make_document("https://example.com/gen", title="Python generators").to_json(),
        "pasta": make_document("https://example.com/pasta", title="Cooking pasta").to_json(),
        "broken": {"title": "No url field"},
    }
    path = tmp_path / "snapshot.json"
    write_snapshot(path, {"content_store": documents})
    return path


def test_rebuilds_index_into_snapshot(snapshot_path):
    summary = run(parse_args(["--snapshot", str(snapshot_path)]))

    assert summary["input_documents"] == 3
    assert summary["indexed_documents"] == 2
    assert summary["skipped_invalid"] == 1
    assert summary["search_config"]["stemming"] is True

    index = SearchIndex()
    index.import_index(read_snapshot(snapshot_path)["search_index"])
    assert [result.id for result in index.search("generators").results] == ["gen"]


def test_writes_to_separate_output_without_stemming(snapshot_path, tmp_path):
    output = tmp_path / "rebuilt.json"
    summary = run(parse_args(["--snapshot", str(snapshot_path), "--output", str(output), "--no-stemming"]))

    assert summary["search_config"]["stemming"] is False
    assert "search_index" not in read_snapshot(snapshot_path)
    assert "generators" in read_snapshot(output)["search_index"]["postings"]


def test_empty_snapshot_is_rejected(tmp_path):
    path = tmp_path / "empty.json"
    write_snapshot(path, {"content_store": {}})
    with pytest.raises(ValueError):
        run(parse_args(["--snapshot", str(path)]))
