"""Rebuild the search index stored in a crawl snapshot.

Reads ``snapshot.json``, re-indexes every document in its ``content_store``
with the given search settings, and writes the snapshot back (or to
``--output``). Use this after changing boost factors or stemming.
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
import json
import logging
from pathlib import Path
from typing import Any

from tqdm import tqdm

from crawler.config import load_config
from crawler.storage import read_snapshot, write_snapshot
from crawler.types import CrawledDocument

from retrieval.config import SearchConfig
from retrieval.search_index import SearchIndex


LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BuildStats:
    input_documents: int
    indexed_documents: int
    skipped_duplicates: int
    skipped_invalid: int

    def to_json(self) -> dict[str, Any]:
        return {
            "input_documents": self.input_documents,
            "indexed_documents": self.indexed_documents,
            "skipped_duplicates": self.skipped_duplicates,
            "skipped_invalid": self.skipped_invalid,
        }


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Rebuild the search index of a crawl snapshot.")
    parser.add_argument("--snapshot", type=Path, required=True, help="Snapshot JSON input.")
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Where to write the updated snapshot. Defaults to overwriting --snapshot.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Crawl config JSON/YAML whose `search` section is used for ranking settings.",
    )
    parser.add_argument(
        "--stemming",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Override Porter stemming of indexed terms.",
    )
    parser.add_argument(
        "--log_level",
        type=str,
        default="INFO",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
    )
    return parser.parse_args(argv)


def _setup_logging(level_name: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level_name),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _search_config(args: argparse.Namespace) -> SearchConfig:
    payload = load_config(args.config).search.to_dict() if args.config else SearchConfig().to_dict()
    if args.stemming is not None:
        payload["stemming"] = bool(args.stemming)
    return SearchConfig.from_dict(payload)


def run(args: argparse.Namespace) -> dict[str, Any]:
    snapshot = read_snapshot(args.snapshot)
    content_store = dict(snapshot.get("content_store", {}))
    if not content_store:
        raise ValueError(f"Snapshot at {args.snapshot} has no documents to index")

    index = SearchIndex(_search_config(args))

    indexed = 0
    skipped_duplicates = 0
    skipped_invalid = 0

    progress = tqdm(total=len(content_store), desc="Indexing", unit="doc")
    try:
        for doc_id, payload in content_store.items():
            progress.update(1)
            try:
                document = CrawledDocument.from_json(payload)
            except (KeyError, TypeError, ValueError) as exc:
                LOGGER.warning("Skipping malformed document %s: %s", doc_id, exc)
                skipped_invalid += 1
                continue

            if index.index_document(str(doc_id), document):
                indexed += 1
            else:
                skipped_duplicates += 1
            progress.set_postfix(indexed=indexed, refresh=False)
    finally:
        progress.close()

    snapshot["search_index"] = index.export_index()
    output_path = args.output or args.snapshot
    write_snapshot(output_path, snapshot)

    stats = BuildStats(
        input_documents=len(content_store),
        indexed_documents=indexed,
        skipped_duplicates=skipped_duplicates,
        skipped_invalid=skipped_invalid,
    )
    LOGGER.info("Rebuilt search index: %s", stats.to_json())
    return {
        **stats.to_json(),
        "index": index.stats(),
        "search_config": index.config.to_dict(),
        "paths": {"snapshot": str(args.snapshot), "output": str(output_path)},
    }


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    _setup_logging(args.log_level)
    summary = run(args)
    print(json.dumps(summary, indent=2, sort_keys=True))
    return 0


__all__ = ["BuildStats", "main", "parse_args", "run"]


if __name__ == "__main__":
    raise SystemExit(main())
