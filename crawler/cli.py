"""CLI entrypoint for running a crawl and writing its snapshot."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys
from typing import Any

from .config import CrawlConfig, load_config
from .fetcher import BrowserUnavailableError
from .scheduler import Scheduler
from .storage import Storage
from .types import FetchBackend


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Crawl seed URLs, score and index pages, and save a searchable snapshot.",
    )

    parser.add_argument("seeds", nargs="*", help="Seed URLs. Override config seeds if provided.")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to JSON/YAML crawl config.",
    )
    parser.add_argument(
        "--output_dir",
        type=Path,
        default=Path("crawl_output"),
        help="Root output directory for snapshot/manifests/logs.",
    )
    parser.add_argument(
        "--resume",
        action="store_true",
        help="Load an existing snapshot from output_dir before crawling.",
    )

    parser.add_argument("--max_depth", type=int, default=None)
    parser.add_argument(
        "--no_follow_links",
        action="store_true",
        help="Fetch only the first seed and do not schedule its links.",
    )
    parser.add_argument("--max_concurrency", type=int, default=None)
    parser.add_argument("--delay_seconds", type=float, default=None)
    parser.add_argument("--timeout_seconds", type=float, default=None)
    parser.add_argument("--max_retries", type=int, default=None)
    parser.add_argument(
        "--backend",
        type=str,
        choices=[backend.value for backend in FetchBackend],
        default=None,
    )
    parser.add_argument("--user_agent", type=str, default=None)
    parser.add_argument(
        "--respect_robots",
        dest="respect_robots",
        action="store_true",
        default=None,
        help="Respect robots.txt (default comes from config).",
    )
    parser.add_argument(
        "--no_respect_robots",
        dest="respect_robots",
        action="store_false",
        help="Ignore robots.txt.",
    )

    parser.add_argument(
        "--print_stats_json",
        action="store_true",
        help="Print full stats JSON in stdout after run.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging.")

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> CrawlConfig:
    payload: dict[str, Any] = load_config(args.config).to_dict() if args.config else {}

    if args.seeds:
        payload["seeds"] = list(args.seeds)
    if not payload.get("seeds"):
        raise ValueError("No seeds provided. Pass seed URLs or use --config.")

    overrides = {
        "max_depth": args.max_depth,
        "max_concurrency": args.max_concurrency,
        "delay_seconds": args.delay_seconds,
        "timeout_seconds": args.timeout_seconds,
        "max_retries": args.max_retries,
        "backend": args.backend,
        "user_agent": args.user_agent,
        "respect_robots": args.respect_robots,
    }
    payload.update({key: value for key, value in overrides.items() if value is not None})

    return CrawlConfig.from_dict(payload)


def setup_logging(output_dir: Path, verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO

    log_dir = output_dir / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / "crawl.log"

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(log_level)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setLevel(log_level)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    # Selenium and urllib3 log every driver round trip at DEBUG.
    logging.getLogger("selenium").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def print_summary(stats: dict[str, Any], paths: dict[str, Any], *, print_stats_json: bool) -> None:
    print("\n=== Crawl Complete ===")
    print(f"output_dir: {paths.get('output_dir')}")
    print(f"snapshot: {paths.get('snapshot')}")
    print(f"errors: {paths.get('errors')}")
    print(f"stats: {paths.get('crawl_stats')}")

    print("\n--- Core Stats ---")
    for key in [
        "total_pages",
        "total_failed",
        "total_words",
        "average_quality",
        "unique_domains",
        "pending_urls",
        "retries",
        "success_rate",
        "duration_seconds",
    ]:
        if key in stats:
            print(f"{key}: {stats[key]}")

    if print_stats_json:
        print("\n--- Full Stats JSON ---")
        print(json.dumps(stats, indent=2, sort_keys=True))


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.output_dir, verbose=args.verbose)

    try:
        config = build_config(args)
    except Exception as exc:
        logging.error("Failed to build config: %s", exc)
        return 2

    storage = Storage(args.output_dir)
    logging.info(
        "Starting crawl: output_dir=%s, seeds=%d, max_depth=%d, backend=%s",
        args.output_dir,
        len(config.seeds),
        config.max_depth,
        config.backend.value,
    )

    scheduler = Scheduler(config)
    known_errors = 0
    try:
        if args.resume and storage.has_snapshot():
            scheduler.import_data(storage.load_snapshot())
            known_errors = len(scheduler.errors())
        result = scheduler.start_crawl(
            config.seeds,
            max_depth=config.max_depth,
            follow_links=not args.no_follow_links,
        )
    except KeyboardInterrupt:
        logging.error("Interrupted by user")
        scheduler.stop()
        return 130
    except BrowserUnavailableError:
        logging.exception("No browser could be launched")
        return 1
    except Exception:
        logging.exception("Crawl failed")
        return 1
    finally:
        scheduler.close()
        # Partial progress is kept on interrupt or failure too.
        storage.save_snapshot(scheduler.export_data())
        storage.save_errors(scheduler.errors()[known_errors:])
        storage.save_crawl_config(config.to_dict())
        storage.save_crawl_stats(scheduler.get_stats())

    print_summary(result["stats"], storage.paths, print_stats_json=args.print_stats_json)
    return 0


__all__ = ["build_config", "main", "parse_args", "setup_logging"]


if __name__ == "__main__":
    raise SystemExit(main())
