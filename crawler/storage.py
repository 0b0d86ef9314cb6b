"""Filesystem persistence for crawl snapshots and manifests.

Storage owns the on-disk layout under one `output_dir`. Other modules should use
this API instead of building paths manually.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Iterable, Mapping

from .constants import JSON_INDENT
from .types import ErrorRecord, JSONDict


class Storage:
    """Persist crawl outputs under a single `output_dir` root."""

    def __init__(self, output_dir: str | Path) -> None:
        self.output_dir = Path(output_dir)

        self.manifests_dir = self.output_dir / "manifests"
        self.logs_dir = self.output_dir / "logs"

        self.snapshot_path = self.output_dir / "snapshot.json"
        self.errors_path = self.manifests_dir / "errors.jsonl"
        self.crawl_config_path = self.manifests_dir / "crawl_config.json"
        self.crawl_stats_path = self.manifests_dir / "crawl_stats.json"

        self._jsonl_lock = threading.Lock()
        self._ensure_layout()

    @property
    def paths(self) -> JSONDict:
        """Return important output paths for logging/CLI status messages."""

        return {
            "output_dir": str(self.output_dir),
            "snapshot": str(self.snapshot_path),
            "errors": str(self.errors_path),
            "crawl_config": str(self.crawl_config_path),
            "crawl_stats": str(self.crawl_stats_path),
            "log_dir": str(self.logs_dir),
        }

    def _ensure_layout(self) -> None:
        self.manifests_dir.mkdir(parents=True, exist_ok=True)
        self.logs_dir.mkdir(parents=True, exist_ok=True)

    def save_snapshot(self, payload: Mapping[str, Any]) -> Path:
        write_snapshot(self.snapshot_path, payload)
        return self.snapshot_path

    def load_snapshot(self) -> dict[str, Any]:
        return read_snapshot(self.snapshot_path)

    def has_snapshot(self) -> bool:
        return self.snapshot_path.exists()

    def save_errors(self, records: Iterable[ErrorRecord]) -> int:
        """Append error records to `manifests/errors.jsonl`; returns rows written."""

        lines = [json.dumps(record.to_json(), ensure_ascii=False, sort_keys=True) for record in records]
        if not lines:
            return 0
        with self._jsonl_lock:
            with self.errors_path.open("a", encoding="utf-8") as handle:
                for line in lines:
                    handle.write(line + "\n")
        return len(lines)

    def save_crawl_config(self, payload: Mapping[str, Any]) -> None:
        """Write crawl config manifest atomically as JSON."""

        _atomic_write_json(self.crawl_config_path, payload)

    def save_crawl_stats(self, payload: Mapping[str, Any]) -> None:
        """Write crawl stats manifest atomically as JSON."""

        _atomic_write_json(self.crawl_stats_path, payload)


def write_snapshot(path: str | Path, payload: Mapping[str, Any]) -> None:
    """Atomically write an exported crawl snapshot as JSON."""

    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    _atomic_write_json(out_path, payload)


def read_snapshot(path: str | Path) -> dict[str, Any]:
    """Read a snapshot written by `write_snapshot`."""

    snapshot_path = Path(path)
    payload = json.loads(snapshot_path.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError(f"Snapshot at {snapshot_path} must be a JSON object")
    return payload


def _atomic_write_json(path: Path, payload: Mapping[str, Any]) -> None:
    content = json.dumps(payload, ensure_ascii=False, indent=JSON_INDENT, sort_keys=True) + "\n"
    tmp_fd, tmp_path = tempfile.mkstemp(
        dir=str(path.parent),
        prefix=path.name + ".",
        suffix=".tmp",
    )
    try:
        with os.fdopen(tmp_fd, "w", encoding="utf-8") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except FileNotFoundError:
            pass
        raise


__all__ = ["Storage", "read_snapshot", "write_snapshot"]
