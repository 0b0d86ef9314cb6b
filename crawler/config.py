"""Typed crawler configuration with JSON/YAML load/save helpers."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml  # type: ignore

from retrieval.config import SearchConfig

from .constants import (
    DEFAULT_BROWSER_LAUNCH_ATTEMPTS,
    DEFAULT_BROWSER_POOL_SIZE,
    DEFAULT_DELAY_SECONDS,
    DEFAULT_FETCH_BACKEND,
    DEFAULT_HTTP_HEADERS,
    DEFAULT_MAX_CHILDREN_PER_PAGE,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_RETRIES,
    DEFAULT_PER_HOST_DELAY_SECONDS,
    DEFAULT_RENDER_WAIT_SECONDS,
    DEFAULT_RESPECT_ROBOTS,
    DEFAULT_RETRY_DELAY_SECONDS,
    DEFAULT_SEED_PRIORITY,
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_USER_AGENT,
    JSON_INDENT,
    SUPPORTED_CONFIG_SUFFIXES,
)
from .extractor import ExtractorConfig
from .links import LinkPolicy
from .types import FetchBackend, JSONDict, JSONValue


def _as_float(value: Any, key: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid float for '{key}': {value!r}") from exc


def _as_int(value: Any, key: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid int for '{key}': {value!r}") from exc


def _as_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    raise ValueError(f"Invalid bool for '{key}': {value!r}")


def _to_backend(value: Any) -> FetchBackend:
    if isinstance(value, FetchBackend):
        return value
    if isinstance(value, str):
        try:
            return FetchBackend(value.strip().lower())
        except ValueError as exc:
            raise ValueError(f"Invalid backend value: {value!r}") from exc
    raise ValueError(f"Invalid backend value: {value!r}")


def _as_mapping(value: Any, key: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"'{key}' must be a mapping, got {value!r}")
    return value


@dataclass(slots=True)
class CrawlConfig:
    """Top-level crawler configuration used by scheduler/fetcher/extractor."""

    seeds: list[str] = field(default_factory=list)

    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    max_depth: int = DEFAULT_MAX_DEPTH
    delay_seconds: float = DEFAULT_DELAY_SECONDS
    per_host_delay_seconds: float = DEFAULT_PER_HOST_DELAY_SECONDS
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS
    max_children_per_page: int = DEFAULT_MAX_CHILDREN_PER_PAGE
    seed_priority: float = DEFAULT_SEED_PRIORITY

    respect_robots: bool = DEFAULT_RESPECT_ROBOTS
    user_agent: str = DEFAULT_USER_AGENT
    default_headers: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_HTTP_HEADERS))

    backend: FetchBackend = DEFAULT_FETCH_BACKEND
    browser_pool_size: int = DEFAULT_BROWSER_POOL_SIZE
    browser_launch_attempts: int = DEFAULT_BROWSER_LAUNCH_ATTEMPTS
    render_wait_seconds: float = DEFAULT_RENDER_WAIT_SECONDS

    link_policy: LinkPolicy = field(default_factory=LinkPolicy)
    extractor: ExtractorConfig = field(default_factory=ExtractorConfig)
    search: SearchConfig = field(default_factory=SearchConfig)

    metadata: dict[str, JSONValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.seeds = [seed.strip() for seed in self.seeds if seed and seed.strip()]
        self.backend = _to_backend(self.backend)

        if self.max_concurrency <= 0:
            raise ValueError("max_concurrency must be > 0")
        if self.max_depth < 0:
            raise ValueError("max_depth must be >= 0")
        if self.delay_seconds < 0:
            raise ValueError("delay_seconds must be >= 0")
        if self.per_host_delay_seconds < 0:
            raise ValueError("per_host_delay_seconds must be >= 0")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.retry_delay_seconds < 0:
            raise ValueError("retry_delay_seconds must be >= 0")
        if self.max_children_per_page < 0:
            raise ValueError("max_children_per_page must be >= 0")
        if self.browser_pool_size <= 0:
            raise ValueError("browser_pool_size must be > 0")
        if self.browser_launch_attempts <= 0:
            raise ValueError("browser_launch_attempts must be > 0")
        if self.render_wait_seconds < 0:
            raise ValueError("render_wait_seconds must be >= 0")
        if not self.user_agent.strip():
            raise ValueError("user_agent cannot be empty")

    def headers_for(self, url: str | None = None) -> dict[str, str]:
        """Return request headers with the configured User-Agent applied."""

        merged: dict[str, str] = dict(self.default_headers)
        merged.setdefault("User-Agent", self.user_agent)
        return merged

    def to_dict(self) -> JSONDict:
        """Serialize config for snapshots and reproducibility."""

        return {
            "seeds": list(self.seeds),
            "max_concurrency": self.max_concurrency,
            "max_depth": self.max_depth,
            "delay_seconds": self.delay_seconds,
            "per_host_delay_seconds": self.per_host_delay_seconds,
            "timeout_seconds": self.timeout_seconds,
            "max_retries": self.max_retries,
            "retry_delay_seconds": self.retry_delay_seconds,
            "max_children_per_page": self.max_children_per_page,
            "seed_priority": self.seed_priority,
            "respect_robots": self.respect_robots,
            "user_agent": self.user_agent,
            "default_headers": dict(self.default_headers),
            "backend": self.backend.value,
            "browser_pool_size": self.browser_pool_size,
            "browser_launch_attempts": self.browser_launch_attempts,
            "render_wait_seconds": self.render_wait_seconds,
            "link_policy": self.link_policy.to_dict(),
            "extractor": self.extractor.to_dict(),
            "search": self.search.to_dict(),
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "CrawlConfig":
        """Build config from a parsed dictionary."""

        seeds = payload.get("seeds", [])
        if isinstance(seeds, str):
            seeds = [seeds]

        extractor_payload = _as_mapping(payload.get("extractor"), "extractor")
        defaults = ExtractorConfig()

        return cls(
            seeds=[str(seed) for seed in seeds],
            max_concurrency=_as_int(
                payload.get("max_concurrency", DEFAULT_MAX_CONCURRENCY), "max_concurrency"
            ),
            max_depth=_as_int(payload.get("max_depth", DEFAULT_MAX_DEPTH), "max_depth"),
            delay_seconds=_as_float(
                payload.get("delay_seconds", DEFAULT_DELAY_SECONDS), "delay_seconds"
            ),
            per_host_delay_seconds=_as_float(
                payload.get("per_host_delay_seconds", DEFAULT_PER_HOST_DELAY_SECONDS),
                "per_host_delay_seconds",
            ),
            timeout_seconds=_as_float(
                payload.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS), "timeout_seconds"
            ),
            max_retries=_as_int(payload.get("max_retries", DEFAULT_MAX_RETRIES), "max_retries"),
            retry_delay_seconds=_as_float(
                payload.get("retry_delay_seconds", DEFAULT_RETRY_DELAY_SECONDS),
                "retry_delay_seconds",
            ),
            max_children_per_page=_as_int(
                payload.get("max_children_per_page", DEFAULT_MAX_CHILDREN_PER_PAGE),
                "max_children_per_page",
            ),
            seed_priority=_as_float(
                payload.get("seed_priority", DEFAULT_SEED_PRIORITY), "seed_priority"
            ),
            respect_robots=_as_bool(
                payload.get("respect_robots", DEFAULT_RESPECT_ROBOTS), "respect_robots"
            ),
            user_agent=str(payload.get("user_agent", DEFAULT_USER_AGENT)),
            default_headers={
                str(k): str(v)
                for k, v in dict(payload.get("default_headers", DEFAULT_HTTP_HEADERS)).items()
            },
            backend=_to_backend(payload.get("backend", DEFAULT_FETCH_BACKEND)),
            browser_pool_size=_as_int(
                payload.get("browser_pool_size", DEFAULT_BROWSER_POOL_SIZE), "browser_pool_size"
            ),
            browser_launch_attempts=_as_int(
                payload.get("browser_launch_attempts", DEFAULT_BROWSER_LAUNCH_ATTEMPTS),
                "browser_launch_attempts",
            ),
            render_wait_seconds=_as_float(
                payload.get("render_wait_seconds", DEFAULT_RENDER_WAIT_SECONDS),
                "render_wait_seconds",
            ),
            link_policy=LinkPolicy.from_dict(_as_mapping(payload.get("link_policy"), "link_policy")),
            extractor=ExtractorConfig(
                min_paragraph_length=_as_int(
                    extractor_payload.get("min_paragraph_length", defaults.min_paragraph_length),
                    "extractor.min_paragraph_length",
                ),
                max_semantic_keywords=_as_int(
                    extractor_payload.get("max_semantic_keywords", defaults.max_semantic_keywords),
                    "extractor.max_semantic_keywords",
                ),
                max_topics=_as_int(
                    extractor_payload.get("max_topics", defaults.max_topics),
                    "extractor.max_topics",
                ),
                remove_noise=_as_bool(
                    extractor_payload.get("remove_noise", defaults.remove_noise),
                    "extractor.remove_noise",
                ),
            ),
            search=SearchConfig.from_dict(_as_mapping(payload.get("search"), "search")),
            metadata=dict(payload.get("metadata", {})),
        )


def _load_yaml(path: Path) -> dict[str, Any]:
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"YAML config at {path} must be a mapping at top level")
    return data


def load_config(path: str | Path) -> CrawlConfig:
    """Load CrawlConfig from JSON/YAML path."""

    config_path = Path(path)
    suffix = config_path.suffix.lower()
    if suffix not in SUPPORTED_CONFIG_SUFFIXES:
        raise ValueError(
            f"Unsupported config suffix '{suffix}'. Supported: {SUPPORTED_CONFIG_SUFFIXES}"
        )

    if suffix == ".json":
        payload = json.loads(config_path.read_text(encoding="utf-8"))
    else:
        payload = _load_yaml(config_path)

    if not isinstance(payload, dict):
        raise ValueError(f"Config at {config_path} must be a mapping")

    return CrawlConfig.from_dict(payload)


def save_config(config: CrawlConfig, path: str | Path) -> None:
    """Save CrawlConfig as JSON or YAML based on file extension."""

    out_path = Path(path)
    suffix = out_path.suffix.lower()
    if suffix not in SUPPORTED_CONFIG_SUFFIXES:
        raise ValueError(
            f"Unsupported config suffix '{suffix}'. Supported: {SUPPORTED_CONFIG_SUFFIXES}"
        )

    out_path.parent.mkdir(parents=True, exist_ok=True)
    payload = config.to_dict()

    if suffix == ".json":
        out_path.write_text(
            json.dumps(payload, indent=JSON_INDENT, sort_keys=True) + "\n",
            encoding="utf-8",
        )
    else:
        out_path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")


__all__ = [
    "CrawlConfig",
    "load_config",
    "save_config",
]
