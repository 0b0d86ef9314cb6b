"""Default values shared by crawler configuration and components."""

from __future__ import annotations

from .types import FetchBackend


DEFAULT_MAX_CONCURRENCY = 5
DEFAULT_MAX_DEPTH = 3
DEFAULT_DELAY_SECONDS = 1.0
DEFAULT_PER_HOST_DELAY_SECONDS = 0.0
DEFAULT_TIMEOUT_SECONDS = 60.0
DEFAULT_MAX_RETRIES = 2
DEFAULT_RETRY_DELAY_SECONDS = 2.0
DEFAULT_MAX_CHILDREN_PER_PAGE = 5
DEFAULT_SEED_PRIORITY = 10.0
DEFAULT_PRIORITY = 1.0
DEFAULT_RESPECT_ROBOTS = True
DEFAULT_USER_AGENT = "WebCrawlSearch/1.0"
DEFAULT_HTTP_HEADERS: dict[str, str] = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.8",
}

DEFAULT_FETCH_BACKEND = FetchBackend.SELENIUM
DEFAULT_BROWSER_POOL_SIZE = 2
DEFAULT_BROWSER_LAUNCH_ATTEMPTS = 3
DEFAULT_RENDER_WAIT_SECONDS = 2.0
ROBOTS_TIMEOUT_SECONDS = 10.0

DEFAULT_MIN_PARAGRAPH_LENGTH = 30
DEFAULT_MAX_SEMANTIC_KEYWORDS = 20
DEFAULT_MAX_TOPICS = 15
WORDS_PER_MINUTE = 200

DEFAULT_MAX_LINKS_PER_DOMAIN = 100

JSON_INDENT = 2
SUPPORTED_CONFIG_SUFFIXES = (".json", ".yaml", ".yml")
SNAPSHOT_VERSION = "1.0"


__all__ = [
    "DEFAULT_BROWSER_LAUNCH_ATTEMPTS",
    "DEFAULT_BROWSER_POOL_SIZE",
    "DEFAULT_DELAY_SECONDS",
    "DEFAULT_FETCH_BACKEND",
    "DEFAULT_HTTP_HEADERS",
    "DEFAULT_MAX_CHILDREN_PER_PAGE",
    "DEFAULT_MAX_CONCURRENCY",
    "DEFAULT_MAX_DEPTH",
    "DEFAULT_MAX_LINKS_PER_DOMAIN",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_MAX_SEMANTIC_KEYWORDS",
    "DEFAULT_MAX_TOPICS",
    "DEFAULT_MIN_PARAGRAPH_LENGTH",
    "DEFAULT_PER_HOST_DELAY_SECONDS",
    "DEFAULT_PRIORITY",
    "DEFAULT_RENDER_WAIT_SECONDS",
    "DEFAULT_RESPECT_ROBOTS",
    "DEFAULT_RETRY_DELAY_SECONDS",
    "DEFAULT_SEED_PRIORITY",
    "DEFAULT_TIMEOUT_SECONDS",
    "DEFAULT_USER_AGENT",
    "JSON_INDENT",
    "ROBOTS_TIMEOUT_SECONDS",
    "SNAPSHOT_VERSION",
    "SUPPORTED_CONFIG_SUFFIXES",
    "WORDS_PER_MINUTE",
]
