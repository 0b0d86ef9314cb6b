"""Crawler package: config, shared types, and crawl components.

`Scheduler` lives in `crawler.scheduler`; it depends on `retrieval.search_index`,
which in turn imports from this package.
"""

from .config import CrawlConfig, load_config, save_config
from .extractor import ContentExtractor, ExtractionError, ExtractorConfig, classify_content, parse_date
from .fetcher import BrowserPool, BrowserUnavailableError, Fetcher, RobotsPolicy, classify_exception
from .frontier import EnqueueResult, EnqueueStatus, Frontier
from .links import (
    LinkPolicy,
    LinkPrioritizer,
    ScoredLink,
    analyze_domain_patterns,
    filter_by_domain_policy,
)
from .quality import QualityAssessment, QualityBreakdown, QualityScorer, QualityThresholds, QualityWeights
from .stats import StatsCollector
from .storage import Storage, read_snapshot, write_snapshot
from .types import (
    ContentType,
    CrawlEvent,
    CrawledDocument,
    ErrorRecord,
    FetchBackend,
    FetchErrorKind,
    FetchResult,
    FrontierEntry,
    Heading,
    Image,
    Keyword,
    Link,
    utc_now_iso,
)
from .url import host_from_url, is_internal, normalize_domain, normalize_url, resolve_url

__all__ = [
    "BrowserPool",
    "BrowserUnavailableError",
    "ContentExtractor",
    "ContentType",
    "CrawlConfig",
    "CrawlEvent",
    "CrawledDocument",
    "EnqueueResult",
    "EnqueueStatus",
    "ErrorRecord",
    "ExtractionError",
    "ExtractorConfig",
    "FetchBackend",
    "FetchErrorKind",
    "FetchResult",
    "Fetcher",
    "Frontier",
    "FrontierEntry",
    "Heading",
    "Image",
    "Keyword",
    "Link",
    "LinkPolicy",
    "LinkPrioritizer",
    "QualityAssessment",
    "QualityBreakdown",
    "QualityScorer",
    "QualityThresholds",
    "QualityWeights",
    "RobotsPolicy",
    "ScoredLink",
    "StatsCollector",
    "Storage",
    "analyze_domain_patterns",
    "classify_content",
    "classify_exception",
    "filter_by_domain_policy",
    "host_from_url",
    "is_internal",
    "load_config",
    "normalize_domain",
    "normalize_url",
    "parse_date",
    "read_snapshot",
    "resolve_url",
    "save_config",
    "utc_now_iso",
    "write_snapshot",
]
