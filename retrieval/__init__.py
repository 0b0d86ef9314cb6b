"""Full-text search over crawled documents."""

from .config import SearchConfig

__all__ = ["SearchConfig"]
