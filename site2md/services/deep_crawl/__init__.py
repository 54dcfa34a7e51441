"""Deep crawling building blocks — BFS frontier and link filters."""

from site2md.services.deep_crawl.strategies import BFSFrontier, CrawlState, CrawlTask
from site2md.services.deep_crawl.filters import (
    URLFilter,
    FilterChain,
    SchemeFilter,
    OriginFilter,
    ExtensionFilter,
    SKIP_EXTENSIONS,
    SKIP_HREF_PREFIXES,
)

__all__ = [
    "BFSFrontier", "CrawlState", "CrawlTask",
    "URLFilter", "FilterChain", "SchemeFilter", "OriginFilter",
    "ExtensionFilter", "SKIP_EXTENSIONS", "SKIP_HREF_PREFIXES",
]
