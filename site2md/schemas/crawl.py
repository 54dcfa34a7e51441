from pydantic import BaseModel, field_validator

from site2md.config import settings


class CrawlRequest(BaseModel):
    """Crawl limits. Defaults come from settings."""

    max_depth: int = settings.CRAWL_MAX_DEPTH
    max_total_urls: int = settings.CRAWL_MAX_URLS
    delay_ms: int = settings.CRAWL_DELAY_MS  # politeness delay between fetches
    timeout_ms: int = settings.FETCH_TIMEOUT_MS

    @field_validator("max_depth")
    @classmethod
    def _check_depth(cls, v: int) -> int:
        if v < 0:
            raise ValueError("max_depth must be >= 0")
        return v

    @field_validator("max_total_urls")
    @classmethod
    def _check_max_urls(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_total_urls must be >= 1")
        return v

    @field_validator("delay_ms", "timeout_ms")
    @classmethod
    def _check_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("delays and timeouts must be >= 0")
        return v


class CrawlProgress(BaseModel):
    """Emitted after every dequeued page."""

    visited: int
    queued: int
    depth: int
    url: str


class DiscoveryResult(BaseModel):
    urls: list[str]
    pdf_count: int = 0
    total_found: int = 0  # distinct same-origin links seen, visited or still queued
    visited_count: int = 0
