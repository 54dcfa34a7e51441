"""Bounded breadth-first discovery of same-origin pages."""

import asyncio
import logging
from typing import Awaitable, Callable
from urllib.parse import urlsplit

from site2md.core.context import bind_url
from site2md.exceptions import FetchError, ParseError
from site2md.schemas.crawl import CrawlProgress, CrawlRequest, DiscoveryResult
from site2md.services.dedup import is_pdf_url, url_origin
from site2md.services.deep_crawl import BFSFrontier
from site2md.services.fetcher import Fetcher
from site2md.services.links import extract_links

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[CrawlProgress], None]


def _validate_seed(seed: str) -> str:
    seed = (seed or "").strip()
    try:
        parts = urlsplit(seed)
    except ValueError as e:
        raise ValueError(f"Invalid seed URL: {seed!r}") from e
    if parts.scheme.lower() not in ("http", "https") or not parts.hostname:
        raise ValueError(f"Seed must be an absolute http(s) URL: {seed!r}")
    return seed


class SiteCrawler:
    """Discovers pages reachable from a seed without leaving its origin.

    One ``crawl`` call owns one frontier; nothing carries over between calls.
    Pages are fetched one at a time with a politeness delay in between.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        request: CrawlRequest | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.fetcher = fetcher
        self.request = request or CrawlRequest()
        self._sleep = sleep

    async def crawl(
        self,
        seed: str,
        max_depth: int | None = None,
        max_total_urls: int | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> DiscoveryResult:
        seed = _validate_seed(seed)
        max_depth = self.request.max_depth if max_depth is None else max_depth
        max_total_urls = self.request.max_total_urls if max_total_urls is None else max_total_urls
        if max_depth < 0:
            raise ValueError("max_depth must be >= 0")
        if max_total_urls < 1:
            raise ValueError("max_total_urls must be >= 1")

        origin = url_origin(seed)
        frontier = BFSFrontier(max_depth=max_depth, max_pages=max_total_urls)
        frontier.seed(seed)
        fetched_any = False

        logger.info(f"Crawling {seed} (max_depth={max_depth}, max_urls={max_total_urls})")

        while frontier.has_capacity():
            task = frontier.pop()
            if task is None:
                break
            frontier.mark_visited(task)

            if on_progress:
                on_progress(
                    CrawlProgress(
                        visited=len(frontier.state.visited),
                        queued=len(frontier),
                        depth=task.depth,
                        url=task.url,
                    )
                )

            if task.depth >= max_depth or is_pdf_url(task.url):
                continue

            if fetched_any and self.request.delay_ms > 0:
                await self._sleep(self.request.delay_ms / 1000)
            fetched_any = True

            with bind_url(task.url):
                links = await self._discover(task.url, origin)
                if links is None:
                    continue
                frontier.state.pages_fetched += 1
                added = frontier.add_discovered(links, task.depth + 1)
                logger.debug(f"Depth {task.depth}: {len(links)} links, {added} new")

        state = frontier.state
        total_found = len(state.visited) + len(state.queued)
        frontier.clear()

        urls = list(state.visited.values())[:max_total_urls]
        result = DiscoveryResult(
            urls=urls,
            pdf_count=sum(1 for u in urls if is_pdf_url(u)),
            total_found=total_found,
            visited_count=len(state.visited),
        )
        logger.info(
            f"Crawl of {seed} finished: {len(urls)} URLs ({result.pdf_count} PDFs), "
            f"{state.pages_fetched} pages fetched, {total_found} links seen"
        )
        return result

    async def _discover(self, url: str, origin: str) -> list[str] | None:
        """Fetch a page and return its same-origin links.

        None when the fetch failed, [] when the page could not be parsed.
        """
        try:
            html = await self.fetcher.fetch_text(url, self.request.timeout_ms)
        except FetchError as e:
            logger.warning(f"Failed to fetch {url}: {e}")
            return None
        except Exception as e:
            logger.warning(f"Unexpected error fetching {url}: {e}")
            return None

        try:
            return extract_links(html, url, origin)
        except ParseError as e:
            logger.warning(f"Could not parse links on {url}: {e}")
            return []
