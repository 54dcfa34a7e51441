"""Tests for the breadth-first site crawler."""
import pytest

from site2md.exceptions import FetchError
from site2md.schemas.crawl import CrawlRequest
from site2md.services.crawler import SiteCrawler

SEED = "https://example.com/"


class FakeFetcher:
    """In-memory fetcher: url -> html, or url -> exception."""

    def __init__(self, pages: dict):
        self.pages = pages
        self.fetched: list[str] = []

    async def fetch_text(self, url, timeout_ms=None):
        self.fetched.append(url)
        page = self.pages.get(url)
        if page is None:
            raise FetchError(url, "HTTP 404: Not Found", kind="http", status=404)
        if isinstance(page, Exception):
            raise page
        return page


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def _links(*hrefs):
    return "<html><body>" + "".join(f'<a href="{h}">{h}</a>' for h in hrefs) + "</body></html>"


def _crawler(pages, delay_ms=0, sleep=None):
    fetcher = FakeFetcher(pages)
    crawler = SiteCrawler(
        fetcher,
        CrawlRequest(max_depth=2, max_total_urls=100, delay_ms=delay_ms),
        sleep=sleep or RecordingSleep(),
    )
    return crawler, fetcher


class TestSiteCrawler:
    @pytest.mark.asyncio
    async def test_single_page(self):
        crawler, _ = _crawler({SEED: "<p>No links here</p>"})
        result = await crawler.crawl(SEED)
        assert result.urls == [SEED]
        assert result.visited_count == 1
        assert result.pdf_count == 0

    @pytest.mark.asyncio
    async def test_cycle_visits_each_page_once(self):
        a = "https://example.com/a"
        b = "https://example.com/b"
        crawler, fetcher = _crawler({a: _links("/b"), b: _links("/a", "/a/")})
        result = await crawler.crawl(a)
        assert result.urls == [a, b]
        assert fetcher.fetched == [a, b]

    @pytest.mark.asyncio
    async def test_breadth_first_order(self):
        pages = {
            SEED: _links("/one", "/two"),
            "https://example.com/one": _links("/one/deep"),
            "https://example.com/two": _links("/two/deep"),
        }
        crawler, _ = _crawler(pages)
        result = await crawler.crawl(SEED, max_depth=2)
        assert result.urls == [
            SEED,
            "https://example.com/one",
            "https://example.com/two",
            "https://example.com/one/deep",
            "https://example.com/two/deep",
        ]

    @pytest.mark.asyncio
    async def test_max_depth_zero_fetches_nothing(self):
        crawler, fetcher = _crawler({SEED: _links("/a", "/b")})
        result = await crawler.crawl(SEED, max_depth=0)
        assert result.urls == [SEED]
        assert fetcher.fetched == []

    @pytest.mark.asyncio
    async def test_pages_at_max_depth_not_fetched(self):
        pages = {SEED: _links("/a"), "https://example.com/a": _links("/b")}
        crawler, fetcher = _crawler(pages)
        result = await crawler.crawl(SEED, max_depth=1)
        assert result.urls == [SEED, "https://example.com/a"]
        assert fetcher.fetched == [SEED]

    @pytest.mark.asyncio
    async def test_max_total_urls_one(self):
        crawler, _ = _crawler({SEED: _links("/a", "/b", "/c")})
        result = await crawler.crawl(SEED, max_total_urls=1)
        assert result.urls == [SEED]
        assert result.visited_count == 1

    @pytest.mark.asyncio
    async def test_cap_stops_crawl(self):
        crawler, _ = _crawler({SEED: _links("/a", "/b", "/c", "/d")})
        result = await crawler.crawl(SEED, max_total_urls=3)
        assert result.urls == [SEED, "https://example.com/a", "https://example.com/b"]
        # Links seen but never visited still count as found
        assert result.total_found == 5

    @pytest.mark.asyncio
    async def test_external_and_asset_links_ignored(self):
        pages = {SEED: _links("https://other.com/x", "/logo.png", "mailto:x@y.z", "/ok")}
        crawler, _ = _crawler(pages)
        result = await crawler.crawl(SEED)
        assert result.urls == [SEED, "https://example.com/ok"]

    @pytest.mark.asyncio
    async def test_pdfs_counted_not_fetched(self):
        pages = {SEED: _links("/manual.pdf", "/about")}
        crawler, fetcher = _crawler(pages)
        result = await crawler.crawl(SEED)
        assert "https://example.com/manual.pdf" in result.urls
        assert result.pdf_count == 1
        assert "https://example.com/manual.pdf" not in fetcher.fetched

    @pytest.mark.asyncio
    async def test_fetch_failure_continues(self):
        pages = {
            SEED: _links("/broken", "/fine"),
            "https://example.com/broken": FetchError("https://example.com/broken", "timeout", kind="timeout"),
            "https://example.com/fine": _links("/last"),
            "https://example.com/last": "<p>end</p>",
        }
        crawler, _ = _crawler(pages)
        result = await crawler.crawl(SEED)
        assert result.urls == [
            SEED,
            "https://example.com/broken",
            "https://example.com/fine",
            "https://example.com/last",
        ]

    @pytest.mark.asyncio
    async def test_seed_failure_returns_seed(self):
        crawler, _ = _crawler({})
        result = await crawler.crawl(SEED)
        assert result.urls == [SEED]

    @pytest.mark.asyncio
    async def test_politeness_delay_between_fetches(self):
        sleep = RecordingSleep()
        pages = {SEED: _links("/a", "/b"), "https://example.com/a": "", "https://example.com/b": ""}
        crawler, fetcher = _crawler(pages, delay_ms=500, sleep=sleep)
        await crawler.crawl(SEED)
        assert len(fetcher.fetched) == 3
        assert sleep.delays == [0.5, 0.5]

    @pytest.mark.asyncio
    async def test_progress_reported_per_page(self):
        events = []
        crawler, _ = _crawler({SEED: _links("/a", "/b")})
        await crawler.crawl(SEED, on_progress=events.append)
        assert [e.url for e in events] == [SEED, "https://example.com/a", "https://example.com/b"]
        assert [e.visited for e in events] == [1, 2, 3]
        assert events[0].queued == 0
        assert events[0].depth == 0

    @pytest.mark.asyncio
    async def test_independent_crawls(self):
        crawler, _ = _crawler({SEED: _links("/a")})
        first = await crawler.crawl(SEED)
        second = await crawler.crawl(SEED)
        assert first.urls == second.urls

    @pytest.mark.asyncio
    @pytest.mark.parametrize("seed", ["ftp://example.com/", "example.com", "", "/relative"])
    async def test_invalid_seed(self, seed):
        crawler, _ = _crawler({})
        with pytest.raises(ValueError):
            await crawler.crawl(seed)

    @pytest.mark.asyncio
    async def test_invalid_limits(self):
        crawler, _ = _crawler({})
        with pytest.raises(ValueError):
            await crawler.crawl(SEED, max_depth=-1)
        with pytest.raises(ValueError):
            await crawler.crawl(SEED, max_total_urls=0)


class TestCrawlRequest:
    def test_validation(self):
        with pytest.raises(ValueError):
            CrawlRequest(max_depth=-1)
        with pytest.raises(ValueError):
            CrawlRequest(max_total_urls=0)
        with pytest.raises(ValueError):
            CrawlRequest(delay_ms=-5)
