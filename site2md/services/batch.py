"""Sequential, pausable batch conversion of a URL list.

The loop is an async generator over a ``BatchState``: each step fetches and
converts one URL, appends its result and advances ``current_index``. Pausing
is cooperative and takes effect at the next URL boundary; a fresh ``run()``
picks up at ``current_index`` with earlier results kept.
"""

import asyncio
import logging
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable
from urllib.parse import unquote, urlsplit

from site2md.core.context import bind_url
from site2md.exceptions import FetchError
from site2md.schemas.batch import (
    BatchOptions,
    BatchState,
    BatchStatus,
    BatchSummary,
    ConversionResult,
)
from site2md.services.content import (
    ERROR_PREFIX,
    HtmlToMarkdown,
    error_markdown,
    is_error_markdown,
)
from site2md.services.dedup import is_pdf_url
from site2md.services.fetcher import Fetcher, describe_error
from site2md.services.retry import RetryExhaustedError, RetryPolicy

logger = logging.getLogger(__name__)

StatusCallback = Callable[[BatchStatus], None]


def load_url_list(text: str) -> list[str]:
    """Parse newline-delimited URLs, skipping blank lines."""
    return [line.strip() for line in text.splitlines() if line.strip()]


def read_url_file(path: str | Path) -> list[str]:
    return load_url_list(Path(path).read_text(encoding="utf-8"))


def _is_fetch_error(error: BaseException) -> bool:
    return isinstance(error, FetchError)


def _pdf_filename(url: str) -> str:
    name = Path(unquote(urlsplit(url).path)).name
    return name if name.lower().endswith(".pdf") else "document.pdf"


class BatchProcessor:
    def __init__(
        self,
        fetcher: Fetcher,
        converter: HtmlToMarkdown | None = None,
        options: BatchOptions | None = None,
        state: BatchState | None = None,
        on_status: StatusCallback | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.fetcher = fetcher
        self.converter = converter or HtmlToMarkdown()
        self.options = options or BatchOptions()
        self.state = state or BatchState(items=[])
        self.on_status = on_status
        self._sleep = sleep
        self._retry = RetryPolicy(
            max_attempts=self.options.max_retries,
            retryable=_is_fetch_error,
            sleep=sleep,
        )

    def load(self, urls: list[str]) -> BatchState:
        """Start over with a new URL list."""
        self.state = BatchState(items=[u.strip() for u in urls if u and u.strip()])
        return self.state

    # -- control -----------------------------------------------------------

    def pause(self) -> None:
        """Stop before the next URL. A fetch already in flight completes."""
        self.state.paused = True

    def resume(self) -> None:
        self.state.paused = False

    def restart(self) -> None:
        self.state.current_index = 0
        self.state.results = []
        self.state.paused = False

    # -- processing --------------------------------------------------------

    async def steps(self) -> AsyncIterator[ConversionResult]:
        """Process URLs from ``current_index`` on, yielding each result."""
        state = self.state
        processed = 0
        while not state.is_complete:
            if state.paused:
                logger.info(f"Batch paused at {state.current_index}/{len(state.items)} ({state.remaining} remaining)")
                return
            if processed and self.options.delay_ms > 0:
                await self._sleep(self.options.delay_ms / 1000)

            url = state.items[state.current_index]
            with bind_url(url):
                result = await self._process(url)

            state.results.append(result)
            state.current_index += 1
            processed += 1

            if self.on_status:
                self.on_status(
                    BatchStatus(
                        index=state.current_index,
                        total=len(state.items),
                        url=url,
                        ok=result.ok,
                        message="Converted" if result.ok else result.error,
                    )
                )
            yield result

    async def run(self) -> BatchSummary:
        async for _ in self.steps():
            pass
        summary = self.summary()
        if summary.complete:
            logger.info(f"Batch complete: {summary.succeeded} succeeded, {summary.failed} failed")
        return summary

    def summary(self) -> BatchSummary:
        succeeded = sum(1 for r in self.state.results if r.ok)
        return BatchSummary(
            total=len(self.state.items),
            succeeded=succeeded,
            failed=len(self.state.results) - succeeded,
            paused=self.state.paused,
            complete=self.state.is_complete,
        )

    async def _process(self, url: str) -> ConversionResult:
        def _on_retry(attempt: int, error: BaseException, delay: float) -> None:
            logger.info(f"Attempt {attempt} for {url} failed ({describe_error(error)}); retrying in {delay:.0f}s")

        try:
            if is_pdf_url(url):
                return await self._retry.call(lambda: self._fetch_pdf(url), on_retry=_on_retry)
            return await self._retry.call(lambda: self._convert(url), on_retry=_on_retry)
        except RetryExhaustedError as e:
            message = describe_error(e.last_error)
        except Exception as e:
            message = describe_error(e)

        logger.warning(f"Failed to process {url}: {message}")
        return ConversionResult(url=url, markdown=error_markdown(url, message), error=message)

    async def _convert(self, url: str) -> ConversionResult:
        html = await self.fetcher.fetch_text(url, self.options.timeout_ms)
        markdown = self.converter.convert(html, url, self.options.convert_options)
        error = None
        if is_error_markdown(markdown):
            error = markdown[len(ERROR_PREFIX):].split(": ", 1)[-1]
        return ConversionResult(
            url=url,
            markdown=markdown,
            html=html if self.options.keep_html else None,
            error=error,
        )

    async def _fetch_pdf(self, url: str) -> ConversionResult:
        name = _pdf_filename(url)
        if self.options.pdf_dir is None:
            return ConversionResult(url=url, markdown=f"[{name}]({url})")

        data = await self.fetcher.fetch_bytes(url, self.options.timeout_ms)
        pdf_dir = Path(self.options.pdf_dir)
        pdf_dir.mkdir(parents=True, exist_ok=True)
        target = pdf_dir / name
        counter = 2
        while target.exists():
            target = pdf_dir / f"{Path(name).stem}-{counter}.pdf"
            counter += 1
        target.write_bytes(data)
        logger.info(f"Saved PDF {url} to {target}")
        return ConversionResult(url=url, markdown=f"[{name}]({target.as_posix()})", pdf_path=str(target))
