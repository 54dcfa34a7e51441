"""site2md command line — crawl a site and convert its pages to Markdown.

Usage:
    site2md crawl https://example.com --max-depth 2 --max-urls 50
    site2md crawl https://example.com --output-file urls.txt
    site2md convert https://example.com/a https://example.com/b --out docs
    site2md convert --file urls.txt --mode separate --no-links
    site2md convert --file urls.txt --state batch.json      # Ctrl-C pauses
    site2md convert --state batch.json --resume
    site2md site https://example.com --max-depth 1 --split 20
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path

from site2md.config import settings
from site2md.core.logging_config import configure_logging

logger = logging.getLogger("site2md.cli")


def _setup_logging(verbose: bool = False):
    configure_logging(
        log_format=settings.LOG_FORMAT,
        log_level="DEBUG" if verbose else "WARNING",
        stream=sys.stderr,
    )


def _print_progress(progress):
    print(
        f"[{progress.visited}] depth {progress.depth}, {progress.queued} queued: {progress.url}",
        file=sys.stderr,
    )


def _print_status(status):
    mark = "ok" if status.ok else f"FAILED ({status.message})"
    print(f"[{status.index}/{status.total}] {status.url} {mark}", file=sys.stderr)


async def _discover(args):
    from site2md.schemas.crawl import CrawlRequest
    from site2md.services.crawler import SiteCrawler
    from site2md.services.fetcher import FetchClient

    request = CrawlRequest(
        max_depth=args.max_depth,
        max_total_urls=args.max_urls,
        delay_ms=args.delay_ms,
        timeout_ms=args.timeout_ms,
    )
    async with FetchClient() as fetcher:
        crawler = SiteCrawler(fetcher, request)
        return await crawler.crawl(args.url, on_progress=_print_progress)


async def _cmd_crawl(args) -> int:
    """Discover same-origin URLs and print them."""
    result = await _discover(args)

    if args.output_file:
        Path(args.output_file).write_text("\n".join(result.urls) + "\n", encoding="utf-8")
        print(f"Wrote {len(result.urls)} URLs to {args.output_file}", file=sys.stderr)
    elif args.output == "text":
        for url in result.urls:
            print(url)

    if args.output == "json":
        print(json.dumps(result.model_dump(), indent=2, ensure_ascii=False))
    else:
        print(
            f"\nFound {len(result.urls)} URLs ({result.pdf_count} PDFs), "
            f"{result.total_found} links seen",
            file=sys.stderr,
        )
    return 0


def _batch_options(args):
    from site2md.schemas.batch import BatchOptions

    return BatchOptions(
        max_retries=args.retries,
        delay_ms=args.batch_delay_ms,
        timeout_ms=args.timeout_ms,
        pdf_dir=args.pdf_dir,
        title=not args.no_title,
        links=not args.no_links,
        clean=not args.raw,
    )


def _load_state(args, urls: list[str]):
    from site2md.schemas.batch import BatchState

    if args.resume:
        if not args.state or not Path(args.state).exists():
            raise SystemExit("--resume needs an existing --state file")
        data = json.loads(Path(args.state).read_text(encoding="utf-8"))
        state = BatchState.from_dict(data)
        state.paused = False
        return state
    return BatchState(items=urls)


async def _run_batch(args, state):
    from site2md.services.batch import BatchProcessor
    from site2md.services.fetcher import FetchClient

    async with FetchClient() as fetcher:
        processor = BatchProcessor(
            fetcher,
            options=_batch_options(args),
            state=state,
            on_status=_print_status,
        )
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, processor.pause)
        except (NotImplementedError, RuntimeError):
            logger.debug("SIGINT pause handler unavailable on this platform")
        try:
            summary = await processor.run()
        finally:
            try:
                loop.remove_signal_handler(signal.SIGINT)
            except (NotImplementedError, RuntimeError):
                pass
    return summary


def _finish_batch(args, state, summary, source_path=None) -> int:
    from site2md.services.output import OutputWriter, status_summary

    if args.state:
        Path(args.state).write_text(json.dumps(state.to_dict(), ensure_ascii=False), encoding="utf-8")

    if summary.paused:
        print(
            f"Paused at {state.current_index}/{len(state.items)}; "
            f"continue with --state {args.state or '<file>'} --resume",
            file=sys.stderr,
        )
        return 130

    writer = OutputWriter(args.out, mode=args.mode, split_size=args.split)
    report = writer.write(state.results, source_path=source_path)

    if args.output == "json":
        payload = summary.model_dump()
        payload["files"] = [str(p) for p in report.written]
        payload["write_errors"] = [{"file": f, "error": e} for f, e in report.errors]
        payload["failed_urls"] = [{"url": r.url, "error": r.error} for r in state.results if not r.ok]
        print(json.dumps(payload, indent=2, ensure_ascii=False))
    else:
        print(status_summary(state.results))
        for path in report.written:
            print(f"  wrote {path}")
        for filename, error in report.errors:
            print(f"  could not write {filename}: {error}")

    return 0 if summary.succeeded and report.ok else 1


async def _cmd_convert(args) -> int:
    """Convert a list of URLs to Markdown files."""
    from site2md.services.batch import read_url_file

    if args.resume and (args.urls or args.file):
        print("--resume continues the saved batch; do not pass URLs or --file", file=sys.stderr)
        return 2

    urls = list(args.urls or [])
    if args.file:
        urls.extend(read_url_file(args.file))
    if not urls and not args.resume:
        print("No URLs given (pass URLs or --file)", file=sys.stderr)
        return 2

    state = _load_state(args, urls)
    summary = await _run_batch(args, state)
    return _finish_batch(args, state, summary, source_path=args.file)


async def _cmd_site(args) -> int:
    """Crawl a site, then convert every discovered page."""
    if args.resume:
        state = _load_state(args, [])
    else:
        result = await _discover(args)
        print(f"Discovered {len(result.urls)} URLs, converting...", file=sys.stderr)
        state = _load_state(args, result.urls)
    summary = await _run_batch(args, state)
    return _finish_batch(args, state, summary)


def _add_crawl_args(p: argparse.ArgumentParser):
    p.add_argument("--max-depth", type=int, default=settings.CRAWL_MAX_DEPTH, help="Max link depth (0 = seed only)")
    p.add_argument("--max-urls", type=int, default=settings.CRAWL_MAX_URLS, help="Max URLs to discover")
    p.add_argument("--delay-ms", type=int, default=settings.CRAWL_DELAY_MS, help="Delay between page fetches")


def _add_convert_args(p: argparse.ArgumentParser):
    p.add_argument("--out", default=".", help="Output directory (default: current directory)")
    p.add_argument("--mode", default=settings.OUTPUT_MODE, choices=["merged", "separate"], help="One merged file or one file per page")
    p.add_argument("--split", type=int, default=settings.SPLIT_SIZE, help="Pages per merged file (0 = no split)")
    p.add_argument("--retries", type=int, default=settings.BATCH_MAX_RETRIES, help="Attempts per URL (1-10)")
    p.add_argument("--batch-delay-ms", type=int, default=settings.BATCH_DELAY_MS, help="Delay between URLs")
    p.add_argument("--pdf-dir", default=None, help="Download linked PDFs into this directory")
    p.add_argument("--no-title", action="store_true", default=not settings.CONVERT_TITLE, help="Do not prepend the page title")
    p.add_argument("--no-links", action="store_true", default=not settings.CONVERT_LINKS, help="Keep link text only")
    p.add_argument("--raw", action="store_true", default=not settings.CONVERT_CLEAN, help="Convert the whole page, skip readability")
    p.add_argument("--state", default=None, help="File to save batch progress to")
    p.add_argument("--resume", action="store_true", help="Continue the batch saved in --state")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="site2md",
        description="site2md CLI — crawl websites and convert pages to Markdown",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "-o", "--output", default="text",
        choices=["json", "text"],
        help="Output format (default: text)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # --- crawl ---
    crawl_parser = subparsers.add_parser("crawl", help="Discover same-origin URLs")
    crawl_parser.add_argument("url", help="Starting URL")
    _add_crawl_args(crawl_parser)
    crawl_parser.add_argument("--timeout-ms", type=int, default=settings.FETCH_TIMEOUT_MS, help="Per-request timeout")
    crawl_parser.add_argument("--output-file", default=None, help="Write the URL list to this file")

    # --- convert ---
    convert_parser = subparsers.add_parser("convert", help="Convert URLs to Markdown")
    convert_parser.add_argument("urls", nargs="*", help="URLs to convert")
    convert_parser.add_argument("--file", default=None, help="Newline-delimited URL list")
    convert_parser.add_argument("--timeout-ms", type=int, default=settings.FETCH_TIMEOUT_MS, help="Per-request timeout")
    _add_convert_args(convert_parser)

    # --- site ---
    site_parser = subparsers.add_parser("site", help="Crawl a site and convert every page")
    site_parser.add_argument("url", help="Starting URL")
    site_parser.add_argument("--timeout-ms", type=int, default=settings.FETCH_TIMEOUT_MS, help="Per-request timeout")
    _add_crawl_args(site_parser)
    _add_convert_args(site_parser)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    _setup_logging(args.verbose)

    try:
        if args.command == "crawl":
            code = asyncio.run(_cmd_crawl(args))
        elif args.command == "convert":
            code = asyncio.run(_cmd_convert(args))
        else:
            code = asyncio.run(_cmd_site(args))
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except KeyboardInterrupt:
        # Only the batch phase pauses on SIGINT; crawling just stops.
        print("Interrupted", file=sys.stderr)
        sys.exit(130)
    sys.exit(code)


if __name__ == "__main__":
    main()
