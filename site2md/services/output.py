"""Assemble conversion results into Markdown documents and write them out."""

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterator
from urllib.parse import urlsplit

from site2md.schemas.batch import ConversionResult
from site2md.services.dedup import normalize_url

logger = logging.getLogger(__name__)

DOCUMENT_SEPARATOR = "\n\n---\n\n"
MAX_FILENAME_CHARS = 200
MAX_FALLBACK_CHARS = 50
MAX_CHUNK_SIZE = 100
OUTPUT_MODES = ("merged", "separate")

_UNSAFE_CHARS_RE = re.compile(r'[/?%*:|"<>]')


def successful_results(results: list[ConversionResult]) -> list[ConversionResult]:
    """Drop failed results and keep the first result per normalized URL."""
    seen: set[str] = set()
    kept = []
    for result in results:
        if not result.ok:
            continue
        key = normalize_url(result.url)
        if key in seen:
            continue
        seen.add(key)
        kept.append(result)
    return kept


def _section(result: ConversionResult) -> str:
    return f"## {result.url}\n\n{result.markdown}"


def merge_results(results: list[ConversionResult]) -> str:
    return DOCUMENT_SEPARATOR.join(_section(r) for r in results)


def split_results(results: list[ConversionResult], chunk_size: int) -> Iterator[str]:
    """Yield one merged document per ``chunk_size`` results."""
    if not 1 <= chunk_size <= MAX_CHUNK_SIZE:
        raise ValueError(f"chunk_size must be between 1 and {MAX_CHUNK_SIZE}")
    for start in range(0, len(results), chunk_size):
        yield merge_results(results[start:start + chunk_size])


def chunk_count(total: int, chunk_size: int) -> int:
    return math.ceil(total / chunk_size) if total else 0


def filename_from_url(url: str) -> str:
    """Filesystem-safe ``.md`` name derived from a URL's host and path."""
    try:
        parts = urlsplit(url)
        if not parts.scheme or not parts.netloc or not parts.hostname:
            raise ValueError(url)
        name = f"{parts.netloc}_{parts.path.strip('/')}"
        name = _UNSAFE_CHARS_RE.sub("_", name)
        name = re.sub(r"_+", "_", name).strip("_")
        name = name[:MAX_FILENAME_CHARS] or "untitled"
    except ValueError:
        name = re.sub(r"[^A-Za-z0-9]", "_", url or "")[:MAX_FALLBACK_CHARS] or "invalid_url"
    return f"{name}.md"


def merged_filename(source_path: str | Path | None = None, now: datetime | None = None) -> str:
    if source_path:
        return f"{Path(source_path).stem}_merged.md"
    stamp = (now or datetime.now()).strftime("%Y-%m-%dT%H-%M-%S")
    return f"merged_urls_{stamp}.md"


def part_filename(base: str, part: int) -> str:
    stem = base[:-3] if base.endswith(".md") else base
    return f"{stem}_part{part}.md"


def separate_documents(results: list[ConversionResult]) -> list[tuple[str, str]]:
    return [(filename_from_url(r.url), _section(r)) for r in results]


def status_summary(results: list[ConversionResult]) -> str:
    failed = [r for r in results if not r.ok]
    lines = [f"{len(results) - len(failed)} succeeded, {len(failed)} failed"]
    for r in failed:
        lines.append(f"  {r.url}: {r.error}")
    return "\n".join(lines)


@dataclass
class WriteReport:
    written: list[Path] = field(default_factory=list)
    errors: list[tuple[str, str]] = field(default_factory=list)  # (filename, message)

    @property
    def ok(self) -> bool:
        return not self.errors


class OutputWriter:
    """Writes results as UTF-8 Markdown files under ``out_dir``.

    ``mode="merged"`` writes one document (or ``split_size``-sized parts),
    ``mode="separate"`` one file per page. Existing files are never
    overwritten; a ``-2``, ``-3``... suffix is added instead.
    """

    def __init__(self, out_dir: str | Path, mode: str = "merged", split_size: int = 0):
        if mode not in OUTPUT_MODES:
            raise ValueError(f"mode must be one of {OUTPUT_MODES}")
        if not 0 <= split_size <= MAX_CHUNK_SIZE:
            raise ValueError(f"split_size must be between 0 and {MAX_CHUNK_SIZE}")
        self.out_dir = Path(out_dir)
        self.mode = mode
        self.split_size = split_size

    def _documents(self, results: list[ConversionResult], source_path) -> list[tuple[str, str]]:
        if self.mode == "separate":
            return separate_documents(results)
        base = merged_filename(source_path)
        if self.split_size and len(results) > self.split_size:
            parts = chunk_count(len(results), self.split_size)
            logger.debug(f"Splitting {len(results)} pages into {parts} files")
            return [
                (part_filename(base, i), doc)
                for i, doc in enumerate(split_results(results, self.split_size), start=1)
            ]
        return [(base, merge_results(results))]

    def _unique_path(self, filename: str, taken: set[Path]) -> Path:
        path = self.out_dir / filename
        stem, suffix = path.stem, path.suffix
        counter = 2
        while path in taken or path.exists():
            path = self.out_dir / f"{stem}-{counter}{suffix}"
            counter += 1
        return path

    def write(self, results: list[ConversionResult], source_path: str | Path | None = None) -> WriteReport:
        report = WriteReport()
        kept = successful_results(results)
        if not kept:
            logger.warning("No successful results to write")
            return report

        self.out_dir.mkdir(parents=True, exist_ok=True)
        taken: set[Path] = set()
        for filename, content in self._documents(kept, source_path):
            path = self._unique_path(filename, taken)
            taken.add(path)
            try:
                path.write_text(content, encoding="utf-8")
            except OSError as e:
                logger.error(f"Failed to write {path}: {e}")
                report.errors.append((filename, str(e)))
                continue
            report.written.append(path)
        logger.info(f"Wrote {len(report.written)} file(s) to {self.out_dir}")
        return report
