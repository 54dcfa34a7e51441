"""Breadth-first crawl frontier and its state."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field

from site2md.services.dedup import normalize_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CrawlTask:
    """A URL waiting in the crawl frontier."""
    url: str
    depth: int = 0


@dataclass
class CrawlState:
    """Bookkeeping for one crawl invocation.

    ``visited`` maps normalized URL -> original URL in visit order and only
    ever grows. ``queued`` holds normalized URLs that are waiting in the
    frontier, so a link seen on several pages is enqueued once.
    """
    visited: dict[str, str] = field(default_factory=dict)
    queued: set[str] = field(default_factory=set)
    pages_fetched: int = 0

    def to_dict(self) -> dict:
        return {
            "visited": list(self.visited.values()),
            "queued": sorted(self.queued),
            "pages_fetched": self.pages_fetched,
        }

    @classmethod
    def from_dict(cls, data: dict) -> CrawlState:
        visited = {normalize_url(u): u for u in data.get("visited", [])}
        return cls(
            visited=visited,
            queued=set(data.get("queued", [])),
            pages_fetched=data.get("pages_fetched", 0),
        )


class BFSFrontier:
    """FIFO frontier: process level by level.

    The frontier owns the dedup rules; the crawler only decides when to
    pop and which discovered links to offer.
    """

    def __init__(self, max_depth: int, max_pages: int):
        self.max_depth = max_depth
        self.max_pages = max_pages
        self._queue: deque[CrawlTask] = deque()
        self._state = CrawlState()

    @property
    def state(self) -> CrawlState:
        return self._state

    def __len__(self) -> int:
        return len(self._queue)

    def seed(self, start_url: str) -> None:
        """Seed the queue with the start URL at depth 0."""
        self._queue.append(CrawlTask(url=start_url, depth=0))
        self._state.queued.add(normalize_url(start_url))

    def has_capacity(self) -> bool:
        return len(self._state.visited) < self.max_pages

    def pop(self) -> CrawlTask | None:
        """Pop the next task that still needs visiting.

        Returns None once the queue is empty. Tasks already visited or
        deeper than ``max_depth`` are dropped silently.
        """
        while self._queue:
            task = self._queue.popleft()
            norm = normalize_url(task.url)
            self._state.queued.discard(norm)
            if norm in self._state.visited:
                continue
            if task.depth > self.max_depth:
                continue
            return task
        return None

    def mark_visited(self, task: CrawlTask) -> None:
        self._state.visited[normalize_url(task.url)] = task.url

    def add_discovered(self, urls: list[str], depth: int) -> int:
        """Enqueue links not yet visited or queued. Returns how many were added."""
        added = 0
        for url in urls:
            norm = normalize_url(url)
            if norm in self._state.visited or norm in self._state.queued:
                continue
            self._state.queued.add(norm)
            self._queue.append(CrawlTask(url=url, depth=depth))
            added += 1
        return added

    def clear(self) -> None:
        """Drop whatever is left in the queue (crawl finished or capped)."""
        if self._queue:
            logger.debug(f"Discarding {len(self._queue)} queued URLs")
        self._queue.clear()
        self._state.queued.clear()
