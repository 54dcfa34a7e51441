"""URL filters for link discovery — scheme, origin, file extension."""

from __future__ import annotations

from abc import ABC, abstractmethod
from urllib.parse import urlsplit

from site2md.services.dedup import url_origin

# href prefixes that never point at a crawlable page
SKIP_HREF_PREFIXES = ("#", "mailto:", "tel:", "javascript:", "data:")

# Non-HTML resources. PDFs are not listed: they are kept and downloaded as-is.
SKIP_EXTENSIONS = frozenset({
    # images
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg", ".ico", ".bmp", ".tiff",
    # styles, scripts, data
    ".css", ".js", ".json", ".xml",
    # archives
    ".zip", ".tar", ".gz", ".rar", ".7z",
    # executables
    ".exe", ".dmg", ".iso", ".app", ".msi",
    # media
    ".mp4", ".mp3", ".avi", ".mov", ".wav", ".webm",
    # fonts
    ".ttf", ".otf", ".woff", ".woff2", ".eot",
})


class URLFilter(ABC):
    """Base class for URL filters."""

    @abstractmethod
    def apply(self, url: str) -> bool:
        """Return True if the URL should be kept, False to reject."""
        ...


class FilterChain:
    """Chain of URL filters — rejects on first failure (AND logic)."""

    def __init__(self, filters: list[URLFilter] | None = None):
        self.filters = filters or []

    def apply(self, url: str) -> bool:
        for f in self.filters:
            if not f.apply(url):
                return False
        return True


class SchemeFilter(URLFilter):
    """Reject raw hrefs that are fragments or non-navigational schemes.

    Applied to the href as written in the page, before resolution.
    """

    def __init__(self, prefixes: tuple[str, ...] = SKIP_HREF_PREFIXES):
        self._prefixes = tuple(p.lower() for p in prefixes)

    def apply(self, url: str) -> bool:
        href = url.strip().lower()
        if not href:
            return False
        return not href.startswith(self._prefixes)


class OriginFilter(URLFilter):
    """Keep only URLs on a single origin (scheme + host + port)."""

    def __init__(self, origin: str):
        self.origin = url_origin(origin) or origin.rstrip("/").lower()

    def apply(self, url: str) -> bool:
        return url_origin(url) == self.origin


class ExtensionFilter(URLFilter):
    """Reject URLs whose path ends with a known non-HTML file extension."""

    def __init__(self, blocked: frozenset[str] = SKIP_EXTENSIONS):
        self._blocked = blocked

    def apply(self, url: str) -> bool:
        try:
            path = urlsplit(url).path.lower()
        except ValueError:
            return False
        last_segment = path.rsplit("/", 1)[-1]
        dot_idx = last_segment.rfind(".")
        if dot_idx <= 0:
            return True
        return last_segment[dot_idx:] not in self._blocked
