"""Same-origin link extraction for the crawler.

Two parsers share one filtering pipeline: lxml (fast, C-backed) is tried
first and BeautifulSoup with the pure-Python ``html.parser`` backend takes
over when lxml rejects the document. Both return the raw ``href`` values in
document order; everything after that is common.
"""

import logging
from abc import ABC, abstractmethod
from urllib.parse import urljoin, urlsplit, urlunsplit

import lxml.html
from bs4 import BeautifulSoup
from lxml import etree

from site2md.exceptions import ParseError
from site2md.services.dedup import normalize_url
from site2md.services.deep_crawl.filters import (
    ExtensionFilter,
    FilterChain,
    OriginFilter,
    SchemeFilter,
)

logger = logging.getLogger(__name__)


class LinkParser(ABC):
    """Pulls anchor hrefs (and an optional <base href>) out of HTML."""

    name: str = "base"

    @abstractmethod
    def parse(self, html: str) -> tuple[list[str], str | None]:
        """Return (hrefs in document order, base href or None).

        Raises ParseError when the document cannot be parsed.
        """
        ...


class LxmlLinkParser(LinkParser):
    name = "lxml"

    def parse(self, html: str) -> tuple[list[str], str | None]:
        try:
            doc = lxml.html.fromstring(html)
        except (etree.ParserError, etree.XMLSyntaxError, ValueError) as e:
            raise ParseError(f"lxml could not parse document: {e}") from e
        # fromstring() may hand back a fragment wrapper; <base> lives in <head>
        root = doc.getroottree().getroot()
        hrefs = [a.get("href") for a in root.iter("a") if a.get("href") is not None]
        base = root.find(".//base[@href]")
        return hrefs, base.get("href") if base is not None else None


class SoupLinkParser(LinkParser):
    name = "html.parser"

    def parse(self, html: str) -> tuple[list[str], str | None]:
        try:
            soup = BeautifulSoup(html, "html.parser")
        except Exception as e:
            raise ParseError(f"html.parser could not parse document: {e}") from e
        hrefs = [a["href"] for a in soup.find_all("a", href=True)]
        base = soup.find("base", href=True)
        return hrefs, base["href"] if base else None


DEFAULT_PARSERS: tuple[LinkParser, ...] = (LxmlLinkParser(), SoupLinkParser())


def _collect_hrefs(html: str, parsers) -> tuple[list[str], str | None]:
    for parser in parsers:
        try:
            return parser.parse(html)
        except ParseError as e:
            logger.debug(f"{parser.name} link parser failed, trying next: {e}")
    return [], None


def extract_links(
    html: str,
    page_url: str,
    origin_to_match: str,
    parsers: tuple[LinkParser, ...] = DEFAULT_PARSERS,
) -> list[str]:
    """Extract crawlable same-origin page links from HTML.

    Hrefs are resolved against the page URL (or its <base href>), with
    fragments and non-navigational schemes dropped, cross-origin URLs and
    non-HTML file types filtered out (PDFs are kept), and the result
    deduplicated by normalized URL in first-seen order.

    Never raises: unparseable HTML or an empty page yields ``[]``.
    """
    if not html or not html.strip():
        return []

    hrefs, base_href = _collect_hrefs(html, parsers)
    if not hrefs:
        return []

    base_url = page_url
    if base_href:
        try:
            base_url = urljoin(page_url, base_href.strip())
        except ValueError:
            pass

    scheme_filter = SchemeFilter()
    chain = FilterChain([OriginFilter(origin_to_match), ExtensionFilter()])

    found: dict[str, str] = {}  # normalized -> absolute
    for href in hrefs:
        if not scheme_filter.apply(href):
            continue
        try:
            parts = urlsplit(urljoin(base_url, href.strip()))
        except ValueError:
            continue
        absolute = urlunsplit(parts._replace(fragment=""))
        if not chain.apply(absolute):
            continue
        norm = normalize_url(absolute)
        if norm not in found:
            found[norm] = absolute
    return list(found.values())
