"""HTML to Markdown conversion as an ordered chain of strategies.

1. ReadabilityStrategy  — readability-lxml isolates the article, markdownify renders it
2. StructuralStrategy   — heuristic main-content pick (or the whole page), markdownify
3. RegexStrategy        — tag-by-tag pattern substitution, cannot fail

The first strategy that produces non-empty Markdown wins. ``convert_html``
never raises: when everything fails the caller gets an "Error processing"
line, which batch aggregation recognises by prefix.
"""

import html as html_lib
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag
from markdownify import MarkdownConverter
from readability import Document
from readability.readability import Unparseable

logger = logging.getLogger(__name__)

ERROR_PREFIX = "Error processing"

# Tags that can never render as meaningful markdown
JUNK_TAGS = {
    "script", "style", "noscript", "template", "iframe", "svg", "canvas",
    "object", "embed", "meta", "link", "select", "option", "datalist",
}

# Page chrome removed when only the main content is wanted
BOILERPLATE_SELECTORS = [
    "nav",
    "[role='navigation']",
    "[role='search']",
    "[role='dialog']",
    ".cookie-banner",
    "#cookie-consent",
    "[class*='cookie-notice']",
    ".sidebar-ad",
    "[class*='advertisement']",
    ".share-buttons",
    ".social-share",
    ".breadcrumb",
    ".breadcrumbs",
    ".pagination",
    ".skip-link",
    ".sr-only",
    ".visually-hidden",
]

MAIN_CONTAINER_SELECTORS = [
    "main",
    "article",
    "[role='main']",
    "#content",
    "#main-content",
    ".main-content",
]

# Readability output shorter than this is treated as "nothing extracted"
MIN_ARTICLE_CHARS = 25


@dataclass(frozen=True)
class ConvertOptions:
    title: bool = True  # prefix "# <title>"
    links: bool = True  # keep [text](url) links; False keeps only the text
    clean: bool = True  # readability extraction; False converts the raw page


@dataclass
class StrategyResult:
    markdown: str
    title: str | None = None
    strategy: str = ""


class Site2MdConverter(MarkdownConverter):
    """Markdown converter that keeps links, code fences and strikethrough."""

    def convert_a(self, el, text, *args, **kwargs):
        href = el.get("href", "")
        title = el.get("title", "")
        text = (text or "").strip()

        if not text or not href:
            return text or ""

        # Bare "#" anchors carry no target
        if href == "#":
            return text

        if title:
            return f'[{text}]({href} "{title}")'
        return f"[{text}]({href})"

    def convert_img(self, el, text, *args, **kwargs):
        src = el.get("src", "")
        if not src:
            return ""
        return f"![{el.get('alt', '')}]({src})"

    def convert_pre(self, el, text, *args, **kwargs):
        code = el.find("code")
        lang = ""
        if code:
            for cls in code.get("class", []):
                if cls.startswith("language-"):
                    lang = cls[9:]
                    break
            body = code.get_text()
        else:
            body = el.get_text()
        return f"\n```{lang}\n{body.strip(chr(10))}\n```\n"

    def convert_del(self, el, text, *args, **kwargs):
        text = (text or "").strip()
        return f"~~{text}~~" if text else ""

    convert_s = convert_del
    convert_strike = convert_del


_CONVERTER = Site2MdConverter(
    heading_style="ATX",
    bullets="-",
    newline_style="backslash",
    strip=["script", "style"],
)


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

_STYLE_SCRIPT_RE = re.compile(r"<(style|script)\b[^>]*>[\s\S]*?</\1\s*>", re.IGNORECASE)
_REGEX_FLAGS = re.IGNORECASE | re.DOTALL


def strip_style_and_script(html: str) -> str:
    return _STYLE_SCRIPT_RE.sub("", html)


def extract_title(html: str) -> str | None:
    """Text of the document's <title>, or None."""
    if not html:
        return None
    try:
        soup = BeautifulSoup(html, "lxml")
    except Exception as e:
        logger.debug(f"Title extraction failed: {e}")
        return None
    tag = soup.find("title")
    if not tag:
        return None
    title = " ".join(tag.get_text().split())
    return title or None


def _resolve_relative_urls(soup: BeautifulSoup | Tag, base_url: str) -> None:
    """Rewrite relative href/src attributes to absolute URLs in-place."""
    if not base_url:
        return
    for tag in soup.find_all(href=True):
        href = tag["href"].strip()
        if href and not href.startswith(("#", "javascript:", "mailto:", "tel:", "data:")):
            try:
                tag["href"] = urljoin(base_url, href)
            except ValueError:
                continue
    for tag in soup.find_all(src=True):
        src = tag["src"].strip()
        if src and not src.startswith(("data:", "javascript:")):
            try:
                tag["src"] = urljoin(base_url, src)
            except ValueError:
                continue


def _remove_hidden_elements(soup: BeautifulSoup) -> None:
    """Drop display:none / visibility:hidden / [hidden] elements.

    Elements are collected before decomposing so removing a parent does not
    invalidate the iteration.
    """
    for el in list(soup.find_all(style=True)):
        if el.attrs is None:
            continue
        style = (el.attrs.get("style") or "").replace(" ", "").lower()
        if "display:none" in style or "visibility:hidden" in style:
            el.decompose()
    for el in list(soup.find_all(attrs={"hidden": True})):
        if el.attrs is not None:
            el.decompose()


def _is_inside_main_content(el: Tag) -> bool:
    for parent in el.parents:
        if not isinstance(parent, Tag):
            continue
        if parent.name in ("main", "article") or parent.get("role") == "main":
            return True
    return False


def _postprocess_markdown(markdown: str) -> str:
    """Whitespace cleanup that leaves fenced code blocks untouched."""
    parts = re.split(r"(```[^\n]*\n.*?```)", markdown, flags=re.DOTALL)
    cleaned = []
    for i, part in enumerate(parts):
        if i % 2 == 1:
            cleaned.append(part)
            continue
        part = re.sub(r"[ \t]+\n", "\n", part)
        part = re.sub(r"\n{3,}", "\n\n", part)
        cleaned.append(part)
    markdown = "".join(cleaned)
    # Headings with no text
    markdown = re.sub(r"^#{1,6}\s*$", "", markdown, flags=re.MULTILINE)
    markdown = re.sub(r"\n\s*\n\s*\n", "\n\n", markdown)
    return markdown.strip()


def html_to_markdown_from_tag(tag: Tag | BeautifulSoup) -> str:
    return _postprocess_markdown(_CONVERTER.convert_soup(tag))


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


class ConversionStrategy(ABC):
    name: str = "base"

    @abstractmethod
    def convert(self, html: str, source_url: str) -> StrategyResult | None:
        """Return Markdown, or None when this strategy has nothing usable."""
        ...


class ReadabilityStrategy(ConversionStrategy):
    """Main-article extraction with readability-lxml."""

    name = "readability"

    def __init__(self, min_chars: int = MIN_ARTICLE_CHARS):
        self.min_chars = min_chars

    def convert(self, html: str, source_url: str) -> StrategyResult | None:
        cleaned = strip_style_and_script(html)
        if not cleaned.strip():
            return None

        doc = Document(cleaned, url=source_url or None)
        try:
            article_html = doc.summary(html_partial=True)
        except Unparseable as e:
            logger.debug(f"Readability could not parse {source_url}: {e}")
            return None
        if not article_html:
            return None

        soup = BeautifulSoup(article_html, "lxml")
        if len("".join(soup.get_text().split())) < self.min_chars:
            logger.debug(f"Readability found too little content for {source_url}")
            return None

        _resolve_relative_urls(soup, source_url)
        markdown = html_to_markdown_from_tag(soup)
        if not markdown:
            return None

        title = None
        try:
            title = doc.short_title() or None
        except Exception as e:
            logger.debug(f"Readability title lookup failed: {e}")
        return StrategyResult(markdown=markdown, title=title, strategy=self.name)


class StructuralStrategy(ConversionStrategy):
    """Convert the page structure directly.

    With ``main_content`` the page is trimmed to its main container
    (semantic <main>/<article> first, then <body> without top-level
    header/footer/aside); otherwise the whole document is rendered.
    """

    def __init__(self, main_content: bool = True):
        self.main_content = main_content
        self.name = "structural-main" if main_content else "structural-raw"

    def convert(self, html: str, source_url: str) -> StrategyResult | None:
        if not html.strip():
            return None
        soup = BeautifulSoup(html, "lxml")
        if soup.head:
            soup.head.decompose()
        for tag in soup.find_all(list(JUNK_TAGS)):
            tag.decompose()

        target: BeautifulSoup | Tag = soup
        if self.main_content:
            self._remove_boilerplate(soup)
            target = self._find_main_container(soup) or self._smart_body_extract(soup) or soup

        _resolve_relative_urls(target, source_url)
        markdown = html_to_markdown_from_tag(target)
        if not markdown:
            return None
        return StrategyResult(markdown=markdown, strategy=self.name)

    @staticmethod
    def _remove_boilerplate(soup: BeautifulSoup) -> None:
        for selector in BOILERPLATE_SELECTORS:
            for el in soup.select(selector):
                if el.parent is None or _is_inside_main_content(el):
                    continue
                el.decompose()
        _remove_hidden_elements(soup)

    @staticmethod
    def _find_main_container(soup: BeautifulSoup) -> Tag | None:
        for selector in MAIN_CONTAINER_SELECTORS:
            el = soup.select_one(selector)
            if el and len(el.get_text(strip=True)) > 200:
                return el
        return None

    @staticmethod
    def _smart_body_extract(soup: BeautifulSoup) -> Tag | None:
        body = soup.find("body")
        if not body:
            return None
        for name in ("header", "footer"):
            for el in body.find_all(name, recursive=False):
                el.decompose()
        for el in body.find_all("aside", recursive=False):
            if len(el.get_text(strip=True)) < 500:
                el.decompose()
        return body


class RegexStrategy(ConversionStrategy):
    """Last-resort conversion by sequential pattern substitution.

    Works on any input, including fragments no parser accepts. Output is
    approximate: nesting is flattened and code indentation is lost.
    """

    name = "regex"

    _BLOCKS_RE = re.compile(
        r"<(script|style|nav|footer|aside)\b[^>]*>[\s\S]*?</\1\s*>", re.IGNORECASE
    )
    _COMMENT_RE = re.compile(r"<!--[\s\S]*?-->")

    # (pattern, replacement) applied in order; "(?:\s[^>]*)?" keeps <b> from
    # matching <br>/<body>, <p> from matching <pre>, and so on
    _SUBSTITUTIONS = [
        (r"<pre(?:\s[^>]*)?>(.*?)</pre>", "\n```\n\\1\n```\n\n"),
        (r"<h1(?:\s[^>]*)?>(.*?)</h1>", "\n# \\1\n\n"),
        (r"<h2(?:\s[^>]*)?>(.*?)</h2>", "\n## \\1\n\n"),
        (r"<h3(?:\s[^>]*)?>(.*?)</h3>", "\n### \\1\n\n"),
        (r"<h4(?:\s[^>]*)?>(.*?)</h4>", "\n#### \\1\n\n"),
        (r"<h5(?:\s[^>]*)?>(.*?)</h5>", "\n##### \\1\n\n"),
        (r"<h6(?:\s[^>]*)?>(.*?)</h6>", "\n###### \\1\n\n"),
        (r"<p(?:\s[^>]*)?>(.*?)</p>", "\n\\1\n\n"),
        (r"<br\s*/?>", "\n"),
        (r"<a\s[^>]*?href=[\"']([^\"']*)[\"'][^>]*>(.*?)</a>", "[\\2](\\1)"),
        (r"<(?:strong|b)(?:\s[^>]*)?>(.*?)</(?:strong|b)>", "**\\1**"),
        (r"<(?:em|i)(?:\s[^>]*)?>(.*?)</(?:em|i)>", "*\\1*"),
        (r"<(?:del|s|strike)(?:\s[^>]*)?>(.*?)</(?:del|s|strike)>", "~~\\1~~"),
        (r"<code(?:\s[^>]*)?>(.*?)</code>", "`\\1`"),
        (r"<blockquote(?:\s[^>]*)?>(.*?)</blockquote>", "\n> \\1\n\n"),
        (r"<img\s[^>]*?src=[\"']([^\"']*)[\"'][^>]*?alt=[\"']([^\"']*)[\"'][^>]*>", "![\\2](\\1)"),
        (r"<img\s[^>]*?src=[\"']([^\"']*)[\"'][^>]*>", "![](\\1)"),
    ]
    _COMPILED = [(re.compile(p, _REGEX_FLAGS), r) for p, r in _SUBSTITUTIONS]

    _UL_RE = re.compile(r"<ul(?:\s[^>]*)?>(.*?)</ul>", _REGEX_FLAGS)
    _OL_RE = re.compile(r"<ol(?:\s[^>]*)?>(.*?)</ol>", _REGEX_FLAGS)
    _LI_RE = re.compile(r"<li(?:\s[^>]*)?>(.*?)</li>", _REGEX_FLAGS)
    _TAG_RE = re.compile(r"<[^>]*>")

    def _lists(self, text: str) -> str:
        def _ul(match: re.Match) -> str:
            return "\n" + self._LI_RE.sub(lambda m: f"- {m.group(1)}\n", match.group(1)) + "\n"

        def _ol(match: re.Match) -> str:
            counter = 0

            def _item(m: re.Match) -> str:
                nonlocal counter
                counter += 1
                return f"{counter}. {m.group(1)}\n"

            return "\n" + self._LI_RE.sub(_item, match.group(1)) + "\n"

        text = self._UL_RE.sub(_ul, text)
        return self._OL_RE.sub(_ol, text)

    def convert(self, html: str, source_url: str) -> StrategyResult | None:
        text = self._BLOCKS_RE.sub("", html or "")
        text = self._COMMENT_RE.sub("", text)

        for pattern, replacement in self._COMPILED:
            text = pattern.sub(replacement, text)
        text = self._lists(text)

        text = self._TAG_RE.sub("", text)
        text = html_lib.unescape(text)

        text = re.sub(r"[ \t]+", " ", text)
        text = "\n".join(line.strip() for line in text.split("\n"))
        text = re.sub(r"\n{3,}", "\n\n", text).strip()

        if source_url:
            text = f"# Content from: {source_url}\n\n{text}".strip()
        return StrategyResult(markdown=text, strategy=self.name)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

_LINK_RE = re.compile(r"(?<!!)\[(!\[[^\]]*\]\([^)]*\)|[^\]]+)\]\([^)]+\)")


def strip_links(markdown: str) -> str:
    """Replace [text](url) with text. Images, including linked ones, keep their own source."""
    return _LINK_RE.sub(r"\1", markdown)


def error_markdown(url: str, message: str) -> str:
    return f"{ERROR_PREFIX} {url}: {message}"


def is_error_markdown(markdown: str) -> bool:
    return markdown.startswith(ERROR_PREFIX)


class HtmlToMarkdown:
    """Runs the strategy chain and applies title/link post-processing."""

    def __init__(
        self,
        clean_chain: list[ConversionStrategy] | None = None,
        raw_chain: list[ConversionStrategy] | None = None,
    ):
        self.clean_chain = clean_chain or [
            ReadabilityStrategy(),
            StructuralStrategy(main_content=True),
            RegexStrategy(),
        ]
        self.raw_chain = raw_chain or [
            StructuralStrategy(main_content=False),
            RegexStrategy(),
        ]

    def _run_chain(self, chain, html: str, source_url: str) -> StrategyResult | None:
        for strategy in chain:
            try:
                result = strategy.convert(html, source_url)
            except Exception as e:
                logger.warning(f"{strategy.name} conversion failed for {source_url}: {e}")
                continue
            if result and result.markdown.strip():
                logger.debug(f"Converted {source_url} with {strategy.name}")
                return result
        return None

    def convert(self, html: str, source_url: str = "", options: ConvertOptions | None = None) -> str:
        opts = options or ConvertOptions()
        try:
            html = html or ""
            chain = self.clean_chain if opts.clean else self.raw_chain
            result = self._run_chain(chain, html, source_url)
            if result is None:
                return error_markdown(source_url, "no content could be extracted")

            markdown = result.markdown
            title = extract_title(html) or result.title

            if not opts.links:
                markdown = strip_links(markdown)
            if opts.title and title and not markdown.startswith(f"# {title}"):
                markdown = f"# {title}\n\n{markdown}"

            markdown = re.sub(r"\n\s*\n\s*\n", "\n\n", markdown).strip()
            return markdown or error_markdown(source_url, "empty document")
        except Exception as e:
            logger.exception(f"Unexpected conversion failure for {source_url}")
            return error_markdown(source_url, str(e) or e.__class__.__name__)


_DEFAULT = HtmlToMarkdown()


def convert_html(html: str, source_url: str = "", options: ConvertOptions | None = None) -> str:
    """Convert an HTML page to Markdown. Never raises."""
    return _DEFAULT.convert(html, source_url, options)
