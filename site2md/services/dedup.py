"""URL deduplication and normalization service."""

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

_DEFAULT_PORTS = {"http": 80, "https": 443}


def _split_absolute(url: str):
    """Split an absolute URL, raising ValueError if it has no scheme or host."""
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"not an absolute URL: {url!r}")
    # Accessing .port validates it (raises ValueError on garbage ports)
    parts.port
    return parts


def _netloc_without_default_port(scheme: str, netloc: str) -> str:
    default = _DEFAULT_PORTS.get(scheme.lower())
    if default and netloc.endswith(f":{default}"):
        return netloc[: -len(f":{default}")]
    return netloc


def normalize_url(url: str) -> str:
    """Normalize a URL into a deduplication key.

    - Remove fragment
    - Remove a single trailing slash (unless path is just /)
    - Sort query params by key (values keep their order within a key)
    - Lowercase the whole result, path and query included

    Never raises. Input that does not parse as an absolute URL comes back
    stripped and lowercased; that fallback is a best-effort key, not a
    canonical URL. The result is only ever compared, never fetched.
    """
    raw = (url or "").strip()
    try:
        parts = _split_absolute(raw)
    except ValueError:
        return raw.lower()

    netloc = _netloc_without_default_port(parts.scheme, parts.netloc)

    path = parts.path or "/"
    if path != "/" and path.endswith("/"):
        path = path[:-1]

    # sorted() is stable, so repeated keys keep their relative order
    params = parse_qsl(parts.query, keep_blank_values=True)
    query = urlencode(sorted(params, key=lambda kv: kv[0])) if params else ""

    normalized = urlunsplit((parts.scheme, netloc, path, query, ""))
    return normalized.lower()


def deduplicate_urls(urls: list[str]) -> list[str]:
    """Normalize and deduplicate a list of URLs, preserving order.

    Returns the first occurrence of each normalized URL.
    """
    seen: dict[str, str] = {}  # normalized -> original
    for url in urls:
        url = url.strip()
        if not url:
            continue
        norm = normalize_url(url)
        if norm not in seen:
            seen[norm] = url
    return list(seen.values())


def url_origin(url: str) -> str | None:
    """Return ``scheme://host[:port]`` for an absolute URL, or None.

    Default ports are elided so ``http://a.com:80`` and ``http://a.com``
    share an origin.
    """
    try:
        parts = _split_absolute((url or "").strip())
    except ValueError:
        return None
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    if not host:
        return None
    if ":" in host:
        host = f"[{host}]"
    port = parts.port
    if port and port != _DEFAULT_PORTS.get(scheme):
        return f"{scheme}://{host}:{port}"
    return f"{scheme}://{host}"


def same_origin(url: str, other: str) -> bool:
    """True when both URLs share scheme, host and port."""
    origin = url_origin(url)
    return origin is not None and origin == url_origin(other)


def is_pdf_url(url: str) -> bool:
    """True when the URL path ends with .pdf (query and fragment ignored)."""
    try:
        path = urlsplit((url or "").strip()).path
    except ValueError:
        return False
    return path.lower().endswith(".pdf")
