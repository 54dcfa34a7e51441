"""Exception hierarchy for site2md."""


class Site2MdError(Exception):
    """Base class for all site2md errors."""


class FetchError(Site2MdError):
    """A single HTTP fetch failed.

    ``kind`` is one of ``"http"`` (non-2xx response, ``status`` set),
    ``"timeout"`` or ``"network"``.
    """

    def __init__(self, url: str, message: str, kind: str = "network", status: int | None = None):
        self.url = url
        self.kind = kind
        self.status = status
        self.message = message
        super().__init__(message)

    @property
    def is_timeout(self) -> bool:
        return self.kind == "timeout"

    def __repr__(self) -> str:
        return f"FetchError(kind={self.kind!r}, status={self.status!r}, url={self.url!r})"


class ParseError(Site2MdError):
    """HTML or URL could not be parsed. Always recovered locally."""
