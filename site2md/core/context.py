"""Current-URL context for log correlation.

The crawler and batch processor set the URL they are working on in a
contextvars.ContextVar so every log line emitted while handling that page
can be tagged with it.
"""

import contextvars
from contextlib import contextmanager

# Context variable accessible from anywhere in the same async task
current_url_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "current_url", default=""
)


@contextmanager
def bind_url(url: str):
    """Set the current URL for the duration of the block."""
    token = current_url_var.set(url)
    try:
        yield url
    finally:
        current_url_var.reset(token)


def get_current_url() -> str:
    """Get the URL being processed (empty string outside a page context)."""
    return current_url_var.get()
