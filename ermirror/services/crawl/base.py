from __future__ import annotations

from enum import Enum


class Outcome(str, Enum):
    """How a node finished. Logged once per node."""

    CACHED = "cached"
    SAVED = "saved"
    MISSING = "missing"
    ERROR = "error"


class CrawlError(Exception):
    """Base class for every error the crawler raises on purpose."""


class FetchError(CrawlError):
    retryable: bool = False

    def __init__(self, message: str, *, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class NotFoundError(FetchError):
    """The remote answered 403: treated as a confirmed-absent resource."""


class UnknownStatusError(FetchError):
    retryable = True

    def __init__(self, status_code: int, *, url: str | None = None) -> None:
        super().__init__(f"unexpected HTTP status {status_code}", url=url)
        self.status_code = status_code


class UnreachableError(FetchError):
    retryable = True


class MalformedError(FetchError):
    """The body could not be decoded into a document."""


class InvalidLocatorError(FetchError):
    """The locator cannot address anything (e.g. code shorter than its prefix)."""


class PersistenceError(CrawlError):
    """Local disk failure. Not retried; aborts the crawl."""

    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path
