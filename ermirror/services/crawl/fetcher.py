from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional, Union

import httpx

from ermirror.models.area import AreaDocument, RecordDocument, parse_document
from .base import (
    InvalidLocatorError,
    MalformedError,
    NotFoundError,
    UnknownStatusError,
    UnreachableError,
)
from .locator import Locator
from .retry import RetryPolicy, run_with_retry

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "ER-Mirror/0.1"

# The site fronts its JSON with a CDN that answers 403 both for missing files
# and for blocked requests; the two cannot be told apart.
STATUS_NOT_FOUND = 403


class AreaFetcher:
    """Fetch one document per locator, classifying the response and retrying.

    The HTTP client may be injected (tests pass one built on
    ``httpx.MockTransport``); otherwise the fetcher owns one and closes it on
    ``aclose()`` / ``async with`` exit.
    """

    def __init__(
        self,
        *,
        timeout: float = 15.0,
        headers: Optional[Dict[str, str]] = None,
        policy: Optional[RetryPolicy] = None,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.timeout = float(timeout)
        self.headers = headers or {"User-Agent": DEFAULT_USER_AGENT}
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=self.timeout, headers=self.headers, follow_redirects=True
        )
        self.requests_made = 0

    async def __aenter__(self) -> "AreaFetcher":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # --- Public API ---
    async def fetch(self, locator: Locator) -> Union[AreaDocument, RecordDocument]:
        """Return the document behind ``locator``.

        Raises NotFoundError, MalformedError or InvalidLocatorError at once;
        UnknownStatusError and UnreachableError only once retries run out.
        """
        if not locator.is_valid:
            raise InvalidLocatorError(
                f"code {locator.code!r} is too short for a {locator.kind} locator "
                f"(needs {locator.prefix_length} characters)",
                url=locator.url,
            )
        return await run_with_retry(
            lambda: self._attempt(locator), self.policy, sleep=self._sleep, label=locator.url
        )

    # --- Internals ---
    async def _attempt(self, locator: Locator) -> Union[AreaDocument, RecordDocument]:
        url = locator.url
        self.requests_made += 1
        try:
            resp = await self._client.get(url)
        except httpx.DecodingError as exc:
            # The body arrived but its content encoding is broken; asking again won't help
            raise MalformedError(f"undecodable body: {exc}", url=url) from exc
        except httpx.RequestError as exc:
            # Transport failures, timeouts and redirect loops
            raise UnreachableError(f"{type(exc).__name__}: {exc}", url=url) from exc

        if resp.status_code == 200:
            try:
                raw = resp.json()
            except ValueError as exc:
                raise MalformedError(f"body is not JSON: {exc}", url=url) from exc
            try:
                return parse_document(raw)
            except ValueError as exc:
                raise MalformedError(f"unexpected document shape: {exc}", url=url) from exc
        if resp.status_code == STATUS_NOT_FOUND:
            raise NotFoundError("resource not found", url=url)
        raise UnknownStatusError(resp.status_code, url=url)
