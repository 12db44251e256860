"""Rate-limited page fetcher shared by the HTML index adapters."""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from mediagrab.shared.exceptions import SourceBlockedError, SourceError
from mediagrab.shared.retry import is_transient, retry_after_seconds, retrying
from mediagrab.sources.headers import random_browser_headers
from mediagrab.sources.interfaces import ChallengeSolver

logger = logging.getLogger(__name__)

BLOCK_MARKERS = (
    "captcha",
    "капча",
    "security check",
    "checking your browser",
    "cf-browser-verification",
    "access denied",
    "доступ запрещен",
)


class PageFetcher:
    """Fetch index pages with browser-like headers, pacing and block handling.

    Each adapter owns one fetcher, so pacing is per index. Every request:

    - waits until ``min_interval`` seconds have passed since the previous one
    - carries a freshly randomised browser header set
    - treats 403/429 and CAPTCHA markers in the body as ``SourceBlockedError``

    Blocked and transient failures are retried with backoff. After
    ``max_consecutive_failures`` failed requests in a row the fetcher moves to
    the next configured proxy. When a ``solver`` is configured, a block that
    survives the retries is handed to it once before giving up.
    """

    def __init__(
        self,
        *,
        solver: ChallengeSolver | None = None,
        proxies: list[str] | None = None,
        timeout: int = 30,
        min_interval: float = 2.0,
        max_attempts: int = 3,
        base_delay: float = 3.0,
        max_consecutive_failures: int = 3,
        encoding: str | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._solver = solver
        self._proxies = list(proxies or [])
        self._proxy_index = 0
        self._timeout = timeout
        self._min_interval = min_interval
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._max_consecutive_failures = max_consecutive_failures
        self._encoding = encoding
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._cookies: dict[str, str] = {}
        self._user_agent: str | None = None
        self._last_request_at: float | None = None
        self._consecutive_failures = 0

    @property
    def current_proxy(self) -> str | None:
        if not self._proxies:
            return None
        return self._proxies[self._proxy_index % len(self._proxies)]

    @property
    def cookies(self) -> dict[str, str]:
        return dict(self._cookies)

    def seed_cookies(self, cookies: dict[str, str]) -> None:
        """Seed the cookie jar (e.g. from an exported browser session)."""
        if cookies:
            self._cookies.update(cookies)

    async def get_text(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        referer: str | None = None,
    ) -> str:
        """GET a page and return its decoded body.

        Raises:
            SourceBlockedError: If the index keeps answering with a block.
            SourceError: For any other failure once retries are exhausted.
        """
        try:
            async for attempt in self._retrying():
                with attempt:
                    resp = await self._request("GET", url, params=params, referer=referer)
                    return self._decode(resp, url)
        except SourceBlockedError as exc:
            if self._solver is None:
                raise
            logger.info("handing %s to challenge solver after block: %s", url, exc)
            return await self._solve(self._solver, url)
        except httpx.HTTPError as exc:
            raise SourceError(f"fetch failed for {url}: {exc}") from exc
        raise SourceError(f"fetch failed for {url}")  # pragma: no cover

    async def get_bytes(self, url: str, *, referer: str | None = None) -> bytes:
        """GET a binary resource (e.g. a ``.torrent`` file)."""
        try:
            async for attempt in self._retrying():
                with attempt:
                    resp = await self._request("GET", url, referer=referer)
                    return resp.content
        except httpx.HTTPError as exc:
            raise SourceError(f"download failed for {url}: {exc}") from exc
        raise SourceError(f"download failed for {url}")  # pragma: no cover

    async def post_form(self, url: str, data: dict[str, str], *, referer: str | None = None) -> httpx.Response:
        """POST a form (used for tracker logins); cookies are kept in the jar."""
        try:
            return await self._request("POST", url, data=data, referer=referer, follow_redirects=False)
        except httpx.HTTPError as exc:
            raise SourceError(f"form post failed for {url}: {exc}") from exc

    def _retrying(self) -> Any:
        return retrying(
            max_attempts=self._max_attempts,
            base_delay=self._base_delay,
            is_retryable=is_transient,
            sleep=self._sleep,
        )

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        data: dict[str, str] | None = None,
        referer: str | None = None,
        follow_redirects: bool = True,
    ) -> httpx.Response:
        await self._throttle()
        headers = random_browser_headers(self._rng, referer=referer)
        if self._user_agent:
            headers["User-Agent"] = self._user_agent

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=follow_redirects,
                cookies=self._cookies,
                headers=headers,
                proxy=self.current_proxy,
            ) as client:
                resp = await client.request(method, url, params=params, data=data)
                self._cookies.update(dict(resp.cookies))
                if resp.status_code in (403, 429):
                    raise SourceBlockedError(
                        f"{url} answered {resp.status_code}",
                        retry_after=retry_after_seconds(resp),
                    )
                if resp.status_code >= 400:
                    resp.raise_for_status()
        except (httpx.HTTPError, SourceBlockedError):
            self._record_failure()
            raise

        self._consecutive_failures = 0
        return resp

    def _decode(self, resp: httpx.Response, url: str) -> str:
        if self._encoding:
            text = resp.content.decode(self._encoding, errors="replace")
        else:
            text = resp.text
        lowered = text[:20000].lower()
        for marker in BLOCK_MARKERS:
            if marker in lowered:
                self._record_failure()
                raise SourceBlockedError(f"{url} returned an anti-bot page ({marker!r})")
        return text

    async def _solve(self, solver: ChallengeSolver, url: str) -> str:
        page = await solver.solve(url, cookies=self._cookies)
        self._cookies.update(page.cookies)
        if page.user_agent:
            self._user_agent = page.user_agent
        self._consecutive_failures = 0
        return page.html

    async def _throttle(self) -> None:
        now = time.monotonic()
        if self._last_request_at is not None:
            wait = self._min_interval - (now - self._last_request_at)
            if wait > 0:
                await self._sleep(wait)
        self._last_request_at = time.monotonic()

    def _record_failure(self) -> None:
        self._consecutive_failures += 1
        if self._proxies and self._consecutive_failures >= self._max_consecutive_failures:
            self._proxy_index = (self._proxy_index + 1) % len(self._proxies)
            self._consecutive_failures = 0
            logger.warning("rotated to proxy #%d after repeated failures", self._proxy_index)
