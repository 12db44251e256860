"""FlareSolverr client for Cloudflare-protected index pages."""

from __future__ import annotations

import logging
import uuid
from urllib.parse import urlparse

import httpx
from pydantic import BaseModel, Field

from mediagrab.shared.exceptions import SourceError

logger = logging.getLogger(__name__)


class SolvedPage(BaseModel):
    """A page fetched through a real browser, plus the clearance it earned."""

    model_config = {"frozen": True}

    html: str
    cookies: dict[str, str] = Field(default_factory=dict)
    user_agent: str | None = None


class FlareSolverrSession:
    """Fetch HTML through a FlareSolverr browser session.

    Implements the ``ChallengeSolver`` protocol. Clearance cookies are bound to the
    browser's user agent, so the agent is returned alongside them.
    """

    def __init__(self, base_url: str, *, session_id: str | None = None, max_timeout: int = 60) -> None:
        self._base_url = base_url.rstrip("/")
        self._session_id = session_id or f"mediagrab-{uuid.uuid4().hex[:12]}"
        self._max_timeout = max_timeout

    async def solve(self, url: str, *, cookies: dict[str, str] | None = None) -> SolvedPage:
        """Send ``request.get`` through FlareSolverr.

        Raises:
            SourceError: If FlareSolverr is unreachable or could not solve the challenge.
        """
        payload: dict[str, object] = {
            "cmd": "request.get",
            "url": url,
            "maxTimeout": self._max_timeout * 1000,
            "session": self._session_id,
        }
        request_cookies = _to_browser_cookies(url, cookies or {})
        if request_cookies:
            payload["cookies"] = request_cookies

        data = await self._post(payload, timeout=self._max_timeout + 10)

        if data.get("status") != "ok":
            raise SourceError(f"FlareSolverr error ({data.get('status', '')}): {data.get('message', 'unknown error')}")

        solution = data.get("solution") or {}
        html = solution.get("response") or ""
        if not html:
            raise SourceError("FlareSolverr returned empty response body")

        solved_cookies = {c["name"]: c["value"] for c in solution.get("cookies", []) if c.get("name")}
        logger.info("FlareSolverr solved %s (status=%s, cookies=%d)", url, solution.get("status", "?"), len(solved_cookies))
        return SolvedPage(html=html, cookies=solved_cookies, user_agent=solution.get("userAgent"))

    async def _post(self, payload: dict[str, object], *, timeout: int) -> dict[str, object]:
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                resp = await client.post(f"{self._base_url}/v1", json=payload)
                resp.raise_for_status()
                return resp.json()
        except httpx.HTTPStatusError as exc:
            raise SourceError(f"FlareSolverr returned {exc.response.status_code}: {exc.response.text[:200]}") from exc
        except httpx.HTTPError as exc:
            raise SourceError(f"FlareSolverr request failed: {exc!r}") from exc


def _to_browser_cookies(url: str, cookies: dict[str, str]) -> list[dict[str, str]]:
    host = urlparse(url).hostname or ""
    domain = host if not host or host.startswith(".") else f".{host}"
    return [{"name": k, "value": v, "domain": domain, "path": "/"} for k, v in cookies.items() if k]
