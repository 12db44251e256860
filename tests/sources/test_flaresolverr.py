"""Tests for FlareSolverrSession."""

from __future__ import annotations

import json

import httpx
import pytest
import respx

from mediagrab.shared.exceptions import SourceError
from mediagrab.sources.flaresolverr_client import FlareSolverrSession

URL = "http://flaresolverr:8191/v1"


@pytest.fixture
def session() -> FlareSolverrSession:
    return FlareSolverrSession("http://flaresolverr:8191/", session_id="test-session", max_timeout=30)


class TestFlareSolverrSession:
    @respx.mock
    async def test_solve(self, session: FlareSolverrSession) -> None:
        route = respx.post(URL).mock(
            return_value=httpx.Response(
                200,
                json={
                    "status": "ok",
                    "solution": {
                        "status": 200,
                        "response": "<html>ok</html>",
                        "cookies": [{"name": "cf_clearance", "value": "abc"}],
                        "userAgent": "Mozilla/5.0 Test",
                    },
                },
            )
        )

        page = await session.solve("https://rutracker.org/forum/tracker.php?nm=x", cookies={"bb_session": "s1"})

        assert page.html == "<html>ok</html>"
        assert page.cookies == {"cf_clearance": "abc"}
        assert page.user_agent == "Mozilla/5.0 Test"
        body = json.loads(route.calls.last.request.read())
        assert body["cmd"] == "request.get"
        assert body["session"] == "test-session"
        assert body["maxTimeout"] == 30000
        assert body["cookies"] == [{"name": "bb_session", "value": "s1", "domain": ".rutracker.org", "path": "/"}]

    @respx.mock
    async def test_unsolved_challenge(self, session: FlareSolverrSession) -> None:
        respx.post(URL).mock(return_value=httpx.Response(200, json={"status": "error", "message": "Challenge timeout"}))

        with pytest.raises(SourceError, match="Challenge timeout"):
            await session.solve("https://rutor.info/search/x")

    @respx.mock
    async def test_empty_body(self, session: FlareSolverrSession) -> None:
        respx.post(URL).mock(return_value=httpx.Response(200, json={"status": "ok", "solution": {"response": ""}}))

        with pytest.raises(SourceError, match="empty response"):
            await session.solve("https://rutor.info/search/x")

    @respx.mock
    async def test_http_error_wrapped(self, session: FlareSolverrSession) -> None:
        respx.post(URL).mock(return_value=httpx.Response(500, text="internal"))

        with pytest.raises(SourceError, match="FlareSolverr returned 500: internal"):
            await session.solve("https://rutor.info/search/x")

    @respx.mock
    async def test_unreachable(self, session: FlareSolverrSession) -> None:
        respx.post(URL).mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(SourceError, match="FlareSolverr request failed"):
            await session.solve("https://rutor.info/search/x")
