"""Tests for the inbound rate limit key and proxy header handling."""

import pytest
from httpx import ASGITransport, AsyncClient
from starlette.requests import Request
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from cardgen.core.config import settings
from cardgen.core.rate_limit import limiter
from cardgen.main import app

FUNCTIONS_URL = "/functions/v1/generate-flashcards"


def _request(peer: str, forwarded_for: str) -> Request:
    scope = {
        "type": "http",
        "method": "POST",
        "path": FUNCTIONS_URL,
        "headers": [(b"x-forwarded-for", forwarded_for.encode())],
        "client": (peer, 50000),
    }
    return Request(scope)


def test_key_ignores_forwarded_for_header():
    keys = {limiter._key_func(_request("10.0.0.1", f"1.2.3.{i}")) for i in range(5)}
    assert keys == {"10.0.0.1"}


def test_proxy_headers_trust_only_configured_hosts():
    proxy = next(m for m in app.user_middleware if m.cls is ProxyHeadersMiddleware)
    assert proxy.kwargs["trusted_hosts"] == settings.forwarded_allow_ips


@pytest.fixture
def enabled_limiter():
    limiter.reset()
    limiter.enabled = True
    yield limiter
    limiter.enabled = False
    limiter.reset()


@pytest.mark.asyncio
async def test_rotating_forwarded_for_from_untrusted_peer_is_still_limited(enabled_limiter, make_dispatcher, make_adapter):
    app.state.dispatcher = make_dispatcher(make_adapter("[]"))
    allowed = int(settings.rate_limit.split("/")[0])
    transport = ASGITransport(app=app, client=("10.0.0.1", 50000))

    statuses = []
    async with AsyncClient(transport=transport, base_url="http://test") as http:
        for i in range(allowed + 1):
            resp = await http.post(
                FUNCTIONS_URL,
                json={"action": "generateDeck", "topic": "x", "numQuestions": 0},
                headers={"X-Forwarded-For": f"1.2.{i // 256}.{i % 256}"},
            )
            statuses.append(resp.status_code)
    app.state.dispatcher = None

    assert statuses[:allowed] == [200] * allowed
    assert statuses[-1] == 429
