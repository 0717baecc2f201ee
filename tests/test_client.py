"""Tests for the async client: with_retry and FlashcardService."""

import base64
import json
from unittest.mock import AsyncMock

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from cardgen.client import FlashcardService, GenerationFailed, is_retryable_error, with_retry
from cardgen.core.exceptions import ProviderError
from cardgen.gateway.types import CardRef, RetryConfig
from cardgen.main import app

FAST = RetryConfig(max_retries=3, base_delay_ms=10, max_delay_ms=50, jitter_ms=0)


# ==========================================================================
# Test: with_retry
# ==========================================================================


class TestWithRetry:
    @pytest.mark.asyncio
    async def test_returns_first_success(self):
        fn = AsyncMock(return_value="done")
        sleep = AsyncMock()

        assert await with_retry(fn, "op", FAST, sleep=sleep) == "done"
        assert fn.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_retries_retryable_then_succeeds(self):
        fn = AsyncMock(side_effect=[ProviderError("network error"), ProviderError("HTTP 503", 503), "done"])
        sleep = AsyncMock()

        assert await with_retry(fn, "op", FAST, sleep=sleep) == "done"
        assert fn.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [0.01, 0.02]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        fn = AsyncMock(side_effect=ProviderError("Rate limit exceeded, please try again later"))
        sleep = AsyncMock()

        with pytest.raises(ProviderError):
            await with_retry(fn, "op", FAST, sleep=sleep)
        assert fn.await_count == 3
        assert sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_non_retryable_raises_immediately(self):
        fn = AsyncMock(side_effect=ProviderError("Topic is required for generateDeck action"))
        sleep = AsyncMock()

        with pytest.raises(ProviderError):
            await with_retry(fn, "op", FAST, sleep=sleep)
        assert fn.await_count == 1
        sleep.assert_not_awaited()

    def test_is_retryable_error(self):
        assert is_retryable_error(ProviderError("AI service is busy, please try again later", 500))
        assert is_retryable_error(httpx.ConnectError("refused"))
        assert is_retryable_error(ProviderError("quota exceeded"))
        assert not is_retryable_error(ProviderError("Unknown action: x"))

    def test_gateway_failures_judged_by_message(self):
        assert not is_retryable_error(GenerationFailed("No flashcards generated", http_status=500))
        assert not is_retryable_error(GenerationFailed("Invalid response format", http_status=500))
        assert is_retryable_error(GenerationFailed("Rate limit exceeded, please try again later", http_status=500))
        assert is_retryable_error(GenerationFailed("Unexpected response (HTTP 502)", http_status=502))


# ==========================================================================
# Test: FlashcardService against the ASGI app
# ==========================================================================


@pytest.fixture
async def service(make_dispatcher):
    async def _service(adapter, api_key: str = "anon-key") -> FlashcardService:
        app.state.dispatcher = make_dispatcher(adapter)
        return FlashcardService(http, api_key=api_key)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http:
        yield _service
    app.state.dispatcher = None


class TestFlashcardService:
    @pytest.mark.asyncio
    async def test_generate_deck(self, service, make_adapter):
        deck = {"title": "Cells", "description": "Cell biology", "cards": [{"front": "Q", "back": "A"}]}
        svc = await service(make_adapter(json.dumps(deck)))

        assert await svc.generate_deck("Cells", 1) == deck

    @pytest.mark.asyncio
    async def test_generate_from_text(self, service, make_adapter):
        adapter = make_adapter(json.dumps([{"question": "Q", "answer": "A"}]))
        svc = await service(adapter)

        assert await svc.generate_from_text("Some notes", 1) == [{"front": "Q", "back": "A"}]
        assert "Some notes" in adapter.calls[0][1]

    @pytest.mark.asyncio
    async def test_generate_from_pdf_encodes_document(self, service, make_adapter):
        adapter = make_adapter(json.dumps([{"front": "Q", "back": "A"}]))
        svc = await service(adapter)

        await svc.generate_from_pdf(b"%PDF-1.4 doc", 2)

        assert adapter.calls[0][3].data == b"%PDF-1.4 doc"

    @pytest.mark.asyncio
    async def test_generate_distractors(self, service, make_adapter):
        svc = await service(make_adapter(json.dumps({"c1": ["x", "y", "z"]})))

        result = await svc.generate_distractors([CardRef("c1", "Capital of France?", "Paris")])

        assert result == {"c1": ["x", "y", "z"]}

    @pytest.mark.asyncio
    async def test_generate_distractors_empty_skips_request(self, service, make_adapter):
        adapter = make_adapter("{}")
        svc = await service(adapter)

        assert await svc.generate_distractors([]) == {}
        assert adapter.call_count == 0

    @pytest.mark.asyncio
    async def test_error_envelope_raises(self, service, make_adapter):
        svc = await service(make_adapter("[]"))

        with pytest.raises(GenerationFailed) as exc_info:
            await svc.generate_from_text("", 5)

        assert exc_info.value.message == "Text is required for generateFromText action"
        assert exc_info.value.http_status == 200
        assert exc_info.value.status_code == 0

    @pytest.mark.asyncio
    async def test_fatal_gateway_error_not_reissued(self, service, make_adapter):
        adapter = make_adapter(json.dumps({"title": "Cells", "description": "Empty", "cards": []}))
        svc = await service(adapter)

        with pytest.raises(GenerationFailed) as exc_info:
            await svc.generate_deck("Cells", 5)

        assert exc_info.value.message == "No flashcards generated"
        assert exc_info.value.http_status == 500
        assert adapter.call_count == 1

    def test_auth_headers(self):
        svc = FlashcardService(AsyncMock(), api_key="anon-key")

        assert svc.headers["Authorization"] == "Bearer anon-key"
        assert svc.headers["apikey"] == "anon-key"
        assert "Authorization" not in FlashcardService(AsyncMock()).headers

    @pytest.mark.asyncio
    async def test_transport_error_is_retryable(self):
        http = AsyncMock()
        http.post.side_effect = httpx.ConnectError("connection refused")
        svc = FlashcardService(http)

        with pytest.raises(GenerationFailed) as exc_info:
            await svc.generate_from_pdf(base64.b64decode("JVBERg=="))

        assert is_retryable_error(exc_info.value)
