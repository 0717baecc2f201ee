from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from cardgen.core.config import settings

# Override settings for tests
settings.google_ai_key = "test-key-primary-aaaa"
settings.google_ai_key_2 = "test-key-fallback-bbbb"
settings.app_env = "development"
settings.sentry_dsn = ""

from cardgen.core.rate_limit import limiter  # noqa: E402
from cardgen.gateway.dispatcher import ActionDispatcher  # noqa: E402
from cardgen.gateway.types import Attachment, RetryConfig  # noqa: E402
from cardgen.gateway.vendor_adapters import BaseVendorAdapter  # noqa: E402
from cardgen.main import app  # noqa: E402

limiter.enabled = False

KEY_A = "key-a-1111"
KEY_B = "key-b-2222"
KEY_C = "key-c-3333"


class ScriptedAdapter(BaseVendorAdapter):
    """Adapter that replays scripted outcomes instead of calling a provider.

    Each outcome is a response string, or an exception to raise. Outcomes
    listed under a credential are consumed for that credential only; the
    shared list serves every other call. The last outcome repeats.
    """

    name = "scripted"

    def __init__(self, *outcomes, by_credential: dict | None = None):
        super().__init__(model="scripted")
        self.shared = list(outcomes)
        self.by_credential = {k: list(v) for k, v in (by_credential or {}).items()}
        self.calls: list[tuple[str, str, dict, Attachment | None]] = []

    @staticmethod
    def _take(queue: list):
        return queue.pop(0) if len(queue) > 1 else queue[0]

    async def invoke(self, credential, prompt, schema, attachment=None):
        self.calls.append((credential, prompt, schema, attachment))
        queue = self.by_credential.get(credential) or self.shared
        if not queue:
            raise AssertionError(f"No scripted outcome for credential {credential}")
        outcome = self._take(queue)
        if callable(outcome) and not isinstance(outcome, BaseException):
            outcome = outcome(credential, prompt, schema, attachment)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    @property
    def call_count(self) -> int:
        return len(self.calls)

    @property
    def credentials_used(self) -> list[str]:
        return [c[0] for c in self.calls]


@pytest.fixture
def make_adapter():
    return ScriptedAdapter


@pytest.fixture
def no_sleep() -> AsyncMock:
    return AsyncMock(return_value=None)


@pytest.fixture
def make_dispatcher(no_sleep):
    def _make(adapter: BaseVendorAdapter, credentials=(KEY_A,), **kwargs) -> ActionDispatcher:
        kwargs.setdefault("retry_config", RetryConfig(max_retries=3, base_delay_ms=1, max_delay_ms=5, jitter_ms=1))
        return ActionDispatcher(adapter=adapter, credentials=list(credentials), sleep=no_sleep, **kwargs)

    return _make


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.state.dispatcher = None
