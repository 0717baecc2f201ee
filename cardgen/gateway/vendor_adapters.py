"""Vendor Adapters — single-shot completion calls against the AI provider.

Each adapter turns (credential, prompt, schema, attachment) into one HTTP
call and returns the raw structured text. Adapters never retry; retry and
credential rotation belong to the failover orchestrator.

Vendor-specific behaviors:
  - Gemini: generateContent with responseSchema, finishReason SAFETY and
    promptFeedback.blockReason are reported as provider errors
"""

from __future__ import annotations

import base64
import logging
import time
from abc import ABC, abstractmethod

import httpx

from cardgen.core.exceptions import ProviderError
from cardgen.gateway.types import Attachment

logger = logging.getLogger(__name__)


class BaseVendorAdapter(ABC):
    """Base class for all vendor adapters."""

    name: str = ""

    def __init__(self, model: str = "", timeout: float = 60.0):
        self.model = model
        self.timeout = timeout

    @abstractmethod
    async def invoke(
        self,
        credential: str,
        prompt: str,
        schema: dict,
        attachment: Attachment | None = None,
    ) -> str:
        """Issue exactly one completion call and return the raw response text.

        Raises:
            ProviderError: on non-2xx status, transport failure or empty body.
        """
        ...


# ---------------------------------------------------------------------------
# Gemini Adapter (Google AI)
# ---------------------------------------------------------------------------


class GeminiAdapter(BaseVendorAdapter):
    """Google Gemini generateContent adapter with structured JSON output."""

    name = "gemini"
    default_model = "gemini-2.5-flash"
    api_url_template = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

    def __init__(self, model: str = "", timeout: float = 60.0):
        super().__init__(model=model or self.default_model, timeout=timeout)

    def build_payload(self, prompt: str, schema: dict, attachment: Attachment | None = None) -> dict:
        parts: list[dict] = [{"text": prompt}]
        if attachment is not None:
            parts.append(
                {
                    "inlineData": {
                        "mimeType": attachment.mime_type,
                        "data": base64.b64encode(attachment.data).decode("ascii"),
                    }
                }
            )
        return {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": schema,
            },
        }

    async def invoke(
        self,
        credential: str,
        prompt: str,
        schema: dict,
        attachment: Attachment | None = None,
    ) -> str:
        url = self.api_url_template.format(model=self.model)
        payload = self.build_payload(prompt, schema, attachment)
        start = time.monotonic()

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    url,
                    json=payload,
                    headers={"Content-Type": "application/json", "x-goog-api-key": credential},
                )
        except httpx.TimeoutException as e:
            raise ProviderError(f"Gemini timeout after {self.timeout}s") from e
        except httpx.TransportError as e:
            raise ProviderError(f"Gemini network error: {e}") from e

        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.debug("Gemini %s responded %d in %dms", self.model, resp.status_code, elapsed_ms)

        if resp.status_code == 429:
            raise ProviderError(f"Rate limited by Google AI: {self._error_detail(resp)}", status_code=429)
        if resp.status_code >= 400:
            raise ProviderError(
                f"Gemini HTTP {resp.status_code}: {self._error_detail(resp)}",
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderError("Gemini returned a non-JSON body", status_code=resp.status_code) from e
        if not isinstance(data, dict):
            raise ProviderError(f"Gemini returned {type(data).__name__}, expected a JSON object")

        candidates = data.get("candidates") or []
        if not isinstance(candidates, list) or not candidates:
            block_reason = (data.get("promptFeedback") or {}).get("blockReason", "")
            if block_reason:
                raise ProviderError(f"Prompt blocked by Gemini: {block_reason}")
            raise ProviderError("Empty response from AI model")

        candidate = candidates[0] if isinstance(candidates[0], dict) else {}
        if candidate.get("finishReason") == "SAFETY":
            raise ProviderError("Gemini safety filter triggered")

        parts = (candidate.get("content") or {}).get("parts") or []
        text = "".join(p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str))
        if not text.strip():
            raise ProviderError("Empty response from AI model")
        return text

    @staticmethod
    def _error_detail(resp: httpx.Response) -> str:
        """Best-effort error message from a Google API error body."""
        try:
            body = resp.json()
        except ValueError:
            return resp.text[:200]
        error = body.get("error") if isinstance(body, dict) else None
        if error is None:
            return resp.text[:200]
        if isinstance(error, dict):
            status = error.get("status", "")
            message = error.get("message", "")
            return f"{status} {message}".strip() or resp.text[:200]
        return str(error)[:200]


# ---------------------------------------------------------------------------
# Adapter registry
# ---------------------------------------------------------------------------

ADAPTER_REGISTRY: dict[str, type[BaseVendorAdapter]] = {
    GeminiAdapter.name: GeminiAdapter,
}


def get_adapter(name: str = "gemini", **kwargs) -> BaseVendorAdapter:
    """Factory: get the adapter registered under ``name``."""
    cls = ADAPTER_REGISTRY.get(name)
    if cls is None:
        raise ValueError(f"No adapter registered for vendor: {name}")
    return cls(**kwargs)


def adapter_from_settings() -> BaseVendorAdapter:
    """The adapter named by ``settings.ai_vendor``, configured from settings."""
    from cardgen.core.config import settings

    return get_adapter(settings.ai_vendor, model=settings.gemini_model, timeout=settings.provider_timeout_seconds)
