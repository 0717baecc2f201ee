"""Async client for the generate-flashcards endpoint.

Unwraps the ``{data}`` / ``{error}`` envelope: callers get plain values
back, or a GenerationFailed carrying the gateway's message.
"""

from __future__ import annotations

import base64
import logging
from collections.abc import Iterable
from typing import Any

import httpx

from cardgen.client.retry import with_retry
from cardgen.core.exceptions import ProviderError
from cardgen.gateway.types import CardRef, GenerationAction
from cardgen.schemas.generation import GenerationEnvelope

logger = logging.getLogger(__name__)

DEFAULT_PATH = "/functions/v1/generate-flashcards"


class GenerationFailed(ProviderError):
    """The gateway answered with ``{"error": ...}`` or a non-JSON body.

    The gateway's HTTP status is kept as ``http_status`` only. Its failures are
    already classified and final, so retryability is judged from the message.
    """

    def __init__(self, message: str, http_status: int = 0):
        super().__init__(message)
        self.http_status = http_status


class FlashcardService:
    """Typed wrapper around the gateway's four actions.

    Usage:
        async with httpx.AsyncClient(base_url="https://...") as http:
            service = FlashcardService(http, api_key="anon-key")
            deck = await service.generate_deck("Photosynthesis", 5)
    """

    def __init__(self, client: httpx.AsyncClient, api_key: str = "", path: str = DEFAULT_PATH):
        self.client = client
        self.path = path
        self.headers = {"Content-Type": "application/json"}
        if api_key:
            self.headers["Authorization"] = f"Bearer {api_key}"
            self.headers["apikey"] = api_key

    async def _invoke(self, payload: dict[str, Any]) -> Any:
        try:
            resp = await self.client.post(self.path, json=payload, headers=self.headers)
        except httpx.TimeoutException as e:
            raise GenerationFailed(f"Request timeout: {e}") from e
        except httpx.TransportError as e:
            raise GenerationFailed(f"Network error: {e}") from e

        try:
            envelope = GenerationEnvelope.model_validate(resp.json())
        except ValueError as e:
            raise GenerationFailed(f"Unexpected response (HTTP {resp.status_code})", http_status=resp.status_code) from e

        if envelope.error is not None:
            raise GenerationFailed(envelope.error, http_status=resp.status_code)
        return envelope.data

    async def generate_deck(self, topic: str, num_questions: int = 10) -> dict:
        """Deck from a topic, re-issued up to 3 times on retryable failures."""
        payload = {
            "action": GenerationAction.GENERATE_DECK.value,
            "topic": topic,
            "numQuestions": num_questions,
        }
        return await with_retry(lambda: self._invoke(payload), "generateDeck")

    async def generate_from_text(self, text: str, num_questions: int = 10) -> list[dict]:
        return await self._invoke(
            {
                "action": GenerationAction.GENERATE_FROM_TEXT.value,
                "text": text,
                "numQuestions": num_questions,
            }
        )

    async def generate_from_pdf(self, document: bytes, num_questions: int = 10) -> list[dict]:
        return await self._invoke(
            {
                "action": GenerationAction.GENERATE_FROM_PDF.value,
                "pdfBase64": base64.b64encode(document).decode("ascii"),
                "numQuestions": num_questions,
            }
        )

    async def generate_distractors(self, cards: Iterable[CardRef]) -> dict[str, list[str]]:
        card_list = [{"id": c.id, "front": c.front, "back": c.back} for c in cards]
        if not card_list:
            return {}
        return await self._invoke({"action": GenerationAction.GENERATE_DISTRACTORS.value, "cards": card_list})
