"""Action Dispatcher — entry point of the generation gateway.

Main entry point for turning a request body into a response envelope:
  1. Validates the body and builds a GenerationRequest variant
  2. Creates a fresh CredentialPool for the request
  3. Builds the prompt and structured-output schema for the action
  4. Runs the FailoverOrchestrator (per chunk for distractors)
  5. Normalizes the provider output
  6. Wraps the result as ``{"data": ...}`` or ``{"error": ...}``

Usage:
    dispatcher = ActionDispatcher.from_settings()
    result = await dispatcher.dispatch({"action": "generateDeck", "topic": "Photosynthesis"})
    if "error" in result.body:
        ...
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import re
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from cardgen.core.config import settings
from cardgen.core.exceptions import FatalProviderOutput, GatewayError, RequestValidationError
from cardgen.core.metrics import GENERATION_REQUESTS
from cardgen.gateway import prompts, schema_builder
from cardgen.gateway.backoff import BackoffPolicy
from cardgen.gateway.chunker import chunk, gather_settled, merge
from cardgen.gateway.credential_pool import CredentialPool
from cardgen.gateway.failover import FailoverOrchestrator
from cardgen.gateway.normalizer import normalize_deck, normalize_distractors, normalize_flashcards
from cardgen.gateway.types import (
    Attachment,
    CardRef,
    CardsFromDocument,
    CardsFromText,
    DeckFromTopic,
    DistractorsForCards,
    DistractorSet,
    Flashcard,
    GenerationAction,
    GenerationRequest,
    RetryConfig,
)
from cardgen.gateway.vendor_adapters import BaseVendorAdapter, adapter_from_settings
from cardgen.schemas.generation import GenerationRequestBody

logger = logging.getLogger(__name__)

_DATA_URL_PREFIX = re.compile(r"^data:[^;,]+;base64,", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")
_FIELD_NAMES = {"num_questions": "numQuestions", "pdf_base64": "pdfBase64"}


@dataclass
class DispatchResult:
    """HTTP status plus the ``{data}`` / ``{error}`` envelope."""

    status_code: int
    body: dict[str, Any]

    @property
    def ok(self) -> bool:
        return "error" not in self.body


class ActionDispatcher:
    """Validates, routes and executes generation requests.

    Holds only read-only configuration; every request gets its own
    CredentialPool, so nothing leaks between concurrent requests.
    """

    def __init__(
        self,
        adapter: BaseVendorAdapter,
        credentials: Iterable[str],
        retry_config: RetryConfig | None = None,
        chunk_size: int = 10,
        min_count: int = 1,
        max_count: int = 50,
        max_distractor_cards: int = 200,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        # Raises ConfigurationError before any request if no credential is set
        self._pool_template = CredentialPool(credentials)
        self.orchestrator = FailoverOrchestrator(adapter, BackoffPolicy(retry_config), sleep=sleep)
        self.chunk_size = chunk_size
        self.min_count = min_count
        self.max_count = max_count
        self.max_distractor_cards = max_distractor_cards

    @classmethod
    def from_settings(cls, adapter: BaseVendorAdapter | None = None) -> ActionDispatcher:
        return cls(
            adapter=adapter or adapter_from_settings(),
            credentials=settings.credentials,
            retry_config=RetryConfig.from_settings(),
            chunk_size=settings.distractor_chunk_size,
            min_count=settings.min_num_questions,
            max_count=settings.max_num_questions,
            max_distractor_cards=settings.max_distractor_cards,
        )

    @property
    def credential_count(self) -> int:
        return len(self._pool_template)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def dispatch(self, payload: Any) -> DispatchResult:
        """Validate and execute one request. Never raises for gateway failures."""
        action_label = _action_label(payload)

        try:
            request = self.parse_request(payload)
        except RequestValidationError as e:
            logger.info("Rejected %s request: %s", action_label, e.message, extra={"action": action_label})
            GENERATION_REQUESTS.labels(action=action_label, outcome="invalid").inc()
            return DispatchResult(status_code=200, body={"error": e.message})

        try:
            data = await self.execute(request)
        except GatewayError as e:
            logger.error("%s failed: %s", action_label, e.message, extra={"action": action_label})
            GENERATION_REQUESTS.labels(action=action_label, outcome="error").inc()
            return DispatchResult(status_code=500, body={"error": e.message})
        except Exception:
            logger.exception("Unexpected error while handling %s", action_label, extra={"action": action_label})
            GENERATION_REQUESTS.labels(action=action_label, outcome="error").inc()
            return DispatchResult(status_code=500, body={"error": "Unknown error occurred"})

        GENERATION_REQUESTS.labels(action=action_label, outcome="success").inc()
        return DispatchResult(status_code=200, body={"data": data})

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def parse_request(self, payload: Any) -> GenerationRequest:
        """Build a GenerationRequest variant or raise RequestValidationError."""
        if not isinstance(payload, dict):
            raise RequestValidationError("Request body must be a JSON object")

        action = payload.get("action")
        if not action:
            raise RequestValidationError("Action is required")
        if not isinstance(action, str) or action not in {a.value for a in GenerationAction}:
            raise RequestValidationError(f"Unknown action: {action}")

        try:
            body = GenerationRequestBody.model_validate(payload)
        except ValidationError as e:
            raise RequestValidationError(_describe_validation_error(e)) from e

        if not self.min_count <= body.num_questions <= self.max_count:
            raise RequestValidationError(f"numQuestions must be between {self.min_count} and {self.max_count}")

        if body.action is GenerationAction.GENERATE_DECK:
            topic = (body.topic or "").strip()
            if not topic:
                raise RequestValidationError("Topic is required for generateDeck action")
            return DeckFromTopic(topic=topic, count=body.num_questions)

        if body.action is GenerationAction.GENERATE_FROM_TEXT:
            text = (body.text or "").strip()
            if not text:
                raise RequestValidationError("Text is required for generateFromText action")
            return CardsFromText(text=text, count=body.num_questions)

        if body.action is GenerationAction.GENERATE_FROM_PDF:
            document = _decode_document(body.pdf_base64 or "")
            return CardsFromDocument(document=document, count=body.num_questions)

        # GENERATE_DISTRACTORS
        if not body.cards:
            raise RequestValidationError("Cards array is required for generateDistractors action")
        if len(body.cards) > self.max_distractor_cards:
            raise RequestValidationError(f"At most {self.max_distractor_cards} cards per generateDistractors request")
        seen: set[str] = set()
        for card in body.cards:
            if card.id in seen:
                raise RequestValidationError(f"Card ids must be unique (duplicate: {card.id})")
            seen.add(card.id)
        return DistractorsForCards(cards=tuple(CardRef(id=c.id, front=c.front, back=c.back) for c in body.cards))

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(self, request: GenerationRequest) -> Any:
        """Run a validated request. Returns the JSON-ready ``data`` payload."""
        pool = self._pool_template.fresh()

        if isinstance(request, DeckFromTopic):
            deck = await self.orchestrator.run(
                pool,
                prompts.deck_prompt(request.topic, request.count),
                schema_builder.for_deck(),
                parse=lambda raw: normalize_deck(raw, request.topic),
            )
            logger.info("Generated deck %r with %d cards", deck.title, len(deck.cards))
            return deck.to_dict()

        if isinstance(request, CardsFromText):
            cards = await self.orchestrator.run(
                pool,
                prompts.text_prompt(request.text, request.count),
                schema_builder.for_flashcard_array(),
                parse=_non_empty_flashcards,
            )
            return [c.to_dict() for c in cards]

        if isinstance(request, CardsFromDocument):
            cards = await self.orchestrator.run(
                pool,
                prompts.document_prompt(request.count),
                schema_builder.for_flashcard_array(),
                attachment=Attachment(mime_type=request.mime_type, data=request.document),
                parse=_non_empty_flashcards,
            )
            return [c.to_dict() for c in cards]

        if isinstance(request, DistractorsForCards):
            return await self._generate_distractors(request.cards)

        raise TypeError(f"Unsupported request type: {type(request).__name__}")

    async def _generate_distractors(self, cards: tuple[CardRef, ...]) -> DistractorSet:
        groups = chunk(cards, self.chunk_size)

        async def _run_chunk(group: list[CardRef]) -> DistractorSet:
            ids = [c.id for c in group]
            return await self.orchestrator.run(
                self._pool_template.fresh(),
                prompts.distractors_prompt(group),
                schema_builder.for_distractors(group),
                parse=lambda raw: normalize_distractors(raw, ids),
            )

        settled = await gather_settled(groups, _run_chunk)
        if not settled.successes:
            # Every chunk failed: surface the first error instead of an empty map
            raise settled.failures[0]

        merged = merge(settled.successes)
        if settled.failures:
            logger.warning(
                "Distractors: %d/%d chunks failed, returning %d/%d cards",
                len(settled.failures),
                len(groups),
                len(merged),
                len(cards),
            )
        return {c.id: merged[c.id] for c in cards if c.id in merged}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _action_label(payload: Any) -> str:
    action = payload.get("action") if isinstance(payload, dict) else None
    valid = {a.value for a in GenerationAction}
    return action if isinstance(action, str) and action in valid else "unknown"


def _describe_validation_error(error: ValidationError) -> str:
    first = error.errors()[0]
    loc = ".".join(_FIELD_NAMES.get(str(part), str(part)) for part in first.get("loc", ()))
    return f"Invalid {loc}: {first.get('msg', 'invalid value')}" if loc else first.get("msg", "Invalid request")


def _decode_document(pdf_base64: str) -> bytes:
    # MIME encoders wrap lines at 76 chars
    encoded = _WHITESPACE.sub("", _DATA_URL_PREFIX.sub("", pdf_base64.strip()))
    if not encoded:
        raise RequestValidationError("PDF base64 data is required for generateFromPDF action")
    try:
        document = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise RequestValidationError("pdfBase64 is not valid base64") from e
    if not document:
        raise RequestValidationError("PDF base64 data is required for generateFromPDF action")
    return document


def _non_empty_flashcards(raw: Any) -> list[Flashcard]:
    cards = normalize_flashcards(raw)
    if not cards:
        raise FatalProviderOutput("No flashcards generated")
    return cards
