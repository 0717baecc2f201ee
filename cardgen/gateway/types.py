"""Core types and DTOs for the flashcard generation gateway."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class GenerationAction(str, Enum):
    """Actions accepted by the dispatcher (wire values)."""

    GENERATE_DECK = "generateDeck"
    GENERATE_DISTRACTORS = "generateDistractors"
    GENERATE_FROM_TEXT = "generateFromText"
    GENERATE_FROM_PDF = "generateFromPDF"


class ErrorClass(str, Enum):
    """Classification of a single failed provider call."""

    RETRYABLE = "retryable"  # network, timeout, 5xx
    QUOTA = "quota"  # 429, quota / rate limit text
    FATAL = "fatal"  # anything else


class RetryDecision(str, Enum):
    """What the failover loop does after a failed attempt."""

    RETRY_SAME = "retry_same"
    ROTATE = "rotate"


# ---------------------------------------------------------------------------
# Input / output records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CardRef:
    """An existing card sent in for distractor generation."""

    id: str
    front: str
    back: str


@dataclass
class Flashcard:
    """A generated question/answer pair. Identifiers are assigned by the caller."""

    front: str
    back: str

    def to_dict(self) -> dict:
        return {"front": self.front, "back": self.back}


@dataclass
class Deck:
    """A generated deck. Always holds at least one card."""

    title: str
    description: str
    cards: list[Flashcard] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "description": self.description,
            "cards": [c.to_dict() for c in self.cards],
        }


# card id -> exactly 3 distractors, or [] when the caller must use a fallback
DistractorSet = dict[str, list[str]]


# ---------------------------------------------------------------------------
# GenerationRequest — validated request variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DeckFromTopic:
    topic: str
    count: int
    action: GenerationAction = GenerationAction.GENERATE_DECK


@dataclass(frozen=True)
class CardsFromText:
    text: str
    count: int
    action: GenerationAction = GenerationAction.GENERATE_FROM_TEXT


@dataclass(frozen=True)
class CardsFromDocument:
    document: bytes
    count: int
    mime_type: str = "application/pdf"
    action: GenerationAction = GenerationAction.GENERATE_FROM_PDF


@dataclass(frozen=True)
class DistractorsForCards:
    cards: tuple[CardRef, ...]
    action: GenerationAction = GenerationAction.GENERATE_DISTRACTORS


GenerationRequest = DeckFromTopic | CardsFromText | CardsFromDocument | DistractorsForCards


@dataclass(frozen=True)
class Attachment:
    """Binary content sent alongside the prompt (multimodal input)."""

    mime_type: str
    data: bytes


# ---------------------------------------------------------------------------
# Failover bookkeeping
# ---------------------------------------------------------------------------


@dataclass
class CredentialSlot:
    """One API key plus its failure flag, scoped to a single request."""

    credential: str
    failed: bool = False


@dataclass
class RetryAttempt:
    """One iteration of the failover loop. Only ever logged."""

    attempt_number: int
    classification: ErrorClass
    delay_ms: int = 0


@dataclass
class RetryConfig:
    """Retry parameters for the failover loop (milliseconds)."""

    max_retries: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 10_000
    jitter_ms: int = 1000

    @classmethod
    def from_settings(cls) -> RetryConfig:
        from cardgen.core.config import settings

        return cls(
            max_retries=settings.max_retries,
            base_delay_ms=settings.base_retry_delay_ms,
            max_delay_ms=settings.max_retry_delay_ms,
            jitter_ms=settings.retry_jitter_ms,
        )
