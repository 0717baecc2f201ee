"""Schema Builder — structured-output constraints sent with each completion.

Schemas use the OpenAPI subset accepted by Gemini's ``responseSchema``.
Every builder returns a new dict, so callers may mutate the result.
"""

from __future__ import annotations

from collections.abc import Sequence

from cardgen.gateway.types import CardRef

DISTRACTORS_PER_CARD = 3


def _flashcard_item() -> dict:
    return {
        "type": "object",
        "properties": {
            "front": {"type": "string", "description": "The question or front side of the flashcard"},
            "back": {"type": "string", "description": "The answer or back side of the flashcard"},
        },
        "required": ["front", "back"],
    }


def for_flashcard_array() -> dict:
    """Bare array of ``{front, back}`` objects."""
    return {
        "type": "array",
        "items": _flashcard_item(),
        "description": "Array of flashcards",
    }


def for_deck() -> dict:
    """Deck envelope: title, description and a card array."""
    return {
        "type": "object",
        "properties": {
            "title": {"type": "string", "description": "Title of the flashcard deck"},
            "description": {"type": "string", "description": "Brief description of the topic"},
            "cards": for_flashcard_array(),
        },
        "required": ["title", "description", "cards"],
    }


def for_distractors(cards: Sequence[CardRef]) -> dict:
    """One required property per card id, each an array of exactly 3 strings.

    The shape depends on the ids in the request, so it is rebuilt per call.
    """
    properties = {
        card.id: {
            "type": "array",
            "items": {"type": "string"},
            "minItems": DISTRACTORS_PER_CARD,
            "maxItems": DISTRACTORS_PER_CARD,
            "description": f"{DISTRACTORS_PER_CARD} distractors for card: {card.front}",
        }
        for card in cards
    }
    return {
        "type": "object",
        "properties": properties,
        "required": [card.id for card in cards],
    }
