"""Response Normalizer — reconciles provider output into canonical shapes.

Tolerated variants:
  - Markdown code fences around the JSON body
  - Bare card arrays, or arrays wrapped in ``cards`` / ``flashcards``
  - ``question``/``answer`` and ``q``/``a`` instead of ``front``/``back``
  - A deck request answered with a bare card array

Each normalizer accepts either the raw response text or an already
decoded JSON value. Normalizing canonical input returns it unchanged,
apart from dropping empty entries.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable
from typing import Any

from cardgen.core.exceptions import FatalProviderOutput
from cardgen.gateway.schema_builder import DISTRACTORS_PER_CARD
from cardgen.gateway.types import Deck, DistractorSet, Flashcard

logger = logging.getLogger(__name__)

_FENCE_PATTERN = re.compile(r"^\s*```(?:json)?\s*|\s*```\s*$", re.IGNORECASE)

_FRONT_KEYS = ("front", "question", "q")
_BACK_KEYS = ("back", "answer", "a")
_WRAPPER_KEYS = ("cards", "flashcards")


def parse_json(raw: Any) -> Any:
    """Decode provider text into a JSON value. Non-string input passes through."""
    if not isinstance(raw, (str, bytes)):
        return raw
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
    text = _FENCE_PATTERN.sub("", text).strip()
    if not text:
        raise FatalProviderOutput("Empty response from AI model")
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        logger.debug("Unparseable AI response (%s): %.200s", e, text)
        raise FatalProviderOutput("Failed to parse AI response as JSON") from e


def _first_text(entry: dict, keys: Iterable[str]) -> str:
    for key in keys:
        value = entry.get(key)
        if value is None or value == "":
            continue
        text = value if isinstance(value, str) else str(value)
        if text.strip():
            return text.strip()
    return ""


def _card_list(data: Any) -> list | None:
    """The list of raw card entries inside ``data``, or None if there is none."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in _WRAPPER_KEYS:
            if isinstance(data.get(key), list):
                return data[key]
    return None


def _to_flashcards(entries: list) -> list[Flashcard]:
    cards: list[Flashcard] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        front = _first_text(entry, _FRONT_KEYS)
        back = _first_text(entry, _BACK_KEYS)
        if front and back:
            cards.append(Flashcard(front=front, back=back))
    dropped = len(entries) - len(cards)
    if dropped:
        logger.info("Dropped %d empty or malformed flashcard entries", dropped)
    return cards


def normalize_flashcards(raw: Any) -> list[Flashcard]:
    """Map any accepted card-list variant to canonical Flashcards."""
    entries = _card_list(parse_json(raw))
    if entries is None:
        raise FatalProviderOutput("Invalid response format: expected array of flashcards")
    return _to_flashcards(entries)


def normalize_deck(raw: Any, fallback_topic: str) -> Deck:
    """Map a deck response (or a bare card array) to a Deck with at least one card."""
    data = parse_json(raw)
    entries = _card_list(data)
    if entries is None:
        raise FatalProviderOutput("Invalid response format")

    cards = _to_flashcards(entries)
    if not cards:
        raise FatalProviderOutput("No flashcards generated")

    topic = fallback_topic.strip()
    generic_description = f"Flashcards about {topic}"
    if isinstance(data, list):
        logger.info("Deck response was a bare card array; using topic as title")
        return Deck(title=topic, description=generic_description, cards=cards)

    title = _first_text(data, ("title", "name")) or topic
    description = _first_text(data, ("description",)) or generic_description
    return Deck(title=title, description=description, cards=cards)


def normalize_distractors(raw: Any, card_ids: Iterable[str]) -> DistractorSet:
    """Exactly 3 distractors per requested id, or [] when the provider fell short.

    A missing or short entry never fails the batch.
    """
    data = parse_json(raw)
    ids = list(card_ids)
    if not isinstance(data, dict):
        logger.warning("Distractor response was %s, not an object; all cards fall back", type(data).__name__)
        data = {}

    result: DistractorSet = {}
    short: list[str] = []
    for card_id in ids:
        values = data.get(card_id)
        options = []
        if isinstance(values, list):
            options = [v.strip() for v in values if isinstance(v, str) and v.strip()]
        if len(options) >= DISTRACTORS_PER_CARD:
            result[card_id] = options[:DISTRACTORS_PER_CARD]
        else:
            result[card_id] = []
            short.append(card_id)

    if short:
        logger.info("No usable distractors for %d/%d cards", len(short), len(ids))
    return result
