"""Prompt templates for each generation action."""

from __future__ import annotations

import json
from collections.abc import Sequence

from cardgen.gateway.types import CardRef

_CARD_RULES = """RULES:
- Respond in the SAME LANGUAGE as the {source}
- Focus on KEY CONCEPTS and important facts
- Questions should test understanding, not trivial details
- Answers should be concise but complete (1-3 sentences)
- Avoid duplicate or overlapping questions
- Return a JSON array of objects, each with "front" (question) and "back" (answer) properties"""


def deck_prompt(topic: str, count: int) -> str:
    return f"""Create a set of {count} flashcards about "{topic}".

RULES:
- Respond in the SAME LANGUAGE as the topic
- Questions should test understanding, not just recall
- Answers should be concise but complete (1-3 sentences)
- Return a JSON object with: title (string), description (string), and cards (array of objects with front and back properties)"""


def text_prompt(text: str, count: int) -> str:
    rules = _CARD_RULES.format(source="source text")
    return f"""Create {count} flashcard questions and answers from this text.

{rules}

Source text:
{text}"""


def document_prompt(count: int) -> str:
    rules = _CARD_RULES.format(source="source document")
    return f"""Create {count} flashcard questions and answers from this PDF document.

{rules}"""


def distractors_prompt(cards: Sequence[CardRef]) -> str:
    listing = [{"id": c.id, "question": c.front, "answer": c.back} for c in cards]
    return f"""Generate 3 plausible but INCORRECT answer choices (distractors) for each flashcard.

RULES:
- Distractors must be in the SAME LANGUAGE as the correct answer
- Distractors should be similar in length and style to the correct answer
- Distractors should be believable but clearly wrong
- Return a JSON object where each key is the card ID and the value is an array of 3 distractor strings

Cards:
{json.dumps(listing, indent=2, ensure_ascii=False)}"""
