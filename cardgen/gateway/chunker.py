"""Batch Chunker — bounded sub-batches for distractor generation.

Chunks run concurrently and are merged only after all of them settle.
A failed chunk is logged and contributes no keys; the others still return.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from cardgen.gateway.types import DistractorSet

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_CHUNK_SIZE = 10


def chunk(items: Sequence[T], size: int = DEFAULT_CHUNK_SIZE) -> list[list[T]]:
    """Split ``items`` into consecutive groups of at most ``size``."""
    if size < 1:
        raise ValueError("chunk size must be at least 1")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


def merge(results: Iterable[DistractorSet]) -> DistractorSet:
    """Shallow key union. The first chunk to provide a key keeps it."""
    merged: DistractorSet = {}
    for result in results:
        for card_id, distractors in result.items():
            merged.setdefault(card_id, distractors)
    return merged


@dataclass
class Settled(Generic[R]):
    """Outcome of a fan-out: results of the chunks that succeeded, errors of the rest."""

    successes: list[R] = field(default_factory=list)
    failures: list[Exception] = field(default_factory=list)


async def gather_settled(
    chunks: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
) -> Settled[R]:
    """Run ``worker`` on every chunk concurrently.

    Never short-circuits: every chunk is awaited before returning.
    """
    outcomes = await asyncio.gather(*(worker(c) for c in chunks), return_exceptions=True)

    settled: Settled[R] = Settled()
    for index, outcome in enumerate(outcomes):
        if isinstance(outcome, BaseException):
            if not isinstance(outcome, Exception):
                raise outcome
            logger.warning("Chunk %d/%d failed: %s", index + 1, len(chunks), outcome)
            settled.failures.append(outcome)
            continue
        settled.successes.append(outcome)
    return settled
