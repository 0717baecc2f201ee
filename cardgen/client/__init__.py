"""Client for the flashcard generation gateway."""

from cardgen.client.retry import is_retryable_error, with_retry
from cardgen.client.service import FlashcardService, GenerationFailed

__all__ = ["FlashcardService", "GenerationFailed", "is_retryable_error", "with_retry"]
