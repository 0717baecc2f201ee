"""Credential Pool — per-request round-robin over provider API keys.

A pool is created for one inbound request and discarded afterwards, so
a key that failed for one request is tried again by the next one.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from cardgen.core.exceptions import ConfigurationError
from cardgen.gateway.types import CredentialSlot

logger = logging.getLogger(__name__)


def mask_credential(credential: str) -> str:
    """Redact a secret for logging, keeping the last 4 characters."""
    if len(credential) <= 4:
        return "****"
    return f"****{credential[-4:]}"


class CredentialPool:
    """Ordered credential slots with failure tracking.

    Usage:
        pool = CredentialPool(settings.credentials)

        slot = pool.next()
        while slot is not None:
            ...
            pool.mark_failed(slot)
            slot = pool.next()
    """

    def __init__(self, credentials: Iterable[str]):
        self._slots: list[CredentialSlot] = [CredentialSlot(credential=c) for c in credentials if c]
        if not self._slots:
            raise ConfigurationError("No AI provider credentials configured")
        self._cursor = -1  # index of the slot returned last

    @classmethod
    def from_settings(cls) -> CredentialPool:
        from cardgen.core.config import settings

        return cls(settings.credentials)

    def fresh(self) -> CredentialPool:
        """A new pool over the same credentials with nothing marked failed."""
        return CredentialPool(slot.credential for slot in self._slots)

    def __len__(self) -> int:
        return len(self._slots)

    @property
    def slots(self) -> list[CredentialSlot]:
        return list(self._slots)

    @property
    def failed_credentials(self) -> set[str]:
        return {slot.credential for slot in self._slots if slot.failed}

    @property
    def exhausted(self) -> bool:
        return all(slot.failed for slot in self._slots)

    def next(self) -> CredentialSlot | None:
        """Return the next healthy slot after the last one handed out.

        Returns None once every slot is marked failed.
        """
        size = len(self._slots)
        for offset in range(1, size + 1):
            index = (self._cursor + offset) % size
            slot = self._slots[index]
            if not slot.failed:
                self._cursor = index
                return slot
        return None

    def mark_failed(self, slot: CredentialSlot) -> None:
        """Mark a slot failed. Idempotent."""
        if slot.failed:
            return
        slot.failed = True
        remaining = sum(1 for s in self._slots if not s.failed)
        logger.warning(
            "Credential %s marked failed (%d/%d remaining)",
            mask_credential(slot.credential),
            remaining,
            len(self._slots),
        )
