"""Centralized logging configuration.

Provider keys never reach a log line: the redaction filter on the root
handler masks any configured credential that slips into a message.
"""

import json
import logging
import sys
from datetime import datetime, timezone

from cardgen.core.config import settings


def redact_credentials(text: str) -> str:
    """Replace every configured provider key in ``text`` with ``****`` + last 4 chars."""
    for credential in settings.credentials:
        if credential in text:
            text = text.replace(credential, f"****{credential[-4:]}")
    return text


class CredentialRedactingFilter(logging.Filter):
    """Mask provider keys in the fully formatted message."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_credentials(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


class JSONFormatter(logging.Formatter):
    """Structured JSON log formatter for production.

    Carries the per-request extras (request_id, action, credential) when set.
    """

    EXTRA_FIELDS = ("request_id", "action", "credential")

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1]:
            log_data["exception"] = redact_credentials(self.formatException(record.exc_info))
        for attr in self.EXTRA_FIELDS:
            if hasattr(record, attr):
                log_data[attr] = getattr(record, attr)
        return json.dumps(log_data, ensure_ascii=False)


def setup_logging() -> None:
    """Configure logging for the entire application."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(CredentialRedactingFilter())

    if settings.log_json:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    root.addHandler(handler)

    # httpx logs one INFO line per provider call
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
