"""Sentry error tracking integration.

Initializes Sentry SDK if SENTRY_DSN env variable is set.
Does nothing otherwise — safe to call unconditionally.
Configured provider keys are scrubbed from every event before it leaves.
"""

import logging

from cardgen.core.config import settings
from cardgen.core.logging import redact_credentials

logger = logging.getLogger(__name__)


def _scrub_event(event: dict, hint: dict) -> dict:
    """before_send hook: drop provider keys from messages and request headers."""
    message = event.get("logentry", {}).get("message")
    if isinstance(message, str):
        event["logentry"]["message"] = redact_credentials(message)

    for exc in event.get("exception", {}).get("values", []):
        if isinstance(exc.get("value"), str):
            exc["value"] = redact_credentials(exc["value"])

    headers = event.get("request", {}).get("headers")
    if isinstance(headers, dict):
        for name in list(headers):
            if name.lower() in ("x-goog-api-key", "apikey", "authorization"):
                headers[name] = "[Filtered]"
    return event


def init_sentry() -> None:
    """Initialize Sentry if SENTRY_DSN is configured."""
    if not settings.sentry_dsn:
        logger.debug("Sentry DSN not configured — skipping")
        return

    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.app_env,
        traces_sample_rate=0.1 if settings.app_env == "production" else 1.0,
        send_default_pii=False,
        before_send=_scrub_event,
        integrations=[FastApiIntegration(transaction_style="endpoint")],
    )
    sentry_sdk.set_tag("gemini_model", settings.gemini_model)
    logger.info("Sentry initialized (env=%s, credentials=%d)", settings.app_env, len(settings.credentials))
