# =============================================================================
# Sentry Error Tracking Integration
# =============================================================================
#
# Setup:
#   Set USERS_SENTRY_DSN=https://...@sentry.io/... in the environment or .env
#
# Usage:
#   init_sentry(settings) is called by create_app()
#
# =============================================================================

from __future__ import annotations

import logging

import sentry_sdk
from fastapi import HTTPException
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from usersauth.config import Settings

logger = logging.getLogger(__name__)

# Request fields never sent along with an error report
SENSITIVE_HEADERS = frozenset({"authorization", "cookie", "set-cookie"})
SENSITIVE_FIELDS = frozenset({"password", "passwd", "secret", "token"})

FILTERED = "[Filtered]"


def init_sentry(settings: Settings) -> bool:
    """
    Initialize Sentry error tracking.

    Returns True if initialized, False if skipped.
    """
    if not settings.sentry_dsn:
        logger.info("USERS_SENTRY_DSN not set - error tracking disabled")
        return False

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        traces_sample_rate=0.1 if settings.is_production else 1.0,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            StarletteIntegration(transaction_style="endpoint"),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        send_default_pii=False,
        before_send=filter_event,
    )

    logger.info(f"Sentry initialized for {settings.environment}")
    return True


def filter_event(event: dict, hint: dict) -> dict | None:
    """Drop expected HTTP errors and scrub credentials from the request."""
    if "exc_info" in hint:
        _, exc_value, _ = hint["exc_info"]
        # Denied logins and guarded pages are not errors
        if isinstance(exc_value, HTTPException) and exc_value.status_code in (401, 403, 404, 422):
            return None

    request = event.get("request")
    if request:
        headers = request.get("headers") or {}
        for key in list(headers):
            if key.lower() in SENSITIVE_HEADERS:
                headers[key] = FILTERED

        data = request.get("data")
        if isinstance(data, dict):
            for key in list(data):
                if key.lower() in SENSITIVE_FIELDS:
                    data[key] = FILTERED

    return event
