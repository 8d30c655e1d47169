# backend/coachwire/monitoring/sentry.py
from __future__ import annotations

import logging
from typing import Any

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from coachwire.core.config import Settings

logger = logging.getLogger(__name__)

FAILED_REQUEST_STATUS_CODES = {403, *range(500, 600)}


def init_sentry(settings: Settings) -> bool:
    dsn = (settings.sentry_dsn or "").strip()
    if not dsn:
        logger.debug("Sentry disabled: SENTRY_DSN not set")
        return False

    integrations: list[Any] = [
        LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        FastApiIntegration(
            transaction_style="endpoint",
            failed_request_status_codes=FAILED_REQUEST_STATUS_CODES,
        ),
    ]
    sentry_sdk.init(
        dsn=dsn,
        environment=settings.environment,
        integrations=integrations,
        send_default_pii=False,
        traces_sample_rate=settings.sentry_traces_sample_rate,
    )
    logger.info("Sentry initialized")
    return True
