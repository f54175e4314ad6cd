import logging
import os

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration

from ..config import get_storage_backend

logger = logging.getLogger(__name__)


def _sample_rate(env_var: str) -> float:
    """Read a Sentry sample rate; anything outside [0, 1] disables sampling."""

    raw_value = (os.getenv(env_var) or "").strip()
    if not raw_value:
        return 0.0
    try:
        value = float(raw_value)
    except ValueError:
        logger.warning("%s is not a valid float (got %r); sampling disabled", env_var, raw_value)
        return 0.0
    if not 0.0 <= value <= 1.0:
        logger.warning("%s must be within [0, 1] (got %s); sampling disabled", env_var, value)
        return 0.0
    return value


def _sentry_options(dsn: str) -> dict:
    return {
        "dsn": dsn,
        "integrations": [FastApiIntegration()],
        "environment": (os.getenv("SENTRY_ENVIRONMENT") or "").strip() or None,
        "release": (os.getenv("SENTRY_RELEASE") or "").strip() or None,
        "traces_sample_rate": _sample_rate("SENTRY_TRACES_SAMPLE_RATE"),
        "profiles_sample_rate": _sample_rate("SENTRY_PROFILES_SAMPLE_RATE"),
    }


def init_sentry() -> bool:
    """Report unhandled errors and storage outages to Sentry when ``SENTRY_DSN`` is set."""

    dsn = (os.getenv("SENTRY_DSN") or "").strip()
    if not dsn:
        logger.info("SENTRY_DSN not provided; skipping Sentry initialization.")
        return False

    options = _sentry_options(dsn)
    sentry_sdk.init(**options)
    sentry_sdk.set_tag("tournament_storage", get_storage_backend())
    logger.info(
        "Initialized Sentry%s",
        f" (environment={options['environment']})" if options["environment"] else "",
    )
    return True
