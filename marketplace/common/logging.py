"""
Logging configuration helpers.
The marketplace logs through named stdlib loggers per area: `orders`, `products`, `reviews`, `users`,
`auth`, `db` for stored-procedure fallbacks, and `api` / `api.requests` for the HTTP layer.
All of them share the root handler and level configured here once per process.
"""

from __future__ import annotations

import logging

from marketplace.common.settings import get_settings

_LOGGING_CONFIGURED = False


def configure_logging() -> None:
    """Configure process-wide logging from environment settings."""

    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    settings = get_settings()
    level_name = settings.LOG_LEVEL.upper()
    level = getattr(logging, level_name, logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    _LOGGING_CONFIGURED = True
