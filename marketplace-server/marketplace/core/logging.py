"""Process-wide logging configuration."""

from __future__ import annotations

import logging.config

from marketplace.core.config import Settings

AUDIT_LOGGER = "marketplace.audit"


def configure_logging(settings: Settings) -> None:
    level = "DEBUG" if settings.debug else settings.logging.level.upper()
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {"format": settings.logging.format},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "loggers": {
                "marketplace": {"level": level},
                AUDIT_LOGGER: {"level": settings.logging.audit_level.upper()},
                "sqlalchemy.engine": {"level": "INFO" if settings.database.echo else "WARNING"},
            },
            "root": {"handlers": ["console"], "level": level},
        }
    )


__all__ = ["AUDIT_LOGGER", "configure_logging"]
