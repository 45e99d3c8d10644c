from __future__ import annotations

from logging.config import dictConfig

from .config import settings


def configure_logging(level: str | None = None) -> None:
    """Install the process-wide logging configuration.

    Module loggers (``logging.getLogger(__name__)``) propagate to the
    ``cashflow`` logger, which writes to stderr at the configured level.
    """
    resolved = (level or settings.LOG_LEVEL or "INFO").upper()
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "loggers": {
                "cashflow": {"handlers": ["console"], "level": resolved, "propagate": False},
            },
        }
    )
