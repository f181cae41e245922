"""Logging setup and optional Logfire instrumentation."""

import logging
from logging.config import dictConfig

import logfire

from mongo_querier import __version__
from mongo_querier.config import Settings

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    """Send mongo_querier logs to the console at the configured level."""
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
                "mongo_querier": {
                    "handlers": ["console"],
                    "level": settings.log_level.upper(),
                    "propagate": True,
                },
            },
        }
    )


def initialize_logfire(settings: Settings) -> None:
    """
    Initialize Logfire and instrument the MongoDB driver.

    Call once at application startup, before any querier is created.

    This function:
    - configures Logfire cloud tracking with the settings token
    - instruments PyMongo (commands issued through Motor included)
    - bridges Python logging to Logfire

    Args:
        settings: Application settings containing Logfire token
    """
    if not settings.logfire_token:
        logger.warning("Logfire token not set - observability disabled")
        return

    try:
        logfire.configure(
            token=settings.logfire_token,
            service_name="mongo-querier",
            service_version=__version__,
            environment=settings.environment,
        )

        logfire.instrument_pymongo()

        root_logger = logging.getLogger()
        root_logger.addHandler(logfire.LogfireLoggingHandler())

        logger.info("Logfire tracking initialized")

    except Exception as e:
        logger.warning(f"Failed to initialize Logfire: {e}")
