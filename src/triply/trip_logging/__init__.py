"""Logging setup for the trip orchestration engine."""

import logging
import sys

from triply.core.correlation import CorrelationFilter
from triply.settings import LoggingSettings

from .filters import PIIFilter

TEXT_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - "
    "[rider=%(rider_id)s] [corr=%(correlation_id)s] %(message)s"
)


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    environment: str = "development",
) -> None:
    """Configure root logger with appropriate formatting."""
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)

    if json_output:
        handler.setFormatter(
            logging.Formatter(
                '{"timestamp": "%(asctime)s", "level": "%(levelname)s", '
                '"logger": "%(name)s", "message": "%(message)s", '
                '"correlation_id": "%(correlation_id)s", '
                '"rider_id": "%(rider_id)s", '
                '"service_name": "triply", '
                f'"environment": "{environment}"}}'
            )
        )
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    handler.addFilter(CorrelationFilter())
    handler.addFilter(PIIFilter())

    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level.upper()))

    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("google_genai").setLevel(logging.WARNING)


def setup_logging_from_settings(settings: LoggingSettings) -> None:
    """Configure logging from the ``LOG_`` settings section."""
    setup_logging(
        level=settings.level,
        json_output=settings.format == "json",
        environment=settings.environment,
    )
