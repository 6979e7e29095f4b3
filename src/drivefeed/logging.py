from __future__ import annotations

import logging
import sys

import structlog


def _coerce_level(level: str | int) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)
    return level


def setup_logging(level: str | int = "INFO") -> None:
    """Configure structured logging for the ingestion service.

    Telethon logs through the standard library; it is kept at WARNING unless
    the service itself runs at DEBUG.
    """

    logging_level = _coerce_level(level)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=logging_level,
    )
    logging.getLogger().setLevel(logging_level)

    telethon_level = logging.DEBUG if logging_level <= logging.DEBUG else logging.WARNING
    logging.getLogger("telethon").setLevel(telethon_level)

    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str):
    # unbound proxy: configuration is resolved on first use, after setup_logging
    return structlog.get_logger(name)


__all__ = ["get_logger", "setup_logging"]
