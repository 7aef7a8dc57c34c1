from __future__ import annotations

import logging
import sys

from scrappr.config import settings

# Client libraries that log every request or frame at INFO/DEBUG
_NOISY_LOGGERS = ("httpx", "httpcore", "hpack", "websockets", "realtime", "openai")


def setup_logging() -> None:
    """Configure root logging for the API and the notes engine.

    ``SCRAPPR_DEBUG`` forces DEBUG regardless of ``SCRAPPR_LOG_LEVEL``.
    """
    level = logging.DEBUG if settings.debug else getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
    )

    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.INFO)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        "Logging configured", extra={"level": logging.getLevelName(level), "store": settings.store_backend}
    )


def get_logger(name: str | None = None) -> logging.Logger:
    return logging.getLogger(name)
