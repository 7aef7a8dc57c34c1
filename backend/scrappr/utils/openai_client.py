from __future__ import annotations

from functools import lru_cache

from openai import AsyncOpenAI

from scrappr.config import settings
from scrappr.utils.logging import get_logger


@lru_cache(maxsize=1)
def get_openai_client() -> AsyncOpenAI:
    """Return a singleton OpenAI client for the transcription procedure.

    ``SCRAPPR_OPENAI_API_KEY`` is used when set; otherwise the SDK falls back
    to ``OPENAI_API_KEY`` from the environment.
    """
    logger = get_logger(__name__)
    if settings.openai_api_key:
        logger.debug("Initializing OpenAI client with SCRAPPR_OPENAI_API_KEY")
        return AsyncOpenAI(api_key=settings.openai_api_key, max_retries=0)
    logger.debug("Initializing OpenAI client with default OPENAI_API_KEY from environment")
    return AsyncOpenAI(max_retries=0)
