from __future__ import annotations

import os

from fastapi import APIRouter

from scrappr.config import settings
from scrappr.core.errors import StoreError
from scrappr.core.repositories.document_store import Query
from scrappr.db.base import create_document_store

router = APIRouter()


@router.get("/")
async def health_check():
    return {"status": "healthy", "service": "scrappr-api", "version": "0.1.0"}


@router.get("/ready")
async def readiness_check():
    """Report whether the document store answers and transcription is configured.

    Always 200; the body says what is degraded.
    """
    try:
        await create_document_store().query(Query("health"))
        store_status = "connected"
    except (StoreError, RuntimeError) as err:
        store_status = f"error: {err}"

    return {
        "status": "ready",
        "store_backend": settings.store_backend,
        "store": store_status,
        "transcription": (
            "configured" if settings.openai_api_key or os.environ.get("OPENAI_API_KEY") else "missing api key"
        ),
        "api_prefix": settings.api_prefix,
    }
