from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class CallableRequest(BaseModel):
    """Callable protocol request envelope: ``{"data": ...}``."""

    data: dict[str, Any] | None = None


class TranscriptionResult(BaseModel):
    text: str


class CallableResponse(BaseModel):
    result: TranscriptionResult


class CallableErrorBody(BaseModel):
    status: str = Field(..., description="Canonical code, e.g. INVALID_ARGUMENT")
    message: str


class CallableError(BaseModel):
    error: CallableErrorBody
