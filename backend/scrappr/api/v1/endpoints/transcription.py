from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends

from scrappr.api.v1.schemas.transcription import CallableError, CallableRequest, CallableResponse
from scrappr.core.services.transcription_service import transcribe_audio_payload
from scrappr.dependencies import get_optional_user

if TYPE_CHECKING:
    from scrappr.core.schemas.auth import AuthUser

router = APIRouter()


@router.post(
    "/transcribeAudio",
    response_model=CallableResponse,
    responses={400: {"model": CallableError}, 401: {"model": CallableError}, 500: {"model": CallableError}},
)
async def transcribe_audio(
    payload: CallableRequest,
    current_user: AuthUser | None = Depends(get_optional_user),
):
    """Transcribe base64 audio into text (callable protocol).

    Errors are returned as ``{"error": {"status", "message"}}`` by the
    application's TranscriptionError handler.
    """
    result = await transcribe_audio_payload(payload.data, current_user)
    return {"result": result}
