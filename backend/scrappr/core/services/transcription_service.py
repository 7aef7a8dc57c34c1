"""Speech-to-text for dictated notes.

Two halves of the same callable procedure live here:

* :func:`transcribe_audio_payload` is the remote side. It takes the
  ``{"audioBase64": ...}`` payload, runs it through OpenAI Whisper and
  returns ``{"text": ...}``.
* :class:`TranscriptionClient` is the caller side used by the recording
  pipeline. It encodes the recorded audio and invokes a procedure exactly
  once per call, through HTTP (:class:`HttpCallableProcedure`) or in
  process (:class:`LocalTranscriptionProcedure`).

Nothing here retries: a failure is raised once as a TranscriptionError.
"""

from __future__ import annotations

import base64
import binascii
import os
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

import httpx

from scrappr.config import settings
from scrappr.core.errors import Internal, InvalidArgument, TranscriptionError, Unauthenticated
from scrappr.utils.logging import get_logger
from scrappr.utils.openai_client import get_openai_client

if TYPE_CHECKING:
    from openai import AsyncOpenAI

    from scrappr.core.schemas.auth import AuthUser


logger = get_logger(__name__)


def _audio_filename(audio: bytes, user_id: str) -> str:
    # Whisper picks the decoder from the extension
    extension = "wav" if audio[:4] == b"RIFF" else "m4a"
    return f"audio_{user_id}.{extension}"


async def transcribe_audio_payload(
    data: dict[str, Any] | None,
    user: AuthUser | None,
    *,
    client: AsyncOpenAI | None = None,
) -> dict[str, str]:
    """Remote transcription procedure: ``{audioBase64}`` in, ``{text}`` out.

    Raises:
        Unauthenticated: no signed-in caller
        InvalidArgument: audio missing, empty or not valid base64
        Internal: missing API key or any upstream failure
    """
    if user is None:
        raise Unauthenticated("The function must be called while authenticated.")

    audio_base64 = (data or {}).get("audioBase64")
    if not audio_base64 or not isinstance(audio_base64, str):
        raise InvalidArgument("Missing audio data.")
    try:
        audio = base64.b64decode(audio_base64, validate=True)
    except (binascii.Error, ValueError) as err:
        raise InvalidArgument("Audio data is not valid base64.") from err
    if not audio:
        raise InvalidArgument("Missing audio data.")

    if client is None:
        if not (settings.openai_api_key or os.environ.get("OPENAI_API_KEY")):
            raise Internal("OpenAI API Key is missing.")
        client = get_openai_client()

    logger.info(
        "Transcribing audio",
        extra={"user_id": str(user.id), "bytes": len(audio), "model": settings.transcription_model},
    )
    try:
        response = await client.audio.transcriptions.create(
            model=settings.transcription_model,
            file=(_audio_filename(audio, str(user.id)), audio),
            timeout=settings.transcription_timeout_seconds,
        )
    except Exception as err:
        logger.error("Transcription error: %s", err)
        raise Internal(str(err) or "Transcription failed") from err

    return {"text": response.text}


class TranscriptionProcedure(ABC):
    """A way of invoking the remote transcription procedure."""

    @abstractmethod
    async def __call__(self, data: dict[str, Any]) -> dict[str, Any]:  # pragma: no cover
        """Invoke once with ``data`` and return the procedure's result."""


class HttpCallableProcedure(TranscriptionProcedure):
    """Calls the procedure over HTTP using the callable wire protocol.

    Requests are ``{"data": ...}``; responses are ``{"result": ...}`` or
    ``{"error": {"status": ..., "message": ...}}``.
    """

    def __init__(
        self,
        url: str | None = None,
        *,
        id_token: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url or settings.transcription_url
        self._id_token = id_token
        self._timeout = timeout if timeout is not None else settings.transcription_timeout_seconds
        self._client = client

    async def __call__(self, data: dict[str, Any]) -> dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if self._id_token:
            headers["Authorization"] = f"Bearer {self._id_token}"

        client = self._client or httpx.AsyncClient()
        try:
            resp = await client.post(self._url, json={"data": data}, headers=headers, timeout=self._timeout)
        except httpx.HTTPError as err:
            raise Internal(f"Transcription request failed: {err}") from err
        finally:
            if self._client is None:
                await client.aclose()

        try:
            body = resp.json()
        except ValueError as err:
            raise Internal(f"Unreadable transcription response ({resp.status_code})") from err

        error = body.get("error") if isinstance(body, dict) else None
        if error:
            raise TranscriptionError.from_code(error.get("status"), error.get("message") or "Transcription failed")
        if resp.status_code == 401:
            raise Unauthenticated("The function must be called while authenticated.")
        if resp.status_code >= 400 or not isinstance(body, dict):
            raise Internal(f"Transcription request failed ({resp.status_code})")
        return body.get("result") or {}


class LocalTranscriptionProcedure(TranscriptionProcedure):
    """Runs the procedure in this process on behalf of ``user``."""

    def __init__(self, user: AuthUser | None, *, client: AsyncOpenAI | None = None) -> None:
        self._user = user
        self._client = client

    async def __call__(self, data: dict[str, Any]) -> dict[str, Any]:
        return await transcribe_audio_payload(data, self._user, client=self._client)


class TranscriptionClient:
    """Turns recorded audio into text through a transcription procedure."""

    def __init__(self, procedure: TranscriptionProcedure) -> None:
        self._procedure = procedure

    async def transcribe(self, audio: bytes) -> str:
        """Send ``audio`` for transcription and return the text.

        The procedure is invoked exactly once; validation of the payload is
        left to it.
        """
        payload = {"audioBase64": base64.b64encode(audio or b"").decode("ascii")}
        try:
            result = await self._procedure(payload)
        except TranscriptionError as err:
            logger.warning("Transcription failed: %s", err, extra={"code": err.code})
            raise
        except Exception as err:
            logger.error("Transcription procedure crashed: %s", err)
            raise Internal(str(err) or "Transcription failed") from err

        text = result.get("text") if isinstance(result, dict) else None
        if not isinstance(text, str):
            raise Internal("Transcription response has no text")
        return text
