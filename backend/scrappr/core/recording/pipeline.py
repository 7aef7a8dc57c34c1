from __future__ import annotations

from typing import TYPE_CHECKING

from scrappr.core.errors import PermissionDenied, RecordingBusyError
from scrappr.core.models.draft import RecordingState
from scrappr.utils.logging import get_logger

if TYPE_CHECKING:
    from scrappr.core.models.draft import Draft
    from scrappr.core.recording.microphone import AudioRecording, Microphone
    from scrappr.core.services.transcription_service import TranscriptionClient


logger = get_logger(__name__)


class RecordingPipeline:
    """Microphone capture feeding transcripts into a draft.

    Idle -> Recording on :meth:`start`; Recording -> Transcribing on
    :meth:`stop`, which always attempts transcription; back to Idle once the
    transcription succeeded or failed. The state lives on the draft so the
    editor can see it.
    """

    def __init__(self, microphone: Microphone, transcriber: TranscriptionClient, draft: Draft) -> None:
        self._microphone = microphone
        self._transcriber = transcriber
        self._draft = draft
        self._recording: AudioRecording | None = None
        self._starting = False

    @property
    def state(self) -> RecordingState:
        return self._draft.recording_state

    def _transition(self, new: RecordingState) -> None:
        logger.info("Recording state %s -> %s", self._draft.recording_state.value, new.value)
        self._draft.recording_state = new

    async def start(self) -> None:
        """Open the microphone and begin recording.

        Raises:
            RecordingBusyError: a session is already recording or transcribing
            PermissionDenied: capture permission was not granted; stays Idle
            AudioCaptureError: the microphone could not be opened; stays Idle
        """
        if self.state is not RecordingState.IDLE or self._starting:
            raise RecordingBusyError(f"Cannot start recording while {self.state.value}")

        self._starting = True
        try:
            if not await self._microphone.request_permission():
                raise PermissionDenied("Please grant microphone permission to record notes.")
            self._recording = await self._microphone.open()
        finally:
            self._starting = False
        self._transition(RecordingState.RECORDING)

    async def stop(self) -> str | None:
        """Finish recording and transcribe it into the draft.

        Outside Recording this does nothing and returns None. Otherwise
        returns the transcribed text; on failure the error propagates, the
        draft content is untouched and the pipeline is Idle again.
        """
        if self.state is not RecordingState.RECORDING or self._recording is None:
            return None

        recording, self._recording = self._recording, None
        self._transition(RecordingState.TRANSCRIBING)
        try:
            audio = await recording.finish()
            text = await self._transcriber.transcribe(audio)
            if text.strip():
                self._draft.append_transcript(text)
            return text
        finally:
            self._transition(RecordingState.IDLE)
