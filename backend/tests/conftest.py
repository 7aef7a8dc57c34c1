"""
Shared pytest fixtures for scrappr tests.

Everything runs against the in-memory document store; the microphone and
the transcription procedure are replaced by scripted fakes.
"""

from __future__ import annotations

import pytest

from scrappr.core.errors import TranscriptionError
from scrappr.core.recording.microphone import AudioRecording, Microphone
from scrappr.core.repositories.implementations.memory.document_store import MemoryDocumentStore
from scrappr.core.services.note_service import NoteService
from scrappr.core.services.tag_index_service import TagIndexService
from scrappr.core.services.transcription_service import TranscriptionClient, TranscriptionProcedure

OWNER = "user-1"
OTHER_OWNER = "user-2"


class FakeRecording(AudioRecording):
    """Recording that hands back fixed bytes and reports when it was released."""

    def __init__(self, audio: bytes, error: Exception | None = None):
        self.audio = audio
        self.error = error
        self.finished = False

    async def finish(self) -> bytes:
        self.finished = True
        if self.error is not None:
            raise self.error
        return self.audio


class FakeMicrophone(Microphone):
    """Microphone with a switchable permission and a count of opened sessions."""

    def __init__(self, *, granted: bool = True, audio: bytes = b"RIFF-fake-audio"):
        self.granted = granted
        self.audio = audio
        self.finish_error: Exception | None = None
        self.opened: list[FakeRecording] = []

    async def request_permission(self) -> bool:
        return self.granted

    async def open(self) -> AudioRecording:
        recording = FakeRecording(self.audio, self.finish_error)
        self.opened.append(recording)
        return recording

    @property
    def open_sessions(self) -> int:
        return sum(1 for r in self.opened if not r.finished)


class FakeProcedure(TranscriptionProcedure):
    """Scripted transcription procedure recording every payload it receives."""

    def __init__(self, text: str = "hello from audio", error: TranscriptionError | None = None):
        self.text = text
        self.error = error
        self.calls: list[dict] = []

    async def __call__(self, data: dict) -> dict:
        self.calls.append(data)
        if self.error is not None:
            raise self.error
        return {"text": self.text}


@pytest.fixture
def store():
    """Fresh in-memory document store."""
    return MemoryDocumentStore()


@pytest.fixture
def tag_index(store):
    return TagIndexService(store)


@pytest.fixture
def notes(store, tag_index):
    return NoteService(store, tag_index)


@pytest.fixture
def microphone():
    return FakeMicrophone()


@pytest.fixture
def procedure():
    return FakeProcedure()


@pytest.fixture
def transcriber(procedure):
    return TranscriptionClient(procedure)
