from __future__ import annotations

from enum import Enum

from pydantic import Field

from scrappr.core.errors import ValidationError
from scrappr.utils.validation import normalize_tag

from .base import AppBaseModel


class RecordingState(str, Enum):
    """Where the editor's microphone session currently is."""

    IDLE = "idle"
    RECORDING = "recording"
    TRANSCRIBING = "transcribing"


class Draft(AppBaseModel):
    """The unsaved note being edited."""

    content: str = ""
    tags: list[str] = Field(default_factory=list)
    recording_state: RecordingState = RecordingState.IDLE

    def add_tag(self, raw: str) -> str:
        """Normalize and append a tag; empty or duplicate tags are rejected."""
        tag = normalize_tag(raw)
        if tag in self.tags:
            raise ValidationError(f"Duplicate tag: {tag}")
        self.tags.append(tag)
        return tag

    def remove_tag(self, tag: str) -> bool:
        try:
            self.tags.remove(normalize_tag(tag))
        except ValueError:
            return False
        return True

    def append_transcript(self, text: str) -> None:
        """Merge transcribed text into the content, space separated."""
        self.content = f"{self.content} {text}" if self.content else text

    @property
    def is_busy(self) -> bool:
        return self.recording_state is not RecordingState.IDLE

    def clear(self) -> None:
        self.content = ""
        self.tags = []
