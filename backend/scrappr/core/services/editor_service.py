from __future__ import annotations

from typing import TYPE_CHECKING

from scrappr.core.errors import RecordingBusyError
from scrappr.core.models.draft import Draft
from scrappr.core.recording.pipeline import RecordingPipeline
from scrappr.utils.logging import get_logger
from scrappr.utils.validation import parse_tags, validate_content

if TYPE_CHECKING:
    from collections.abc import Sequence

    from scrappr.core.recording.microphone import Microphone
    from scrappr.core.services.note_service import NoteService
    from scrappr.core.services.transcription_service import TranscriptionClient


logger = get_logger(__name__)


class NoteEditor:
    """Edits one note: a new one, or an existing one when ``note_id`` is set."""

    def __init__(
        self,
        notes: NoteService,
        owner: str,
        *,
        note_id: str | None = None,
        draft: Draft | None = None,
        microphone: Microphone | None = None,
        transcriber: TranscriptionClient | None = None,
    ) -> None:
        self._notes = notes
        self.owner = owner
        self.note_id = note_id
        self.draft = draft or Draft()
        self.recorder: RecordingPipeline | None = None
        if microphone is not None and transcriber is not None:
            self.recorder = RecordingPipeline(microphone, transcriber, self.draft)

    @classmethod
    def from_params(
        cls,
        notes: NoteService,
        owner: str,
        *,
        note_id: str | None = None,
        content: str | None = None,
        tags: str | Sequence[str] | None = None,
        microphone: Microphone | None = None,
        transcriber: TranscriptionClient | None = None,
    ) -> NoteEditor:
        """Open the editor from navigation parameters.

        ``tags`` may arrive as a comma separated string or a list.
        """
        draft = Draft(content=content or "", tags=parse_tags(tags))
        return cls(
            notes,
            owner,
            note_id=note_id or None,
            draft=draft,
            microphone=microphone,
            transcriber=transcriber,
        )

    @property
    def is_editing(self) -> bool:
        return self.note_id is not None

    @property
    def can_save(self) -> bool:
        return bool(self.draft.content.strip()) and not self.draft.is_busy

    def add_tag(self, raw: str) -> str:
        return self.draft.add_tag(raw)

    def remove_tag(self, tag: str) -> bool:
        return self.draft.remove_tag(tag)

    async def save(self) -> str:
        """Write the draft through the note store and clear it.

        Returns the note id. The draft is kept as-is if the write fails so
        the user can try again.
        """
        if self.draft.is_busy:
            raise RecordingBusyError("Finish recording before saving")
        validate_content(self.draft.content)

        if self.note_id is not None:
            await self._notes.update_note(self.owner, self.note_id, self.draft.content, self.draft.tags)
            note_id = self.note_id
        else:
            note_id = await self._notes.create_note(self.owner, self.draft.content, self.draft.tags)

        self.draft.clear()
        logger.debug("Draft saved as note %s", note_id)
        return note_id
