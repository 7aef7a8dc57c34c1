"""Error taxonomy for the note/tag engine and the recording pipeline.

Every error is terminal for the operation that raised it: nothing here is
retried automatically, the user re-initiates the action.
"""

from __future__ import annotations


class ScrapprError(Exception):
    """Base class for all domain errors."""


class ValidationError(ScrapprError, ValueError):
    """Input rejected before any write reaches the store (empty content, bad tag)."""


class PermissionDenied(ScrapprError):
    """Microphone capture permission was not granted."""


class RecordingBusyError(ScrapprError):
    """A recording session is already active or being transcribed."""


class AudioCaptureError(ScrapprError):
    """The microphone could not be opened or the recording could not be finalized."""


class StoreError(ScrapprError):
    """Read, write or batch failure reported by the document store."""

    def __init__(self, message: str, *, code: str = "unavailable") -> None:
        super().__init__(message)
        self.code = code


class NotFoundError(StoreError):
    """A write required an existing document that is not there."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="not-found")


class TranscriptionError(ScrapprError):
    """Failure reported by the remote transcription procedure.

    ``code`` is one of the procedure's declared error codes:
    ``unauthenticated``, ``invalid-argument`` or ``internal``.
    """

    code = "internal"

    def __init__(self, message: str = "Transcription failed") -> None:
        super().__init__(message)
        self.message = message

    @staticmethod
    def from_code(code: str | None, message: str) -> TranscriptionError:
        """Build the matching subclass for a wire error code.

        Accepts both the lowercase code (``invalid-argument``) and the
        canonical status name (``INVALID_ARGUMENT``). Unknown codes map to
        :class:`Internal`.
        """
        normalized = (code or "").strip().lower().replace("_", "-")
        for cls in (Unauthenticated, InvalidArgument, Internal):
            if cls.code == normalized:
                return cls(message)
        return Internal(message)

    @property
    def status(self) -> str:
        """Canonical status name used on the wire, e.g. ``INVALID_ARGUMENT``."""
        return self.code.upper().replace("-", "_")


class Unauthenticated(TranscriptionError):
    code = "unauthenticated"


class InvalidArgument(TranscriptionError):
    code = "invalid-argument"


class Internal(TranscriptionError):
    code = "internal"
