from __future__ import annotations

import asyncio
import io
from abc import ABC, abstractmethod
from typing import Any

from scrappr.config import settings
from scrappr.core.errors import AudioCaptureError
from scrappr.utils.logging import get_logger

logger = get_logger(__name__)


def _sounddevice() -> Any:
    # Imported on first use: needs the PortAudio shared library
    try:
        import sounddevice
    except OSError as err:
        raise AudioCaptureError(f"Audio input is unavailable: {err}") from err
    return sounddevice


def _soundfile() -> Any:
    import soundfile
    return soundfile


class AudioRecording(ABC):
    """An open capture session holding the microphone."""

    @abstractmethod
    async def finish(self) -> bytes:  # pragma: no cover - interface only
        """Stop capturing, release the microphone and return the encoded audio."""


class Microphone(ABC):
    """Source of recordings. At most one recording is open at a time."""

    @abstractmethod
    async def request_permission(self) -> bool:  # pragma: no cover - interface only
        """Return True if capture is allowed."""

    @abstractmethod
    async def open(self) -> AudioRecording:  # pragma: no cover - interface only
        """Start capturing.

        Raises:
            AudioCaptureError: if the input device cannot be opened
        """


class _SoundDeviceRecording(AudioRecording):
    def __init__(self, stream: Any, sound_file: Any, buffer: io.BytesIO) -> None:
        self._stream = stream
        self._sound_file = sound_file
        self._buffer = buffer

    async def finish(self) -> bytes:
        def _close() -> bytes:
            try:
                self._stream.stop()
                self._stream.close()
            finally:
                # Closing writes the final container header into the buffer
                self._sound_file.close()
            return self._buffer.getvalue()

        try:
            audio = await asyncio.to_thread(_close)
        except Exception as err:
            raise AudioCaptureError(f"Failed to finalize recording: {err}") from err
        logger.debug("Recording finalized (%d bytes)", len(audio))
        return audio


class SoundDeviceMicrophone(Microphone):
    """Default input device captured with sounddevice, encoded as WAV in memory."""

    def __init__(
        self,
        *,
        device: int | str | None = None,
        samplerate: int | None = None,
        channels: int | None = None,
        subtype: str | None = None,
    ) -> None:
        self.device = device
        self.samplerate = samplerate or settings.audio_sample_rate
        self.channels = channels or settings.audio_channels
        self.subtype = subtype or settings.audio_subtype

    async def request_permission(self) -> bool:
        sd = _sounddevice()
        try:
            await asyncio.to_thread(
                sd.check_input_settings,
                device=self.device,
                samplerate=self.samplerate,
                channels=self.channels,
            )
        except (sd.PortAudioError, ValueError) as err:
            logger.warning("Microphone not available: %s", err)
            return False
        return True

    async def open(self) -> AudioRecording:
        sd = _sounddevice()
        sf = _soundfile()
        buffer = io.BytesIO()
        try:
            sound_file = sf.SoundFile(
                buffer,
                mode="w",
                samplerate=self.samplerate,
                channels=self.channels,
                subtype=self.subtype,
                format="WAV",
            )
        except Exception as err:
            raise AudioCaptureError(f"Failed to create audio encoder: {err}") from err

        def _on_audio(indata: Any, frames: int, time_info: Any, status: Any) -> None:
            if status:
                logger.debug("Input stream status: %s", status)
            sound_file.write(indata)

        try:
            stream = sd.InputStream(
                samplerate=self.samplerate,
                channels=self.channels,
                dtype="float32",
                callback=_on_audio,
                device=self.device,
            )
            stream.start()
        except Exception as err:
            sound_file.close()
            raise AudioCaptureError(f"Failed to open microphone: {err}") from err

        logger.info(
            "Microphone opened",
            extra={"samplerate": self.samplerate, "channels": self.channels, "device": self.device},
        )
        return _SoundDeviceRecording(stream, sound_file, buffer)
