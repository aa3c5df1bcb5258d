"""Microphone acquisition and release on top of PortAudio."""

import asyncio
import errno
import logging
from dataclasses import dataclass, field
from typing import Optional

import pyaudio

from ..errors import DeviceUnavailable, PermissionDenied

logger = logging.getLogger(__name__)


@dataclass
class AudioStream:
    """Handle to a live microphone stream (16-bit signed PCM)."""
    pyaudio_instance: pyaudio.PyAudio
    stream: pyaudio.Stream
    sample_rate: int
    channels: int
    chunk_size: int
    sample_width: int = 2
    released: bool = field(default=False)

    def read(self) -> bytes:
        """Read one slice of audio. Blocks until a slice is available."""
        return self.stream.read(self.chunk_size, exception_on_overflow=False)


class MediaCapture:
    """Owns the microphone stream lifecycle."""

    def __init__(
        self,
        sample_rate: int = 16000,
        chunk_size: int = 1024,
        channels: int = 1,
        format: int = pyaudio.paInt16,
    ):
        """Initialize media capture with stream parameters.

        Args:
            sample_rate: Audio sample rate (16kHz for speech)
            chunk_size: Size of each audio slice in samples
            channels: Number of audio channels (1 for mono)
            format: Audio format (16-bit signed int)
        """
        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.channels = channels
        self.format = format

    async def acquire(self) -> AudioStream:
        """Open the default input device.

        The open runs in a worker thread. If the caller abandons the await
        (task cancelled) the stream that arrives later is released.

        Returns:
            AudioStream handle

        Raises:
            PermissionDenied: Access to the microphone was refused
            DeviceUnavailable: No input device could be opened
        """
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(None, self._open_stream)
        try:
            return await asyncio.shield(future)
        except asyncio.CancelledError:
            logger.info("Microphone acquisition abandoned, releasing late stream")
            future.add_done_callback(self._release_abandoned)
            raise

    def _release_abandoned(self, future: "asyncio.Future[AudioStream]") -> None:
        if future.cancelled() or future.exception() is not None:
            return
        self.release(future.result())

    def _open_stream(self) -> AudioStream:
        pyaudio_instance = pyaudio.PyAudio()
        try:
            pyaudio_instance.get_default_input_device_info()
            stream = pyaudio_instance.open(
                format=self.format,
                channels=self.channels,
                rate=self.sample_rate,
                input=True,
                frames_per_buffer=self.chunk_size,
                stream_callback=None
            )
        except PermissionError as e:
            pyaudio_instance.terminate()
            logger.warning(f"Microphone permission denied: {e}")
            raise PermissionDenied(str(e)) from e
        except OSError as e:
            pyaudio_instance.terminate()
            if e.errno in (errno.EACCES, errno.EPERM):
                logger.warning(f"Microphone permission denied: {e}")
                raise PermissionDenied(str(e)) from e
            logger.warning(f"No usable input device: {e}")
            raise DeviceUnavailable(str(e)) from e

        logger.info(f"Audio stream opened: {self.sample_rate}Hz, "
                    f"{self.chunk_size} samples/chunk")
        return AudioStream(
            pyaudio_instance=pyaudio_instance,
            stream=stream,
            sample_rate=self.sample_rate,
            channels=self.channels,
            chunk_size=self.chunk_size,
            sample_width=pyaudio_instance.get_sample_size(self.format),
        )

    def release(self, stream: Optional[AudioStream]) -> None:
        """Stop and close the stream. Safe to call more than once."""
        if stream is None or stream.released:
            return
        stream.released = True
        try:
            stream.stream.stop_stream()
            stream.stream.close()
        finally:
            stream.pyaudio_instance.terminate()
        logger.info("Audio stream released")
