"""Chunk recorder that streams microphone slices as pub/sub events."""

import io
import time
import wave
import logging
from datetime import datetime
from threading import Thread, Event
from typing import Callable, List, Optional

from ..models.artifact import AudioArtifact
from ..models.events import AudioEvent
from .capture import AudioStream

logger = logging.getLogger(__name__)


RECORDING_MIME_TYPE = "audio/wav"


class ChunkRecorder:
    """Reads slices from an acquired stream on a background thread.

    Every non-empty slice is handed to ``callback`` as an AudioEvent as soon
    as it is read. After ``stop()`` the thread emits one final boundary event
    (``final=True``, no audio) and exits. The recorder never closes the
    stream; that belongs to MediaCapture.
    """

    def __init__(self, stream: AudioStream, callback: Callable[[AudioEvent], None]):
        """Initialize the recorder.

        Args:
            stream: Stream returned by MediaCapture.acquire()
            callback: Receives each AudioEvent, called from the recorder thread
        """
        self.stream = stream
        self.audio_event_callback = callback

        self.recording_thread: Optional[Thread] = None
        self.stop_event = Event()
        self.total_chunks = 0
        self.start_time: Optional[datetime] = None

    @property
    def is_recording(self) -> bool:
        return self.recording_thread is not None and self.recording_thread.is_alive()

    def start(self) -> None:
        """Start reading in a background thread."""
        if self.recording_thread is not None:
            logger.warning("Chunk recorder already started")
            return

        self.stop_event.clear()
        self.start_time = datetime.now()
        self.total_chunks = 0

        self.recording_thread = Thread(target=self._record_continuously, daemon=True)
        self.recording_thread.name = "ChunkRecorderThread"
        self.recording_thread.start()
        logger.info("Chunk recorder started")

    def stop(self) -> None:
        """Signal the thread to flush. Returns immediately."""
        self.stop_event.set()

    def join(self, timeout: float = 2.0) -> bool:
        """Wait for the recording thread to exit.

        Returns:
            True if the thread is gone, False if it is still alive
        """
        if self.recording_thread is None:
            return True
        self.recording_thread.join(timeout=timeout)
        if self.recording_thread.is_alive():
            logger.warning("Recording thread did not stop cleanly")
            return False
        return True

    def __read_audio_chunk(self) -> bytes:
        return self.stream.read()

    def __publish_audio_event(self, audio_chunk: bytes, final: bool = False) -> None:
        audio_event = AudioEvent(
            chunk_id=f"chunk_{self.total_chunks}",
            audio_data=audio_chunk,
            timestamp=time.time(),
            sequence_number=self.total_chunks,
            sample_rate=self.stream.sample_rate,
            channels=self.stream.channels,
            final=final
        )
        self.audio_event_callback(audio_event)

    def _record_continuously(self) -> None:
        """Internal method: continuous recording loop in background thread."""
        try:
            while not self.stop_event.is_set():
                audio_chunk = self.__read_audio_chunk()
                if not audio_chunk:
                    continue
                self.total_chunks += 1
                self.__publish_audio_event(audio_chunk)
        except OSError as e:
            logger.error(f"Audio stream read failed: {e}")
        finally:
            # Final boundary, so consumers know we are done
            self.__publish_audio_event(b"", final=True)
            logger.info(f"Chunk recorder stopped. Total chunks: {self.total_chunks}")


def build_recording_artifact(
    chunks: List[bytes],
    sample_rate: int,
    channels: int,
    sample_width: int = 2,
    created_at: Optional[datetime] = None,
) -> AudioArtifact:
    """Concatenate recorded chunks into one WAV artifact.

    A capture that produced no chunks yields an artifact with an empty
    payload rather than a header-only WAV file.

    Args:
        chunks: Ordered PCM slices
        sample_rate: Sample rate of the slices
        channels: Channel count of the slices
        sample_width: Bytes per sample
        created_at: Creation time, defaults to now

    Returns:
        AudioArtifact named ``recording_<epoch millis>.wav``
    """
    created_at = created_at or datetime.now()
    filename = f"recording_{int(created_at.timestamp() * 1000)}.wav"

    if not chunks:
        logger.warning("No audio data captured, building empty artifact")
        return AudioArtifact(payload=b"", mime_type=RECORDING_MIME_TYPE,
                             filename=filename, created_at=created_at)

    buffer = io.BytesIO()
    with wave.open(buffer, 'wb') as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sample_width)
        wf.setframerate(sample_rate)
        for chunk in chunks:
            wf.writeframes(chunk)

    payload = buffer.getvalue()
    logger.info(f"Built recording artifact {filename}: {len(chunks)} chunks, {len(payload)} bytes")
    return AudioArtifact(payload=payload, mime_type=RECORDING_MIME_TYPE,
                         filename=filename, created_at=created_at)
