"""Recording state machine coordinating capture, chunk recording and visualization."""

import asyncio
import itertools
import logging
import time
from typing import Awaitable, Callable, List, Optional

from pubsub import pub

from ..audio.analyser import StreamAnalyser
from ..audio.capture import AudioStream, MediaCapture
from ..audio.recorder import ChunkRecorder, build_recording_artifact
from ..audio.visualizer import VisualizationLoop
from ..errors import AlreadyRecording
from ..models.artifact import AudioArtifact
from ..models.events import AudioEvent
from ..models.state import RecorderState

logger = logging.getLogger(__name__)


ArtifactHandler = Callable[[AudioArtifact], Awaitable[None]]

_session_ids = itertools.count(1)


class CaptureSession:
    """Resources of one start/stop cycle.

    Audio events arrive on the recorder thread and are marshalled onto the
    event loop through an asyncio queue; ``collect`` appends them in order
    until the final boundary.
    """

    def __init__(self, topic: str, stream: AudioStream, analyser: StreamAnalyser,
                 loop: asyncio.AbstractEventLoop):
        self.topic = topic
        self.stream = stream
        self.analyser = analyser
        self.loop = loop
        self.chunks: List[bytes] = []
        self.queue: "asyncio.Queue[AudioEvent]" = asyncio.Queue()
        self.recorder: Optional[ChunkRecorder] = None
        self.collector: Optional["asyncio.Task[None]"] = None
        self.started_at = time.monotonic()

    @property
    def elapsed_seconds(self) -> float:
        return time.monotonic() - self.started_at

    def publish(self, event: AudioEvent) -> None:
        """Recorder callback; fans the event out to this session's subscribers."""
        pub.sendMessage(self.topic, event=event)

    def on_audio_event(self, event: AudioEvent) -> None:
        """Pub/sub listener, runs on the recorder thread."""
        if self.loop.is_closed():
            return
        self.loop.call_soon_threadsafe(self.queue.put_nowait, event)

    async def collect(self) -> None:
        while True:
            event = await self.queue.get()
            if event.final:
                logger.debug(f"Final boundary received on {self.topic}")
                return
            if event.audio_data:
                self.chunks.append(event.audio_data)


class RecordingController:
    """State machine: IDLE -> RECORDING -> FINALIZING -> IDLE."""

    def __init__(
        self,
        capture: MediaCapture,
        visualizer: VisualizationLoop,
        on_artifact: Optional[ArtifactHandler] = None,
        fft_size: int = 2048,
        flush_timeout: float = 5.0,
        topic_prefix: str = "audio.capture",
    ):
        """Initialize the controller.

        Args:
            capture: Microphone owner
            visualizer: Loop rendering the live stream
            on_artifact: Coroutine receiving the finished recording
            fft_size: Analysis window of the visualizer
            flush_timeout: Seconds to wait for the recorder's final boundary
            topic_prefix: Pub/sub topic prefix for capture events
        """
        self.capture = capture
        self.visualizer = visualizer
        self.on_artifact = on_artifact
        self.fft_size = fft_size
        self.flush_timeout = flush_timeout
        self.topic_prefix = topic_prefix

        self.state = RecorderState.IDLE
        self._session: Optional[CaptureSession] = None
        self._acquiring = False
        self._generation = 0

    @property
    def is_recording(self) -> bool:
        return self.state is RecorderState.RECORDING

    @property
    def elapsed_seconds(self) -> float:
        return self._session.elapsed_seconds if self._session else 0.0

    async def start(self) -> None:
        """Acquire the microphone and begin recording.

        Raises:
            AlreadyRecording: A capture is active, finalizing or being acquired
            MicrophoneError: The microphone could not be acquired
        """
        if self.state is not RecorderState.IDLE or self._acquiring:
            raise AlreadyRecording(f"Cannot start recording in state {self.state.value}")

        self._acquiring = True
        generation = self._generation
        try:
            stream = await self.capture.acquire()
        finally:
            self._acquiring = False

        if generation != self._generation:
            logger.info("Controller shut down while acquiring, discarding stream")
            self.capture.release(stream)
            return

        try:
            self._open_session(stream)
        except Exception:
            self._teardown_session()
            self.capture.release(stream)
            raise
        self.state = RecorderState.RECORDING
        logger.info(f"Recording started on {self._session.topic}")

    def _open_session(self, stream: AudioStream) -> None:
        loop = asyncio.get_running_loop()
        topic = f"{self.topic_prefix}.s{next(_session_ids)}"
        session = CaptureSession(topic, stream, StreamAnalyser(self.fft_size), loop)
        self._session = session

        pub.subscribe(session.on_audio_event, topic)
        pub.subscribe(session.analyser.on_audio_event, topic)
        session.collector = loop.create_task(session.collect())

        session.recorder = ChunkRecorder(stream, session.publish)
        session.recorder.start()
        self.visualizer.start(session.analyser)

    async def stop(self) -> Optional[AudioArtifact]:
        """Flush the recorder, build the artifact and hand it off.

        Returns to IDLE whatever the hand-off outcome. Outside RECORDING this
        only makes sure nothing is left running.

        Returns:
            The recorded artifact, or None if nothing was recording or the
            controller was shut down while flushing
        """
        if self.state is RecorderState.FINALIZING:
            logger.debug("stop() ignored, already finalizing")
            return None
        if self.state is RecorderState.IDLE:
            self._teardown_session()
            return None

        self.state = RecorderState.FINALIZING
        session = self._session
        generation = self._generation
        try:
            try:
                await self._flush(session)
            finally:
                self._teardown_session()

            if generation != self._generation:
                logger.info(f"Controller shut down while finalizing {session.topic}, recording dropped")
                return None

            artifact = build_recording_artifact(
                session.chunks,
                sample_rate=session.stream.sample_rate,
                channels=session.stream.channels,
                sample_width=session.stream.sample_width,
            )
            if self.on_artifact is not None:
                await self.on_artifact(artifact)
            return artifact
        finally:
            self.state = RecorderState.IDLE
            logger.info("Recording finalized, controller idle")

    async def _flush(self, session: CaptureSession) -> None:
        session.recorder.stop()
        try:
            await asyncio.wait_for(asyncio.shield(session.collector), self.flush_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"No final boundary within {self.flush_timeout}s, "
                           f"keeping {len(session.chunks)} chunks")
        except asyncio.CancelledError:
            # shutdown() tore the session down and cancelled the collector
            if self._session is session:
                raise
            return
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, session.recorder.join, 2.0)

    def _teardown_session(self) -> None:
        self.visualizer.stop()
        session = self._session
        if session is None:
            return
        self._session = None

        if session.recorder is not None:
            session.recorder.stop()
            session.recorder.join(timeout=1.0)
        if session.collector is not None and not session.collector.done():
            session.collector.cancel()

        topic_mgr = pub.getDefaultTopicMgr()
        try:
            if topic_mgr.getTopic(session.topic, okIfNone=True) is not None:
                pub.unsubAll(topicName=session.topic)
                topic_mgr.delTopic(session.topic)
        finally:
            self.capture.release(session.stream)
            session.analyser.clear()
        logger.debug(f"Capture session {session.topic} torn down")

    def shutdown(self) -> None:
        """Release everything unconditionally, even mid-recording."""
        self._generation += 1
        self._teardown_session()
        self.state = RecorderState.IDLE
        logger.info("RecordingController shut down")
