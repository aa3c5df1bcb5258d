"""Top-level orchestrator wiring user intents to recording, upload and history."""

import asyncio
import dataclasses
import logging
import time
from pathlib import Path
from typing import Any, Optional, Union

import pyperclip
from pubsub import pub

from ..api.client import BackendClient
from ..audio.capture import MediaCapture
from ..audio.visualizer import FrameRenderer, VisualizationLoop
from ..config import VoiceScribeConfig
from ..errors import (
    AlreadyRecording,
    EmptySelection,
    MicrophoneError,
    TransportError,
    UploadInProgress,
)
from ..models.artifact import AudioArtifact
from ..models.records import TranscriptionRecord, UploadResult
from ..models.state import SessionState
from ..storage.downloads import DownloadManager
from .history_store import HistoryStore
from .recording_controller import RecordingController
from .upload_pipeline import UploadPipeline, describe_error

logger = logging.getLogger(__name__)


STATE_TOPIC = "session.state"

NO_FILE_MESSAGE = "Please choose an audio file first."
UPLOAD_BUSY_MESSAGE = "An upload is already in progress."
MICROPHONE_MESSAGE = "Microphone access denied or not available."
ALREADY_RECORDING_MESSAGE = "Already recording."
HISTORY_MESSAGE = "Failed to fetch history."
COPY_MESSAGE = "Copy failed. Use manual copy."
DOWNLOAD_MESSAGE = "Failed to download audio."
NO_AUDIO_MESSAGE = "No audio available to download."
NO_ENTRY_MESSAGE = "No history entry at that position."

FileSelection = Union[AudioArtifact, str, Path, None]


class TranscriberSession:
    """Maps UI intents onto the recording and upload pipeline.

    Failures never escape the public methods; they end up in
    ``state.error_message``. Every state change is published on the
    ``session.state`` topic as a snapshot.
    """

    def __init__(
        self,
        client: BackendClient,
        pipeline: UploadPipeline,
        history: HistoryStore,
        capture: MediaCapture,
        visualizer: VisualizationLoop,
        downloads: DownloadManager,
        token: Optional[str] = None,
        fft_size: int = 2048,
        flush_timeout: float = 5.0,
        state_topic: str = STATE_TOPIC,
    ):
        self.client = client
        self.pipeline = pipeline
        self.history = history
        self.downloads = downloads
        self.token = token
        self.state_topic = state_topic
        self.state = SessionState()

        self.controller = RecordingController(
            capture,
            visualizer,
            on_artifact=self._upload_recording,
            fft_size=fft_size,
            flush_timeout=flush_timeout,
        )
        self._start_task: Optional["asyncio.Future[None]"] = None
        self._closed = False

    @classmethod
    def from_config(cls, config: VoiceScribeConfig, token: Optional[str] = None,
                    renderer: Optional[FrameRenderer] = None) -> "TranscriberSession":
        """Build a session and its collaborators from configuration."""
        client = BackendClient(
            config.get_backend_url(),
            request_timeout=float(config.get('backend.request_timeout_seconds', 30.0)),
        )
        return cls(
            client=client,
            pipeline=UploadPipeline(
                client,
                upload_path=config.get('backend.upload_path', '/upload'),
                timeout=float(config.get('backend.upload_timeout_seconds', 120.0)),
            ),
            history=HistoryStore(client, history_path=config.get('backend.history_path', '/history')),
            capture=MediaCapture(
                sample_rate=config.get('audio.sample_rate', 16000),
                chunk_size=config.get('audio.chunk_size', 1024),
                channels=config.get('audio.channels', 1),
            ),
            visualizer=VisualizationLoop(renderer, fps=config.get('visualization.fps', 30)),
            downloads=DownloadManager(
                config.get_download_directory(),
                release_delay=float(config.get('downloads.release_delay_seconds', 1.0)),
            ),
            token=token,
            fft_size=config.get('visualization.fft_size', 2048),
            flush_timeout=float(config.get('audio.flush_timeout_seconds', 5.0)),
        )

    # -- state --

    def snapshot(self) -> SessionState:
        return dataclasses.replace(self.state, history=list(self.state.history))

    def _update(self, **changes: Any) -> None:
        self.state = dataclasses.replace(self.state, **changes)
        pub.sendMessage(self.state_topic, state=self.snapshot())

    def _fail(self, message: str, **changes: Any) -> None:
        self._update(error_message=message, **changes)

    def set_token(self, token: Optional[str]) -> None:
        """Replace the bearer token; None means anonymous."""
        self.token = token or None

    # -- file selection and upload --

    def select_file(self, source: FileSelection) -> Optional[AudioArtifact]:
        """Choose the file that upload_selected() will send."""
        self._update(error_message="", latest_transcription="")
        try:
            artifact = self._resolve_selection(source)
        except EmptySelection:
            self._fail(NO_FILE_MESSAGE, selected=None)
            return None
        except OSError as e:
            logger.error(f"Could not read selected file {source}: {e}")
            self._fail(f"Could not read {source}: {e.strerror or e}", selected=None)
            return None

        logger.info(f"Selected {artifact.filename} ({artifact.size_bytes} bytes)")
        self._update(selected=artifact)
        return artifact

    @staticmethod
    def _resolve_selection(source: FileSelection) -> AudioArtifact:
        if isinstance(source, AudioArtifact):
            return source
        if source is None or not str(source).strip():
            raise EmptySelection(NO_FILE_MESSAGE)
        return AudioArtifact.from_path(Path(str(source).strip()).expanduser())

    async def upload_selected(self) -> Optional[UploadResult]:
        """Upload the selected file."""
        if self.state.selected is None:
            self._fail(NO_FILE_MESSAGE)
            return None
        return await self._upload(self.state.selected)

    async def _upload(self, artifact: AudioArtifact) -> Optional[UploadResult]:
        if self.state.is_uploading or self.pipeline.in_flight:
            logger.warning(f"Rejected upload of {artifact.filename}: another upload is pending")
            self._fail(UPLOAD_BUSY_MESSAGE)
            return None

        self._update(is_uploading=True, error_message="", latest_transcription="", audio_preview_url=None)
        try:
            try:
                result = await self.pipeline.submit(artifact, self.token)
            except UploadInProgress:
                self._fail(UPLOAD_BUSY_MESSAGE)
                return None
            except TransportError as e:
                logger.error(f"Upload/transcription error: {e}")
                self._fail(describe_error(e))
                return None
            except Exception as e:
                logger.exception(f"Unexpected upload failure: {e}")
                self._fail(describe_error(e))
                return None

            for record in reversed(result.saved):
                self.history.prepend(record)
            preview = result.audio_url or next((r.audio_url for r in result.saved if r.audio_url), None)
            self._update(
                latest_transcription=result.text,
                last_artifact=artifact,
                audio_preview_url=self.client.url_for(preview) if preview else None,
                history=self.history.records,
            )
            await self.refresh_history()
            return result
        finally:
            self._update(is_uploading=False)

    async def refresh_history(self) -> bool:
        """Re-fetch history. On failure the previous history stays visible."""
        self._update(error_message="")
        try:
            records = await self.history.refresh(self.token)
        except TransportError as e:
            logger.error(f"Error fetching history: {e}")
            self._fail(HISTORY_MESSAGE)
            return False
        self._update(history=records)
        return True

    # -- recording --

    async def start_recording(self) -> bool:
        """Start capturing from the microphone.

        Returns:
            True if recording started
        """
        self._update(error_message="", latest_transcription="")
        self._start_task = asyncio.ensure_future(self.controller.start())
        try:
            await self._start_task
        except AlreadyRecording:
            self._fail(ALREADY_RECORDING_MESSAGE)
            return False
        except MicrophoneError as e:
            logger.error(f"Microphone access error: {e}")
            self._fail(MICROPHONE_MESSAGE, is_recording=False)
            return False
        except asyncio.CancelledError:
            if not self._closed:
                raise
            logger.info("Recording start abandoned by shutdown")
            return False
        finally:
            self._start_task = None

        if not self.controller.is_recording:
            return False
        self._update(is_recording=True)
        return True

    async def stop_recording(self) -> Optional[AudioArtifact]:
        """Stop capturing; the recording is uploaded before this returns."""
        try:
            return await self.controller.stop()
        finally:
            if self.state.is_recording:
                self._update(is_recording=False)

    async def _upload_recording(self, artifact: AudioArtifact) -> None:
        self._update(is_recording=False, last_artifact=artifact)
        await self._upload(artifact)

    # -- utilities --

    async def copy(self, text: str) -> bool:
        """Put ``text`` on the system clipboard."""
        self._update(error_message="")
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, pyperclip.copy, text)
        except pyperclip.PyperclipException as e:
            logger.error(f"Copy failed: {e}")
            self._fail(COPY_MESSAGE)
            return False
        logger.info(f"Copied {len(text)} characters to clipboard")
        return True

    async def download(self, artifact: Optional[AudioArtifact] = None,
                       filename: Optional[str] = None) -> Optional[Path]:
        """Save an artifact (default: the one behind the latest transcription)."""
        self._update(error_message="")
        artifact = artifact or self.state.last_artifact
        if artifact is None:
            self._fail(NO_AUDIO_MESSAGE)
            return None

        try:
            return await self.downloads.save(artifact.payload, filename or artifact.filename or "audio.webm")
        except OSError as e:
            logger.error(f"Download failed: {e}")
            self._fail(DOWNLOAD_MESSAGE)
            return None

    async def download_record(self, record: TranscriptionRecord) -> Optional[Path]:
        """Fetch the stored audio of a history record and save it."""
        self._update(error_message="")
        if not record.audio_url:
            self._fail(NO_AUDIO_MESSAGE)
            return None

        stem = Path(record.filename).stem or "audio"
        suffix = Path(record.filename).suffix or ".webm"
        try:
            payload = await self.client.fetch_bytes(record.audio_url, self.token)
            return await self.downloads.save(payload, f"{stem}_{int(time.time() * 1000)}{suffix}")
        except (TransportError, OSError) as e:
            logger.error(f"Download failed: {e}")
            self._fail(DOWNLOAD_MESSAGE)
            return None

    async def download_history_entry(self, position: int) -> Optional[Path]:
        """Download the audio of the history entry shown at ``position`` (1-based)."""
        if not 1 <= position <= len(self.state.history):
            self._fail(NO_ENTRY_MESSAGE)
            return None
        return await self.download_record(self.state.history[position - 1])

    # -- teardown --

    async def close(self) -> None:
        """Release the microphone and every pending resource."""
        self._closed = True
        if self._start_task is not None and not self._start_task.done():
            self._start_task.cancel()
        self.controller.shutdown()
        self.downloads.release_all()
        await self.client.close()
        if self.state.is_recording or self.state.is_uploading:
            self._update(is_recording=False, is_uploading=False)
        logger.info("TranscriberSession closed")
