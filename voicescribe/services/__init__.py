"""Services layer for VoiceScribe application logic."""

from .history_store import HistoryStore
from .recording_controller import RecordingController
from .transcriber_session import TranscriberSession
from .upload_pipeline import UploadPipeline, describe_error, normalize_transcription

__all__ = [
    "HistoryStore",
    "RecordingController",
    "TranscriberSession",
    "UploadPipeline",
    "describe_error",
    "normalize_transcription",
]
