"""Data models for the VoiceScribe application."""

from .artifact import AudioArtifact
from .events import AudioEvent
from .records import TranscriptionRecord, UploadResult
from .state import RecorderState, SessionState, VisualizationFrame

__all__ = [
    "AudioArtifact",
    "AudioEvent",
    "TranscriptionRecord",
    "UploadResult",
    "RecorderState",
    "SessionState",
    "VisualizationFrame",
]
