"""State models for the recorder and the transcriber session."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .artifact import AudioArtifact
from .records import TranscriptionRecord


class RecorderState(Enum):
    """Lifecycle of the recording state machine."""
    IDLE = "idle"
    RECORDING = "recording"
    FINALIZING = "finalizing"


@dataclass
class VisualizationFrame:
    """Snapshot of the analyser for one animation tick."""
    samples: bytes     # time-domain, unsigned bytes centred on 128
    magnitudes: bytes  # frequency-domain, 0..255


@dataclass
class SessionState:
    """Observable state rendered by the presentation layer."""
    is_recording: bool = False
    is_uploading: bool = False
    latest_transcription: str = ""
    error_message: str = ""
    history: List[TranscriptionRecord] = field(default_factory=list)
    selected: Optional[AudioArtifact] = None
    last_artifact: Optional[AudioArtifact] = None
    audio_preview_url: Optional[str] = None
