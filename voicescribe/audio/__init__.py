"""Audio capture, recording and visualization module."""

from .analyser import StreamAnalyser
from .capture import AudioStream, MediaCapture
from .recorder import ChunkRecorder, build_recording_artifact
from .visualizer import FrameRenderer, NullRenderer, VisualizationLoop

__all__ = [
    'AudioStream',
    'MediaCapture',
    'ChunkRecorder',
    'build_recording_artifact',
    'StreamAnalyser',
    'FrameRenderer',
    'NullRenderer',
    'VisualizationLoop',
]
