"""Terminal presentation layer."""

from .keyboard_input import KeyReader
from .session_screen import SessionScreen, render_history_table
from .waveform import WaveformRenderer, bar_magnitudes, waveform_points

__all__ = [
    'KeyReader',
    'SessionScreen',
    'render_history_table',
    'WaveformRenderer',
    'bar_magnitudes',
    'waveform_points',
]
