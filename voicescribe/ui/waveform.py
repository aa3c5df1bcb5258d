"""Terminal waveform renderer for visualization frames."""

import logging
from typing import List, Optional, Tuple

from rich.console import Group, RenderableType
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

from ..audio.visualizer import FrameRenderer
from ..models.state import VisualizationFrame

logger = logging.getLogger(__name__)


BAR_LEVELS = " ▁▂▃▄▅▆▇█"

# Speech rarely exceeds a quarter of full scale.
BAR_GAIN = 4.0


def waveform_points(samples: bytes, width: float, height: float) -> List[Tuple[float, float]]:
    """Points of the waveform line across ``width``.

    Each byte v (128 = silence) maps to y = v / 128 * height / 2, so silence
    sits on the middle line. The line is closed at (width, height / 2).
    """
    if not samples:
        return []
    slice_width = width / len(samples)
    points = [(i * slice_width, (v / 128.0) * height / 2) for i, v in enumerate(samples)]
    points.append((width, height / 2))
    return points


def bar_magnitudes(samples: bytes, bar_count: int = 40) -> List[float]:
    """Magnitude (0..1) of ``bar_count`` evenly spaced samples."""
    if not samples or bar_count <= 0:
        return []
    magnitudes = []
    for i in range(bar_count):
        idx = int(i / bar_count * len(samples))
        magnitudes.append(abs(samples[idx] - 128) / 128.0)
    return magnitudes


class WaveformRenderer(FrameRenderer):
    """Draws the waveform line and magnitude bars with rich."""

    def __init__(self, width: int = 64, height: int = 7, bar_count: int = 40,
                 live: Optional[Live] = None):
        """Initialize the renderer.

        Args:
            width: Columns of the waveform plot
            height: Rows of the waveform plot
            bar_count: Number of magnitude bars
            live: Optional rich Live display updated on every frame
        """
        self.width = width
        self.height = height
        self.bar_count = bar_count
        self.live = live
        self.renderable: RenderableType = Text("")
        self.frames_rendered = 0

    def render(self, frame: VisualizationFrame) -> RenderableType:
        grid = [[" "] * self.width for _ in range(self.height)]
        for x, y in waveform_points(frame.samples, self.width, self.height - 1):
            col = min(int(x), self.width - 1)
            row = min(max(int(round(y)), 0), self.height - 1)
            grid[row][col] = "•"
        wave = Text("\n".join("".join(row) for row in grid), style="blue")

        bars = Text()
        for i, magnitude in enumerate(bar_magnitudes(frame.samples, self.bar_count)):
            level = BAR_LEVELS[min(int(magnitude * BAR_GAIN * (len(BAR_LEVELS) - 1)), len(BAR_LEVELS) - 1)]
            bars.append(level, style="magenta" if i % 2 else "red")

        return Panel(Group(wave, bars), title="🎙️  Recording", border_style="red")

    def draw(self, frame: VisualizationFrame) -> None:
        self.renderable = self.render(frame)
        self.frames_rendered += 1
        if self.live is not None:
            self.live.update(self.renderable)

    def clear(self) -> None:
        self.renderable = Text("")
        if self.live is not None:
            self.live.update(self.renderable)
