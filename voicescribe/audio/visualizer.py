"""Frame-paced visualization loop driven by the live analyser."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

from ..models.state import VisualizationFrame
from .analyser import StreamAnalyser

logger = logging.getLogger(__name__)


class FrameRenderer(ABC):
    """Draws visualization frames. Implementations live in the UI layer."""

    @abstractmethod
    def draw(self, frame: VisualizationFrame) -> None:
        """Render one frame, replacing whatever was drawn before."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove any rendered output."""
        pass


class NullRenderer(FrameRenderer):
    """Renderer used when nothing is displayed (headless runs)."""

    def draw(self, frame: VisualizationFrame) -> None:
        pass

    def clear(self) -> None:
        pass


class VisualizationLoop:
    """Cooperative sampling loop running on the asyncio event loop.

    One tick per frame: read the analyser, render, schedule the next tick.
    At most one tick is pending at any time.
    """

    def __init__(self, renderer: Optional[FrameRenderer] = None, fps: float = 30.0):
        """Initialize the loop.

        Args:
            renderer: Target for rendered frames
            fps: Frames per second
        """
        if fps <= 0:
            raise ValueError(f"fps must be positive, got {fps}")
        self.renderer = renderer or NullRenderer()
        self.frame_interval = 1.0 / fps
        self.frames_drawn = 0

        self._analyser: Optional[StreamAnalyser] = None
        self._handle: Optional[asyncio.Handle] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def is_running(self) -> bool:
        return self._analyser is not None

    @property
    def pending_frames(self) -> int:
        """Number of scheduled ticks, always 0 or 1."""
        return 0 if self._handle is None else 1

    def start(self, analyser: StreamAnalyser) -> None:
        """Begin sampling ``analyser``. Must be called from the event loop."""
        self._cancel_pending()
        self._loop = asyncio.get_running_loop()
        self._analyser = analyser
        self.frames_drawn = 0
        self._handle = self._loop.call_soon(self._tick)
        logger.debug(f"Visualization started at {1.0 / self.frame_interval:.0f} fps")

    def _tick(self) -> None:
        self._handle = None
        analyser = self._analyser
        if analyser is None:
            return

        frame = VisualizationFrame(
            samples=analyser.time_domain_bytes(),
            magnitudes=analyser.frequency_bytes(),
        )
        self.renderer.draw(frame)
        self.frames_drawn += 1
        self._handle = self._loop.call_later(self.frame_interval, self._tick)

    def _cancel_pending(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def stop(self) -> None:
        """Cancel the pending tick and clear the rendered output."""
        was_running = self._analyser is not None
        self._cancel_pending()
        self._analyser = None
        self.renderer.clear()
        if was_running:
            logger.debug(f"Visualization stopped after {self.frames_drawn} frames")
