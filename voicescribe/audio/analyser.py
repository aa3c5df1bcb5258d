"""Rolling analysis window fed by capture events, read by the visualizer."""

import logging
import threading

import numpy as np

from ..models.events import AudioEvent

logger = logging.getLogger(__name__)


class StreamAnalyser:
    """Keeps the most recent ``fft_size`` samples of the live stream.

    Mirrors a Web Audio AnalyserNode: the time-domain buffer is unsigned
    bytes centred on 128, the frequency buffer maps decibels in
    [min_decibels, max_decibels] onto 0..255. Both have ``bin_count``
    entries. Only the latest window is kept.
    """

    def __init__(self, fft_size: int = 2048, min_decibels: float = -100.0,
                 max_decibels: float = -30.0):
        """Initialize the analyser.

        Args:
            fft_size: Analysis window size in samples, a power of two
            min_decibels: Level mapped to byte 0 in the frequency buffer
            max_decibels: Level mapped to byte 255 in the frequency buffer
        """
        if fft_size < 32 or fft_size & (fft_size - 1):
            raise ValueError(f"fft_size must be a power of two >= 32, got {fft_size}")

        self.fft_size = fft_size
        self.bin_count = fft_size // 2
        self.min_decibels = min_decibels
        self.max_decibels = max_decibels

        self.window = np.zeros(fft_size, dtype=np.float32)
        self.lock = threading.Lock()
        self.total_samples = 0
        self._blackman = np.blackman(fft_size).astype(np.float32)

    def on_audio_event(self, event: AudioEvent) -> None:
        """Pub/sub listener: push new samples into the window."""
        if not event.audio_data:
            return
        samples = np.frombuffer(event.audio_data, dtype=np.int16)
        if event.channels > 1:
            samples = samples.reshape(-1, event.channels).mean(axis=1)
        self.add_samples(samples.astype(np.float32) / 32768.0)

    def add_samples(self, samples: np.ndarray) -> None:
        """Append normalized samples (-1..1), dropping the oldest."""
        if samples.size == 0:
            return
        with self.lock:
            if samples.size >= self.fft_size:
                self.window[:] = samples[-self.fft_size:]
            else:
                self.window = np.roll(self.window, -samples.size)
                self.window[-samples.size:] = samples
            self.total_samples += int(samples.size)

    def time_domain_bytes(self) -> bytes:
        """Latest ``bin_count`` samples as unsigned bytes centred on 128."""
        with self.lock:
            latest = self.window[-self.bin_count:].copy()
        scaled = np.clip(128.0 + latest * 128.0, 0, 255)
        return scaled.astype(np.uint8).tobytes()

    def frequency_bytes(self) -> bytes:
        """Magnitude spectrum of the window as ``bin_count`` bytes."""
        with self.lock:
            windowed = self.window * self._blackman
        spectrum = np.abs(np.fft.rfft(windowed))[:self.bin_count] / self.fft_size
        decibels = 20.0 * np.log10(np.maximum(spectrum, 1e-12))
        span = self.max_decibels - self.min_decibels
        scaled = np.clip((decibels - self.min_decibels) / span * 255.0, 0, 255)
        return scaled.astype(np.uint8).tobytes()

    def clear(self) -> None:
        """Reset the window to silence."""
        with self.lock:
            self.window[:] = 0.0
            self.total_samples = 0
        logger.debug("Analyser window cleared")
