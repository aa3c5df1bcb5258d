"""Unit tests for StreamAnalyser and VisualizationLoop."""

import asyncio
import time

import numpy as np
import pytest

from voicescribe.audio.analyser import StreamAnalyser
from voicescribe.audio.visualizer import VisualizationLoop
from voicescribe.models.events import AudioEvent


def make_event(samples: np.ndarray, channels: int = 1) -> AudioEvent:
    return AudioEvent(
        chunk_id="chunk_1",
        audio_data=samples.astype(np.int16).tobytes(),
        timestamp=time.time(),
        sequence_number=1,
        channels=channels,
    )


@pytest.mark.unit
class TestStreamAnalyser:

    def test_initialization(self):
        analyser = StreamAnalyser()

        assert analyser.fft_size == 2048
        assert analyser.bin_count == 1024
        assert len(analyser.time_domain_bytes()) == 1024
        assert len(analyser.frequency_bytes()) == 1024

    @pytest.mark.parametrize("fft_size", [0, 16, 1000, 3000])
    def test_invalid_fft_size(self, fft_size):
        with pytest.raises(ValueError):
            StreamAnalyser(fft_size)

    def test_silence_is_centred(self):
        analyser = StreamAnalyser(256)

        assert set(analyser.time_domain_bytes()) == {128}
        assert set(analyser.frequency_bytes()) == {0}

    def test_time_domain_scaling(self):
        analyser = StreamAnalyser(256)
        analyser.add_samples(np.full(256, 0.5, dtype=np.float32))

        assert set(analyser.time_domain_bytes()) == {192}

        analyser.add_samples(np.full(256, -1.0, dtype=np.float32))
        assert set(analyser.time_domain_bytes()) == {0}

    def test_window_keeps_latest_samples(self):
        analyser = StreamAnalyser(64)
        analyser.add_samples(np.full(64, 0.5, dtype=np.float32))
        analyser.add_samples(np.zeros(16, dtype=np.float32))

        samples = analyser.time_domain_bytes()
        assert len(samples) == 32
        assert samples[:16] == bytes([192] * 16)
        assert samples[16:] == bytes([128] * 16)
        assert analyser.total_samples == 80

    def test_audio_event_decoding(self):
        analyser = StreamAnalyser(64)
        analyser.on_audio_event(make_event(np.full(64, 16384)))

        assert set(analyser.time_domain_bytes()) == {192}

    def test_stereo_event_is_averaged(self):
        analyser = StreamAnalyser(64)
        interleaved = np.tile([16384, 0], 64)
        analyser.on_audio_event(make_event(interleaved, channels=2))

        assert set(analyser.time_domain_bytes()) == {160}

    def test_frequency_peak(self):
        sample_rate = 16000
        analyser = StreamAnalyser(2048)
        t = np.arange(2048) / sample_rate
        analyser.add_samples((0.5 * np.sin(2 * np.pi * 1000 * t)).astype(np.float32))

        magnitudes = np.frombuffer(analyser.frequency_bytes(), dtype=np.uint8)
        expected_bin = round(1000 * 2048 / sample_rate)
        assert abs(int(np.argmax(magnitudes)) - expected_bin) <= 1
        assert magnitudes.max() > 200

    def test_clear(self):
        analyser = StreamAnalyser(64)
        analyser.add_samples(np.ones(64, dtype=np.float32))
        analyser.clear()

        assert set(analyser.time_domain_bytes()) == {128}
        assert analyser.total_samples == 0


@pytest.mark.unit
class TestVisualizationLoop:

    def test_invalid_fps(self):
        with pytest.raises(ValueError):
            VisualizationLoop(fps=0)

    @pytest.mark.asyncio
    async def test_draws_frames_of_bin_count(self, recording_renderer):
        loop = VisualizationLoop(recording_renderer, fps=200)
        loop.start(StreamAnalyser(256))

        await asyncio.sleep(0.05)
        loop.stop()

        assert len(recording_renderer.frames) >= 2
        frame = recording_renderer.frames[0]
        assert len(frame.samples) == 128
        assert len(frame.magnitudes) == 128

    @pytest.mark.asyncio
    async def test_at_most_one_pending_frame(self, recording_renderer):
        loop = VisualizationLoop(recording_renderer, fps=100)
        analyser = StreamAnalyser(256)

        for _ in range(5):
            loop.start(analyser)
            assert loop.pending_frames == 1
        await asyncio.sleep(0)
        assert loop.pending_frames == 1
        loop.stop()
        assert loop.pending_frames == 0

        loop.start(analyser)
        loop.stop()
        loop.stop()
        assert loop.pending_frames == 0

        loop.start(analyser)
        await asyncio.sleep(0.03)
        assert loop.pending_frames == 1
        loop.start(analyser)
        assert loop.pending_frames == 1
        loop.stop()
        assert loop.pending_frames == 0

    @pytest.mark.asyncio
    async def test_restart_does_not_double_the_rate(self, recording_renderer):
        loop = VisualizationLoop(recording_renderer, fps=20)
        analyser = StreamAnalyser(256)
        for _ in range(10):
            loop.start(analyser)

        await asyncio.sleep(0.12)
        loop.stop()

        # one immediate frame plus about two more at 20 fps
        assert 1 <= len(recording_renderer.frames) <= 5

    @pytest.mark.asyncio
    async def test_stop_clears_and_halts(self, recording_renderer):
        loop = VisualizationLoop(recording_renderer, fps=100)
        loop.start(StreamAnalyser(256))
        await asyncio.sleep(0.03)

        loop.stop()
        drawn = len(recording_renderer.frames)
        await asyncio.sleep(0.05)

        assert recording_renderer.clears == 1
        assert len(recording_renderer.frames) == drawn
        assert loop.is_running is False

    @pytest.mark.asyncio
    async def test_stop_before_first_tick(self, recording_renderer):
        loop = VisualizationLoop(recording_renderer)
        loop.start(StreamAnalyser(256))
        loop.stop()

        await asyncio.sleep(0.01)
        assert recording_renderer.frames == []
