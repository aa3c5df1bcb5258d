"""Pytest configuration and fixtures for VoiceScribe tests."""

import asyncio
import itertools
import logging
import tempfile
import time
import wave
from pathlib import Path
from typing import Any, Dict, List, Optional
from unittest.mock import Mock, patch

import numpy as np
import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from voicescribe.api.client import BackendClient


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without network or audio hardware")
    config.addinivalue_line("markers", "integration: tests wiring several components together")


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def sample_audio_chunk():
    """Generate a sample audio chunk for testing."""
    # Generate 1024 samples of 16-bit audio (sine wave)
    sample_rate = 16000
    duration = 1024 / sample_rate  # ~0.064 seconds
    freq = 440  # A4 note

    t = np.linspace(0, duration, 1024, False)
    wave_data = np.sin(2 * np.pi * freq * t)

    # Convert to 16-bit integers
    audio_data = (wave_data * 32767).astype(np.int16)
    return audio_data.tobytes()


@pytest.fixture
def mock_pyaudio(sample_audio_chunk):
    """Mock PyAudio for testing without actual audio hardware.

    ``feed['chunk']`` is what every stream read returns; set it to b"" to
    simulate a microphone that delivers nothing.
    """
    feed = {'chunk': sample_audio_chunk, 'delay': 0.005}

    def read(num_frames, exception_on_overflow=True):
        time.sleep(feed['delay'])
        return feed['chunk']

    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = Mock()

        # Configure mock stream
        mock_stream.read.side_effect = read
        mock_stream.stop_stream.return_value = None
        mock_stream.close.return_value = None

        # Configure mock PyAudio instance
        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_instance.terminate.return_value = None
        mock_pyaudio_instance.get_sample_size.return_value = 2
        mock_pyaudio_instance.get_default_input_device_info.return_value = {'name': 'Mock Microphone'}

        # Configure mock PyAudio class
        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream,
            'feed': feed,
        }


@pytest.fixture
def sample_audio_file(temp_data_dir, sample_audio_chunk):
    """Create a sample WAV file for testing."""
    file_path = Path(temp_data_dir) / "test_audio.wav"

    with wave.open(str(file_path), 'wb') as wf:
        wf.setnchannels(1)  # Mono
        wf.setsampwidth(2)  # 16-bit
        wf.setframerate(16000)  # 16kHz
        for _ in range(10):
            wf.writeframes(sample_audio_chunk)

    return str(file_path)


class FakeBackend:
    """In-process stand-in for the transcription server.

    Uploads are stored and echoed back as saved records; history returns
    what has been uploaded so far, newest first. Every attribute below can
    be changed by a test to script a failure.
    """

    def __init__(self):
        self.base_url = ""
        self.transcription = "hello"
        self.upload_status = 200
        self.upload_body: Any = None   # overrides the normal upload answer when set
        self.upload_delay = 0.0
        self.history_status = 200
        self.history_error_body: Any = {"error": "History unavailable"}
        self.history_body: Any = None  # overrides the stored history when set
        self.history: List[Dict[str, Any]] = []
        self.audio: Dict[str, bytes] = {}
        self.uploads: List[Dict[str, Any]] = []
        self.history_requests: List[Optional[str]] = []
        self._ids = itertools.count(1)

    def make_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/upload", self.handle_upload)
        app.router.add_get("/history", self.handle_history)
        app.router.add_get("/audio/{record_id}", self.handle_audio)
        return app

    @staticmethod
    def respond(status: int, body: Any) -> web.Response:
        if body is None:
            return web.Response(status=status)
        if isinstance(body, bytes):
            return web.Response(status=status, body=body, content_type="text/plain")
        if isinstance(body, str):
            return web.Response(status=status, text=body)
        return web.json_response(body, status=status)

    async def handle_upload(self, request: web.Request) -> web.Response:
        form = await request.post()
        field = form["audio"]
        payload = field.file.read()
        self.uploads.append({
            "authorization": request.headers.get("Authorization"),
            "filename": field.filename,
            "content_type": field.content_type,
            "payload": payload,
        })
        if self.upload_delay:
            await asyncio.sleep(self.upload_delay)
        if self.upload_body is not None or self.upload_status >= 400:
            return self.respond(self.upload_status, self.upload_body)

        record_id = str(next(self._ids))
        record = {
            "id": record_id,
            "filename": field.filename,
            "transcription": self.transcription,
            "created_at": "2024-01-01T12:00:00",
            "audio_url": f"/audio/{record_id}",
        }
        self.audio[record_id] = payload
        self.history.insert(0, record)
        return web.json_response({"text": self.transcription, "saved": record})

    async def handle_history(self, request: web.Request) -> web.Response:
        self.history_requests.append(request.headers.get("Authorization"))
        if self.history_status >= 400:
            return self.respond(self.history_status, self.history_error_body)
        if self.history_body is not None:
            return self.respond(200, self.history_body)
        return web.json_response(self.history)

    async def handle_audio(self, request: web.Request) -> web.Response:
        payload = self.audio.get(request.match_info["record_id"])
        if payload is None:
            return web.json_response({"error": "Not found"}, status=404)
        return web.Response(body=payload, content_type="audio/wav")


@pytest_asyncio.fixture
async def backend():
    """Fake transcription server listening on a local port."""
    fake = FakeBackend()
    server = TestServer(fake.make_app())
    await server.start_server()
    fake.base_url = str(server.make_url("/")).rstrip("/")
    yield fake
    await server.close()


@pytest_asyncio.fixture
async def backend_client(backend):
    """BackendClient bound to the fake server."""
    client = BackendClient(backend.base_url, request_timeout=5.0)
    yield client
    await client.close()


@pytest.fixture
def unreachable_url():
    """Base URL nothing listens on."""
    return "http://127.0.0.1:1"


class RecordingRenderer:
    """FrameRenderer double that keeps what it was asked to draw."""

    def __init__(self):
        self.frames = []
        self.clears = 0

    def draw(self, frame):
        self.frames.append(frame)

    def clear(self):
        self.clears += 1


@pytest.fixture
def recording_renderer():
    return RecordingRenderer()


@pytest.fixture
def state_listener():
    """Collects SessionState snapshots published on ``session.state``."""
    from pubsub import pub

    class Listener:
        def __init__(self):
            self.states = []

        def on_state(self, state):
            self.states.append(state)

    listener = Listener()
    pub.subscribe(listener.on_state, "session.state")
    yield listener
    pub.unsubscribe(listener.on_state, "session.state")
