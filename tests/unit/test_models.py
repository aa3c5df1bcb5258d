"""Unit tests for the data models."""

import dataclasses
from pathlib import Path

import pytest

from voicescribe.errors import ServerError
from voicescribe.models.artifact import AudioArtifact
from voicescribe.models.events import AudioEvent
from voicescribe.models.records import TranscriptionRecord


@pytest.mark.unit
class TestModels:

    def test_artifact_from_path(self, sample_audio_file):
        artifact = AudioArtifact.from_path(sample_audio_file)

        assert artifact.filename == "test_audio.wav"
        assert artifact.mime_type in ("audio/wav", "audio/x-wav")
        assert artifact.size_bytes == Path(sample_audio_file).stat().st_size

    def test_artifact_unknown_extension(self, temp_data_dir):
        path = Path(temp_data_dir) / "voice.unknownext"
        path.write_bytes(b"data")

        assert AudioArtifact.from_path(path).mime_type == "application/octet-stream"

    def test_artifact_is_immutable(self):
        artifact = AudioArtifact(payload=b"x", mime_type="audio/webm", filename="a.webm")

        with pytest.raises(dataclasses.FrozenInstanceError):
            artifact.payload = b"y"

    @pytest.mark.parametrize("field", ["transcription", "transcription_text", "text"])
    def test_record_text_fields(self, field):
        record = TranscriptionRecord.from_json({"id": 3, "filename": "a.wav", field: "words"})

        assert record.text == "words"
        assert record.id == "3"

    def test_record_defaults(self):
        record = TranscriptionRecord.from_json({})

        assert record.id is None
        assert record.filename == ""
        assert record.text == ""
        assert record.audio_url is None

    def test_audio_event_duration(self, sample_audio_chunk):
        event = AudioEvent(chunk_id="chunk_1", audio_data=sample_audio_chunk, timestamp=0.0,
                           sequence_number=1)

        assert event.chunk_duration_ms == 64
        assert event.final is False

    def test_server_error_text(self):
        error = ServerError(404)

        assert error.status == 404
        assert error.message is None
        assert str(error) == "Server error 404: no message"
