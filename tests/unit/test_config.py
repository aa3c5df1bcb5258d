"""Unit tests for VoiceScribeConfig."""

from pathlib import Path

import pytest

from voicescribe.config import DEFAULTS, VoiceScribeConfig


def write_config(directory: str, text: str) -> str:
    path = Path(directory) / "voicescribe.yaml"
    path.write_text(text, encoding="utf-8")
    return str(path)


@pytest.mark.unit
class TestVoiceScribeConfig:

    def test_defaults_without_file(self):
        config = VoiceScribeConfig()

        assert config.get('backend.base_url') == DEFAULTS['backend']['base_url']
        assert config.get('backend.upload_timeout_seconds') == 120.0
        assert config.get('visualization.fft_size') == 2048
        assert config.get('downloads.release_delay_seconds') == 1.0

    def test_defaults_are_not_shared(self):
        VoiceScribeConfig().set('audio.sample_rate', 8000)

        assert VoiceScribeConfig().get('audio.sample_rate') == 16000

    def test_file_merged_over_defaults(self, temp_data_dir):
        path = write_config(temp_data_dir, "backend:\n  base_url: https://scribe.example.com/\naudio:\n  chunk_size: 512\n")

        config = VoiceScribeConfig(path)

        assert config.get_backend_url() == "https://scribe.example.com"
        assert config.get('audio.chunk_size') == 512
        assert config.get('audio.sample_rate') == 16000

    def test_relative_paths_resolved_against_file(self, temp_data_dir):
        path = write_config(temp_data_dir, "downloads:\n  directory: saved\nlogging:\n  file_path: logs/app.log\n")

        config = VoiceScribeConfig(path)

        assert config.get('downloads.directory') == str(Path(temp_data_dir) / "saved")
        assert config.get('logging.file_path') == str(Path(temp_data_dir) / "logs" / "app.log")
        assert Path(config.get_download_directory()).is_absolute()

    def test_missing_file(self, temp_data_dir):
        with pytest.raises(FileNotFoundError):
            VoiceScribeConfig(str(Path(temp_data_dir) / "nope.yaml"))

    @pytest.mark.parametrize("text", ["", "backend: [unclosed", "- just\n- a list\n"])
    def test_invalid_files(self, temp_data_dir, text):
        with pytest.raises(ValueError):
            VoiceScribeConfig(write_config(temp_data_dir, text))

    def test_get_and_set(self):
        config = VoiceScribeConfig()

        assert config.get('does.not.exist', 'fallback') == 'fallback'
        config.set('backend.base_url', 'http://10.0.0.2:8000')
        config.set('extra.nested.key', 3)

        assert config.get_backend_url() == 'http://10.0.0.2:8000'
        assert config.get('extra.nested.key') == 3

    def test_empty_backend_url(self):
        config = VoiceScribeConfig()
        config.set('backend.base_url', '')

        with pytest.raises(ValueError):
            config.get_backend_url()
