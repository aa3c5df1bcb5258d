"""VoiceScribe - record or upload audio and get transcriptions."""

__version__ = "0.1.0"
