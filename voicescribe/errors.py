"""Exception types raised by the capture, upload and history layers."""

from typing import Optional


class VoiceScribeError(Exception):
    """Base class for all VoiceScribe errors."""


class MicrophoneError(VoiceScribeError):
    """The microphone could not be acquired."""


class PermissionDenied(MicrophoneError):
    """The platform refused access to the microphone."""


class DeviceUnavailable(MicrophoneError):
    """No usable input device is present."""


class AlreadyRecording(VoiceScribeError):
    """start() was called while a capture session is active or pending."""


class TransportError(VoiceScribeError):
    """Base class for errors talking to the transcription backend."""


class NetworkError(TransportError):
    """The backend could not be reached or the request timed out."""


class ServerError(TransportError):
    """The backend answered with a non-2xx status.

    Attributes:
        status: HTTP status code
        message: Message supplied by the server, if any
    """

    def __init__(self, status: int, message: Optional[str] = None):
        self.status = status
        self.message = message
        super().__init__(f"Server error {status}: {message or 'no message'}")


class UploadInProgress(VoiceScribeError):
    """A second upload was attempted while one is still pending."""


class EmptySelection(VoiceScribeError):
    """A user action needed a file but none was chosen."""
