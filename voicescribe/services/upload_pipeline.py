"""Upload pipeline: submit audio to the backend and normalize its answer."""

import logging
from typing import Any, Optional

import aiohttp

from ..api.client import BackendClient
from ..errors import NetworkError, ServerError, UploadInProgress
from ..models.artifact import AudioArtifact
from ..models.records import TranscriptionRecord, UploadResult

logger = logging.getLogger(__name__)


UPLOAD_FIELD_NAME = "audio"

# Fields that may carry the transcription, highest priority first.
TRANSCRIPTION_FIELDS = ("text", "message", "transcription")

UPLOAD_FALLBACK_MESSAGE = "Upload failed. Check the server logs."


def normalize_transcription(payload: Any) -> str:
    """Pick the transcription text out of an upload response.

    Checks ``text``, then ``message``, then ``transcription`` and returns the
    first one present. Returns an empty string if none is present or the
    payload is not an object.
    """
    if not isinstance(payload, dict):
        return ""
    for key in TRANSCRIPTION_FIELDS:
        value = payload.get(key)
        if value is not None:
            return str(value)
    return ""


def parse_upload_response(payload: Any) -> UploadResult:
    """Turn the decoded upload response into an UploadResult."""
    saved = []
    audio_url = None
    if isinstance(payload, dict):
        raw_saved = payload.get("saved") or []
        if isinstance(raw_saved, dict):
            raw_saved = [raw_saved]
        saved = [TranscriptionRecord.from_json(item) for item in raw_saved if isinstance(item, dict)]
        audio_url = payload.get("audio_url")

    return UploadResult(text=normalize_transcription(payload), saved=saved, audio_url=audio_url)


def describe_error(error: BaseException) -> str:
    """User-facing message for a failed upload.

    Prefers the message the server sent, then the transport error text,
    then a static fallback.
    """
    if isinstance(error, ServerError) and error.message:
        return error.message
    if isinstance(error, NetworkError) and str(error):
        return str(error)
    if isinstance(error, ServerError):
        return f"Request failed with status code {error.status}"
    return UPLOAD_FALLBACK_MESSAGE


class UploadPipeline:
    """Submits one artifact at a time to ``POST /upload``."""

    def __init__(self, client: BackendClient, upload_path: str = "/upload",
                 timeout: float = 120.0):
        """Initialize the pipeline.

        Args:
            client: Backend HTTP client
            upload_path: Path of the upload endpoint
            timeout: Upper bound for one upload in seconds
        """
        self.client = client
        self.upload_path = upload_path
        self.timeout = timeout
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @staticmethod
    def build_form(artifact: AudioArtifact) -> aiohttp.FormData:
        form = aiohttp.FormData()
        form.add_field(
            UPLOAD_FIELD_NAME,
            artifact.payload,
            filename=artifact.filename,
            content_type=artifact.mime_type,
        )
        return form

    async def submit(self, artifact: AudioArtifact, token: Optional[str] = None) -> UploadResult:
        """Upload ``artifact`` and return the normalized result.

        Raises:
            UploadInProgress: Another submit has not finished yet
            NetworkError: Backend unreachable or timeout exceeded
            ServerError: Backend answered with an error status
        """
        if self._in_flight:
            raise UploadInProgress("An upload is already in progress")

        self._in_flight = True
        try:
            logger.info(f"Uploading {artifact.filename} ({artifact.size_bytes} bytes, {artifact.mime_type})")
            payload = await self.client.request_json(
                "POST",
                self.upload_path,
                token=token,
                timeout=self.timeout,
                data=self.build_form(artifact),
            )
        finally:
            self._in_flight = False

        result = parse_upload_response(payload)
        logger.info(f"Upload of {artifact.filename} transcribed: {len(result.text)} characters, "
                    f"{len(result.saved)} saved records")
        return result
