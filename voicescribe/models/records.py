"""Transcription records and upload results returned by the backend."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class TranscriptionRecord:
    """A past transcription as stored by the server."""
    id: Optional[str]
    filename: str
    text: str
    created_at: Optional[str] = None
    audio_url: Optional[str] = None

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "TranscriptionRecord":
        """Build a record from one item of the history response.

        The server has shipped the text under ``transcription``,
        ``transcription_text`` and ``text``; the first present one is used.
        """
        text = ""
        for key in ("transcription", "transcription_text", "text"):
            if data.get(key) is not None:
                text = str(data[key])
                break

        record_id = data.get("id")
        return cls(
            id=str(record_id) if record_id is not None else None,
            filename=str(data.get("filename") or ""),
            text=text,
            created_at=data.get("created_at"),
            audio_url=data.get("audio_url") or data.get("url"),
        )


@dataclass
class UploadResult:
    """Normalized response of a successful upload."""
    text: str
    saved: List[TranscriptionRecord] = field(default_factory=list)
    audio_url: Optional[str] = None
