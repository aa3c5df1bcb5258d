"""Audio artifact handed from selection or recording to the upload pipeline."""

import mimetypes
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Union


DEFAULT_MIME_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class AudioArtifact:
    """Binary audio payload with the metadata needed to upload it."""
    payload: bytes
    mime_type: str
    filename: str
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def size_bytes(self) -> int:
        return len(self.payload)

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "AudioArtifact":
        """Read a user-selected file into an artifact.

        Args:
            path: Path to an audio file on disk

        Returns:
            AudioArtifact with MIME type guessed from the file extension
        """
        file_path = Path(path)
        mime_type, _ = mimetypes.guess_type(file_path.name)
        return cls(
            payload=file_path.read_bytes(),
            mime_type=mime_type or DEFAULT_MIME_TYPE,
            filename=file_path.name,
        )
