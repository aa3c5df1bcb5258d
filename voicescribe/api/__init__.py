"""HTTP access to the transcription backend."""

from .client import BackendClient

__all__ = ["BackendClient"]
