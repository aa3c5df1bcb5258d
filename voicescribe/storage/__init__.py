"""Local file storage for downloaded audio."""

from .downloads import DownloadManager

__all__ = ["DownloadManager"]
