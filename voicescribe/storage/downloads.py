"""Saving audio to disk through short-lived local references."""

import asyncio
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class DownloadManager:
    """Writes payloads to a transient file, copies them into the download
    directory and revokes the transient file shortly afterwards."""

    def __init__(self, download_dir: str = "./downloads", release_delay: float = 1.0):
        """Initialize download manager.

        Args:
            download_dir: Directory receiving downloaded files
            release_delay: Seconds before a transient reference is revoked
        """
        self.download_dir = Path(download_dir)
        self.release_delay = release_delay
        self._pending: Dict[Path, asyncio.TimerHandle] = {}

    @property
    def pending_references(self) -> int:
        return len(self._pending)

    def create_reference(self, payload: bytes, suffix: str = "") -> Path:
        """Write ``payload`` to a transient file and return its path."""
        fd, name = tempfile.mkstemp(prefix="voicescribe_", suffix=suffix)
        with os.fdopen(fd, "wb") as f:
            f.write(payload)
        return Path(name)

    def revoke(self, reference: Path) -> None:
        """Delete a transient file. Safe to call more than once."""
        handle = self._pending.pop(reference, None)
        if handle is not None:
            handle.cancel()
        try:
            reference.unlink()
        except FileNotFoundError:
            return
        logger.debug(f"Revoked transient reference {reference}")

    def _unique_target(self, filename: str) -> Path:
        name = Path(filename).name
        target = self.download_dir / name
        stem, suffix = Path(name).stem, Path(name).suffix
        counter = 1
        while target.exists():
            target = self.download_dir / f"{stem} ({counter}){suffix}"
            counter += 1
        return target

    async def save(self, payload: bytes, filename: str) -> Path:
        """Save ``payload`` as ``filename`` in the download directory.

        Returns:
            Path of the saved file
        """
        loop = asyncio.get_running_loop()
        reference = await loop.run_in_executor(
            None, self.create_reference, payload, Path(filename).suffix)
        self._pending[reference] = loop.call_later(self.release_delay, self.revoke, reference)

        self.download_dir.mkdir(parents=True, exist_ok=True)
        target = self._unique_target(filename)
        await loop.run_in_executor(None, shutil.copyfile, reference, target)
        logger.info(f"Downloaded {len(payload)} bytes to {target}")
        return target

    def release_all(self) -> None:
        """Revoke every outstanding reference (used on shutdown)."""
        for reference in list(self._pending):
            self.revoke(reference)
