"""Client-side cache of past transcriptions."""

import logging
from typing import Any, List, Optional

from ..api.client import BackendClient
from ..errors import ServerError
from ..models.records import TranscriptionRecord

logger = logging.getLogger(__name__)


class HistoryStore:
    """Mirrors the server's history, newest first as the server orders it.

    ``refresh`` replaces the whole cache; a failed refresh leaves it as it was.
    """

    def __init__(self, client: BackendClient, history_path: str = "/history"):
        """Initialize the store.

        Args:
            client: Backend HTTP client
            history_path: ``/history`` or ``/transcriptions``
        """
        self.client = client
        self.history_path = history_path
        self._records: List[TranscriptionRecord] = []

    @property
    def records(self) -> List[TranscriptionRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    async def refresh(self, token: Optional[str] = None) -> List[TranscriptionRecord]:
        """Re-fetch the full history.

        Raises:
            NetworkError: Backend unreachable
            ServerError: Error status or a body that is not a list
        """
        payload = await self.client.request_json("GET", self.history_path, token=token)
        records = self._parse(payload)
        self._records = records
        logger.info(f"History refreshed: {len(records)} records")
        return list(records)

    @staticmethod
    def _parse(payload: Any) -> List[TranscriptionRecord]:
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise ServerError(200, "History response is not a list")
        return [TranscriptionRecord.from_json(item) for item in payload if isinstance(item, dict)]

    def prepend(self, record: TranscriptionRecord) -> None:
        """Show a just-saved record before the next refresh confirms it."""
        if record.id is not None:
            self._records = [r for r in self._records if r.id != record.id]
        self._records.insert(0, record)
        logger.debug(f"Prepended record {record.id} ({record.filename})")
