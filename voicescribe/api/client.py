"""Asynchronous HTTP client for the transcription backend."""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

import aiohttp

from ..errors import NetworkError, ServerError

logger = logging.getLogger(__name__)


SERVER_MESSAGE_FIELDS = ("error", "message", "detail")


class BackendClient:
    """Thin wrapper around an aiohttp session bound to one backend.

    Every failure is raised as NetworkError (no connectivity, timeout) or
    ServerError (non-2xx answer), never as a raw aiohttp exception.
    """

    def __init__(self, base_url: str, request_timeout: float = 30.0):
        """Initialize the client.

        Args:
            base_url: Backend root, e.g. ``https://example.com``
            request_timeout: Default total timeout per request in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.request_timeout = request_timeout
        self._session: Optional[aiohttp.ClientSession] = None

    def url_for(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    @staticmethod
    def auth_headers(token: Optional[str]) -> Dict[str, str]:
        """Bearer header when a token is present, nothing otherwise."""
        if token:
            return {"Authorization": f"Bearer {token}"}
        return {}

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def request_json(
        self,
        method: str,
        path: str,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        data: Any = None,
    ) -> Any:
        """Send a request and decode the JSON body.

        Args:
            method: HTTP method
            path: Path below base_url, or an absolute URL
            token: Optional bearer token
            timeout: Total timeout in seconds, defaults to request_timeout
            data: Request body (e.g. aiohttp.FormData)

        Returns:
            Decoded JSON, or None for an empty body

        Raises:
            NetworkError: Connection failure or timeout
            ServerError: Non-2xx status or undecodable body
        """
        timeout = timeout or self.request_timeout
        url = self.url_for(path)
        logger.debug(f"{method} {url} (timeout {timeout}s)")

        try:
            async with self._get_session().request(
                method,
                url,
                headers=self.auth_headers(token),
                data=data,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as response:
                if response.status >= 400:
                    message = await self._error_message(response)
                    logger.warning(f"{method} {url} failed: {response.status} {message}")
                    raise ServerError(response.status, message)

                body = await response.read()
                if not body.strip():
                    return None
                try:
                    return await response.json(content_type=None)
                except ValueError as e:
                    raise ServerError(response.status, "Malformed response from server") from e
        except asyncio.TimeoutError as e:
            raise NetworkError(f"Request timed out after {timeout:g}s") from e
        except aiohttp.ClientError as e:
            raise NetworkError(str(e) or e.__class__.__name__) from e

    async def fetch_bytes(self, url: str, token: Optional[str] = None,
                          timeout: Optional[float] = None) -> bytes:
        """Download a binary resource such as a stored recording."""
        timeout = timeout or self.request_timeout
        try:
            async with self._get_session().get(
                self.url_for(url),
                headers=self.auth_headers(token),
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as response:
                if response.status >= 400:
                    raise ServerError(response.status, await self._error_message(response))
                return await response.read()
        except asyncio.TimeoutError as e:
            raise NetworkError(f"Request timed out after {timeout:g}s") from e
        except aiohttp.ClientError as e:
            raise NetworkError(str(e) or e.__class__.__name__) from e

    @staticmethod
    async def _error_message(response: aiohttp.ClientResponse) -> Optional[str]:
        """Pull the server-supplied message out of an error response."""
        body = await response.read()
        text = body.decode("utf-8", errors="replace")
        try:
            payload = json.loads(text)
        except ValueError:
            payload = None

        if isinstance(payload, dict):
            for key in SERVER_MESSAGE_FIELDS:
                if payload.get(key):
                    return str(payload[key])
        return text.strip() or None

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
