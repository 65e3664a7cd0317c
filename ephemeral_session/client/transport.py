"""RPC transports used by the session client.

``HttpTransport`` posts JSON to the aiohttp endpoint; ``LocalTransport``
dispatches in-process to a :class:`~ephemeral_session.api.SessionAPI`.
Both return the ``result`` mapping of the RPC response.
"""
import asyncio
import logging
from typing import Any, Optional

import aiohttp
import orjson

from ..exceptions import TransportError, ValidationError

logger = logging.getLogger("ephemeral_session.client")


class HttpTransport:
    """JSON-over-HTTP RPC transport.

    Args:
        url: Full URL of the session RPC endpoint.
        session: Optional shared aiohttp ClientSession (not closed by us).
        timeout: Total request timeout in seconds.
        headers: Extra headers (e.g. an application CSRF token).
    """

    def __init__(
        self,
        url: str,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 10.0,
        headers: Optional[dict] = None,
    ):
        self._url = url
        self._session = session
        self._owns_session = session is None
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._headers = {"Content-Type": "application/json", **(headers or {})}

    def _client(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def call(self, action: str, **params: Any) -> dict:
        body = orjson.dumps({"action": action, **params})
        try:
            async with self._client().post(
                self._url, data=body, headers=self._headers, timeout=self._timeout,
            ) as response:
                data = await response.json(loads=orjson.loads, content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as err:
            raise TransportError(f"{action} request failed: {err}") from err
        result = data.get("result") if isinstance(data, dict) else None
        if not isinstance(result, dict):
            raise TransportError(f"{action} returned a malformed response")
        return result

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None


class LocalTransport:
    """Calls the Session API directly, for single-process deployments."""

    def __init__(self, api):
        self._api = api

    async def call(self, action: str, **params: Any) -> dict:
        try:
            return await self._api.dispatch(action, params)
        except ValidationError as err:
            return {"success": False, "error": str(err)}

    async def close(self) -> None:
        pass
