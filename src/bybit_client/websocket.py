from __future__ import annotations

import json
import logging
import time
from typing import Any, AsyncIterator

from websockets import connect

from .errors import BybitConfigError, BybitNetworkError, BybitRequestError
from .signing import sign

logger = logging.getLogger(__name__)


class BybitWebsocket:
    """
    Thin wrapper around the Bybit realtime stream.

    Auth:
      signature = HMAC_SHA256(secret, "GET/realtime" + expires)
      {"op": "auth", "args": [api_key, expires, signature]}

    The connection is opened on connect() and never re-established
    automatically; callers own its lifecycle.
    """

    def __init__(self, url: str, api_key: str | None = None, api_secret: str | None = None, expires_in: float = 10.0):
        self.url = url
        self.api_key = api_key
        self.api_secret = api_secret
        self.expires_in = expires_in
        self._ws: Any = None

    @property
    def is_connected(self) -> bool:
        return self._ws is not None

    async def connect(self) -> None:
        if self._ws is not None:
            return
        logger.info("Connecting to %s", self.url)
        try:
            self._ws = await connect(self.url)
        except OSError as e:
            logger.error("Could not connect to %s: %s", self.url, e)
            raise BybitNetworkError(f"Could not connect to {self.url}: {e}", cause=e) from e

    async def close(self) -> None:
        if self._ws is None:
            return
        ws, self._ws = self._ws, None
        await ws.close()
        logger.info("Closed connection to %s", self.url)

    async def __aenter__(self) -> "BybitWebsocket":
        await self.connect()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    def auth_message(self, expires: int | None = None) -> dict[str, Any]:
        if not self.api_key or not self.api_secret:
            raise BybitConfigError("api_key and api_secret are required to authenticate")
        if expires is None:
            expires = int((time.time() + self.expires_in) * 1000)
        signature = sign(f"GET/realtime{expires}", self.api_secret)
        return {"op": "auth", "args": [self.api_key, expires, signature]}

    async def _send(self, message: dict[str, Any]) -> None:
        if self._ws is None:
            raise BybitRequestError("WebSocket not connected")
        await self._ws.send(json.dumps(message))

    async def authenticate(self) -> None:
        await self._send(self.auth_message())

    async def subscribe(self, *topics: str) -> None:
        await self._send({"op": "subscribe", "args": list(topics)})
        logger.info("Subscribed to %s", ", ".join(topics))

    async def unsubscribe(self, *topics: str) -> None:
        await self._send({"op": "unsubscribe", "args": list(topics)})
        logger.info("Unsubscribed from %s", ", ".join(topics))

    async def ping(self) -> None:
        await self._send({"op": "ping"})

    async def recv(self) -> Any:
        if self._ws is None:
            raise BybitRequestError("WebSocket not connected")
        return json.loads(await self._ws.recv())

    async def __aiter__(self) -> AsyncIterator[Any]:
        if self._ws is None:
            raise BybitRequestError("WebSocket not connected")
        async for raw in self._ws:
            yield json.loads(raw)
