from __future__ import annotations

import asyncio
from typing import Any, Mapping

from .client import BybitClient
from .config import DEFAULT_TIMEOUT_MS
from .endpoints import OPERATIONS
from .errors import BybitConfigError


def _endpoint(name: str):
    operation = OPERATIONS[name]

    async def method(self: "AsyncBybitClient", params: Mapping[str, Any] | None = None) -> Any:
        return await self.call(name, params)

    method.__name__ = name
    method.__qualname__ = f"AsyncBybitClient.{name}"
    method.__doc__ = f"{operation.method} {operation.path}"
    return method


class AsyncBybitClient:
    """
    Awaitable facade over BybitClient.

    Each call runs the blocking pipeline on a worker thread; failures
    surface as exceptions from the awaited call, validation included.
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_secret: str | None = None,
        mainnet: bool = False,
        timeout: int = DEFAULT_TIMEOUT_MS,
        *,
        client: BybitClient | None = None,
        **kwargs: Any,
    ):
        if client is None:
            if api_key is None or api_secret is None:
                raise BybitConfigError("api_key and api_secret are required unless client is given")
            client = BybitClient(api_key, api_secret, mainnet, timeout, **kwargs)
        self.client = client

    @property
    def config(self):
        return self.client.config

    @property
    def websocket(self):
        return self.client.websocket

    async def call(self, name: str, params: Mapping[str, Any] | None = None) -> Any:
        operation = OPERATIONS[name]
        # validate on the loop so bad input never reaches the worker thread
        checked = operation.validate(params)
        return await asyncio.to_thread(self.client._request, operation.method, operation.path, checked)

    place_active_order = _endpoint("place_active_order")
    get_active_orders = _endpoint("get_active_orders")
    cancel_active_order = _endpoint("cancel_active_order")

    place_conditional_order = _endpoint("place_conditional_order")
    get_conditional_orders = _endpoint("get_conditional_orders")
    cancel_conditional_order = _endpoint("cancel_conditional_order")

    get_leverage = _endpoint("get_leverage")
    update_leverage = _endpoint("update_leverage")
    get_positions = _endpoint("get_positions")
    update_position_margin = _endpoint("update_position_margin")

    get_funding_rate = _endpoint("get_funding_rate")
    get_prev_funding_rate = _endpoint("get_prev_funding_rate")
    get_next_funding_rate = _endpoint("get_next_funding_rate")

    get_order_info = _endpoint("get_order_info")
    get_symbols = _endpoint("get_symbols")
    get_kline = _endpoint("get_kline")
