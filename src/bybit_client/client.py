from __future__ import annotations

import logging
import os
import time
from typing import Any, Mapping

import requests
from requests.exceptions import ConnectionError as RequestsConnectionError, RequestException, Timeout

from .config import DEFAULT_TIMEOUT_MS, BybitConfig
from .endpoints import OPERATIONS
from .errors import (
    BybitAuthError,
    BybitConfigError,
    BybitNetworkError,
    BybitRateLimitError,
    BybitRequestError,
    BybitServerError,
)
from .signing import sign_params
from .websocket import BybitWebsocket

logger = logging.getLogger(__name__)


def _endpoint(name: str):
    operation = OPERATIONS[name]

    def method(self: "BybitClient", params: Mapping[str, Any] | None = None) -> Any:
        return self.call(name, params)

    method.__name__ = name
    method.__qualname__ = f"BybitClient.{name}"
    method.__doc__ = f"{operation.method} {operation.path}"
    return method


class BybitClient:
    """
    Bybit REST client.

    Every private call is signed:
      sign = HMAC_SHA256(secret, "k1=v1&k2=v2&..." sorted by key, api_key and timestamp included)

    Parameters always travel in the query string, POST included.
    """

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        mainnet: bool = False,
        timeout: int = DEFAULT_TIMEOUT_MS,
        *,
        session: requests.Session | None = None,
    ):
        self.api_key = api_key
        self.api_secret = api_secret
        self.config = BybitConfig.for_network(mainnet, timeout)
        self.session = session or requests.Session()
        self._websocket: BybitWebsocket | None = None

    @classmethod
    def from_env(cls, mainnet: bool = False, timeout: int = DEFAULT_TIMEOUT_MS, **kwargs: Any) -> "BybitClient":
        api_key = os.getenv("BYBIT_API_KEY")
        api_secret = os.getenv("BYBIT_API_SECRET")
        if not api_key or not api_secret:
            raise BybitConfigError("BYBIT_API_KEY and BYBIT_API_SECRET must both be set")
        return cls(api_key, api_secret, mainnet, timeout, **kwargs)

    @property
    def websocket(self) -> BybitWebsocket:
        if self._websocket is None:
            self._websocket = BybitWebsocket(self.config.socket_url, self.api_key, self.api_secret)
        return self._websocket

    # ---------- signing ----------
    def _timestamp_ms(self) -> int:
        return int(time.time() * 1000)

    def _signed_params(self, params: Mapping[str, Any]) -> dict[str, Any]:
        # one timestamp per call, used for both the signature and the query string
        return sign_params(params, self.api_key, self.api_secret, self._timestamp_ms())

    # ---------- request core ----------
    def _request(self, method: str, path: str, params: Mapping[str, Any] | None = None) -> Any:
        method_u = method.upper()
        url = f"{self.config.rest_url}{path}"
        signed = self._signed_params(params or {})

        logger.debug("%s %s params=%s", method_u, path, sorted(k for k in signed if k != "sign"))
        try:
            resp = self.session.request(
                method_u,
                url,
                params=signed,
                headers={"Content-Type": "application/json"},
                timeout=self.config.timeout_seconds,
            )
        except RequestException as e:
            raise self._classify_exception(e, method_u, path) from e

        if resp.status_code >= 400:
            raise self._server_error(resp, method_u, path)

        try:
            return resp.json()
        except ValueError as e:
            logger.error("%s %s returned invalid JSON (HTTP %d)", method_u, path, resp.status_code)
            raise BybitServerError(
                status_code=resp.status_code,
                message="Invalid JSON",
                method=method_u,
                path=path,
                body=(resp.text or "")[:300],
                headers=resp.headers,
                response=resp,
                cause=e,
            ) from e

    def _server_error(self, resp: Any, method: str, path: str, cause: Exception | None = None) -> BybitServerError:
        body = (resp.text or "")[:300]
        logger.error("%s %s server error HTTP %d: %s", method, path, resp.status_code, body)
        logger.error("%s %s response headers: %s", method, path, dict(resp.headers or {}))

        kwargs: dict[str, Any] = dict(
            method=method, path=path, body=body, headers=resp.headers, response=resp, cause=cause
        )
        if resp.status_code in (401, 403):
            return BybitAuthError(status_code=resp.status_code, message="Auth failed", **kwargs)
        if resp.status_code == 429:
            retry_after = (resp.headers or {}).get("Retry-After")
            parsed: float | None = None
            if retry_after is not None:
                try:
                    parsed = float(retry_after)
                except ValueError:
                    parsed = None
            return BybitRateLimitError(retry_after=parsed, **kwargs)

        msg = body.strip()
        return BybitServerError(status_code=resp.status_code, message=msg or "Server error", **kwargs)

    def _classify_exception(self, e: RequestException, method: str, path: str) -> Exception:
        url = f"{self.config.rest_url}{path}"
        if e.response is not None:
            return self._server_error(e.response, method, path, cause=e)
        if isinstance(e, (Timeout, RequestsConnectionError)) or e.request is not None:
            logger.error("%s %s no response: %s (request=%r)", method, path, e, e.request)
            return BybitNetworkError(f"No response from {url}: {e}", cause=e)
        logger.error("%s %s request could not be sent: %s", method, path, e)
        return BybitRequestError(f"Could not send request to {url}: {e}", cause=e)

    # ---------- dispatch ----------
    def call(self, name: str, params: Mapping[str, Any] | None = None) -> Any:
        """Validate params for operation `name` and send it. Raises InvalidFieldError before any I/O."""
        operation = OPERATIONS[name]
        checked = operation.validate(params)
        return self._request(operation.method, operation.path, checked)

    # ---------- active orders ----------
    place_active_order = _endpoint("place_active_order")
    get_active_orders = _endpoint("get_active_orders")
    cancel_active_order = _endpoint("cancel_active_order")

    # ---------- conditional orders ----------
    place_conditional_order = _endpoint("place_conditional_order")
    get_conditional_orders = _endpoint("get_conditional_orders")
    cancel_conditional_order = _endpoint("cancel_conditional_order")

    # ---------- leverage / positions ----------
    get_leverage = _endpoint("get_leverage")
    update_leverage = _endpoint("update_leverage")
    get_positions = _endpoint("get_positions")
    update_position_margin = _endpoint("update_position_margin")

    # ---------- funding ----------
    get_funding_rate = _endpoint("get_funding_rate")
    get_prev_funding_rate = _endpoint("get_prev_funding_rate")
    get_next_funding_rate = _endpoint("get_next_funding_rate")

    # ---------- executions / market data ----------
    get_order_info = _endpoint("get_order_info")
    get_symbols = _endpoint("get_symbols")
    get_kline = _endpoint("get_kline")
