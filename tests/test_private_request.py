import hashlib
import hmac

import pytest

from bybit_client.client import BybitClient
from bybit_client.endpoints import OPERATIONS
from bybit_client.errors import ErrorKind, InvalidFieldError


class DummyResponse:
    def __init__(self, status_code=200, json_data=None, text='{"ret_code":0}', headers=None):
        self.status_code = status_code
        self._json_data = json_data if json_data is not None else {"ret_code": 0}
        self.text = text
        self.headers = headers or {}

    def json(self):
        return self._json_data


def make_client(monkeypatch, response=None):
    c = BybitClient("APIKEY", "SECRET")
    monkeypatch.setattr(c, "_timestamp_ms", lambda: 1700000000000)

    calls = []

    def fake_request(method, url, params=None, headers=None, timeout=None):
        calls.append({"method": method, "url": url, "params": params, "headers": headers, "timeout": timeout})
        return response or DummyResponse()

    monkeypatch.setattr(c.session, "request", fake_request)
    return c, calls


ORDER = {
    "symbol": "BTCUSD",
    "side": "Buy",
    "order_type": "Limit",
    "qty": 1,
    "price": 9000,
    "time_in_force": "GoodTillCancel",
}


def test_testnet_place_active_order(monkeypatch):
    c, calls = make_client(monkeypatch)

    out = c.place_active_order(ORDER)
    assert out == {"ret_code": 0}

    assert len(calls) == 1
    call = calls[0]
    assert call["method"] == "POST"
    assert call["url"] == "https://api-testnet.bybit.com/open-api/order/create"
    assert call["headers"]["Content-Type"] == "application/json"
    assert call["timeout"] == 5.0

    message = (
        "api_key=APIKEY&order_type=Limit&price=9000&qty=1&side=Buy"
        "&symbol=BTCUSD&time_in_force=GoodTillCancel&timestamp=1700000000000"
    )
    expected = hmac.new(b"SECRET", message.encode(), hashlib.sha256).hexdigest()

    params = call["params"]
    assert params["sign"] == expected
    assert params["api_key"] == "APIKEY"
    assert params["timestamp"] == 1700000000000
    assert list(params) == [
        "api_key",
        "order_type",
        "price",
        "qty",
        "side",
        "symbol",
        "time_in_force",
        "timestamp",
        "sign",
    ]


def test_signed_set_is_complete(monkeypatch):
    c, calls = make_client(monkeypatch)

    c.get_kline({"symbol": "BTCUSD", "interval": "15", "from": 1581231260, "limit": 10})
    params = calls[0]["params"]
    assert set(params) == {"symbol", "interval", "from", "limit", "api_key", "timestamp", "sign"}
    assert calls[0]["method"] == "GET"
    assert calls[0]["url"].endswith("/v2/public/kline/list")


def test_operation_without_params(monkeypatch):
    c, calls = make_client(monkeypatch)

    c.get_symbols()
    assert set(calls[0]["params"]) == {"api_key", "timestamp", "sign"}


def test_mainnet_url(monkeypatch):
    c = BybitClient("APIKEY", "SECRET", mainnet=True, timeout=1500)
    assert c.config.rest_url == "https://api.bybit.com"
    assert c.config.socket_url == "wss://stream.bybit.com/realtime"
    assert c.config.timeout_seconds == 1.5


def test_payload_is_returned_unchanged(monkeypatch):
    payload = {"ret_code": 10001, "ret_msg": "params error", "result": None}
    c, _ = make_client(monkeypatch, DummyResponse(200, json_data=payload))

    assert c.get_positions() == payload


def test_missing_required_field_sends_nothing(monkeypatch):
    c, calls = make_client(monkeypatch)

    order = dict(ORDER)
    del order["side"]
    with pytest.raises(InvalidFieldError) as exc:
        c.place_active_order(order)

    assert exc.value.kind is ErrorKind.INVALID_FIELD
    assert exc.value.field == "side"
    assert exc.value.operation == "place_active_order"
    assert calls == []


@pytest.mark.parametrize(
    "name, params, field",
    [
        ("place_active_order", {**ORDER, "side": "buy"}, "side"),
        ("place_active_order", {**ORDER, "qty": "1"}, "qty"),
        ("place_active_order", {**ORDER, "qty": True}, "qty"),
        ("place_active_order", {**ORDER, "qty": 0}, "qty"),
        ("place_active_order", {**ORDER, "sign": "forged"}, "sign"),
        ("place_active_order", {k: v for k, v in ORDER.items() if k != "price"}, "price"),
        ("place_active_order", {**ORDER, "price": float("nan")}, "price"),
        ("place_active_order", {**ORDER, "price": float("inf")}, "price"),
        ("place_active_order", {**ORDER, "price": None}, "price"),
        ("place_conditional_order", {**ORDER, "stop_px": 8900}, "base_price"),
        ("place_conditional_order", {**ORDER, "base_price": 9100}, "stop_px"),
        ("get_active_orders", {"limit": 51}, "limit"),
        ("get_active_orders", {"page": 0}, "page"),
        ("get_conditional_orders", {"order": "up"}, "order"),
        ("cancel_active_order", {}, "order_id"),
        ("get_kline", {"symbol": "BTCUSD", "interval": "2", "from": 1}, "interval"),
        ("get_kline", {"symbol": "BTCUSD", "interval": "15", "from": 1, "limit": 201}, "limit"),
        ("get_kline", {"symbol": "BTCUSD", "interval": "15"}, "from"),
        ("update_leverage", {"symbol": "BTCUSD"}, "leverage"),
        ("update_leverage", {"symbol": "BTCUSD", "leverage": 0}, "leverage"),
        ("update_leverage", {"symbol": "BTCUSD", "leverage": -1}, "leverage"),
        ("update_position_margin", {"symbol": "BTCUSD", "margin": float("nan")}, "margin"),
        ("get_funding_rate", {"symbol": "BTCUSD", "extra": 1}, "extra"),
        ("get_funding_rate", {"symbol": ""}, "symbol"),
    ],
)
def test_invalid_input_sends_nothing(monkeypatch, name, params, field):
    c, calls = make_client(monkeypatch)

    with pytest.raises(InvalidFieldError) as exc:
        getattr(c, name)(params)
    assert exc.value.operation == name
    assert exc.value.field == field
    assert calls == []


@pytest.mark.parametrize(
    "name, params",
    [
        ("place_active_order", {k: v for k, v in {**ORDER, "order_type": "Market"}.items() if k != "price"}),
        ("place_active_order", {**ORDER, "price": 9000.5, "reduce_only": True, "order_link_id": "abc"}),
        ("place_conditional_order", {**ORDER, "base_price": 9100, "stop_px": 8900}),
        ("get_active_orders", {"limit": 50, "page": 1, "order": "asc"}),
        ("get_active_orders", {"limit": 1}),
        ("get_kline", {"symbol": "BTCUSD", "interval": "D", "from": 0, "limit": 200}),
        ("update_leverage", {"symbol": "BTCUSD", "leverage": 0.5}),
        ("update_position_margin", {"symbol": "BTCUSD", "margin": -10}),
        ("get_order_info", {"symbol": "BTCUSD", "start_time": 0, "limit": 50}),
    ],
)
def test_valid_input_is_sent(monkeypatch, name, params):
    c, calls = make_client(monkeypatch)

    getattr(c, name)(params)
    assert len(calls) == 1
    assert set(calls[0]["params"]) == set(params) | {"api_key", "timestamp", "sign"}


def test_every_operation_has_a_method():
    for name, op in OPERATIONS.items():
        method = getattr(BybitClient, name)
        assert method.__doc__ == f"{op.method} {op.path}"


def test_from_env(monkeypatch):
    monkeypatch.setenv("BYBIT_API_KEY", "K")
    monkeypatch.setenv("BYBIT_API_SECRET", "S")
    c = BybitClient.from_env()
    assert c.api_key == "K"
    assert c.api_secret == "S"
    assert c.config.rest_url == "https://api-testnet.bybit.com"


def test_from_env_missing(monkeypatch):
    from bybit_client.errors import BybitConfigError

    monkeypatch.delenv("BYBIT_API_KEY", raising=False)
    monkeypatch.setenv("BYBIT_API_SECRET", "S")
    with pytest.raises(BybitConfigError):
        BybitClient.from_env()


def test_websocket_is_lazy_and_shared():
    c = BybitClient("APIKEY", "SECRET")
    assert c._websocket is None
    ws = c.websocket
    assert ws is c.websocket
    assert ws.url == "wss://stream-testnet.bybit.com/realtime"
