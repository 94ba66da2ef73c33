from __future__ import annotations

from dataclasses import dataclass

MAINNET_REST_URL = "https://api.bybit.com"
MAINNET_SOCKET_URL = "wss://stream.bybit.com/realtime"
TESTNET_REST_URL = "https://api-testnet.bybit.com"
TESTNET_SOCKET_URL = "wss://stream-testnet.bybit.com/realtime"

DEFAULT_TIMEOUT_MS = 5000


@dataclass(frozen=True)
class BybitConfig:
    rest_url: str = TESTNET_REST_URL
    socket_url: str = TESTNET_SOCKET_URL
    # milliseconds, applied per request
    timeout: int = DEFAULT_TIMEOUT_MS

    @classmethod
    def for_network(cls, mainnet: bool = False, timeout: int = DEFAULT_TIMEOUT_MS) -> "BybitConfig":
        if mainnet:
            return cls(MAINNET_REST_URL, MAINNET_SOCKET_URL, timeout)
        return cls(TESTNET_REST_URL, TESTNET_SOCKET_URL, timeout)

    @property
    def timeout_seconds(self) -> float:
        return self.timeout / 1000
