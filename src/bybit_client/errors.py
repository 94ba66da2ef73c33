from __future__ import annotations

from enum import Enum
from typing import Any, Mapping


class ErrorKind(str, Enum):
    INVALID_FIELD = "invalid_field"
    SERVER = "server"
    NETWORK = "network"
    CLIENT = "client"
    CONFIG = "config"


class BybitClientError(Exception):
    """Base exception for all client errors."""

    kind: ErrorKind = ErrorKind.CLIENT

    def __init__(self, message: str, *, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class BybitConfigError(BybitClientError):
    """Client could not be constructed (missing credentials etc.)."""

    kind = ErrorKind.CONFIG


class InvalidFieldError(BybitClientError):
    """Request parameters failed local validation; nothing was sent."""

    kind = ErrorKind.INVALID_FIELD

    def __init__(self, operation: str, field: str | None, reason: str):
        where = f"{operation}.{field}" if field else operation
        super().__init__(f"Invalid request parameter {where}: {reason}")
        self.operation = operation
        self.field = field
        self.reason = reason


class BybitServerError(BybitClientError):
    """The exchange received the request and answered with an error."""

    kind = ErrorKind.SERVER

    def __init__(
        self,
        status_code: int,
        message: str,
        *,
        method: str | None = None,
        path: str | None = None,
        body: str | None = None,
        headers: Mapping[str, str] | None = None,
        response: Any = None,
        cause: Exception | None = None,
    ):
        super().__init__(message, cause=cause)
        self.status_code = status_code
        self.method = method
        self.path = path
        self.body = body
        self.headers = dict(headers or {})
        self.response = response


class BybitAuthError(BybitServerError):
    """Authentication/authorization errors (401/403)."""


class BybitRateLimitError(BybitServerError):
    """Rate limit exceeded (HTTP 429). Retry-After is informational only."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        *,
        retry_after: float | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(status_code=429, message=message, **kwargs)
        self.retry_after = retry_after


class BybitNetworkError(BybitClientError):
    """Request was sent but no response came back (timeout, reset, DNS)."""

    kind = ErrorKind.NETWORK


class BybitRequestError(BybitClientError):
    """Request could not be built or sent at all."""

    kind = ErrorKind.CLIENT
