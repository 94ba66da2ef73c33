from __future__ import annotations

import hashlib
import hmac
from typing import Any, Mapping


def _render(value: Any) -> str:
    # requests would send True as "True"; the exchange expects JSON-style booleans
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def canonical_message(params: Mapping[str, Any]) -> str:
    """
    Render params as `k=v` pairs sorted by key and joined with `&`.

    Values are not escaped: a value containing `=` or `&` goes into the
    message verbatim, matching what the exchange signs on its side.
    """
    return "&".join(f"{k}={_render(v)}" for k, v in sorted(params.items()))


def sign(message: str, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


def sort_params(params: Mapping[str, Any]) -> dict[str, Any]:
    return {k: params[k] for k in sorted(params)}


def sign_params(
    params: Mapping[str, Any],
    api_key: str,
    secret: str,
    timestamp: int,
) -> dict[str, Any]:
    """
    Build the outgoing parameter set for a private call.

    The signature covers params + api_key + timestamp; the returned dict
    carries exactly those pairs plus `sign`, with booleans already rendered
    so the query string matches the signed message.
    """
    message = canonical_message({**params, "api_key": api_key, "timestamp": timestamp})
    ordered = {k: _render(v) if isinstance(v, bool) else v for k, v in sort_params(params).items()}
    return {"api_key": api_key, **ordered, "timestamp": timestamp, "sign": sign(message, secret)}
