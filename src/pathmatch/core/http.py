"""
HTTP helpers.

This module centralizes the outbound HTTP logic used by the route provider.

Design goals:
- Small surface area (async GET JSON).
- Deterministic defaults (timeout + User-Agent). The timeout caps the whole request,
  not only each connect/read phase.
- Never raise: transport errors, timeouts, non-2xx statuses and invalid JSON all come
  back as `HttpFailure` so callers handle one result type uniformly.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

import httpx

DEFAULT_USER_AGENT = "pathmatch/0.1.0 (+https://local)"


@dataclass(frozen=True)
class HttpSuccess:
    """Decoded JSON body of a 2xx response."""

    payload: Any
    status_code: int = 200

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class HttpFailure:
    """Why a request produced no usable payload."""

    reason: str
    status_code: int | None = None

    @property
    def ok(self) -> bool:
        return False


HttpResult = HttpSuccess | HttpFailure


async def fetch_json(
    url: str,
    *,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    timeout_seconds: float = 5,
    transport: httpx.AsyncBaseTransport | None = None,
) -> HttpResult:
    """GET `url` and return the decoded JSON response as an `HttpResult`."""
    request_headers = {"User-Agent": DEFAULT_USER_AGENT}
    if headers:
        request_headers.update(headers)

    async def _get() -> httpx.Response:
        async with httpx.AsyncClient(timeout=timeout_seconds, transport=transport) as client:
            return await client.get(url, params=params, headers=request_headers)

    # httpx timeouts are per phase; `wait_for` bounds the whole exchange.
    try:
        resp = await asyncio.wait_for(_get(), timeout=timeout_seconds)
    except asyncio.TimeoutError:
        return HttpFailure(reason=f"no response within {timeout_seconds}s")
    except httpx.TimeoutException as exc:
        return HttpFailure(reason=f"timeout after {timeout_seconds}s: {exc}")
    except httpx.HTTPError as exc:
        return HttpFailure(reason=f"transport error: {exc}")

    if resp.is_error:
        return HttpFailure(reason=f"HTTP {resp.status_code}", status_code=resp.status_code)

    try:
        return HttpSuccess(payload=resp.json(), status_code=resp.status_code)
    except ValueError as exc:
        return HttpFailure(reason=f"invalid JSON: {exc}", status_code=resp.status_code)
