"""Factories for the HTTP sessions used to probe tracked URLs."""
from __future__ import annotations

import contextlib
from typing import AsyncIterator, Optional

import httpx

# http:// -> https:// -> https://www. plus one spare hop
DEFAULT_MAX_REDIRECTS = 4


class ValidationSession:
    """Thin wrapper over an `httpx.AsyncClient` that never reads response bodies."""

    def __init__(self, client: Optional[httpx.AsyncClient]) -> None:
        self._client = client

    async def probe(self, method: str, url: str, *, timeout: float) -> httpx.Response:
        """Issue ``method`` against ``url`` and return the final response, body unread."""
        if self._client is None:
            raise RuntimeError("No validation session available")
        async with self._client.stream(method, url, timeout=timeout) as response:
            return response


@contextlib.asynccontextmanager
async def create_validation_session(
    *,
    user_agent: str,
    timeout: float,
    max_connections: int,
    max_redirects: int = DEFAULT_MAX_REDIRECTS,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AsyncIterator[ValidationSession]:
    """Yield a configured `ValidationSession` for the duration of the context."""
    headers = {"User-Agent": user_agent, "Accept-Encoding": "gzip, deflate"}
    limits = httpx.Limits(max_connections=max_connections, max_keepalive_connections=max_connections)
    async with httpx.AsyncClient(
        headers=headers,
        limits=limits,
        timeout=timeout,
        follow_redirects=True,
        max_redirects=max_redirects,
        transport=transport,
    ) as client:
        yield ValidationSession(client)
