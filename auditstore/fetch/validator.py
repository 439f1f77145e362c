"""Liveness checks for tracked URLs.

The verdict policy errs toward keeping URLs: a URL is only reported dead when
the server definitively answered with a failure or could not be reached at
all. A timeout is inconclusive and therefore counts as alive, and so does a
405 since the server is up but rejects the method.
"""
from __future__ import annotations

import asyncio
import time
from typing import Optional

import httpx

from auditstore.fetch.session import ValidationSession
from auditstore.observability.metrics import MetricsRegistry
from auditstore.observability.tracing import log_validation_result, span

DEFAULT_TIMEOUT_MS = 10 * 1000


def verdict_for_status(status: int) -> bool:
    """Map a final HTTP status code to a liveness verdict."""
    if status == httpx.codes.METHOD_NOT_ALLOWED:
        return True
    return httpx.codes.is_success(status)


class UrlValidator:
    """Performs single-request liveness checks through a `ValidationSession`."""

    def __init__(self, session: ValidationSession, *, metrics: Optional[MetricsRegistry] = None) -> None:
        self._session = session
        self._metrics = metrics or MetricsRegistry()

    async def validate(self, method: str, url: str, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> bool:
        """Return True when ``url`` should be considered alive."""
        timeout = timeout_ms / 1000
        start = time.perf_counter()
        try:
            with span(name="validate", url=url):
                response = await asyncio.wait_for(
                    self._session.probe(method, url, timeout=timeout),
                    timeout,
                )
        except (httpx.TimeoutException, asyncio.TimeoutError) as exc:
            self._metrics.incr("timeouts")
            self._record(url, True, error=f"{type(exc).__name__}: timed out", start=start)
            return True
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            # malformed IDN hosts fail while the request is built with a UnicodeError
            self._metrics.incr("network_errors")
            self._record(url, False, error=f"{type(exc).__name__}: {exc}", start=start)
            return False

        status = response.status_code
        self._metrics.incr(f"http_{status // 100}xx")
        if status == httpx.codes.METHOD_NOT_ALLOWED:
            self._metrics.incr("method_not_allowed")
        ok = verdict_for_status(status)
        self._record(url, ok, status=status, start=start)
        return ok

    def _record(
        self,
        url: str,
        ok: bool,
        *,
        start: float,
        status: Optional[int] = None,
        error: Optional[str] = None,
    ) -> None:
        self._metrics.incr("urls_validated")
        log_validation_result(
            url=url,
            ok=ok,
            status=status,
            error=error,
            elapsed_ms=int((time.perf_counter() - start) * 1000),
        )
