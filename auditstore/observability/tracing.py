"""Tracing helpers for pagination and validation stages."""
from __future__ import annotations

import contextlib
import time
from typing import Iterator, Optional

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars


def _logger() -> structlog.stdlib.BoundLogger:
    return structlog.get_logger("auditstore.trace")


def set_context(*, run_id: str, **extra: str) -> None:
    bind_contextvars(run_id=run_id, **extra)
    _logger().debug("trace_context", run_id=run_id, **extra)


def clear_context() -> None:
    clear_contextvars()


@contextlib.contextmanager
def span(*, name: str, url: Optional[str] = None) -> Iterator[None]:
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        _logger().debug("trace_span", span=name, url=url, elapsed_ms=elapsed_ms)


def log_page(*, page_num: int, fetched: int, kept: int, cursor: Optional[str]) -> None:
    _logger().info("page_fetched", page=page_num, fetched=fetched, kept=kept, cursor=cursor)


def log_validation_result(
    *,
    url: str,
    ok: bool,
    status: Optional[int] = None,
    error: Optional[str] = None,
    elapsed_ms: int,
) -> None:
    _logger().info(
        "validation_result",
        url=url,
        ok=ok,
        status=status,
        error=error,
        elapsed_ms=elapsed_ms,
    )
