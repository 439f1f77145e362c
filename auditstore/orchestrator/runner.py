"""Bounded-concurrency execution of independent async tasks."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, List, Optional, Sequence, Tuple, TypeVar

import structlog

LOGGER = structlog.get_logger(__name__)

T = TypeVar("T")

Task = Callable[[], Awaitable[T]]


@dataclass(slots=True)
class Outcome(Generic[T]):
    """Result of one task: either a value or the exception it raised."""

    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


async def run_all(tasks: Sequence[Task[T]], max_concurrent: int) -> List[Outcome[T]]:
    """Run every task once with at most ``max_concurrent`` in flight.

    A failing task is captured as an errored `Outcome` and never stops the
    others. Outcomes are returned in submission order.
    """
    if max_concurrent < 1:
        raise ValueError("max_concurrent must be >= 1")
    outcomes: List[Optional[Outcome[T]]] = [None] * len(tasks)
    queue: asyncio.Queue[Tuple[int, Task[T]]] = asyncio.Queue()
    for index, task in enumerate(tasks):
        queue.put_nowait((index, task))

    async def worker() -> None:
        while True:
            try:
                index, task = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                outcomes[index] = Outcome(value=await task())
            except Exception as error:
                LOGGER.exception("task_failed", index=index, error=str(error))
                outcomes[index] = Outcome(error=error)
            finally:
                queue.task_done()

    workers = [asyncio.create_task(worker()) for _ in range(min(max_concurrent, len(tasks)))]
    try:
        await asyncio.gather(*workers)
    finally:
        for pending in workers:
            pending.cancel()
    return [outcome for outcome in outcomes if outcome is not None]
