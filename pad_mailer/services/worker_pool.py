from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

"""Fixed-width asyncio worker pool.

Jobs are zero-argument coroutine factories queued with ``add``; ``join`` runs
them with at most ``width`` in flight and returns one entry per job in the
order they were added. A job that raises does not stop the pool; its entry is
the exception instance.
"""

__all__ = [
    "WorkerPool",
]

logger = logging.getLogger(__name__)

T = TypeVar("T")


class WorkerPool(Generic[T]):
    def __init__(self, width: int = 2) -> None:
        if width < 1:
            raise ValueError(f"pool width must be >= 1, got {width}")
        self.width = width
        self._jobs: list[Callable[[], Awaitable[T]]] = []
        self.in_flight = 0
        self.peak_in_flight = 0

    def add(self, job: Callable[[], Awaitable[T]]) -> None:
        self._jobs.append(job)

    def __len__(self) -> int:
        return len(self._jobs)

    async def _worker(
        self,
        queue: asyncio.Queue[tuple[int, Callable[[], Awaitable[T]]]],
        results: list[T | Exception | None],
    ) -> None:
        while True:
            try:
                idx, job = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
            try:
                results[idx] = await job()
            except Exception as e:
                logger.error("job %d failed: %s", idx, e)
                results[idx] = e
            finally:
                self.in_flight -= 1
                queue.task_done()

    async def join(self) -> list[T | Exception]:
        """Run every queued job and wait until all of them finished."""
        jobs, self._jobs = self._jobs, []
        if not jobs:
            return []
        queue: asyncio.Queue[tuple[int, Callable[[], Awaitable[T]]]] = asyncio.Queue()
        for item in enumerate(jobs):
            queue.put_nowait(item)
        results: list[T | Exception | None] = [None] * len(jobs)
        workers = [
            asyncio.create_task(self._worker(queue, results))
            for _ in range(min(self.width, len(jobs)))
        ]
        await asyncio.gather(*workers)
        return results  # type: ignore[return-value]
