from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any

import structlog
from prometheus_client import Counter

logger = structlog.get_logger()

COLLECTION_TASK_FAILURES = Counter(
    "cloudasset_collection_task_failures_total",
    "Total number of collection tasks that ended with an error",
    ["task"],
)


class BestEffortTaskGroup:
    """
    Fire-and-forget task launcher.

    Every unit of work runs as its own task; nothing joins them on the hot
    path. A failure is logged and counted, never raised, so one resource
    type failing or hanging cannot hold back another.
    """

    def __init__(self, name: str):
        self.name = name
        self._tasks: set[asyncio.Task[Any]] = set()

    def spawn(
        self, coro: Coroutine[Any, Any, Any], *, name: str, **log_context: Any
    ) -> asyncio.Task[Any]:
        task = asyncio.create_task(
            self._guard(coro, name, log_context), name=f"{self.name}:{name}"
        )
        # Keep a strong reference until the task finishes
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _guard(
        self, coro: Coroutine[Any, Any, Any], name: str, log_context: dict[str, Any]
    ) -> Any:
        try:
            return await coro
        except asyncio.CancelledError:
            logger.debug("collection_task_cancelled", group=self.name, task=name, **log_context)
            raise
        except Exception as e:
            logger.error(
                "collection_task_failed",
                group=self.name,
                task=name,
                error=str(e),
                error_type=type(e).__name__,
                **log_context,
            )
            COLLECTION_TASK_FAILURES.labels(task=name).inc()
            return None

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def join(self) -> None:
        """Wait until every task, including ones spawned while waiting, is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel(self) -> None:
        """Abort in-flight work. Records already published stay published."""
        tasks = list(self._tasks)
        if not tasks:
            return
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("collection_tasks_cancelled", group=self.name, count=len(tasks))
