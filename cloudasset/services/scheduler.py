from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from prometheus_client import Counter

logger = structlog.get_logger()

COLLECTION_PASSES = Counter(
    "cloudasset_collection_passes_total",
    "Total number of collection passes triggered",
    ["provider"],
)

# A dispatch only hands work off, so overlapping runs are short-lived
MAX_OVERLAPPING_DISPATCHES = 4


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    CANCELLED = "cancelled"


def _seconds(value: timedelta | float) -> float:
    return value.total_seconds() if isinstance(value, timedelta) else float(value)


class CollectionScheduler:
    """
    Periodic, cancellable pass trigger for one provider collector.

    Runs an APScheduler interval job: one pass as soon as the scheduler
    starts (after ``initial_delay``), then one per tick. Ticks are anchored
    on the schedule, not on pass completion, and late ticks are coalesced
    into a single run.

    ``trigger`` only dispatches work. When it hands back a coroutine, that
    coroutine runs as its own task so a slow pass never holds the next tick.
    Failures are logged; only the stop event ends the loop.
    """

    def __init__(
        self,
        name: str,
        period: timedelta | float,
        trigger: Callable[[], Any],
        initial_delay: timedelta | float = 0.0,
    ):
        self.name = name
        self.period = _seconds(period)
        if self.period <= 0:
            raise ValueError("period must be > 0")
        self.initial_delay = max(0.0, _seconds(initial_delay))
        self.trigger = trigger
        self.state = SchedulerState.IDLE
        self.passes = 0
        self._inflight: set[asyncio.Task[Any]] = set()

    def _build_scheduler(self) -> AsyncIOScheduler:
        scheduler = AsyncIOScheduler(
            event_loop=asyncio.get_running_loop(), timezone=timezone.utc
        )
        scheduler.add_job(
            self._dispatch_pass,
            trigger=IntervalTrigger(seconds=self.period, timezone=timezone.utc),
            id=f"{self.name}_collection_pass",
            next_run_time=datetime.now(timezone.utc) + timedelta(seconds=self.initial_delay),
            replace_existing=True,
            coalesce=True,
            max_instances=MAX_OVERLAPPING_DISPATCHES,
            misfire_grace_time=None,
        )
        return scheduler

    async def run(self, stop: asyncio.Event) -> None:
        log = logger.bind(provider=self.name)
        if stop.is_set():
            self.state = SchedulerState.CANCELLED
            return

        scheduler = self._build_scheduler()
        log.info("collector_run_started", period_seconds=self.period)
        self.state = SchedulerState.RUNNING
        scheduler.start()
        try:
            await stop.wait()
        finally:
            scheduler.shutdown(wait=False)
            # Shutdown may be deferred to the next loop iteration
            await asyncio.sleep(0)
            await self._cancel_inflight()
            self.state = SchedulerState.CANCELLED if stop.is_set() else SchedulerState.IDLE
            log.info("collector_run_stopped", passes=self.passes)

    async def _dispatch_pass(self) -> None:
        self.passes += 1
        COLLECTION_PASSES.labels(provider=self.name).inc()
        try:
            result = self.trigger()
        except Exception as e:
            logger.error(
                "collection_pass_dispatch_failed",
                provider=self.name,
                error=str(e),
            )
            return

        # Tasks and futures already run on their own
        if inspect.iscoroutine(result):
            task = asyncio.create_task(result, name=f"{self.name}.pass")
            self._inflight.add(task)
            task.add_done_callback(self._on_pass_done)

    def _on_pass_done(self, task: asyncio.Task[Any]) -> None:
        self._inflight.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "collection_pass_dispatch_failed",
                provider=self.name,
                error=str(exc),
            )

    async def _cancel_inflight(self) -> None:
        tasks = list(self._inflight)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
