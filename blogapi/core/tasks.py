"""Fire-and-forget background side-effects.

Request handlers submit follow-up work (notification publishing) that must
never block or fail the response:

- Non-blocking submission via ``asyncio.Queue.put_nowait()``
- Graceful degradation (drop + log on queue full)
- Failures inside a job are logged, never raised
- The request logging context is captured on submit and restored on the worker
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import structlog

from blogapi.core.context import RequestContext, get_context


logger = structlog.get_logger(__name__)

JobFactory = Callable[[], Awaitable[Any]]


@dataclass(slots=True)
class BackgroundJob:
    """A queued side-effect and the logging context it was submitted from."""

    name: str
    factory: JobFactory
    context: dict[str, Any] = field(default_factory=dict)


class BackgroundDispatcher:
    """Queue with a dedicated worker task for side-effects."""

    def __init__(self, queue_size: int = 1000, stop_timeout: float = 5.0) -> None:
        """Initialize the dispatcher.

        Args:
            queue_size: Maximum queued jobs (jobs dropped when full)
            stop_timeout: Seconds ``stop()`` waits for queued jobs to drain
        """
        self.queue_size = queue_size
        self.stop_timeout = stop_timeout

        self._queue: asyncio.Queue[BackgroundJob] = asyncio.Queue(maxsize=queue_size)
        self._running = False
        self._worker_task: asyncio.Task | None = None

        self._jobs_submitted = 0
        self._jobs_dropped = 0
        self._jobs_failed = 0

    @property
    def is_running(self) -> bool:
        return self._running

    def get_stats(self) -> dict[str, Any]:
        """Counters for health reporting."""
        return {
            "running": self._running,
            "queue_depth": self._queue.qsize(),
            "jobs_submitted": self._jobs_submitted,
            "jobs_dropped": self._jobs_dropped,
            "jobs_failed": self._jobs_failed,
        }

    # ==========================================================================
    # Submission
    # ==========================================================================

    def submit(self, name: str, factory: JobFactory) -> bool:
        """Queue ``factory()`` to run on the worker.

        Args:
            name: Job name used in log events
            factory: Zero-argument callable returning an awaitable

        Returns:
            True if queued, False if dropped
        """
        job = BackgroundJob(name=name, factory=factory, context=get_context())
        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull:
            self._jobs_dropped += 1
            logger.warning(
                "background_queue_full",
                job=name,
                queue_size=self.queue_size,
                dropped_total=self._jobs_dropped,
            )
            return False

        self._jobs_submitted += 1
        return True

    async def join(self) -> None:
        """Wait until every queued job has run."""
        await self._queue.join()

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    async def start(self) -> None:
        """Start the background worker."""
        if self._running:
            logger.warning("background_dispatcher_already_running")
            return

        self._running = True
        self._worker_task = asyncio.create_task(
            self._worker_loop(),
            name="background_worker",
        )
        logger.info("background_dispatcher_started", queue_size=self.queue_size)

    async def stop(self) -> None:
        """Drain queued jobs (bounded by ``stop_timeout``) and stop the worker."""
        if not self._running:
            return

        self._running = False

        try:
            await asyncio.wait_for(self._queue.join(), timeout=self.stop_timeout)
        except TimeoutError:
            logger.warning(
                "background_dispatcher_stop_timeout",
                pending=self._queue.qsize(),
            )

        if self._worker_task:
            self._worker_task.cancel()
            try:
                await self._worker_task
            except asyncio.CancelledError:
                pass
            self._worker_task = None

        logger.info(
            "background_dispatcher_stopped",
            jobs_submitted=self._jobs_submitted,
            jobs_dropped=self._jobs_dropped,
            jobs_failed=self._jobs_failed,
        )

    async def _worker_loop(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self._run(job)
            finally:
                self._queue.task_done()

    async def _run(self, job: BackgroundJob) -> None:
        with RequestContext.from_snapshot(job.context):
            try:
                await job.factory()
            except Exception:
                self._jobs_failed += 1
                logger.exception("background_job_failed", job=job.name)
