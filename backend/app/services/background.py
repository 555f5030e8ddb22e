"""
Background worker pool for post-commit side effects.

Achievement evaluation and notifications run after the request that caused
them has committed. They go through a bounded asyncio.Queue drained by a fixed
number of workers so a burst of check-ins at an event start cannot spawn an
unbounded number of tasks.

Failure policy:
  - each job gets BACKGROUND_MAX_ATTEMPTS attempts, backing off exponentially
  - a job that keeps failing is logged and counted, then dropped
  - enqueue never blocks: a full queue drops the job with a warning
The scanning client never sees any of this.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import structlog

from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.metrics import record_background_job

logger = get_logger(__name__)

Handler = Callable[[dict[str, Any]], Awaitable[None]]


@dataclass
class Job:
    name: str
    payload: dict[str, Any]
    attempt: int = field(default=1)


class BackgroundWorkerPool:
    def __init__(
        self,
        handlers: dict[str, Handler],
        workers: int | None = None,
        queue_size: int | None = None,
        max_attempts: int | None = None,
        backoff: float | None = None,
    ):
        settings = get_settings()
        self.handlers = handlers
        self.workers = workers or settings.BACKGROUND_WORKERS
        self.max_attempts = max_attempts or settings.BACKGROUND_MAX_ATTEMPTS
        self.backoff = settings.BACKGROUND_RETRY_BACKOFF if backoff is None else backoff
        self.queue: asyncio.Queue[Job] = asyncio.Queue(
            maxsize=queue_size or settings.BACKGROUND_QUEUE_SIZE
        )
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    def enqueue(self, name: str, payload: dict[str, Any]) -> bool:
        """Schedule a job. Returns False if it was dropped."""
        if name not in self.handlers:
            logger.warning("background_job_unknown", job=name)
            return False
        try:
            self.queue.put_nowait(Job(name, payload))
        except asyncio.QueueFull:
            record_background_job(name, "dropped")
            logger.warning("background_queue_full", job=name, size=self.queue.qsize())
            return False
        return True

    async def start(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._worker(i), name=f"background-worker-{i}")
            for i in range(self.workers)
        ]
        logger.info("background_pool_started", workers=self.workers)

    async def join(self) -> None:
        """Wait until every queued job (retries included) has been processed."""
        await self.queue.join()

    async def stop(self, drain: bool = True) -> None:
        if drain and self._tasks:
            await self.join()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("background_pool_stopped")

    async def _worker(self, index: int) -> None:
        while True:
            job = await self.queue.get()
            try:
                await self._run(job)
            finally:
                self.queue.task_done()

    async def _run(self, job: Job) -> None:
        structlog.contextvars.bind_contextvars(job=job.name, attempt=job.attempt)
        try:
            await self.handlers[job.name](job.payload)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if job.attempt >= self.max_attempts:
                record_background_job(job.name, "failed")
                logger.error("background_job_failed", error=str(e), payload=job.payload)
                return
            record_background_job(job.name, "retried")
            delay = self.backoff * (2 ** (job.attempt - 1))
            logger.warning("background_job_retry", error=str(e), retry_in=delay)
            await asyncio.sleep(delay)
            self._requeue(Job(job.name, job.payload, job.attempt + 1))
        else:
            record_background_job(job.name, "succeeded")
            logger.debug("background_job_done")
        finally:
            structlog.contextvars.unbind_contextvars("job", "attempt")

    def _requeue(self, job: Job) -> None:
        try:
            self.queue.put_nowait(job)
        except asyncio.QueueFull:
            record_background_job(job.name, "dropped")
            logger.warning("background_queue_full", job=job.name, size=self.queue.qsize())
