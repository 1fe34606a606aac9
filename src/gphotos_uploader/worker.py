"""Bounded worker pool that runs jobs concurrently and reports their results."""

import asyncio
import logging
from enum import Enum
from typing import Any, Protocol

from gphotos_uploader.models import JobResult, JobStatus

logger = logging.getLogger(__name__)

# Queued after the last job so each worker exits once the queue is drained
_STOP = object()


class PoolStateError(RuntimeError):
    """Raised when the pool is used in a state that does not allow it."""

    pass


class JobCancelledError(Exception):
    """Raised by a job that noticed its cancel scope was triggered."""

    pass


class PoolState(str, Enum):
    CREATED = "created"
    STARTED = "started"
    STOPPED = "stopped"


class Job(Protocol):
    """Unit of work accepted by :class:`WorkerPool`."""

    id: str

    async def execute(self) -> JobResult: ...


class CancelScope:
    """Cancellation signal shared by the orchestrator and its jobs.

    Jobs poll :meth:`raise_if_cancelled` between their steps, so cancelling
    stops in-flight work at the next step boundary.
    """

    def __init__(self, timeout: float | None = None) -> None:
        """Initialize cancel scope.

        Args:
            timeout: Seconds after which the scope cancels itself. Must be
                created inside a running event loop when given.
        """
        self._event = asyncio.Event()
        self._timer: asyncio.TimerHandle | None = None
        self.reason = ""
        if timeout is not None:
            loop = asyncio.get_running_loop()
            self._timer = loop.call_later(
                timeout, self.cancel, f"deadline of {timeout}s exceeded"
            )

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            logger.warning(f"Cancelling pending work: {reason}")
            self._event.set()

    def raise_if_cancelled(self) -> None:
        """Raise :class:`JobCancelledError` if the scope was cancelled."""
        if self._event.is_set():
            raise JobCancelledError(self.reason)

    def close(self) -> None:
        """Disarm the deadline timer, if any."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None


class WorkerPool:
    """Runs submitted jobs on a fixed number of concurrent workers.

    Results are published in completion order on :attr:`results`, one per
    job. A job that raises produces a failed result instead of killing its
    worker.
    """

    def __init__(self, worker_count: int, queue_size: int | None = None) -> None:
        """Initialize worker pool.

        Args:
            worker_count: Number of concurrent workers
            queue_size: Capacity of the submission queue; defaults to the
                number of workers. ``submit`` waits while it is full.

        Raises:
            ValueError: If worker_count is lower than 1
        """
        if worker_count < 1:
            raise ValueError("Worker pool needs at least one worker")
        self.worker_count = worker_count
        self.queue_size = queue_size if queue_size is not None else worker_count
        self.state = PoolState.CREATED
        self._jobs: asyncio.Queue[Any] = asyncio.Queue(maxsize=self.queue_size)
        self._results: asyncio.Queue[JobResult] = asyncio.Queue()
        self._workers: list[asyncio.Task[None]] = []

    async def __aenter__(self) -> "WorkerPool":
        self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.stop()

    @property
    def results(self) -> "asyncio.Queue[JobResult]":
        """Queue receiving one result per finished job."""
        return self._results

    def start(self) -> None:
        """Spawn the workers.

        Raises:
            PoolStateError: If the pool was already started or stopped
        """
        if self.state is not PoolState.CREATED:
            raise PoolStateError(f"Cannot start a pool in state '{self.state.value}'")
        self._workers = [
            asyncio.create_task(self._work(), name=f"worker-{n}")
            for n in range(self.worker_count)
        ]
        self.state = PoolState.STARTED
        logger.debug(f"Started worker pool with {self.worker_count} worker(s)")

    async def submit(self, job: Job) -> None:
        """Queue a job, waiting for room if the queue is full.

        Raises:
            PoolStateError: If the pool is not running
        """
        if self.state is not PoolState.STARTED:
            raise PoolStateError(f"Cannot submit to a pool in state '{self.state.value}'")
        await self._jobs.put(job)

    async def next_result(self) -> JobResult:
        """Wait for the next finished job."""
        return await self._results.get()

    async def stop(self) -> None:
        """Close intake, finish every accepted job and wait for the workers."""
        if self.state is PoolState.STOPPED:
            return
        if self.state is PoolState.CREATED:
            self.state = PoolState.STOPPED
            return

        self.state = PoolState.STOPPED
        for _ in self._workers:
            await self._jobs.put(_STOP)
        await asyncio.gather(*self._workers)
        self._workers = []
        logger.debug("Worker pool stopped")

    async def _work(self) -> None:
        while True:
            job = await self._jobs.get()
            if job is _STOP:
                return
            result = await self._run(job)
            self._results.put_nowait(result)

    async def _run(self, job: Job) -> JobResult:
        # A CancelledError raised by the job fails that job, not the worker
        task = asyncio.ensure_future(job.execute())
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise

        if task.cancelled():
            error: BaseException = JobCancelledError(f"Job {job.id} was cancelled")
        elif task.exception() is not None:
            error = task.exception()
        else:
            return task.result()
        logger.debug(f"Job {job.id} failed: {error}")
        return JobResult(id=job.id, status=JobStatus.FAILED, error=error)
