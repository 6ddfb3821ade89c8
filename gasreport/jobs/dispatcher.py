"""Job dispatcher interface and implementations.

Dispatch is fire-and-forget: the caller learns nothing about whether the
background work ran. A dispatch that is never delivered leaves the job in
"processing" until the stale-job sweep marks it failed.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional, Set

import httpx

logger = logging.getLogger(__name__)

WorkerFn = Callable[[str], Awaitable[None]]

BACKGROUND_PATH = "/generate-report-process-background"


class JobDispatcher(ABC):
    """Abstract interface for starting background work for a job."""

    @abstractmethod
    async def dispatch(self, job_id: str) -> None:
        """Schedule background processing for job_id without waiting for it."""
        ...

    async def start(self) -> None:
        """Start the dispatcher (e.g., start worker loop)."""

    async def stop(self) -> None:
        """Stop the dispatcher gracefully."""


class InProcessDispatcher(JobDispatcher):
    """Local async job queue. Processes jobs one at a time via asyncio.

    No external dependencies (broker, second function instance) needed.
    """

    def __init__(self, worker_fn: WorkerFn):
        """
        worker_fn: async callable(job_id) -> None
            Does the work and records the terminal state itself.
        """
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._worker_fn = worker_fn
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def dispatch(self, job_id: str) -> None:
        self._queue.put_nowait(job_id)

    async def start(self) -> None:
        self._running = True
        self._task = asyncio.create_task(self._worker_loop())

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _worker_loop(self) -> None:
        """Process jobs one at a time from the queue."""
        while self._running:
            try:
                job_id = await asyncio.wait_for(self._queue.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue
            except asyncio.CancelledError:
                break

            try:
                await self._worker_fn(job_id)
            except Exception:
                # worker_fn records failures itself; this only guards the loop
                logger.exception(f"Background worker crashed on job {job_id}")
            finally:
                self._queue.task_done()


class HttpDispatcher(JobDispatcher):
    """Triggers the background endpoint of a (possibly separate) instance.

    The POST runs in a detached task; delivery failures are logged only.
    """

    def __init__(self, site_url: str, client: Optional[httpx.AsyncClient] = None, timeout: float = 5.0):
        self.url = site_url.rstrip("/") + BACKGROUND_PATH
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._inflight: Set[asyncio.Task] = set()

    async def dispatch(self, job_id: str) -> None:
        task = asyncio.create_task(self._post(job_id))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _post(self, job_id: str) -> None:
        try:
            response = await self._client.post(self.url, json={"jobId": job_id})
            if response.is_error:
                logger.error(
                    f"Background dispatch for job {job_id} rejected: HTTP {response.status_code}"
                )
        except httpx.HTTPError as e:
            logger.error(f"Background dispatch for job {job_id} not delivered: {e!r}")

    async def stop(self) -> None:
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)
        if self._owns_client:
            await self._client.aclose()


class EagerDispatcher(JobDispatcher):
    """Runs the worker inline before returning. Tests and debugging only."""

    def __init__(self, worker_fn: WorkerFn):
        self._worker_fn = worker_fn

    async def dispatch(self, job_id: str) -> None:
        await self._worker_fn(job_id)


def build_dispatcher(settings, worker_fn: WorkerFn) -> JobDispatcher:
    """Select the dispatcher named by settings.dispatch_mode."""
    mode = settings.dispatch_mode.lower()
    if mode == "local":
        return InProcessDispatcher(worker_fn=worker_fn)
    if mode == "http":
        return HttpDispatcher(settings.site_url)
    if mode == "eager":
        return EagerDispatcher(worker_fn=worker_fn)
    raise ValueError(f"Unknown dispatch mode: {settings.dispatch_mode}")
