"""In-process job runner using asyncio."""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict

from clipforge.errors import ConflictError

logger = logging.getLogger(__name__)


class JobRunner:
    """Tracks running jobs by key so one process never runs the same video twice.

    The persisted status compare-and-set is the authority across processes;
    this registry rejects duplicates early and lets shutdown cancel work.
    """

    def __init__(self):
        self._running_jobs: Dict[str, asyncio.Task] = {}

    async def run(self, key: str, job: Callable[[], Awaitable[Any]]) -> Any:
        """
        Run a job to completion and return its result.

        Args:
            key: Job identity (the video ID)
            job: Zero-argument coroutine function doing the work

        Raises:
            ConflictError: If a job with the same key is already running
        """
        if key in self._running_jobs:
            logger.warning(f"Job {key} is already running")
            raise ConflictError(f"Job {key} is already running")

        task = asyncio.create_task(job())
        self._running_jobs[key] = task
        try:
            return await task
        finally:
            self._running_jobs.pop(key, None)

    async def cancel_job(self, key: str) -> bool:
        """Cancel a running job."""
        task = self._running_jobs.get(key)
        if task:
            task.cancel()
            return True
        return False

    def is_job_running(self, key: str) -> bool:
        """Check if a job is currently running."""
        return key in self._running_jobs

    @property
    def running_jobs(self) -> int:
        return len(self._running_jobs)

    async def shutdown(self):
        """Cancel all running jobs and wait for their rollback to finish."""
        tasks = list(self._running_jobs.values())
        for task in tasks:
            task.cancel()

        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"Cancelled {len(tasks)} running jobs")

        self._running_jobs.clear()
