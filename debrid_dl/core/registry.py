"""
The in-memory job registry: the single source of truth broadcast to clients.

Jobs live in exactly one of four ordered collections at any instant. Every
transition pops the job by id from the collection it is expected in, so a job
cancelled while its pipeline was suspended on I/O simply fails to transition
instead of reappearing elsewhere. All methods are synchronous; under asyncio
they are atomic with respect to other tasks.
"""

import logging
from collections import OrderedDict
from typing import Any, Dict, List, Optional

from debrid_dl.models.job import Job, JobError, JobPhase

log = logging.getLogger(__name__)


class JobRegistry:
    """Tracks every job by phase, with a bounded ring of recent errors."""

    def __init__(self, max_errors: int = 50):
        self.max_errors = max_errors
        self._unrestricting: OrderedDict[str, Job] = OrderedDict()
        self._downloading: OrderedDict[str, Job] = OrderedDict()
        self._errored: OrderedDict[str, Job] = OrderedDict()
        self._completed: List[str] = []

    @property
    def has_active_downloads(self) -> bool:
        return bool(self._downloading)

    def add(self, url: str, password: str = "") -> Job:
        """Creates a job for a newly accepted link in the unrestricting phase."""
        job = Job(url=url, password=password)
        self._unrestricting[job.id] = job
        return job

    def get(self, job_id: str) -> Optional[Job]:
        """Returns a live job (not yet folded into completed) by id."""
        for collection in (self._unrestricting, self._downloading, self._errored):
            if job_id in collection:
                return collection[job_id]
        return None

    def start_download(
        self, job_id: str, resolved_url: str, file_path: str
    ) -> Optional[Job]:
        """
        Moves a job from unrestricting to downloading.

        Returns None if the job is no longer unrestricting, which means it was
        cancelled while the unrestrict call was in flight.
        """
        job = self._unrestricting.pop(job_id, None)
        if job is None:
            return None
        job.resolved_url = resolved_url
        job.file_path = file_path
        job.phase = JobPhase.DOWNLOADING
        self._downloading[job_id] = job
        return job

    def complete(self, job_id: str) -> bool:
        """Folds a finished download into the completed list."""
        job = self._downloading.pop(job_id, None)
        if job is None:
            return False
        job.phase = JobPhase.COMPLETED
        self._completed.append(job.file_path)
        return True

    def fail(self, job_id: str, message: str) -> bool:
        """
        Moves an in-flight job into the errored ring.

        Returns False if the job already left the in-flight collections, e.g.
        because it was cancelled; cancelled jobs are never recorded as errors.
        """
        job = self._unrestricting.pop(job_id, None) or self._downloading.pop(
            job_id, None
        )
        if job is None:
            return False
        job.phase = JobPhase.ERRORED
        job.error = JobError(item=job.item, message=message)
        self._errored[job_id] = job

        while len(self._errored) > self.max_errors:
            _, evicted = self._errored.popitem(last=False)
            log.debug(f"Evicted oldest error entry for {evicted.item}")
        return True

    def cancel(self, identifier: str) -> Optional[Job]:
        """
        Removes the job named by ``identifier`` from whichever collection holds it.

        The identifier may be the job id, the submitted link, the resolved link
        or the destination path. Errored jobs are simply dropped; downloading
        jobs have their in-flight response closed; unrestricting jobs are
        flagged so their pipeline discards the result. Unknown identifiers are
        a no-op and return None.
        """
        for job_id, job in self._errored.items():
            if identifier in (job_id, job.url, job.error.item if job.error else None):
                del self._errored[job_id]
                return job

        for job_id, job in self._downloading.items():
            if job.matches(identifier):
                del self._downloading[job_id]
                job.abort()
                return job

        for job_id, job in self._unrestricting.items():
            if identifier in (job_id, job.url):
                del self._unrestricting[job_id]
                job.cancel_requested = True
                return job

        return None

    def claimed_paths(self) -> set[str]:
        """Destination paths currently being written by downloading jobs."""
        return {job.file_path for job in self._downloading.values() if job.file_path}

    def snapshot(self) -> Dict[str, Any]:
        """Builds the serializable view of the whole registry."""
        return {
            "unrestricting": [job.to_status() for job in self._unrestricting.values()],
            "downloading": [job.to_status() for job in self._downloading.values()],
            "completed": list(self._completed),
            "errors": [job.to_status() for job in self._errored.values()],
        }
