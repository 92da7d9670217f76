"""In-memory registry of pipeline jobs."""

import threading

from lncrunner.core.exceptions import (
    DuplicateJobError,
    InvalidTransitionError,
    NotFoundError,
)
from lncrunner.core.logging import get_logger
from lncrunner.models import TRANSITIONS, Job, JobStatus, utc_now

logger = get_logger("lncrunner.store")


class JobStore:
    """
    Authoritative record of job identity, status and metadata.

    State lives only in process memory and is lost on exit. Every operation
    holds a single lock for the duration of a dict lookup or replacement and
    hands out copies, so polling readers never see a partially applied update.
    """

    def __init__(self):
        self._jobs: dict[str, Job] = {}
        self._lock = threading.Lock()

    def create(self, job: Job) -> Job:
        with self._lock:
            if job.id in self._jobs:
                raise DuplicateJobError(job.id)
            self._jobs[job.id] = job.model_copy()

        logger.info("job_created", job_id=job.id, status=job.status.value)
        return job.model_copy()

    def get(self, job_id: str) -> Job:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise NotFoundError("Job", job_id)
            return job.model_copy()

    def update_status(
        self,
        job_id: str,
        status: JobStatus,
        current_step: str | None = None,
        output_path: str | None = None,
    ) -> Job:
        """
        Apply a partial update to a job.

        Fields left as None keep their previous value. ``started_at`` is
        stamped on the first move into RUNNING and ``completed_at`` on the
        move into a terminal state, which can only happen once.

        Raises:
            NotFoundError: Unknown job id
            InvalidTransitionError: Status change not allowed from current state
        """
        status = JobStatus(status)
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise NotFoundError("Job", job_id)
            if status not in TRANSITIONS[job.status]:
                raise InvalidTransitionError(job_id, job.status.value, status.value)

            changes: dict = {"status": status}
            if current_step is not None:
                changes["current_step"] = current_step
            if output_path is not None:
                changes["output_path"] = output_path

            now = utc_now()
            if status == JobStatus.RUNNING and job.started_at is None:
                changes["started_at"] = now
            if status.is_terminal and job.completed_at is None:
                changes["completed_at"] = now

            updated = job.model_copy(update=changes)
            self._jobs[job_id] = updated

        logger.info(
            "job_status_updated",
            job_id=job_id,
            status=status.value,
            current_step=updated.current_step,
        )
        return updated.model_copy()

    def list_all(self) -> list[Job]:
        with self._lock:
            return [job.model_copy() for job in self._jobs.values()]

    def __contains__(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._jobs

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)
