"""Domain models."""

from .job import TRANSITIONS, Clade, Job, JobParameters, JobStatus, new_job_id, utc_now

__all__ = [
    "TRANSITIONS",
    "Clade",
    "Job",
    "JobParameters",
    "JobStatus",
    "new_job_id",
    "utc_now",
]
