"""Job model for pipeline execution tracking."""

import secrets
from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


Clade = Literal["vertebrates", "plants"]


class JobStatus(str, Enum):
    """Job execution status."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


# Allowed status changes; terminal states have no outgoing edges.
TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.RUNNING, JobStatus.FAILED}),
    JobStatus.RUNNING: frozenset(
        {JobStatus.RUNNING, JobStatus.COMPLETED, JobStatus.FAILED}
    ),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_job_id() -> str:
    """Generate an opaque, URL-safe job identifier."""
    return secrets.token_urlsafe(16)


class JobParameters(BaseModel):
    """Scalar run parameters captured at submission."""

    model_config = ConfigDict(frozen=True)

    org_name: str
    clade: Clade
    rel_species_name: str


class Job(BaseModel):
    """One tracked invocation of the external analysis pipeline."""

    id: str = Field(default_factory=new_job_id)
    status: JobStatus = JobStatus.PENDING
    current_step: str | None = None
    parameters: JobParameters
    output_path: str | None = None

    created_at: datetime = Field(default_factory=utc_now)
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def duration_seconds(self) -> float | None:
        """Calculate job duration in seconds."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def __repr__(self) -> str:
        return f"<Job {self.id} {self.status.value}>"
