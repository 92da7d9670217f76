"""Read-only status and download access over the job store."""

from pathlib import Path

from lncrunner.core.exceptions import NotFoundError
from lncrunner.core.logging import get_logger
from lncrunner.models import JobStatus
from lncrunner.schemas import JobStatusResponse
from lncrunner.services.job_store import JobStore
from lncrunner.services.storage import StorageService

logger = get_logger("lncrunner.gateway")


class JobGateway:
    """Query interface used by the status and download routes."""

    def __init__(self, store: JobStore, storage: StorageService):
        self.store = store
        self.storage = storage

    def get_status(self, job_id: str) -> JobStatusResponse:
        return JobStatusResponse.from_job(self.store.get(job_id))

    def resolve_download(self, job_id: str) -> Path:
        """
        Locate the archive for a completed job.

        Raises:
            NotFoundError: Job unknown, not completed, or archive missing
        """
        try:
            job = self.store.get(job_id)
        except NotFoundError:
            logger.info("download_unknown_job", job_id=job_id)
            raise

        if job.status != JobStatus.COMPLETED:
            logger.info("download_not_ready", job_id=job_id, status=job.status.value)
            raise NotFoundError("Results", job_id, reason=f"job is {job.status.value}")

        archive = Path(job.output_path) if job.output_path else self.storage.archive_path(job_id)
        if not self.storage.file_exists(archive):
            # Store says completed but the artifact is gone from disk
            logger.error("archive_missing", job_id=job_id, path=str(archive))
            raise NotFoundError("Result archive", job_id)

        return archive
