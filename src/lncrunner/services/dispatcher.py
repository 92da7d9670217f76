"""Per-job task scheduling and the job lifecycle state machine.

Each submitted job gets its own asyncio task. The task stages the input,
runs the container and archives the output, writing every phase transition
to the job store. Nothing awaits these tasks from the request path; their
only visible effect is the job record.
"""

import asyncio
import contextlib
from functools import partial

from lncrunner.core.exceptions import (
    ArchiveError,
    InvalidTransitionError,
    NotFoundError,
    PipelineError,
    StagingError,
)
from lncrunner.core.logging import bind_context, get_logger
from lncrunner.models import JobStatus
from lncrunner.schemas import PipelineRequest
from lncrunner.services.archiver import ResultArchiver
from lncrunner.services.executor import PipelineExecutor
from lncrunner.services.job_store import JobStore
from lncrunner.services.stager import InputStager
from lncrunner.services.storage import SpooledUpload, StorageService

logger = get_logger("lncrunner.dispatcher")


class Dispatcher:
    """Runs submitted jobs concurrently, at most ``max_concurrent_jobs`` at once."""

    def __init__(
        self,
        store: JobStore,
        storage: StorageService,
        stager: InputStager,
        executor: PipelineExecutor,
        archiver: ResultArchiver,
        max_concurrent_jobs: int = 0,
    ):
        self.store = store
        self.storage = storage
        self.stager = stager
        self.executor = executor
        self.archiver = archiver
        self.max_concurrent_jobs = max_concurrent_jobs
        self._semaphore = (
            asyncio.Semaphore(max_concurrent_jobs) if max_concurrent_jobs else None
        )
        self._tasks: dict[str, asyncio.Task] = {}

    @property
    def active_jobs(self) -> list[str]:
        return list(self._tasks)

    def submit(
        self,
        job_id: str,
        request: PipelineRequest,
        uploads: list[SpooledUpload],
    ) -> asyncio.Task:
        """Schedule a job's task and return without waiting for it."""
        task = asyncio.create_task(
            self._run_job(job_id, request, uploads), name=f"job-{job_id}"
        )
        self._tasks[job_id] = task
        task.add_done_callback(partial(self._on_done, job_id))
        return task

    async def shutdown(self) -> None:
        """Cancel outstanding jobs; their records end up failed."""
        tasks = list(self._tasks.values())
        if not tasks:
            return
        logger.warning("dispatcher_shutdown", outstanding=len(tasks))
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _run_job(
        self,
        job_id: str,
        request: PipelineRequest,
        uploads: list[SpooledUpload],
    ) -> None:
        bind_context(job_id=job_id)
        try:
            async with self._slot():
                await self._execute(job_id, request, uploads)
        except asyncio.CancelledError:
            self._fail_if_active(job_id, "Interrupted by server shutdown")
            raise
        except Exception as e:
            logger.exception("job_crashed", job_id=job_id)
            self._fail_if_active(job_id, f"Pipeline execution error: {e}")

    async def _execute(
        self,
        job_id: str,
        request: PipelineRequest,
        uploads: list[SpooledUpload],
    ) -> None:
        self.store.update_status(
            job_id, JobStatus.RUNNING, current_step="Preparing input files"
        )

        # ─────────────────────────────────────────────────────────────────
        # Step 1: Stage input
        # ─────────────────────────────────────────────────────────────────
        try:
            staged = await asyncio.to_thread(self.stager.stage, job_id, request, uploads)
        except StagingError as e:
            logger.error("staging_failed", job_id=job_id, error=e.message)
            await asyncio.to_thread(self.storage.discard_uploads, uploads)
            self.store.update_status(
                job_id,
                JobStatus.FAILED,
                current_step=f"Failed to prepare input files: {e.message}",
            )
            return

        # ─────────────────────────────────────────────────────────────────
        # Step 2: Run the container
        # ─────────────────────────────────────────────────────────────────
        try:
            await self.executor.run(job_id, staged)
        except PipelineError as e:
            self.store.update_status(job_id, JobStatus.FAILED, current_step=e.message)
            return

        # ─────────────────────────────────────────────────────────────────
        # Step 3: Archive output
        # ─────────────────────────────────────────────────────────────────
        self.store.update_status(job_id, JobStatus.RUNNING, current_step="Archiving results")
        try:
            archive = await asyncio.to_thread(
                self.archiver.archive, job_id, staged.output_dir
            )
        except ArchiveError as e:
            logger.error("archive_failed", job_id=job_id, error=e.message)
            self.store.update_status(
                job_id,
                JobStatus.FAILED,
                current_step=f"Pipeline succeeded but failed to archive results: {e.message}",
            )
            return

        self.store.update_status(
            job_id,
            JobStatus.COMPLETED,
            current_step="Pipeline completed and results archived",
            output_path=str(archive),
        )
        await asyncio.to_thread(
            self.archiver.cleanup, job_id, staged.input_dir, staged.output_dir
        )

    @contextlib.asynccontextmanager
    async def _slot(self):
        if self._semaphore is None:
            yield
            return
        async with self._semaphore:
            yield

    def _fail_if_active(self, job_id: str, step: str) -> None:
        try:
            job = self.store.get(job_id)
            if not job.status.is_terminal:
                self.store.update_status(job_id, JobStatus.FAILED, current_step=step)
        except (NotFoundError, InvalidTransitionError) as e:
            logger.error("job_fail_skipped", job_id=job_id, error=e.message)

    def _on_done(self, job_id: str, task: asyncio.Task) -> None:
        self._tasks.pop(job_id, None)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("job_task_error", job_id=job_id, error=str(exc))
