"""Pipeline executor: runs the LncRAnalyzer container for a staged job.

The container is launched with the staged input directory mounted read-only
and the job's output directory mounted writable. Both output streams are
drained concurrently while the process runs so it can never block on a full
pipe; lines are logged for diagnostics and have no effect on job state.
"""

import asyncio
from collections import deque

from lncrunner.config import Settings, settings as default_settings
from lncrunner.core.exceptions import PipelineError
from lncrunner.core.logging import PIPELINE_OUTPUT_LOGGER, get_logger
from lncrunner.models import JobStatus
from lncrunner.services.job_store import JobStore
from lncrunner.services.stager import StagedInput

logger = get_logger(PIPELINE_OUTPUT_LOGGER)


class PipelineExecutor:
    """Launches the external pipeline and maps its exit status."""

    def __init__(self, store: JobStore, settings: Settings | None = None):
        settings = settings or default_settings
        self.store = store
        self.config = settings.pipeline

    def build_command(self, staged: StagedInput) -> list[str]:
        cfg = self.config
        manifest = f"{cfg.input_mount.rstrip('/')}/{staged.manifest_path.name}"
        return [
            cfg.container_engine,
            "run",
            "--rm",
            "-v", f"{staged.input_dir.resolve()}:{cfg.input_mount}:ro",
            "-v", f"{staged.output_dir.resolve()}:{cfg.output_mount}",
            cfg.image,
            "bpipe", "run", "-n", str(cfg.threads),
            cfg.entrypoint,
            manifest,
        ]

    async def run(self, job_id: str, staged: StagedInput) -> None:
        """
        Run the container to completion.

        Returns normally on exit code 0.

        Raises:
            PipelineError: Launch failure, timeout or non-zero exit code
        """
        engine = self.config.container_engine
        self.store.update_status(
            job_id, JobStatus.RUNNING, current_step=f"Starting {engine} container"
        )

        cmd = self.build_command(staged)
        logger.info("pipeline_launch", job_id=job_id, command=" ".join(cmd))

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise PipelineError(f"Pipeline launch failed: {e}")

        self.store.update_status(
            job_id, JobStatus.RUNNING, current_step="Running LncRAnalyzer"
        )

        tail: deque[str] = deque(maxlen=self.config.log_tail_lines)
        readers = asyncio.gather(
            self._drain(process.stdout, "stdout", job_id, tail),
            self._drain(process.stderr, "stderr", job_id, tail),
        )

        try:
            await asyncio.wait_for(
                asyncio.shield(readers), timeout=self.config.timeout_seconds
            )
            returncode = await process.wait()
        except asyncio.TimeoutError:
            await self._terminate(process, job_id)
            try:
                # A surviving grandchild can keep the pipes open indefinitely
                await asyncio.wait_for(
                    readers, timeout=self.config.terminate_grace_seconds
                )
            except asyncio.TimeoutError:
                logger.warning("pipeline_output_abandoned", job_id=job_id)
            raise PipelineError(
                f"Pipeline timed out after {self.config.timeout_seconds}s"
            )
        except asyncio.CancelledError:
            await self._terminate(process, job_id)
            readers.cancel()
            raise

        if returncode != 0:
            logger.error(
                "pipeline_failed",
                job_id=job_id,
                exit_code=returncode,
                output_tail="\n".join(tail),
            )
            raise PipelineError(
                f"Pipeline failed (exit code: {returncode})", exit_code=returncode
            )

        logger.info("pipeline_finished", job_id=job_id)

    async def _drain(self, stream, name: str, job_id: str, tail: deque) -> None:
        while True:
            try:
                line = await stream.readline()
            except ValueError:
                # Line longer than the stream buffer limit; its remainder is dropped
                continue
            if not line:
                break
            text = line.decode(errors="replace").rstrip()
            tail.append(f"[{name}] {text}")
            logger.debug("pipeline_output", job_id=job_id, stream=name, line=text)

    async def _terminate(self, process: asyncio.subprocess.Process, job_id: str) -> None:
        """SIGTERM, then SIGKILL once the grace period runs out."""
        if process.returncode is not None:
            return
        logger.warning("pipeline_terminating", job_id=job_id, pid=process.pid)
        try:
            process.terminate()
            if await self._wait_exit(process):
                return
            logger.warning("pipeline_killed", job_id=job_id, pid=process.pid)
            process.kill()
        except ProcessLookupError:
            return
        if not await self._wait_exit(process):
            logger.error("pipeline_unreaped", job_id=job_id, pid=process.pid)

    async def _wait_exit(self, process: asyncio.subprocess.Process) -> bool:
        """
        Wait up to the grace period for the process itself to exit.

        ``process.wait()`` also waits for the pipes to close, which never
        happens while a child of the engine CLI still holds them, so the
        return code is polled instead.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.terminate_grace_seconds
        while process.returncode is None:
            if loop.time() >= deadline:
                return False
            await asyncio.sleep(0.05)
        return True
