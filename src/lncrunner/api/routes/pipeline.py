"""Pipeline routes: submission, status polling, result download."""

import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import FileResponse
from starlette.datastructures import UploadFile

from lncrunner.api.deps import (
    DispatcherDep,
    GatewayDep,
    JobStoreDep,
    SettingsDep,
    StorageDep,
)
from lncrunner.core.exceptions import LncRunnerException, ValidationError
from lncrunner.core.security import secure_filename
from lncrunner.models import Job, JobStatus
from lncrunner.schemas import (
    JobListResponse,
    JobStatusResponse,
    JobSummary,
    PipelineRequest,
    PydanticValidationError,
    SubmitResponse,
    format_validation_error,
)

router = APIRouter(prefix="/api/pipeline", tags=["pipeline"])
logger = logging.getLogger("lncrunner.api.pipeline")

SCALAR_FIELDS = ("orgName", "clade", "relSpeciesName")


# ─────────────────────────────────────────────────────────────────────────────
# Routes
# ─────────────────────────────────────────────────────────────────────────────

@router.post("/run", response_model=SubmitResponse)
async def run_pipeline(
    request: Request,
    settings: SettingsDep,
    store: JobStoreDep,
    storage: StorageDep,
    dispatcher: DispatcherDep,
):
    """
    Accept a multipart submission and start a pipeline job.

    Scalar fields carry the run parameters; every file part is keyed by its
    logical field name. Returns as soon as the uploads are spooled and the
    job is registered; execution continues in the background.
    """
    async with request.form() as form:
        scalars: dict[str, str] = {}
        parts: list[tuple[str, UploadFile]] = []
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                # Browsers send an unnamed empty part for a blank file input
                if value.filename:
                    parts.append((key, value))
            else:
                scalars.setdefault(key, value)

        logger.info(
            "Received submission: fields=%s files=%s",
            sorted(scalars),
            [(field, upload.filename) for field, upload in parts],
        )

        files: dict[str, list[str]] = {}
        for field, upload in parts:
            files.setdefault(field, []).append(secure_filename(upload.filename))

        try:
            pipeline_request = PipelineRequest.model_validate(
                {
                    **{k: scalars[k] for k in SCALAR_FIELDS if k in scalars},
                    "files": files,
                },
                context={"reserved_filenames": {settings.pipeline.manifest_name}},
            )
        except PydanticValidationError as e:
            message = format_validation_error(e)
            logger.info("Submission rejected: %s", message)
            raise ValidationError(message)

        spooled = []
        try:
            for field, upload in parts:
                spooled.append(await storage.spool_upload(field, upload))
        except LncRunnerException:
            storage.discard_uploads(spooled)
            raise
        except Exception:
            logger.exception("Failed to spool uploads")
            storage.discard_uploads(spooled)
            raise HTTPException(status_code=500, detail="Failed to start pipeline")

    job = store.create(
        Job(
            parameters=pipeline_request.to_parameters(),
            current_step="Queued",
        )
    )
    try:
        dispatcher.submit(job.id, pipeline_request, spooled)
    except Exception:
        logger.exception("Failed to dispatch job %s", job.id)
        storage.discard_uploads(spooled)
        store.update_status(
            job.id, JobStatus.FAILED, current_step="Failed to start pipeline"
        )
        raise HTTPException(status_code=500, detail="Failed to start pipeline")

    logger.info("Job %s started for %s", job.id, pipeline_request.org_name)
    return SubmitResponse(job_id=job.id)


@router.get("/status/{job_id}", response_model=JobStatusResponse)
async def get_pipeline_status(job_id: str, gateway: GatewayDep):
    """Get pipeline job status. Clients poll this until a terminal status."""
    return gateway.get_status(job_id)


@router.get("/download/{job_id}")
async def download_results(job_id: str, gateway: GatewayDep, settings: SettingsDep):
    """Stream the zipped results of a completed job."""
    archive = gateway.resolve_download(job_id)
    return FileResponse(
        archive,
        media_type="application/zip",
        filename=f"{settings.pipeline.summary_name}-{job_id}.zip",
    )


@router.get("/jobs", response_model=JobListResponse)
async def list_pipeline_jobs(
    store: JobStoreDep,
    status: JobStatus | None = None,
    limit: int = 50,
):
    """List pipeline jobs, newest first."""
    jobs = [job for job in store.list_all() if status is None or job.status == status]
    jobs.sort(key=lambda job: job.created_at, reverse=True)

    return JobListResponse(
        total=len(jobs),
        jobs=[JobSummary.from_job(job) for job in jobs[:limit]],
    )
