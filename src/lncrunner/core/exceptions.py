"""LncRunner custom exceptions and error handlers."""

import logging
import traceback
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("lncrunner")


# ─────────────────────────────────────────────────────────────────────────────
# Custom Exceptions
# ─────────────────────────────────────────────────────────────────────────────

class LncRunnerException(Exception):
    """Base exception for LncRunner."""

    def __init__(
        self,
        message: str,
        code: str = "LNCRUNNER_ERROR",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class NotFoundError(LncRunnerException):
    """Resource not found."""

    def __init__(self, resource: str, identifier: Any, reason: str | None = None):
        message = f"{resource} not found: {identifier}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(
            message=message,
            code="NOT_FOUND",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "identifier": str(identifier)},
        )


class ValidationError(LncRunnerException):
    """Submission rejected before a job is created."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"field": field} if field else {},
        )


class DuplicateJobError(LncRunnerException):
    """A job with the same id is already registered."""

    def __init__(self, job_id: str):
        super().__init__(
            message=f"Job already exists: {job_id}",
            code="DUPLICATE_JOB",
            status_code=status.HTTP_409_CONFLICT,
            details={"job_id": job_id},
        )


class InvalidTransitionError(LncRunnerException):
    """Requested status change is not allowed by the job state machine."""

    def __init__(self, job_id: str, current: str, requested: str):
        super().__init__(
            message=f"Job {job_id} cannot move from {current} to {requested}",
            code="INVALID_TRANSITION",
            status_code=status.HTTP_409_CONFLICT,
            details={"job_id": job_id, "current": current, "requested": requested},
        )


class PipelineError(LncRunnerException):
    """External pipeline launch or execution error."""

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(
            message=message,
            code="PIPELINE_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"exit_code": exit_code} if exit_code is not None else {},
        )
        self.exit_code = exit_code


class StorageError(LncRunnerException):
    """Storage operation error."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(
            message=message,
            code="STORAGE_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"path": path} if path else {},
        )


class StagingError(StorageError):
    """Job input directory could not be prepared."""


class ArchiveError(StorageError):
    """Pipeline output could not be archived."""


class FileTooLargeError(LncRunnerException):
    """File exceeds size limit."""

    def __init__(self, size: int, max_size: int):
        super().__init__(
            message=f"File too large: {size} bytes (max: {max_size})",
            code="FILE_TOO_LARGE",
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            details={"size": size, "max_size": max_size},
        )


# ─────────────────────────────────────────────────────────────────────────────
# Exception Handlers
# ─────────────────────────────────────────────────────────────────────────────

def install_exception_handlers(app: FastAPI, include_trace: bool = False) -> None:
    """Install exception handlers on FastAPI app."""

    @app.exception_handler(LncRunnerException)
    async def lncrunner_exception_handler(request: Request, exc: LncRunnerException):
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": exc.message,
                "code": exc.code,
                "details": exc.details,
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": str(exc.detail),
                "code": "HTTP_ERROR",
            },
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning("Validation error: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": "Request validation failed",
                "code": "VALIDATION_ERROR",
                "details": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error: %s", exc)
        content = {
            "error": "An unexpected error occurred",
            "code": "INTERNAL_ERROR",
        }
        if include_trace:
            content["trace"] = traceback.format_exc()
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=content,
        )
