"""Core module - exceptions, logging."""

from .exceptions import (
    ArchiveError,
    DuplicateJobError,
    FileTooLargeError,
    InvalidTransitionError,
    LncRunnerException,
    NotFoundError,
    PipelineError,
    StagingError,
    StorageError,
    ValidationError,
    install_exception_handlers,
)
from .logging import (
    bind_context,
    clear_context,
    get_logger,
    setup_logging,
)

__all__ = [
    # Exceptions
    "LncRunnerException",
    "NotFoundError",
    "ValidationError",
    "DuplicateJobError",
    "InvalidTransitionError",
    "PipelineError",
    "StorageError",
    "StagingError",
    "ArchiveError",
    "FileTooLargeError",
    "install_exception_handlers",
    # Logging
    "setup_logging",
    "get_logger",
    "bind_context",
    "clear_context",
]
