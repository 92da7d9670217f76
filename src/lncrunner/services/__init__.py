"""LncRunner Services."""

from .archiver import ResultArchiver
from .dispatcher import Dispatcher
from .executor import PipelineExecutor
from .gateway import JobGateway
from .job_store import JobStore
from .stager import InputStager, StagedInput, build_manifest
from .storage import SpooledUpload, StorageService
from .system_info import collect_system_info

__all__ = [
    # Job state
    "JobStore",
    "JobGateway",
    # Lifecycle
    "Dispatcher",
    "InputStager",
    "StagedInput",
    "build_manifest",
    "PipelineExecutor",
    "ResultArchiver",
    # Storage
    "StorageService",
    "SpooledUpload",
    # Host
    "collect_system_info",
]
