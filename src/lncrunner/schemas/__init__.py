"""Pydantic schemas for API request/response models."""

from datetime import datetime
from typing import NamedTuple

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from lncrunner.models import Clade, Job, JobParameters


# ─────────────────────────────────────────────────────────────────────────────
# File slots
# ─────────────────────────────────────────────────────────────────────────────

class FileSlot(NamedTuple):
    """A logical upload field and how the pipeline consumes it."""
    field: str
    manifest_key: str
    required: bool = False
    multiple: bool = False
    label: str = ""


FILE_SLOTS: tuple[FileSlot, ...] = (
    FileSlot("readsR1", "reads_R1", required=True, multiple=True, label="R1 read file"),
    FileSlot("readsR2", "reads_R2", multiple=True),
    FileSlot("rRNAs", "rRNAs", required=True, label="rRNA sequences file"),
    FileSlot("genome", "genome", required=True, label="Genome file"),
    FileSlot("annotation", "annotation", required=True, label="Annotation file"),
    FileSlot("liftover", "liftover"),
    FileSlot("noncoding", "noncoding"),
    FileSlot("mir", "mir"),
    FileSlot("sno", "sno"),
    FileSlot("knownLncRNAs", "known_lncRNAs_FA"),
    FileSlot("design", "design"),
    FileSlot(
        "genomeRelatedSpecies",
        "genome_related_species",
        required=True,
        label="Related species genome",
    ),
    FileSlot(
        "annotationRelatedSpecies",
        "annotation_related_species",
        required=True,
        label="Related species annotation",
    ),
    FileSlot("relLiftover", "rel_liftover"),
    FileSlot("relNoncoding", "rel_noncoding"),
    FileSlot("relMir", "rel_mir"),
    FileSlot("relSno", "rel_sno"),
)

SLOTS_BY_FIELD: dict[str, FileSlot] = {slot.field: slot for slot in FILE_SLOTS}

# Characters that would break a key="value" manifest line
FORBIDDEN_CHARS = ('"', "\n", "\r")

# Names the stager writes into input/ itself. Callers can pass their own set
# as validation context under "reserved_filenames".
RESERVED_FILENAMES = frozenset({"data.groovy"})


# ─────────────────────────────────────────────────────────────────────────────
# Submission
# ─────────────────────────────────────────────────────────────────────────────

class PipelineRequest(BaseModel):
    """
    Validated pipeline submission.

    ``files`` maps each logical upload field to the sanitized filenames that
    were uploaded under it. The uploaded part is authoritative; string
    placeholders a client may send for the same slots are not consulted.
    """

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    org_name: str = Field(alias="orgName", min_length=1)
    clade: Clade
    rel_species_name: str = Field(alias="relSpeciesName", min_length=1)
    files: dict[str, list[str]] = Field(default_factory=dict)

    @field_validator("org_name", "rel_species_name")
    @classmethod
    def no_manifest_breaking_chars(cls, v: str) -> str:
        if any(ch in v for ch in FORBIDDEN_CHARS):
            raise ValueError("must not contain quotes or line breaks")
        return v

    @model_validator(mode="after")
    def check_file_slots(self, info: ValidationInfo) -> "PipelineRequest":
        unknown = sorted(set(self.files) - set(SLOTS_BY_FIELD))
        if unknown:
            raise ValueError(f"Unexpected file field(s): {', '.join(unknown)}")

        reserved = (info.context or {}).get("reserved_filenames", RESERVED_FILENAMES)
        seen: set[str] = set()
        for slot in FILE_SLOTS:
            names = self.files.get(slot.field, [])
            if slot.required and not names:
                if slot.multiple:
                    raise ValueError(f"At least one {slot.label} is required ({slot.field})")
                raise ValueError(f"{slot.label} is required ({slot.field})")
            if not slot.multiple and len(names) > 1:
                raise ValueError(f"Only one file may be uploaded for {slot.field}")
            for name in names:
                if name in reserved:
                    raise ValueError(f"Filename is reserved: {name} ({slot.field})")
                if name in seen:
                    raise ValueError(f"Duplicate filename: {name}")
                seen.add(name)
        return self

    def to_parameters(self) -> JobParameters:
        return JobParameters(
            org_name=self.org_name,
            clade=self.clade,
            rel_species_name=self.rel_species_name,
        )


def format_validation_error(exc: PydanticValidationError) -> str:
    """Render pydantic errors as one human-readable sentence."""
    parts = []
    for error in exc.errors():
        msg = error["msg"].removeprefix("Value error, ")
        loc = ".".join(str(p) for p in error["loc"])
        parts.append(f"{msg} at \"{loc}\"" if loc else msg)
    return "Validation error: " + "; ".join(parts)


# ─────────────────────────────────────────────────────────────────────────────
# Responses
# ─────────────────────────────────────────────────────────────────────────────

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SubmitResponse(CamelModel):
    job_id: str
    status: str = "started"


class JobStatusResponse(CamelModel):
    status: str
    current_step: str | None = None
    output_path: str | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None

    @classmethod
    def from_job(cls, job: Job) -> "JobStatusResponse":
        return cls(
            status=job.status.value,
            current_step=job.current_step,
            output_path=job.output_path,
            created_at=job.created_at,
            completed_at=job.completed_at,
        )


class JobSummary(JobStatusResponse):
    job_id: str
    org_name: str
    clade: str
    rel_species_name: str

    @classmethod
    def from_job(cls, job: Job) -> "JobSummary":
        return cls(
            job_id=job.id,
            org_name=job.parameters.org_name,
            clade=job.parameters.clade,
            rel_species_name=job.parameters.rel_species_name,
            **JobStatusResponse.from_job(job).model_dump(),
        )


class JobListResponse(BaseModel):
    total: int
    jobs: list[JobSummary]


class MemoryInfo(BaseModel):
    used: int
    total: int


class StorageInfo(BaseModel):
    free: int
    total: int


class SystemInfoResponse(CamelModel):
    docker_running: bool
    cpu_usage_percent: float
    memory: MemoryInfo
    storage: StorageInfo


__all__ = [
    "FILE_SLOTS",
    "SLOTS_BY_FIELD",
    "RESERVED_FILENAMES",
    "FileSlot",
    "PipelineRequest",
    "PydanticValidationError",
    "format_validation_error",
    "SubmitResponse",
    "JobStatusResponse",
    "JobSummary",
    "JobListResponse",
    "SystemInfoResponse",
]
