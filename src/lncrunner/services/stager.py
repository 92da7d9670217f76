"""Input staging: per-job directory tree and LncRAnalyzer manifest."""

from dataclasses import dataclass
from pathlib import Path

from lncrunner.config import Settings, settings as default_settings
from lncrunner.core.exceptions import StagingError, StorageError
from lncrunner.core.logging import get_logger
from lncrunner.schemas import SLOTS_BY_FIELD, PipelineRequest
from lncrunner.services.storage import SpooledUpload, StorageService

logger = get_logger("lncrunner.stager")


# Manifest line order expected by the pipeline image. Entries are either a
# file slot (looked up by logical field) or a scalar run parameter.
MANIFEST_LAYOUT: tuple[tuple[str, str, str], ...] = (
    ("reads_R1", "file", "readsR1"),
    ("reads_R2", "file", "readsR2"),
    ("rRNAs", "file", "rRNAs"),
    ("org_name", "param", "org_name"),
    ("clade", "param", "clade"),
    ("genome", "file", "genome"),
    ("annotation", "file", "annotation"),
    ("liftover", "file", "liftover"),
    ("noncoding", "file", "noncoding"),
    ("mir", "file", "mir"),
    ("sno", "file", "sno"),
    ("known_lncRNAs_FA", "file", "knownLncRNAs"),
    ("design", "file", "design"),
    ("rel_sp_name", "param", "rel_species_name"),
    ("genome_related_species", "file", "genomeRelatedSpecies"),
    ("annotation_related_species", "file", "annotationRelatedSpecies"),
    ("rel_liftover", "file", "relLiftover"),
    ("rel_noncoding", "file", "relNoncoding"),
    ("rel_mir", "file", "relMir"),
    ("rel_sno", "file", "relSno"),
)


@dataclass(frozen=True)
class StagedInput:
    """Directories and manifest prepared for one job."""
    job_id: str
    input_dir: Path
    output_dir: Path
    manifest_path: Path


def build_manifest(
    request: PipelineRequest,
    file_mapping: dict[str, list[str]],
    input_mount: str = "/input",
) -> str:
    """
    Render the ``key="value"`` manifest consumed by the pipeline.

    ``file_mapping`` maps logical fields to staged filenames; paths are
    written relative to the container's input mount and multi-file fields
    are comma-joined. Missing optional slots become empty strings.
    """
    mount = input_mount.rstrip("/")
    lines = []
    for key, kind, source in MANIFEST_LAYOUT:
        if kind == "param":
            value = str(getattr(request, source))
        else:
            names = file_mapping.get(source, [])
            value = ",".join(f"{mount}/{name}" for name in names)
        lines.append(f'{key}="{value}"')
    return "\n".join(lines)


class InputStager:
    """Materializes uploads and the manifest into an isolated job directory."""

    def __init__(self, storage: StorageService, settings: Settings | None = None):
        settings = settings or default_settings
        self.storage = storage
        self.input_mount = settings.pipeline.input_mount
        self.manifest_name = settings.pipeline.manifest_name

    def stage(
        self,
        job_id: str,
        request: PipelineRequest,
        uploads: list[SpooledUpload],
    ) -> StagedInput:
        """
        Build ``jobs/<id>/input`` and an empty output directory.

        Raises:
            StagingError: A directory could not be created or a file could
                not be moved or written.
        """
        input_dir = self.storage.input_dir(job_id)
        output_dir = self.storage.output_dir(job_id)

        try:
            input_dir.mkdir(parents=True, exist_ok=True)
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StagingError(f"Cannot create job directories: {e}", str(input_dir))

        manifest_path = input_dir / self.manifest_name
        file_mapping: dict[str, list[str]] = {}
        for upload in uploads:
            if upload.field not in SLOTS_BY_FIELD:
                raise StagingError(f"Unknown file field: {upload.field}", str(upload.path))
            target = input_dir / upload.filename
            if target == manifest_path:
                raise StagingError(
                    f"Upload would overwrite the manifest: {upload.filename}",
                    str(upload.path),
                )
            try:
                self.storage.move_file(upload.path, target)
            except StorageError as e:
                raise StagingError(e.message, str(upload.path))
            file_mapping.setdefault(upload.field, []).append(upload.filename)

        try:
            manifest_path.write_text(
                build_manifest(request, file_mapping, self.input_mount),
                encoding="utf-8",
            )
        except OSError as e:
            raise StagingError(f"Cannot write manifest: {e}", str(manifest_path))

        logger.info(
            "input_staged",
            job_id=job_id,
            files=sum(len(v) for v in file_mapping.values()),
            input_dir=str(input_dir),
        )
        return StagedInput(
            job_id=job_id,
            input_dir=input_dir,
            output_dir=output_dir,
            manifest_path=manifest_path,
        )
