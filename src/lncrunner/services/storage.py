"""Storage service for file operations."""

import shutil
from dataclasses import dataclass
from pathlib import Path
from uuid import uuid4

from lncrunner.config import Settings, settings as default_settings
from lncrunner.core.exceptions import StorageError
from lncrunner.core.security import async_save_upload, secure_filename


@dataclass(frozen=True)
class SpooledUpload:
    """An uploaded file part held on disk until its job is staged."""
    field: str
    filename: str
    path: Path
    size: int


class StorageService:
    """Service for managing upload spooling and per-job directories."""

    def __init__(self, settings: Settings | None = None):
        settings = settings or default_settings
        self.jobs_path = settings.storage.jobs_dir
        self.upload_path = settings.storage.upload_dir
        self.max_file_size = settings.storage.max_file_size
        self.summary_name = settings.pipeline.summary_name

    # Layout of jobs/<job_id>/

    def job_dir(self, job_id: str) -> Path:
        return self.jobs_path / job_id

    def input_dir(self, job_id: str) -> Path:
        return self.job_dir(job_id) / "input"

    def output_dir(self, job_id: str) -> Path:
        return self.job_dir(job_id) / self.summary_name

    def archive_path(self, job_id: str) -> Path:
        return self.job_dir(job_id) / f"{self.summary_name}-{job_id}.zip"

    async def spool_upload(self, field: str, upload) -> SpooledUpload:
        """Persist an UploadFile under a unique name in the upload directory."""
        filename = secure_filename(upload.filename)
        dest = self.upload_path / uuid4().hex
        size = await async_save_upload(upload, dest, self.max_file_size)
        return SpooledUpload(field=field, filename=filename, path=dest, size=size)

    def discard_uploads(self, uploads: list[SpooledUpload]) -> None:
        """Remove spooled files that will never be staged."""
        for upload in uploads:
            upload.path.unlink(missing_ok=True)

    def move_file(self, source: Path, destination: Path) -> Path:
        """Move a file, falling back to copy+delete across filesystems."""
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            return Path(shutil.move(str(source), str(destination)))
        except OSError as e:
            raise StorageError(f"Failed to move file: {e}", str(source))

    def delete_directory(self, path: Path) -> bool:
        """Delete a directory and all contents."""
        try:
            if path.exists():
                shutil.rmtree(path)
                return True
            return False
        except OSError as e:
            raise StorageError(f"Failed to delete directory: {e}", str(path))

    def file_exists(self, path: Path) -> bool:
        """Check if file exists."""
        return path.exists() and path.is_file()
