"""Result archiving and transient storage cleanup."""

import os
import zipfile
from pathlib import Path

from lncrunner.core.exceptions import ArchiveError, StorageError
from lncrunner.core.logging import get_logger
from lncrunner.services.storage import StorageService

logger = get_logger("lncrunner.archiver")


class ResultArchiver:
    """Packs a job's output tree into a single downloadable zip."""

    def __init__(self, storage: StorageService, compresslevel: int = 9):
        self.storage = storage
        self.compresslevel = compresslevel

    def archive(self, job_id: str, output_dir: Path) -> Path:
        """
        Write ``output_dir`` into the job's archive.

        Entries are stored relative to ``output_dir`` with no leading
        directory. The archive is written under a temporary name and renamed
        into place, so a finished archive is never partially visible.

        Raises:
            ArchiveError: The archive could not be written
        """
        archive_path = self.storage.archive_path(job_id)
        partial = archive_path.with_name(archive_path.name + ".part")

        try:
            count = 0
            with zipfile.ZipFile(
                partial,
                "w",
                compression=zipfile.ZIP_DEFLATED,
                compresslevel=self.compresslevel,
            ) as zf:
                for path in sorted(output_dir.rglob("*")):
                    if path.is_file():
                        zf.write(path, arcname=path.relative_to(output_dir).as_posix())
                        count += 1
            os.replace(partial, archive_path)
            size = archive_path.stat().st_size
        except (OSError, zipfile.BadZipFile, ValueError) as e:
            partial.unlink(missing_ok=True)
            raise ArchiveError(f"Failed to write archive: {e}", str(archive_path))

        logger.info(
            "archive_created",
            job_id=job_id,
            path=str(archive_path),
            entries=count,
            size=size,
        )
        return archive_path

    def cleanup(self, job_id: str, *directories: Path) -> None:
        """Best-effort removal of transient directories; errors are only logged."""
        for directory in directories:
            try:
                self.storage.delete_directory(directory)
            except StorageError as e:
                logger.warning(
                    "cleanup_failed",
                    job_id=job_id,
                    path=str(directory),
                    error=e.message,
                )
