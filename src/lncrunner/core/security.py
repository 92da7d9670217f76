"""Upload hygiene: filenames that are safe on disk and inside the manifest."""

import re
from pathlib import Path, PurePosixPath

import aiofiles

from lncrunner.core.exceptions import FileTooLargeError

# Anything outside this set is collapsed to "_". Quotes, commas and newlines
# would otherwise break the key="a,b" lines of data.groovy.
UNSAFE_RUN = re.compile(r"[^A-Za-z0-9._-]+")

MAX_FILENAME_LENGTH = 200
FALLBACK_FILENAME = "file"


def secure_filename(name: str | None) -> str:
    """
    Reduce a client-supplied filename to a single safe path component.

    Directory parts from either separator style are dropped, so a name
    like ``..\\..\\reads.fq`` becomes ``reads.fq``.
    """
    base = PurePosixPath((name or "").replace("\\", "/")).name
    base = UNSAFE_RUN.sub("_", base.strip())
    if base.strip(".") == "":
        return FALLBACK_FILENAME
    return base[:MAX_FILENAME_LENGTH]


async def async_save_upload(
    file,  # UploadFile
    dest: Path,
    max_size: int,
    chunk_size: int = 1024 * 1024,
) -> int:
    """
    Stream an upload to ``dest`` in chunks, enforcing ``max_size``.

    The partial file is removed when the limit is exceeded.

    Returns:
        Number of bytes written

    Raises:
        FileTooLargeError: Upload exceeded max_size
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    written = 0

    async with aiofiles.open(dest, "wb") as out:
        while True:
            chunk = await file.read(chunk_size)
            if not chunk:
                break
            written += len(chunk)
            if written > max_size:
                break
            await out.write(chunk)

    if written > max_size:
        dest.unlink(missing_ok=True)
        raise FileTooLargeError(written, max_size)
    return written
