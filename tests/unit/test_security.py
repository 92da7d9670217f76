"""Unit tests for upload filename sanitizing and size-limited saving."""

import io

import pytest
from starlette.datastructures import UploadFile

from lncrunner.core.exceptions import FileTooLargeError
from lncrunner.core.security import async_save_upload, secure_filename

pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    "name, expected",
    [
        ("sample_R1.fastq.gz", "sample_R1.fastq.gz"),
        ("../../etc/passwd", "passwd"),
        ("..\\..\\reads.fq", "reads.fq"),
        ("my reads (1).fq", "my_reads_1_.fq"),
        ('bad"name,with\nbreaks.fa', "bad_name_with_breaks.fa"),
        ("..", "file"),
        ("", "file"),
        (None, "file"),
    ],
)
def test_secure_filename(name, expected):
    assert secure_filename(name) == expected


def test_secure_filename_truncates():
    assert len(secure_filename("a" * 500 + ".fa")) == 200


@pytest.mark.asyncio
async def test_save_upload_writes_content(tmp_path):
    upload = UploadFile(file=io.BytesIO(b"ACGT" * 1000), filename="genome.fa")
    dest = tmp_path / "spool" / "genome"

    written = await async_save_upload(upload, dest, max_size=10_000, chunk_size=512)

    assert written == 4000
    assert dest.read_bytes() == b"ACGT" * 1000


@pytest.mark.asyncio
async def test_save_upload_enforces_limit(tmp_path):
    upload = UploadFile(file=io.BytesIO(b"x" * 2048), filename="big.fq")
    dest = tmp_path / "big"

    with pytest.raises(FileTooLargeError) as exc_info:
        await async_save_upload(upload, dest, max_size=1000, chunk_size=256)

    assert exc_info.value.status_code == 413
    assert not dest.exists()
