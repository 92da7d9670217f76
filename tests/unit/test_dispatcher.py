"""
Unit tests for the job lifecycle run by the dispatcher.

Covers:
1. Happy path through staging, execution and archiving
2. Each failure branch and the step text it leaves behind
3. Queueing behind the concurrency limit
4. Shutdown of outstanding jobs
"""

import asyncio
import zipfile

import pytest

from lncrunner.core.exceptions import ArchiveError
from lncrunner.models import Job, JobStatus
from lncrunner.schemas import PipelineRequest
from lncrunner.services import (
    Dispatcher,
    InputStager,
    JobStore,
    PipelineExecutor,
    ResultArchiver,
    StorageService,
)
from lncrunner.services.storage import SpooledUpload

pytestmark = pytest.mark.unit


FILES = {
    "readsR1": "s_R1.fq",
    "genome": "genome.fa",
    "annotation": "annotation.gtf",
    "rRNAs": "rRNAs.fa",
    "genomeRelatedSpecies": "rel.fa",
    "annotationRelatedSpecies": "rel.gtf",
}


def make_request() -> PipelineRequest:
    return PipelineRequest(
        orgName="Homo_sapiens",
        clade="vertebrates",
        relSpeciesName="Mus_musculus",
        files={field: [name] for field, name in FILES.items()},
    )


@pytest.fixture
def build(tmp_path, make_settings):
    """Wire a dispatcher around the given settings; returns (dispatcher, store)."""

    def factory(settings):
        store = JobStore()
        storage = StorageService(settings)
        dispatcher = Dispatcher(
            store=store,
            storage=storage,
            stager=InputStager(storage, settings),
            executor=PipelineExecutor(store, settings),
            archiver=ResultArchiver(storage),
            max_concurrent_jobs=settings.pipeline.max_concurrent_jobs,
        )
        return dispatcher, store

    return factory


@pytest.fixture
def spool(tmp_path):
    counter = {"n": 0}

    def factory() -> list[SpooledUpload]:
        counter["n"] += 1
        spool_dir = tmp_path / f"spool{counter['n']}"
        spool_dir.mkdir()
        uploads = []
        for field, name in FILES.items():
            path = spool_dir / field
            path.write_text(name)
            uploads.append(SpooledUpload(field=field, filename=name, path=path, size=len(name)))
        return uploads

    return factory


def submit(dispatcher, store, uploads):
    request = make_request()
    job = store.create(Job(parameters=request.to_parameters(), current_step="Queued"))
    task = dispatcher.submit(job.id, request, uploads)
    return job, task


async def wait_until(predicate, timeout=10.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.02)


@pytest.mark.asyncio
async def test_successful_job(build, make_settings, make_engine, spool):
    engine = make_engine(outputs={"summary.tsv": "ok", "lncRNAs.gtf": "gtf"})
    dispatcher, store = build(make_settings(engine=str(engine.path)))

    job, task = submit(dispatcher, store, spool())
    await task

    done = store.get(job.id)
    assert done.status == JobStatus.COMPLETED
    assert done.current_step == "Pipeline completed and results archived"
    assert done.completed_at is not None
    with zipfile.ZipFile(done.output_path) as zf:
        assert sorted(zf.namelist()) == ["lncRNAs.gtf", "summary.tsv"]

    # Staged input and raw output are reclaimed
    storage = dispatcher.storage
    assert not storage.input_dir(job.id).exists()
    assert not storage.output_dir(job.id).exists()
    assert dispatcher.active_jobs == []


@pytest.mark.asyncio
async def test_pipeline_failure_reports_exit_code(build, make_settings, make_engine, spool):
    engine = make_engine(exit_code=3)
    dispatcher, store = build(make_settings(engine=str(engine.path)))

    job, task = submit(dispatcher, store, spool())
    await task

    failed = store.get(job.id)
    assert failed.status == JobStatus.FAILED
    assert failed.current_step == "Pipeline failed (exit code: 3)"
    assert failed.output_path is None


@pytest.mark.asyncio
async def test_staging_failure_never_launches_pipeline(
    build, make_settings, make_engine, spool, tmp_path
):
    engine = make_engine()
    blocker = tmp_path / "blocked"
    blocker.write_text("")
    dispatcher, store = build(make_settings(engine=str(engine.path), jobs_dir=blocker))
    uploads = spool()

    job, task = submit(dispatcher, store, uploads)
    await task

    failed = store.get(job.id)
    assert failed.status == JobStatus.FAILED
    assert failed.current_step.startswith("Failed to prepare input files")
    assert not engine.was_called
    assert not any(u.path.exists() for u in uploads)


@pytest.mark.asyncio
async def test_archive_failure_is_distinguished(build, make_settings, make_engine, spool, monkeypatch):
    engine = make_engine(outputs={"summary.tsv": "ok"})
    dispatcher, store = build(make_settings(engine=str(engine.path)))

    def broken(job_id, output_dir):
        raise ArchiveError("Failed to write archive: No space left on device")

    monkeypatch.setattr(dispatcher.archiver, "archive", broken)

    job, task = submit(dispatcher, store, spool())
    await task

    failed = store.get(job.id)
    assert failed.status == JobStatus.FAILED
    assert failed.current_step.startswith("Pipeline succeeded but failed to archive results")
    assert "No space left on device" in failed.current_step


@pytest.mark.asyncio
async def test_unexpected_error_fails_job(build, make_settings, make_engine, spool, monkeypatch):
    engine = make_engine()
    dispatcher, store = build(make_settings(engine=str(engine.path)))

    async def explode(job_id, staged):
        raise RuntimeError("launcher crashed")

    monkeypatch.setattr(dispatcher.executor, "run", explode)

    job, task = submit(dispatcher, store, spool())
    await task

    failed = store.get(job.id)
    assert failed.status == JobStatus.FAILED
    assert failed.current_step == "Pipeline execution error: launcher crashed"


@pytest.mark.asyncio
async def test_jobs_queue_behind_concurrency_limit(build, make_settings, make_engine, spool):
    engine = make_engine(gated=True)
    dispatcher, store = build(make_settings(engine=str(engine.path), max_concurrent_jobs=1))

    first, first_task = submit(dispatcher, store, spool())
    second, second_task = submit(dispatcher, store, spool())

    await wait_until(lambda: store.get(first.id).current_step == "Running LncRAnalyzer")
    assert store.get(second.id).status == JobStatus.PENDING

    engine.release()
    await asyncio.gather(first_task, second_task)

    assert store.get(first.id).status == JobStatus.COMPLETED
    assert store.get(second.id).status == JobStatus.COMPLETED


@pytest.mark.asyncio
async def test_shutdown_fails_outstanding_jobs(build, make_settings, make_engine, spool):
    engine = make_engine(gated=True)
    dispatcher, store = build(make_settings(engine=str(engine.path), max_concurrent_jobs=1))

    running, _ = submit(dispatcher, store, spool())
    queued, _ = submit(dispatcher, store, spool())
    await wait_until(lambda: store.get(running.id).current_step == "Running LncRAnalyzer")

    await dispatcher.shutdown()

    for job_id in (running.id, queued.id):
        job = store.get(job_id)
        assert job.status == JobStatus.FAILED
        assert job.current_step == "Interrupted by server shutdown"
    assert dispatcher.active_jobs == []
