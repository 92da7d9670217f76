"""
Pytest configuration for LncRunner tests.

The external container engine is replaced by a small shell script that
records its arguments, populates the mounted output directory and exits with
a chosen code.
"""
import os
import stat
import sys
import time
from dataclasses import dataclass
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from lncrunner.api.app import create_app  # noqa: E402
from lncrunner.config import PipelineSettings, Settings, StorageSettings  # noqa: E402


def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")


# ─────────────────────────────────────────────────────────────────────────────
# Fake container engine
# ─────────────────────────────────────────────────────────────────────────────

FAKE_ENGINE = """#!/bin/sh
printf '%s\\n' "$@" > "{calls}"
out=""
prev=""
for arg in "$@"; do
  if [ "$prev" = "-v" ]; then
    case "$arg" in
      *:{output_mount}) out="${{arg%%:*}}" ;;
    esac
  fi
  prev="$arg"
done
echo "bpipe: starting LncRAnalyzer"
echo "warning: low coverage" >&2
while [ ! -e "{release}" ]; do sleep 0.05; done
{writes}
exit {exit_code}
"""


@dataclass
class FakeEngine:
    path: Path
    calls_file: Path
    release_file: Path

    @property
    def was_called(self) -> bool:
        return self.calls_file.exists()

    @property
    def args(self) -> list[str]:
        return self.calls_file.read_text().splitlines()

    def release(self) -> None:
        self.release_file.touch()


@pytest.fixture
def make_engine(tmp_path):
    """Factory for fake engine scripts."""
    counter = {"n": 0}

    def factory(
        exit_code: int = 0,
        outputs: dict[str, str] | None = None,
        gated: bool = False,
        output_mount: str = "/pipeline/LncRAnalyzer-summary",
    ) -> FakeEngine:
        counter["n"] += 1
        base = tmp_path / f"engine{counter['n']}"
        base.mkdir()
        calls = base / "calls.txt"
        release = base / "release"
        if not gated:
            release.touch()

        writes = []
        for name, content in (outputs or {}).items():
            parent = os.path.dirname(name)
            if parent:
                writes.append(f'mkdir -p "$out/{parent}"')
            writes.append(f"printf '%s' '{content}' > \"$out/{name}\"")

        script = base / "docker"
        script.write_text(
            FAKE_ENGINE.format(
                calls=calls,
                release=release,
                output_mount=output_mount,
                writes="\n".join(writes),
                exit_code=exit_code,
            )
        )
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return FakeEngine(path=script, calls_file=calls, release_file=release)

    return factory


# ─────────────────────────────────────────────────────────────────────────────
# Settings and app
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def make_settings(tmp_path):
    def factory(engine: str = "docker", jobs_dir: Path | None = None, **pipeline) -> Settings:
        pipeline.setdefault("terminate_grace_seconds", 1)
        return Settings(
            env="testing",
            debug=True,
            storage=StorageSettings(
                jobs_dir=jobs_dir or tmp_path / "jobs",
                upload_dir=tmp_path / "uploads",
            ),
            pipeline=PipelineSettings(container_engine=engine, **pipeline),
        )

    return factory


@pytest.fixture
def settings(make_settings, make_engine):
    return make_settings(engine=str(make_engine().path))


@pytest.fixture
def make_client():
    """Yield factories for TestClients whose lifespans stay open for the test."""
    clients = []

    def factory(settings: Settings) -> TestClient:
        client = TestClient(create_app(settings))
        client.__enter__()
        clients.append(client)
        return client

    yield factory

    for client in clients:
        client.__exit__(None, None, None)


# ─────────────────────────────────────────────────────────────────────────────
# Submission helpers
# ─────────────────────────────────────────────────────────────────────────────

FASTQ = b"@read1\nACGTACGT\n+\nIIIIIIII\n"
FASTA = b">chr1\nACGTNNNNACGT\n"
GTF = b'chr1\tsrc\tgene\t1\t10\t.\t+\t.\tgene_id "g1";\n'


@pytest.fixture
def submission_data():
    return {
        "orgName": "Homo_sapiens",
        "clade": "vertebrates",
        "relSpeciesName": "Mus_musculus",
    }


@pytest.fixture
def submission_files():
    return [
        ("readsR1", ("sample_R1.fastq", FASTQ, "application/octet-stream")),
        ("genome", ("genome.fa", FASTA, "application/octet-stream")),
        ("annotation", ("annotation.gtf", GTF, "application/octet-stream")),
        ("rRNAs", ("rRNAs.fa", FASTA, "application/octet-stream")),
        ("genomeRelatedSpecies", ("rel_genome.fa", FASTA, "application/octet-stream")),
        ("annotationRelatedSpecies", ("rel_annotation.gtf", GTF, "application/octet-stream")),
    ]


def _wait_for(client: TestClient, job_id: str, predicate, timeout: float = 15.0) -> dict:
    deadline = time.monotonic() + timeout
    body = {}
    while time.monotonic() < deadline:
        response = client.get(f"/api/pipeline/status/{job_id}")
        assert response.status_code == 200
        body = response.json()
        if predicate(body):
            return body
        time.sleep(0.05)
    raise AssertionError(f"Timed out waiting on job {job_id}; last status: {body}")


TERMINAL = ("completed", "failed")


@pytest.fixture
def wait_for():
    """Poll the status endpoint until predicate(body) holds."""
    return _wait_for


@pytest.fixture
def wait_for_terminal():
    def poll(client: TestClient, job_id: str, timeout: float = 15.0) -> dict:
        return _wait_for(client, job_id, lambda b: b["status"] in TERMINAL, timeout)

    return poll
