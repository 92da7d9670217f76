"""Host resource snapshot for operator display."""

import asyncio
import os
import shutil
from pathlib import Path

import psutil

from lncrunner.core.logging import get_logger

logger = get_logger("lncrunner.system")


async def container_engine_running(engine: str = "docker", timeout: float = 5.0) -> bool:
    """Check that the engine CLI exists and its daemon answers ``info``."""
    if shutil.which(engine) is None:
        return False

    try:
        process = await asyncio.create_subprocess_exec(
            engine,
            "info",
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError as e:
        logger.warning("engine_probe_failed", engine=engine, error=str(e))
        return False

    try:
        return await asyncio.wait_for(process.wait(), timeout=timeout) == 0
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        return False


def cpu_usage_percent() -> float:
    """One-minute load average relative to the number of CPUs."""
    load_1m = psutil.getloadavg()[0]
    cpu_count = psutil.cpu_count() or 1
    return round(load_1m / cpu_count * 100, 1)


async def collect_system_info(engine: str, disk_path: Path) -> dict:
    memory = psutil.virtual_memory()
    path = disk_path if disk_path.exists() else Path(os.sep)
    disk = psutil.disk_usage(str(path))

    return {
        "docker_running": await container_engine_running(engine),
        "cpu_usage_percent": cpu_usage_percent(),
        "memory": {"used": memory.total - memory.available, "total": memory.total},
        "storage": {"free": disk.free, "total": disk.total},
    }
