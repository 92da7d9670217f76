"""Host resource snapshot route."""

import logging

from fastapi import APIRouter, HTTPException

from lncrunner.api.deps import SettingsDep
from lncrunner.schemas import SystemInfoResponse
from lncrunner.services import collect_system_info

router = APIRouter(prefix="/api/pipeline", tags=["system"])
logger = logging.getLogger("lncrunner.api.system")


@router.get("/system-info", response_model=SystemInfoResponse)
async def system_info(settings: SettingsDep):
    """Container engine availability and CPU, memory and disk usage."""
    try:
        return await collect_system_info(
            settings.pipeline.container_engine,
            settings.storage.jobs_dir,
        )
    except OSError as e:
        logger.error("System info error: %s", e)
        raise HTTPException(status_code=500, detail="Internal error")
