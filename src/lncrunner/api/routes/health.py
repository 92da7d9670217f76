"""Liveness and service metadata."""

from fastapi import APIRouter

from lncrunner.api.deps import DispatcherDep, JobStoreDep, SettingsDep

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(settings: SettingsDep, store: JobStoreDep, dispatcher: DispatcherDep):
    """Process is up; reports how many jobs are known and in flight."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": settings.app_version,
        "environment": settings.env,
        "jobs_total": len(store),
        "active_jobs": len(dispatcher.active_jobs),
        "max_concurrent_jobs": dispatcher.max_concurrent_jobs,
    }


@router.get("/")
async def root(settings: SettingsDep):
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "image": settings.pipeline.image,
        "docs": "/docs" if settings.debug else None,
    }
