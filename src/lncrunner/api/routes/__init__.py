"""API routes."""

from .health import router as health_router
from .pipeline import router as pipeline_router
from .system import router as system_router

__all__ = [
    "health_router",
    "pipeline_router",
    "system_router",
]
