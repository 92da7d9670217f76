"""FastAPI application factory."""

import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from lncrunner.config import Settings, settings as default_settings
from lncrunner.core.exceptions import install_exception_handlers
from lncrunner.core.logging import bind_context, clear_context, get_logger, setup_logging
from lncrunner.services import (
    Dispatcher,
    InputStager,
    JobGateway,
    JobStore,
    PipelineExecutor,
    ResultArchiver,
    StorageService,
)


# Initialize logging early
setup_logging(
    level="DEBUG" if default_settings.debug else "INFO",
    json_format=default_settings.is_production(),
    pipeline_output_level=default_settings.pipeline.output_log_level,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    settings: Settings = app.state.settings
    logger.info(
        "Starting LncRunner",
        version=settings.app_version,
        env=settings.env,
        jobs_dir=str(settings.storage.jobs_dir),
        engine=settings.pipeline.container_engine,
    )

    settings.setup()

    yield

    logger.info("Shutting down LncRunner")
    await app.state.dispatcher.shutdown()
    logger.info("LncRunner shutdown complete")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure FastAPI application."""
    settings = settings or default_settings

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="LncRAnalyzer job orchestration",
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    # Services shared by all routes of this app
    store = JobStore()
    storage = StorageService(settings)
    app.state.settings = settings
    app.state.job_store = store
    app.state.storage = storage
    app.state.gateway = JobGateway(store, storage)
    app.state.dispatcher = Dispatcher(
        store=store,
        storage=storage,
        stager=InputStager(storage, settings),
        executor=PipelineExecutor(store, settings),
        archiver=ResultArchiver(storage),
        max_concurrent_jobs=settings.pipeline.max_concurrent_jobs,
    )

    install_exception_handlers(app, include_trace=settings.debug)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=settings.security.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request context middleware for structured logging
    @app.middleware("http")
    async def add_request_context(request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])

        bind_context(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_context()

    from lncrunner.api.routes import health_router, pipeline_router, system_router

    app.include_router(health_router)
    app.include_router(pipeline_router)
    app.include_router(system_router)

    return app


# Application instance
app = create_app()
