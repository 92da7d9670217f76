"""FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends, Request

from lncrunner.config import Settings
from lncrunner.services import Dispatcher, JobGateway, JobStore, StorageService


# ─────────────────────────────────────────────────────────────────────────────
# Services are built once per application in create_app() and live on
# app.state, so tests can run isolated apps side by side.
# ─────────────────────────────────────────────────────────────────────────────

def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_job_store(request: Request) -> JobStore:
    return request.app.state.job_store


def get_storage(request: Request) -> StorageService:
    return request.app.state.storage


def get_dispatcher(request: Request) -> Dispatcher:
    return request.app.state.dispatcher


def get_gateway(request: Request) -> JobGateway:
    return request.app.state.gateway


# Type aliases for cleaner signatures
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
JobStoreDep = Annotated[JobStore, Depends(get_job_store)]
StorageDep = Annotated[StorageService, Depends(get_storage)]
DispatcherDep = Annotated[Dispatcher, Depends(get_dispatcher)]
GatewayDep = Annotated[JobGateway, Depends(get_gateway)]
