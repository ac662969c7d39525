from __future__ import annotations

import asyncio
from dataclasses import dataclass

from fastapi import FastAPI, Request

from datasync_api.services.config import DatasyncConfig
from datasync_api.services.datasync_service import DataSyncService
from datasync_api.services.iam_service import IamService
from datasync_api.services.orchestration.mover_orchestrator import DatasyncOrchestrator
from datasync_api.services.policies import (
    DATASYNC_FULL_ACCESS,
    DATASYNC_READ_ONLY_ACCESS,
    TAG_EDITOR_READ_ONLY_ACCESS,
    mover_create_policy,
    mover_delete_policy,
)
from datasync_api.services.session_service import PermissionSet, SessionService
from datasync_api.services.tagging_service import TaggingService
from datasync_api.services.task_store import TaskStore


def get_datasync_config() -> DatasyncConfig:
    """FastAPI dependency provider for the runtime configuration."""

    return DatasyncConfig.from_env()


def get_task_store_from_app(app: FastAPI) -> TaskStore:
    store = getattr(app.state, "task_store", None)
    if store is None:
        raise RuntimeError("Task store not initialized (app.state.task_store)")
    if not isinstance(store, TaskStore):
        raise RuntimeError("Unexpected task_store type")
    return store


def get_task_store(request: Request) -> TaskStore:
    return get_task_store_from_app(request.app)


def get_background_tasks_from_app(app: FastAPI) -> set[asyncio.Task[None]]:
    background = getattr(app.state, "background_tasks", None)
    if background is None:
        raise RuntimeError("Background task set not initialized (app.state.background_tasks)")
    return background


@dataclass
class MoverOrchestratorFactory:
    """Builds an orchestrator per request, bound to a session scoped to the operation."""

    config: DatasyncConfig
    sessions: SessionService
    tasks: TaskStore
    background: set[asyncio.Task[None]]

    async def _build(self, account: str, permissions: PermissionSet) -> DatasyncOrchestrator:
        session = await self.sessions.assume_role(account=account, permissions=permissions)
        region_name = self.config.region_name
        return DatasyncOrchestrator(
            org=self.config.org,
            datasync=DataSyncService(session, region_name=region_name),
            iam=IamService(session),
            tagging=TaggingService(session, region_name=region_name),
            tasks=self.tasks,
            background=self.background,
            location_retry_attempts=self.config.location_retry_attempts,
            location_retry_delay_seconds=self.config.location_retry_delay_seconds,
        )

    async def for_create(self, account: str) -> DatasyncOrchestrator:
        return await self._build(
            account,
            PermissionSet(
                policy_arns=(DATASYNC_FULL_ACCESS,),
                inline_policy=mover_create_policy(self.config.org),
            ),
        )

    async def for_delete(self, account: str) -> DatasyncOrchestrator:
        return await self._build(
            account,
            PermissionSet(
                policy_arns=(DATASYNC_FULL_ACCESS, TAG_EDITOR_READ_ONLY_ACCESS),
                inline_policy=mover_delete_policy(self.config.org),
            ),
        )

    async def for_read(self, account: str) -> DatasyncOrchestrator:
        return await self._build(
            account,
            PermissionSet(policy_arns=(DATASYNC_READ_ONLY_ACCESS, TAG_EDITOR_READ_ONLY_ACCESS)),
        )

    async def for_runs(self, account: str) -> DatasyncOrchestrator:
        return await self._build(
            account,
            PermissionSet(policy_arns=(DATASYNC_FULL_ACCESS, TAG_EDITOR_READ_ONLY_ACCESS)),
        )


def get_orchestrator_factory(request: Request) -> MoverOrchestratorFactory:
    """Dependency provider for per-account orchestrators."""

    config = get_datasync_config()
    return MoverOrchestratorFactory(
        config=config,
        sessions=SessionService(config),
        tasks=get_task_store(request),
        background=get_background_tasks_from_app(request.app),
    )
