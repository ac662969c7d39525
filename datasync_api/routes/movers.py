from __future__ import annotations

from fastapi import APIRouter, Depends, Path, Response
from starlette import status

from datasync_api.models.movers import (
    DatamoverCreateRequest,
    DatamoverResponse,
    DatamoverRun,
    RunStartResponse,
)
from datasync_api.models.tasks import AsyncTask
from datasync_api.services.dependencies import MoverOrchestratorFactory, get_orchestrator_factory
from datasync_api.services.orchestration.mover_orchestrator import validate_create_request

router = APIRouter(prefix="/v1/datasync/{account}/movers", tags=["movers"])


@router.get("", response_model=list[str])
async def list_all_movers(
    response: Response,
    account: str = Path(..., description="Target AWS account id"),
    factory: MoverOrchestratorFactory = Depends(get_orchestrator_factory),
) -> list[str]:
    orchestrator = await factory.for_read(account)
    names = await orchestrator.list()
    response.headers["X-Items"] = str(len(names))
    return names


@router.post("/{group}", response_model=AsyncTask, status_code=status.HTTP_202_ACCEPTED)
async def create_mover(
    body: DatamoverCreateRequest,
    response: Response,
    account: str = Path(...),
    group: str = Path(..., description="Space (group) the mover belongs to"),
    factory: MoverOrchestratorFactory = Depends(get_orchestrator_factory),
) -> AsyncTask:
    # reject bad input before we bother assuming a role
    validate_create_request(body)

    orchestrator = await factory.for_create(account)
    task = await orchestrator.create(group, body)
    response.headers["X-Task-Id"] = task.id
    return task


@router.get("/{group}", response_model=list[str])
async def list_group_movers(
    response: Response,
    account: str = Path(...),
    group: str = Path(...),
    factory: MoverOrchestratorFactory = Depends(get_orchestrator_factory),
) -> list[str]:
    orchestrator = await factory.for_read(account)
    names = await orchestrator.list(group)
    response.headers["X-Items"] = str(len(names))
    return names


@router.get("/{group}/{name}", response_model=DatamoverResponse)
async def describe_mover(
    account: str = Path(...),
    group: str = Path(...),
    name: str = Path(...),
    factory: MoverOrchestratorFactory = Depends(get_orchestrator_factory),
) -> DatamoverResponse:
    orchestrator = await factory.for_read(account)
    return await orchestrator.describe(group, name)


@router.delete("/{group}/{name}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_mover(
    account: str = Path(...),
    group: str = Path(...),
    name: str = Path(...),
    factory: MoverOrchestratorFactory = Depends(get_orchestrator_factory),
) -> Response:
    orchestrator = await factory.for_delete(account)
    await orchestrator.delete(group, name)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{group}/{name}/runs", response_model=list[str])
async def list_runs(
    response: Response,
    account: str = Path(...),
    group: str = Path(...),
    name: str = Path(...),
    factory: MoverOrchestratorFactory = Depends(get_orchestrator_factory),
) -> list[str]:
    orchestrator = await factory.for_read(account)
    runs = await orchestrator.run_list(group, name)
    response.headers["X-Items"] = str(len(runs))
    return runs


@router.post("/{group}/{name}/runs", response_model=RunStartResponse, status_code=status.HTTP_202_ACCEPTED)
async def start_run(
    account: str = Path(...),
    group: str = Path(...),
    name: str = Path(...),
    factory: MoverOrchestratorFactory = Depends(get_orchestrator_factory),
) -> RunStartResponse:
    orchestrator = await factory.for_runs(account)
    run_id = await orchestrator.start_run(group, name)
    return RunStartResponse(id=run_id)


@router.delete("/{group}/{name}/runs", status_code=status.HTTP_204_NO_CONTENT)
async def stop_run(
    account: str = Path(...),
    group: str = Path(...),
    name: str = Path(...),
    factory: MoverOrchestratorFactory = Depends(get_orchestrator_factory),
) -> Response:
    orchestrator = await factory.for_runs(account)
    await orchestrator.stop_run(group, name)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{group}/{name}/runs/{run_id}", response_model=DatamoverRun)
async def describe_run(
    account: str = Path(...),
    group: str = Path(...),
    name: str = Path(...),
    run_id: str = Path(..., description="Run id, e.g. exec-0123456789abcdef0"),
    factory: MoverOrchestratorFactory = Depends(get_orchestrator_factory),
) -> DatamoverRun:
    orchestrator = await factory.for_read(account)
    return await orchestrator.run_describe(group, name, run_id)
