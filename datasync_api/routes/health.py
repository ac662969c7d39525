from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from datasync_api.services.config import DatasyncConfig
from datasync_api.services.dependencies import get_datasync_config

router = APIRouter(prefix="/v1/datasync", tags=["health"])


@router.get("/ping", response_class=PlainTextResponse)
async def ping() -> str:
    return "pong"


@router.get("/version")
async def version(config: DatasyncConfig = Depends(get_datasync_config)) -> dict[str, str]:
    return {"version": config.version}


@router.get("/metrics")
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
