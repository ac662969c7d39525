from contextlib import asynccontextmanager
import asyncio
import logging
import os

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette import status

from datasync_api.routes.health import router as health_router
from datasync_api.routes.movers import router as movers_router
from datasync_api.routes.tasks import router as tasks_router
from datasync_api.services.config import DatasyncConfig
from datasync_api.services.errors import ApiError, ErrorCode
from datasync_api.services.task_store import TaskStore


logger = logging.getLogger(__name__)

_STATUS_BY_CODE = {
    ErrorCode.BAD_REQUEST: status.HTTP_400_BAD_REQUEST,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorCode.LIMIT_EXCEEDED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorCode.SERVICE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _ensure_logging() -> None:
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    formatter = logging.Formatter("%(levelname)s: %(name)s: %(message)s")
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format="%(levelname)s: %(name)s: %(message)s")
    else:
        root.setLevel(level)
        for handler in root.handlers:
            handler.setFormatter(formatter)


@asynccontextmanager
async def lifespan(app: FastAPI):
    _ensure_logging()
    app.state.task_store = TaskStore(ttl_seconds=DatasyncConfig.from_env().task_ttl_seconds)
    app.state.background_tasks = set()
    try:
        yield
    finally:
        background = list(app.state.background_tasks)
        if background:
            logger.info("cancelling %d in-flight create requests", len(background))
            for task in background:
                task.cancel()
            await asyncio.gather(*background, return_exceptions=True)


app = FastAPI(title="datasync-api", lifespan=lifespan)

app.include_router(health_router)
app.include_router(tasks_router)
app.include_router(movers_router)


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Map service-layer failures to an HTTP status picked from their error code.

    Returns:
        The mapped status with a JSON body: {"detail": "..."}
    """
    status_code = _STATUS_BY_CODE.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})
