"""FastAPI blob server exposing a StorageBackend over HTTP."""

import time
import uuid

from fastapi import APIRouter, FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from blobstore.base import StorageBackend
from common.exceptions import BackendError, BlobNotFoundError
from common.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/blobs")


def _backend(request: Request) -> StorageBackend:
    return request.app.state.backend


@router.put("/{key}", status_code=status.HTTP_201_CREATED)
async def put_blob(key: str, request: Request) -> Response:
    data = await request.body()
    await run_in_threadpool(_backend(request).put, key, data)
    return Response(status_code=status.HTTP_201_CREATED)


@router.get("/{key}")
async def get_blob(key: str, request: Request) -> Response:
    data = await run_in_threadpool(_backend(request).get, key)
    return Response(content=data, media_type="application/octet-stream")


@router.head("/{key}")
async def head_blob(key: str, request: Request) -> Response:
    found = await run_in_threadpool(_backend(request).exists, key)
    return Response(status_code=status.HTTP_200_OK if found else status.HTTP_404_NOT_FOUND)


def create_app(backend: StorageBackend) -> FastAPI:
    """
    Build a blob server application around a backend.

    Args:
        backend: Backend that actually stores the blobs

    Returns:
        FastAPI application
    """
    app = FastAPI(
        title="ShardVault Blob Store",
        description="Key/value blob store serving encrypted chunks",
        version="1.0.0",
    )
    app.state.backend = backend
    app.include_router(router)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        request_id = str(uuid.uuid4())
        start_time = time.time()
        response = await call_next(request)
        duration = time.time() - start_time
        logger.info(
            f"Request completed: {request.method} {request.url.path} "
            f"status={response.status_code} duration={duration:.3f}s [request_id={request_id}]"
        )
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(BlobNotFoundError)
    async def blob_not_found_handler(request: Request, exc: BlobNotFoundError):
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": str(exc), "code": "BLOB_NOT_FOUND"},
        )

    @app.exception_handler(BackendError)
    async def backend_error_handler(request: Request, exc: BackendError):
        if exc.transient:
            logger.error(f"Backend failure on {request.url.path}: {exc}")
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"detail": str(exc), "code": "BACKEND_UNAVAILABLE"},
            )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": str(exc), "code": "INVALID_REQUEST"},
        )

    @app.get("/")
    async def root():
        return {"status": "running", "backend": backend.name}

    return app
