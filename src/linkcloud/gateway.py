"""LinkCloud HTTP gateway - FastAPI application.

Routes live under ``/api/{provider}/{container}[/{blob}]``. Every request
authenticates with a Basic token whose username and password are the
storage account credentials for the chosen provider.

Backend work runs on worker threads, one per request. Upload bodies are
bridged from the event loop to the worker thread chunk by chunk, and
downloads and listings are streamed back the same way, so no blob is ever
held in memory whole.
"""

import io
import logging
import time
from typing import AsyncIterator, Dict, List, Optional

import anyio.from_thread
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse
from starlette.background import BackgroundTask
from starlette.concurrency import run_in_threadpool

from linkcloud.credentials import Credentials, extract_credentials
from linkcloud.exceptions import ErrorKind, GatewayError, NotFoundError
from linkcloud.logging_config import get_logger
from linkcloud.registry import ProviderRegistry
from linkcloud.service import BlobService
from linkcloud.streaming import parse_declared_length

logger = logging.getLogger(__name__)
access_logger = get_logger("gateway.access")

BLOB_SIZE_HEADER = "LinkCloud-Blob-Size"
AUTH_CHALLENGE = 'Basic realm="linkcloud"'
GATEWAY_VERSION = "0.1.0"

STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.MISSING_AUTH: 401,
    ErrorKind.MALFORMED_AUTH: 400,
    ErrorKind.UNSUPPORTED_PROVIDER: 415,
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.BACKEND_INTERNAL: 500,
}

router = APIRouter()


class RequestBodyReader(io.RawIOBase):
    """Blocking file-like view of an ASGI request body.

    Must be read from a worker thread started by anyio (run_in_threadpool);
    each refill hops back to the event loop for the next body chunk. A client
    disconnect surfaces as an exception from read().
    """

    def __init__(self, body: AsyncIterator[bytes]) -> None:
        super().__init__()
        self._body = body
        self._pending = b""
        self._eof = False

    async def _next_chunk(self) -> bytes:
        try:
            return await self._body.__anext__()
        except StopAsyncIteration:
            return b""

    def _fill(self) -> None:
        while not self._pending and not self._eof:
            chunk = anyio.from_thread.run(self._next_chunk)
            if chunk:
                self._pending = chunk
            else:
                self._eof = True

    def readable(self) -> bool:
        return True

    def read(self, size: Optional[int] = -1) -> bytes:
        if size is None or size < 0:
            return self.readall()
        self._fill()
        data, self._pending = self._pending[:size], self._pending[size:]
        return data

    def readall(self) -> bytes:
        parts = []
        while True:
            self._fill()
            if not self._pending:
                return b"".join(parts)
            parts.append(self._pending)
            self._pending = b""

    def readinto(self, buffer) -> int:  # type: ignore[override]
        view = memoryview(buffer).cast("B")
        data = self.read(len(view))
        view[: len(data)] = data
        return len(data)


def get_service(request: Request) -> BlobService:
    return request.app.state.service


def _credentials(request: Request) -> Credentials:
    return extract_credentials(request.headers.get("authorization"))


# ---------------------------------------------------------------------------
# Blob operations
# ---------------------------------------------------------------------------


@router.get("/providers")
def list_providers(service: BlobService = Depends(get_service)) -> List[str]:
    """Registered provider names, in registration order."""
    return service.registry.names()


@router.get("/{provider}/{container}/{blob:path}")
def download_blob(
    provider: str,
    container: str,
    blob: str,
    request: Request,
    service: BlobService = Depends(get_service),
) -> StreamingResponse:
    """Stream a blob's content to the client."""
    credentials = _credentials(request)
    download = service.download_blob(provider, container, blob, credentials)

    headers = {}
    if download.length is not None:
        headers["Content-Length"] = str(download.length)

    return StreamingResponse(
        iter(download),
        media_type="application/octet-stream",
        headers=headers,
        background=BackgroundTask(download.close),
    )


@router.post("/{provider}/{container}/{blob:path}")
async def upload_blob(
    provider: str,
    container: str,
    blob: str,
    request: Request,
    service: BlobService = Depends(get_service),
) -> Response:
    """Store the raw request body as a blob; Content-Length is required."""
    credentials = _credentials(request)
    declared_length = parse_declared_length(request.headers.get("content-length"))

    reader = RequestBodyReader(request.stream())
    await run_in_threadpool(
        service.upload_blob, provider, container, blob, credentials, reader, declared_length
    )
    return Response(status_code=200)


@router.head("/{provider}/{container}/{blob:path}")
def blob_info(
    provider: str,
    container: str,
    blob: str,
    request: Request,
    service: BlobService = Depends(get_service),
) -> Response:
    """Report a blob's size in the LinkCloud-Blob-Size header."""
    credentials = _credentials(request)
    metadata = service.blob_metadata(provider, container, blob, credentials)
    return Response(status_code=200, headers={BLOB_SIZE_HEADER: str(metadata.size_bytes)})


@router.delete("/{provider}/{container}/{blob:path}")
def delete_blob(
    provider: str,
    container: str,
    blob: str,
    request: Request,
    service: BlobService = Depends(get_service),
) -> Response:
    credentials = _credentials(request)
    service.delete_blob(provider, container, blob, credentials)
    return Response(status_code=200)


# ---------------------------------------------------------------------------
# Container operations
# ---------------------------------------------------------------------------


@router.get("/{provider}/{container}")
def list_blobs(
    provider: str,
    container: str,
    request: Request,
    service: BlobService = Depends(get_service),
) -> StreamingResponse:
    """Stream the container listing document."""
    credentials = _credentials(request)
    document = service.list_blobs(provider, container, credentials)
    return StreamingResponse(
        iter(document),
        media_type=document.media_type,
        background=BackgroundTask(document.close),
    )


@router.post("/{provider}/{container}")
def create_container(
    provider: str,
    container: str,
    request: Request,
    service: BlobService = Depends(get_service),
) -> Response:
    credentials = _credentials(request)
    service.create_container_if_absent(provider, container, credentials)
    return Response(status_code=200)


@router.head("/{provider}/{container}")
def container_exists(
    provider: str,
    container: str,
    request: Request,
    service: BlobService = Depends(get_service),
) -> Response:
    credentials = _credentials(request)
    if not service.container_exists(provider, container, credentials):
        raise NotFoundError(f"Container {container} doesn't exist", container=container)
    return Response(status_code=200)


@router.delete("/{provider}/{container}")
def delete_container(
    provider: str,
    container: str,
    request: Request,
    service: BlobService = Depends(get_service),
) -> Response:
    credentials = _credentials(request)
    service.delete_container(provider, container, credentials)
    return Response(status_code=200)


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


async def handle_gateway_error(request: Request, exc: GatewayError) -> JSONResponse:
    """Translate a taxonomy error into its HTTP status."""
    kind = exc.kind or ErrorKind.BACKEND_INTERNAL
    headers = {"WWW-Authenticate": AUTH_CHALLENGE} if kind is ErrorKind.MISSING_AUTH else None
    return JSONResponse(
        status_code=STATUS_BY_KIND[kind],
        content={"error": kind.value, "detail": exc.message},
        headers=headers,
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error serving request", exc_info=exc, extra={"path": request.url.path})
    return JSONResponse(
        status_code=STATUS_BY_KIND[ErrorKind.BACKEND_INTERNAL],
        content={"error": ErrorKind.BACKEND_INTERNAL.value, "detail": "Unknown error encountered"},
    )


def create_app(registry: ProviderRegistry) -> FastAPI:
    """Create the gateway application around an already-built registry."""
    app = FastAPI(
        title="LinkCloud",
        description="REST gateway for blob storage across cloud providers",
        version=GATEWAY_VERSION,
    )
    app.state.service = BlobService(registry)

    app.add_exception_handler(GatewayError, handle_gateway_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    @app.middleware("http")
    async def log_access(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        access_logger.info(
            f"{request.method} {request.url.path} {response.status_code}",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )
        return response

    @app.get("/health")
    async def health_check() -> Dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    app.include_router(router, prefix="/api", tags=["Blobs"])
    return app
