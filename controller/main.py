"""Entry point for the Controller service."""

import time
import uuid
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from common.logging_config import reset_request_id, set_request_id, setup_logging
from controller.chunk_router import ChunkRouter
from controller.config import BACKEND_GRPC, ControllerSettings, load_settings
from controller.database import get_db_connection, init_database
from controller.exceptions import (
    ArtifactWriteError,
    IncompleteTransferError,
    MergeError,
    NodeStorageUnavailableError,
    TransferNotFoundError,
    TransferServiceError,
    ValidationError,
)
from controller.nodestore_client import GrpcNodeStorage
from controller.repositories.transfer_repository import TransferRepository
from controller.routes import transfer_router
from controller.services.ingest_service import IngestService
from controller.services.merge_service import MergeService
from controller.services.status_service import StatusService
from controller.transfer_locks import TransferLockManager
from nodestore.base import NodeStorage
from nodestore.local_storage import LocalNodeStorage

logger = setup_logging('controller')


# exception class -> (status code, error code, log as error)
ERROR_RESPONSES = {
    ValidationError: (status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR", False),
    TransferNotFoundError: (status.HTTP_404_NOT_FOUND, "TRANSFER_NOT_FOUND", False),
    IncompleteTransferError: (status.HTTP_409_CONFLICT, "TRANSFER_INCOMPLETE", False),
    MergeError: (status.HTTP_500_INTERNAL_SERVER_ERROR, "MERGE_FAILED", True),
    NodeStorageUnavailableError: (status.HTTP_503_SERVICE_UNAVAILABLE, "NODESTORE_UNAVAILABLE", True),
    ArtifactWriteError: (status.HTTP_500_INTERNAL_SERVER_ERROR, "ARTIFACT_WRITE_FAILED", True),
}


def build_storage(settings: ControllerSettings) -> NodeStorage:
    """
    Create the node storage backend selected by settings.

    Returns:
        LocalNodeStorage with its partitions created, or a GrpcNodeStorage
    """
    if settings.nodestore_backend == BACKEND_GRPC:
        logger.info(f"Using remote node stores: {settings.nodestore_addresses}")
        return GrpcNodeStorage(settings.nodestore_addresses)

    storage = LocalNodeStorage(settings.chunk_root, settings.node_count)
    storage.ensure_nodes()
    return storage


def _error_response(request: Request, exc: TransferServiceError) -> JSONResponse:
    status_code, code, is_error = status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", True
    for exc_class in type(exc).__mro__:
        if exc_class in ERROR_RESPONSES:
            status_code, code, is_error = ERROR_RESPONSES[exc_class]
            break

    message = f"{exc.kind}: {exc} path={request.url.path}"
    if is_error:
        logger.error(message, exc_info=True)
    else:
        logger.warning(message)

    content = {"detail": str(exc), "code": code, "kind": exc.kind}
    content.update(exc.to_payload())
    return JSONResponse(status_code=status_code, content=content)


def create_app(settings: Optional[ControllerSettings] = None) -> FastAPI:
    """
    Build the controller application and wire its services.

    Args:
        settings: Resolved settings; read from the environment when omitted

    Returns:
        FastAPI application with ingest, merge and status services on app.state
    """
    settings = settings or load_settings()

    app = FastAPI(
        title="Splitstore Controller",
        description="Chunked transfer ingest and merge server",
        version="1.0.0"
    )

    init_database(settings.database_path)
    settings.artifact_root.mkdir(parents=True, exist_ok=True)

    storage = build_storage(settings)
    repository = TransferRepository(settings.database_path)
    router = ChunkRouter(settings.node_count)
    locks = TransferLockManager()

    app.state.settings = settings
    app.state.storage = storage
    app.state.repository = repository
    app.state.ingest_service = IngestService(repository, router, storage, locks)
    app.state.merge_service = MergeService(repository, storage, locks, settings.artifact_root)
    app.state.status_service = StatusService(repository)

    logger.info(
        f"Controller configured: N={settings.node_count}, backend={settings.nodestore_backend}, "
        f"database={settings.database_path}, artifacts={settings.artifact_root}"
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """
        Middleware to log all HTTP requests and responses.
        """
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        token = set_request_id(request_id)

        start_time = time.time()
        logger.info(f"Request started: {request.method} {request.url.path}")

        try:
            response = await call_next(request)

            duration = time.time() - start_time
            logger.info(
                f"Request completed: {request.method} {request.url.path} "
                f"status={response.status_code} duration={duration:.3f}s"
            )
        finally:
            reset_request_id(token)

        response.headers["X-Request-ID"] = request_id
        return response

    @app.on_event("shutdown")
    async def shutdown_event():
        """
        Release node storage connections on application shutdown.
        """
        logger.info("Controller service shutting down...")
        await storage.close()

    @app.exception_handler(TransferServiceError)
    async def transfer_error_handler(request: Request, exc: TransferServiceError):
        return _error_response(request, exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Malformed request: {exc.errors()} path={request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": str(exc), "code": "VALIDATION_ERROR", "kind": ValidationError.kind}
        )

    app.include_router(transfer_router)

    @app.get("/")
    async def root():
        """
        Root endpoint for health check.
        """
        return {"message": "Splitstore Controller API", "status": "running"}

    @app.get("/health")
    async def health_check():
        """
        Health check endpoint for Docker healthcheck.
        Returns 200 if service is alive.
        """
        return {"status": "healthy", "service": "controller"}

    @app.get("/ready")
    async def ready_check():
        """
        Readiness check endpoint.
        Verifies database and node storage availability.
        """
        try:
            with get_db_connection(settings.database_path) as conn:
                conn.execute("SELECT 1")
            db_status = "ok"
        except Exception as e:
            db_status = f"error: {str(e)}"

        try:
            nodestore_status = "ok" if await storage.ping() else "unavailable"
        except Exception as e:
            nodestore_status = f"error: {str(e)}"

        ready = db_status == "ok" and nodestore_status == "ok"
        status_code = status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE

        return JSONResponse(
            status_code=status_code,
            content={
                "ready": ready,
                "database": db_status,
                "nodestore": nodestore_status
            }
        )

    return app


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    settings = load_settings()
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port
    )


if __name__ == "__main__":
    main()
