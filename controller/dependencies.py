"""Request-scoped access to the services wired into app.state."""

from fastapi import Request

from controller.services.ingest_service import IngestService
from controller.services.merge_service import MergeService
from controller.services.status_service import StatusService


def get_ingest_service(request: Request) -> IngestService:
    return request.app.state.ingest_service


def get_merge_service(request: Request) -> MergeService:
    return request.app.state.merge_service


def get_status_service(request: Request) -> StatusService:
    return request.app.state.status_service
