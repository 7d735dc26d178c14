"""Service layer for business logic."""

from controller.services.ingest_service import IngestResult, IngestService
from controller.services.merge_service import MergeResult, MergeService, MergeState
from controller.services.status_service import StatusService, TransferStatus

__all__ = [
    "IngestResult",
    "IngestService",
    "MergeResult",
    "MergeService",
    "MergeState",
    "StatusService",
    "TransferStatus",
]
