"""Pydantic schemas for API requests and responses."""

from controller.schemas.transfers import (
    IngestChunkResponse,
    MergeRequest,
    MergeResponse,
    TransferStatusResponse,
    ListTransfersResponse
)
from controller.schemas.common import ErrorResponse

__all__ = [
    "IngestChunkResponse",
    "MergeRequest",
    "MergeResponse",
    "TransferStatusResponse",
    "ListTransfersResponse",
    "ErrorResponse"
]
