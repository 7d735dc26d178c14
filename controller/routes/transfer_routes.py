"""Chunked transfer API routes."""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from controller.dependencies import get_ingest_service, get_merge_service, get_status_service
from controller.exceptions import ValidationError
from controller.schemas.common import ErrorResponse
from controller.schemas.transfers import (
    IngestChunkResponse,
    ListTransfersResponse,
    MergeRequest,
    MergeResponse,
    TransferStatusResponse,
)
from controller.services.ingest_service import IngestService
from controller.services.merge_service import MergeService
from controller.services.status_service import StatusService, TransferStatus

router = APIRouter(
    prefix="/transfers",
    tags=["Transfers"],
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)

MERGE_ERROR_RESPONSES = {
    409: {"model": ErrorResponse, "description": "Transfer incomplete"},
    500: {"model": ErrorResponse, "description": "Chunk unreadable during merge"},
}


def _parse_int(name: str, value: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer, got {value!r}")


def _status_response(status: TransferStatus) -> TransferStatusResponse:
    return TransferStatusResponse(
        transfer_id=status.transfer_id,
        filename=status.filename,
        target_path=status.target_path,
        total_chunks=status.total_chunks,
        received=status.received,
        missing=status.missing,
        complete=status.complete,
        created_at=status.created_at.isoformat(),
    )


@router.post("/chunks", response_model=IngestChunkResponse)
async def upload_chunk(
    chunk: Optional[UploadFile] = File(None),
    transfer_id: str = Form(""),
    filename: str = Form(""),
    index: str = Form(""),
    total_chunks: str = Form(""),
    target_path: str = Form(""),
    ingest_service: IngestService = Depends(get_ingest_service),
):
    """
    Upload one chunk of a transfer.

    Parameters:
        - chunk: Chunk bytes (multipart/form-data file part)
        - transfer_id: Client-generated transfer id
        - filename: Name of the artifact to produce
        - index: Chunk index in [0, total_chunks)
        - total_chunks: Number of chunks in the transfer
        - target_path: Destination directory of the artifact

    Returns:
        - accepted: Chunk stored and recorded
        - complete: Every index of the transfer is now present
        - received / expected: Distinct indices present / total_chunks
        - node_id: Partition the chunk was routed to

    Raises:
        - 400: Malformed request (nothing stored)
        - 503: Node storage unavailable
    """
    if chunk is None:
        raise ValidationError("chunk file part is required")

    parsed_index = _parse_int("index", index)
    parsed_total = _parse_int("total_chunks", total_chunks)
    payload = await chunk.read()

    result = await ingest_service.ingest_chunk(
        transfer_id=transfer_id,
        filename=filename,
        index=parsed_index,
        total_chunks=parsed_total,
        target_path=target_path,
        payload=payload,
    )

    return IngestChunkResponse(
        accepted=result.accepted,
        complete=result.complete,
        received=result.received,
        expected=result.expected,
        node_id=result.node_id,
    )


@router.post("/merge", response_model=MergeResponse, responses=MERGE_ERROR_RESPONSES)
async def merge_transfer(
    request: MergeRequest,
    merge_service: MergeService = Depends(get_merge_service),
):
    """
    Merge a complete transfer into its artifact.

    Returns:
        - artifact_path: Logical path 'target_path/filename'
        - size / checksum: Size and SHA-256 of the artifact

    Raises:
        - 404: Unknown or already merged transfer
        - 409: Transfer incomplete (expected / received / missing)
        - 500: A chunk was unreadable (index); chunks are kept for retry
    """
    result = await merge_service.merge(
        transfer_id=request.transfer_id,
        filename=request.filename,
        target_path=request.target_path,
    )

    return MergeResponse(
        artifact_path=result.artifact_path,
        size=result.size,
        checksum=result.checksum,
        chunks=result.chunks,
        undeleted_chunks=result.undeleted_chunks,
    )


@router.get("", response_model=ListTransfersResponse)
async def list_transfers(status_service: StatusService = Depends(get_status_service)):
    """
    List transfers that have not been merged yet.
    """
    return ListTransfersResponse(
        transfers=[_status_response(status) for status in status_service.list_statuses()]
    )


@router.get("/{transfer_id}", response_model=TransferStatusResponse)
async def get_transfer_status(
    transfer_id: str,
    status_service: StatusService = Depends(get_status_service),
):
    """
    Report received and missing chunk indices of a transfer.

    Raises:
        - 404: Unknown or already merged transfer
    """
    return _status_response(status_service.get_status(transfer_id))
