"""Pydantic schemas for transfer endpoints."""

from typing import List
from pydantic import BaseModel


class IngestChunkResponse(BaseModel):
    """Response model for a chunk upload."""
    accepted: bool
    complete: bool
    received: int
    expected: int
    node_id: int


class MergeRequest(BaseModel):
    """Request model for merging a transfer."""
    transfer_id: str
    filename: str = ""
    target_path: str = ""


class MergeResponse(BaseModel):
    """Response model for a successful merge."""
    artifact_path: str
    size: int
    checksum: str
    chunks: int
    undeleted_chunks: List[str] = []


class TransferStatusResponse(BaseModel):
    """Response model for transfer status."""
    transfer_id: str
    filename: str
    target_path: str
    total_chunks: int
    received: int
    missing: List[int]
    complete: bool
    created_at: str


class ListTransfersResponse(BaseModel):
    """Response model for listing in-flight transfers."""
    transfers: List[TransferStatusResponse]
