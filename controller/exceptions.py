"""Custom exception classes for the Controller."""

from typing import List, Optional


class TransferServiceError(Exception):
    """
    Base exception class for all transfer-related errors.
    """
    kind = "TransferServiceError"

    def to_payload(self) -> dict:
        """Typed fields included in the JSON error body."""
        return {}


class ValidationError(TransferServiceError):
    """
    Raised when an ingest or merge request is malformed. No state is changed.
    """
    kind = "ValidationError"


class TransferNotFoundError(TransferServiceError):
    """
    Raised when no transfer exists for an id (unknown or already merged).
    """
    kind = "NotFoundError"

    def __init__(self, transfer_id: str):
        super().__init__(f"No transfer found for id {transfer_id}")
        self.transfer_id = transfer_id

    def to_payload(self) -> dict:
        return {"transfer_id": self.transfer_id}


class IncompleteTransferError(TransferServiceError):
    """
    Raised when a merge is attempted before every chunk index is present.
    """
    kind = "IncompleteError"

    def __init__(self, transfer_id: str, received: int, expected: int, missing: Optional[List[int]] = None):
        super().__init__(
            f"Transfer {transfer_id} is incomplete: received {received} of {expected} chunks"
        )
        self.transfer_id = transfer_id
        self.received = received
        self.expected = expected
        self.missing = list(missing or [])

    def to_payload(self) -> dict:
        return {
            "transfer_id": self.transfer_id,
            "received": self.received,
            "expected": self.expected,
            "missing": self.missing,
        }


class MergeError(TransferServiceError):
    """
    Raised when a chunk cannot be read during assembly. Source chunks are kept.
    """
    kind = "MergeError"

    def __init__(self, transfer_id: str, index: int, reason: str = ""):
        message = f"Failed to merge transfer {transfer_id}: chunk {index} is unreadable"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.transfer_id = transfer_id
        self.index = index
        self.reason = reason

    def to_payload(self) -> dict:
        return {"transfer_id": self.transfer_id, "index": self.index}


class NodeStorageUnavailableError(TransferServiceError):
    """
    Raised when node storage cannot accept or serve a chunk.
    """
    kind = "NodeStorageUnavailable"


class ArtifactWriteError(TransferServiceError):
    """
    Raised when the merged artifact cannot be written to its destination.
    """
    kind = "ArtifactWriteError"
