"""Read-only views of in-flight transfers."""

from dataclasses import dataclass
from datetime import datetime
from typing import List

from common.types import Transfer
from controller.exceptions import TransferNotFoundError
from controller.repositories.transfer_repository import TransferRepository


@dataclass(frozen=True)
class TransferStatus:
    transfer_id: str
    filename: str
    target_path: str
    total_chunks: int
    received: int
    missing: List[int]
    complete: bool
    created_at: datetime

    @classmethod
    def from_transfer(cls, transfer: Transfer) -> 'TransferStatus':
        return cls(
            transfer_id=transfer.transfer_id,
            filename=transfer.filename,
            target_path=transfer.target_path,
            total_chunks=transfer.total_chunks,
            received=transfer.received,
            missing=transfer.missing_indices(),
            complete=transfer.is_complete(),
            created_at=transfer.created_at,
        )


class StatusService:
    def __init__(self, repository: TransferRepository):
        self.repository = repository

    def get_status(self, transfer_id: str) -> TransferStatus:
        """
        Report which chunks of a transfer have arrived.

        Raises:
            TransferNotFoundError: If no transfer exists for the id
        """
        transfer = self.repository.get(transfer_id)
        if transfer is None:
            raise TransferNotFoundError(transfer_id)
        return TransferStatus.from_transfer(transfer)

    def list_statuses(self) -> List[TransferStatus]:
        """Status of every transfer that has not been merged yet."""
        return [TransferStatus.from_transfer(t) for t in self.repository.list_transfers()]
