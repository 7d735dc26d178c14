"""Repository layer for data access."""

from controller.repositories.transfer_repository import TransferRepository

__all__ = [
    "TransferRepository",
]
