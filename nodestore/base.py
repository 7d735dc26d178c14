"""Node Storage contract shared by the local and network-attached backends."""

from abc import ABC, abstractmethod
from typing import AsyncIterator


class NodeStorageError(Exception):
    """
    Base exception for node storage failures.
    """
    pass


class ChunkUnavailableError(NodeStorageError):
    """
    Raised when the bytes behind a locator cannot be read.
    """
    pass


class InvalidLocatorError(NodeStorageError):
    """
    Raised when a locator is malformed or points outside its partition root.
    """
    pass


class NodeUnavailableError(NodeStorageError):
    """
    Raised when a storage node cannot be reached.
    """
    pass


class NodeStorage(ABC):
    """
    Byte-addressable put/get/delete over a fixed set of partitions.

    Locators returned by put are opaque to callers and are the only handle
    used to read or delete the stored bytes afterwards.
    """

    @abstractmethod
    async def put(self, node_id: int, transfer_id: str, index: int, data: bytes) -> str:
        """
        Persist one chunk on a node.

        Args:
            node_id: Partition id in [1, N]
            transfer_id: Owning transfer
            index: Chunk index within the transfer
            data: Chunk payload

        Returns:
            Locator for later get/delete, distinct for every call
        """

    @abstractmethod
    def get(self, locator: str) -> AsyncIterator[bytes]:
        """
        Stream the bytes stored under a locator.

        Raises:
            ChunkUnavailableError: If the chunk cannot be read
        """

    @abstractmethod
    async def delete(self, locator: str) -> bool:
        """
        Remove the bytes stored under a locator.

        Returns:
            True if something was deleted, False if nothing was stored
        """

    async def ping(self) -> bool:
        """Report whether the storage backend is reachable."""
        return True

    async def close(self) -> None:
        """Release any held connections."""
        return None
