"""Provides SHA-256 checksum calculation and verification helpers."""

import hashlib


def compute_checksum(data: bytes) -> str:
    """
    Compute SHA-256 checksum for given data.

    Args:
        data: Bytes to compute checksum for

    Returns:
        Hexadecimal string representation of SHA-256 hash
    """
    return hashlib.sha256(data).hexdigest()


class IncrementalChecksumCalculator:
    """
    Calculate SHA-256 checksum incrementally for streamed chunk pieces,
    tracking the number of bytes seen alongside the digest.
    """

    def __init__(self):
        self._hasher = hashlib.sha256()
        self._size = 0
        self._finalized = False

    @property
    def size(self) -> int:
        """Total number of bytes fed so far."""
        return self._size

    def update(self, data: bytes) -> None:
        """
        Update checksum with new data.

        Args:
            data: Bytes to add to checksum calculation
        """
        if self._finalized:
            raise ValueError("Cannot update after finalization")
        self._hasher.update(data)
        self._size += len(data)

    def finalize(self) -> str:
        """
        Finalize checksum calculation and return result.

        Returns:
            Hexadecimal string representation of SHA-256 hash
        """
        self._finalized = True
        return self._hasher.hexdigest()
